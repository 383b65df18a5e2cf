"""init schema

Revision ID: 0001_init
Revises: 
Create Date: 2026-10-17 00:00:00
"""

from alembic import op
import sqlalchemy as sa

revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table('users',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('provider_account_id', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('access_token', sa.Text(), nullable=True),
        sa.Column('access_token_expires_at', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.Column('last_login', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_users_provider_account_id', 'users', ['provider_account_id'], unique=True)
    op.create_index('ix_users_email', 'users', ['email'], unique=False)

    op.create_table('utility_providers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('category', sa.String(length=20), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('website', sa.String(length=500), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'name', name='uq_provider_user_name')
    )
    op.create_index('ix_utility_providers_user_id', 'utility_providers', ['user_id'], unique=False)

    op.create_table('tenants',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('secondary_name', sa.String(length=100), nullable=True),
        sa.Column('shares', sa.JSON(), nullable=False),
        sa.Column('outstanding_balance', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_tenants_user_id', 'tenants', ['user_id'], unique=False)

    op.create_table('consolidated_bills',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=True),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('month', sa.Integer(), nullable=False),
        sa.Column('total_amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('paid', sa.Boolean(), nullable=False),
        sa.Column('date_sent', sa.DateTime(), nullable=True),
        sa.Column('date_paid', sa.DateTime(), nullable=True),
        sa.Column('payment_message_id', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'year', 'month', 'tenant_id', name='uq_bill_user_month_tenant')
    )
    op.create_index('ix_consolidated_bills_user_id', 'consolidated_bills', ['user_id'], unique=False)
    op.create_index('ix_consolidated_bills_tenant_id', 'consolidated_bills', ['tenant_id'], unique=False)
    op.create_index('ix_consolidated_bills_paid', 'consolidated_bills', ['paid'], unique=False)
    op.create_index('ix_consolidated_bills_payment_message_id', 'consolidated_bills', ['payment_message_id'], unique=False)

    op.create_table('bill_categories',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('bill_id', sa.Integer(), nullable=False),
        sa.Column('category', sa.String(length=20), nullable=False),
        sa.Column('provider_id', sa.Integer(), nullable=True),
        sa.Column('provider_name', sa.String(length=255), nullable=False),
        sa.Column('gmail_message_id', sa.Text(), nullable=True),
        sa.Column('amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.ForeignKeyConstraint(['bill_id'], ['consolidated_bills.id']),
        sa.ForeignKeyConstraint(['provider_id'], ['utility_providers.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('bill_id', 'category', name='uq_bill_category')
    )
    op.create_index('ix_bill_categories_bill_id', 'bill_categories', ['bill_id'], unique=False)


def downgrade():
    op.drop_table('bill_categories')
    op.drop_table('consolidated_bills')
    op.drop_table('tenants')
    op.drop_table('utility_providers')
    op.drop_table('users')
