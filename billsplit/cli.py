"""Maintenance commands, run with `flask --app wsgi <command>`."""
import json
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path

import click
from sqlalchemy import DateTime, Numeric
from sqlalchemy.exc import SQLAlchemyError

from .extensions import db
from .models import UTILITY_CATEGORIES, ConsolidatedBill, Tenant, User, UtilityProvider
from .utils.billing import round_to_currency

DEFAULT_MESSAGE_ID = "no-gmail-id"
DEFAULT_PROVIDER_NAME = "Unknown Provider"


def _to_json(value):
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    return value


def _from_json(column, value):
    if value is None:
        return None
    if isinstance(column.type, DateTime):
        return datetime.fromisoformat(value)
    if isinstance(column.type, Numeric):
        return Decimal(str(value))
    return value


def dump_tables(target: Path):
    target.mkdir(parents=True, exist_ok=True)
    counts = {}
    for table in db.metadata.sorted_tables:
        rows = db.session.execute(table.select().order_by(*table.primary_key.columns)).mappings().all()
        data = [{k: _to_json(v) for k, v in row.items()} for row in rows]
        (target / f"{table.name}.json").write_text(json.dumps(data, indent=2))
        counts[table.name] = len(data)
    return counts


def load_tables(source: Path, wipe=False):
    if wipe:
        for table in reversed(db.metadata.sorted_tables):
            db.session.execute(table.delete())
    counts = {}
    for table in db.metadata.sorted_tables:
        path = source / f"{table.name}.json"
        if not path.exists():
            continue
        rows = json.loads(path.read_text())
        rows = [{k: _from_json(table.c[k], v) for k, v in row.items() if k in table.c} for row in rows]
        if rows:
            db.session.execute(table.insert(), rows)
        counts[table.name] = len(rows)
    db.session.commit()
    return counts


def find_data_issues():
    """Rows that break the model rules, as human readable strings."""
    issues = []
    for provider in UtilityProvider.query.order_by(UtilityProvider.id):
        if provider.category not in UTILITY_CATEGORIES:
            issues.append(f"provider {provider.id}: unknown category {provider.category!r}")

    for tenant in Tenant.query.order_by(Tenant.id):
        if tenant.balance < 0:
            issues.append(f"tenant {tenant.id}: negative balance {tenant.balance}")
        for category, pct in (tenant.shares or {}).items():
            if category not in UTILITY_CATEGORIES:
                issues.append(f"tenant {tenant.id}: unknown share category {category!r}")
            try:
                value = float(pct)
            except (TypeError, ValueError):
                issues.append(f"tenant {tenant.id}: share for {category} is not a number")
                continue
            if not 0 <= value <= 100:
                issues.append(f"tenant {tenant.id}: share for {category} out of range ({value})")

    for bill in ConsolidatedBill.query.order_by(ConsolidatedBill.id):
        expected = sum((Decimal(i.amount or 0) for i in bill.categories), Decimal("0"))
        if round_to_currency(expected) != round_to_currency(bill.total_amount or 0):
            issues.append(f"bill {bill.id}: total {bill.total_amount} does not match line items {expected}")
        for item in bill.categories:
            if item.category not in UTILITY_CATEGORIES:
                issues.append(f"bill {bill.id}: unknown category {item.category!r}")
    return issues


def normalize_bills():
    """Fill missing line-item fields and recompute totals. Returns the ids of changed bills."""
    changed = []
    for bill in ConsolidatedBill.query.order_by(ConsolidatedBill.id):
        before = (bill.paid, round_to_currency(bill.total_amount or 0))
        touched = False
        for item in bill.categories:
            if not item.gmail_message_id:
                item.gmail_message_id = DEFAULT_MESSAGE_ID
                touched = True
            if not item.provider_name:
                item.provider_name = DEFAULT_PROVIDER_NAME
                touched = True
            if item.amount is None:
                item.amount = Decimal("0.00")
                touched = True
        if bill.paid is None:
            bill.paid = False
        bill.recalculate_total()
        if touched or before != (bill.paid, round_to_currency(bill.total_amount)):
            changed.append(bill.id)
    return changed


def seed_demo():
    user = User.query.filter_by(provider_account_id="demo").first()
    if user:
        return user, False

    user = User(provider_account_id="demo", name="Demo Landlord", email="landlord@example.com")
    db.session.add(user)
    db.session.flush()
    for name, category in (
        ("City Water", "Water"),
        ("Metro Gas", "Gas"),
        ("PowerCo", "Electricity"),
        ("FastNet", "Internet"),
    ):
        db.session.add(UtilityProvider(user_id=user.id, name=name, category=category))
    db.session.add(
        Tenant(
            user_id=user.id,
            name="Alex Tenant",
            email="alex@example.com",
            shares={"Water": 50, "Gas": 50, "Electricity": 50, "Internet": 50, "Other": 0},
        )
    )
    db.session.add(
        Tenant(
            user_id=user.id,
            name="Sam Tenant",
            email="sam@example.com",
            secondary_name="Jo Tenant",
            shares={"Water": 50, "Gas": 50, "Electricity": 50, "Internet": 50, "Other": 0},
        )
    )
    db.session.commit()
    return user, True


def register_commands(app):
    @app.cli.command("backup-data")
    @click.argument("directory", type=click.Path(file_okay=False, path_type=Path))
    def backup_data(directory):
        """Dump every table to JSON files."""
        counts = dump_tables(directory)
        for name, count in counts.items():
            click.echo(f"{name}: {count} rows")
        click.echo(f"Backup written to {directory}")

    @app.cli.command("restore-data")
    @click.argument("directory", type=click.Path(exists=True, file_okay=False, path_type=Path))
    @click.option("--wipe", is_flag=True, help="Delete existing rows first.")
    def restore_data(directory, wipe):
        """Load a JSON backup."""
        try:
            counts = load_tables(directory, wipe=wipe)
        except SQLAlchemyError as exc:
            db.session.rollback()
            app.logger.error("Restore failed: %s", exc)
            raise click.ClickException(f"Restore failed: {next(iter(str(exc).splitlines()), '')}")
        for name, count in counts.items():
            click.echo(f"{name}: {count} rows")

    @app.cli.command("diagnose-data")
    def diagnose_data():
        """Report rows that violate model rules."""
        issues = find_data_issues()
        for issue in issues:
            click.echo(issue)
        click.echo(f"{len(issues)} issue(s) found" if issues else "No issues found")

    @app.cli.command("normalize-bills")
    @click.option("--dry-run", is_flag=True)
    def normalize_bills_command(dry_run):
        """Default missing bill fields and recompute totals."""
        changed = normalize_bills()
        if dry_run:
            db.session.rollback()
        else:
            db.session.commit()
        verb = "Would update" if dry_run else "Updated"
        click.echo(f"{verb} {len(changed)} bill(s)" + (f": {', '.join(map(str, changed))}" if changed else ""))

    @app.cli.command("seed-demo")
    def seed_demo_command():
        """Create a demo landlord with providers and tenants."""
        user, created = seed_demo()
        click.echo(("Seeded" if created else "Already present:") + f" demo user {user.id} {user.email}")
