import base64
import time
from decimal import Decimal

import pytest
from flask_jwt_extended import create_access_token

from billsplit import create_app
from billsplit.extensions import db as _db
from billsplit.models import BillCategory, ConsolidatedBill, Tenant, User, UtilityProvider


def encode_body(text):
    return base64.urlsafe_b64encode(text.encode("utf-8")).decode("ascii").rstrip("=")


def make_message(message_id, subject="", snippet="", body=""):
    return {
        "id": message_id,
        "snippet": snippet,
        "payload": {
            "headers": [{"name": "Subject", "value": subject}],
            "body": {"data": encode_body(body)} if body else {},
        },
    }


class FakeGmailClient:
    """In-memory stand-in for GmailClient.

    Each message is registered with a token; list_messages returns the
    messages whose token appears in the search query.
    """

    def __init__(self):
        self.messages = {}
        self.tokens = []
        self.queries = []
        self.sent = []

    def add(self, token, message):
        self.messages[message["id"]] = message
        self.tokens.append((token, message["id"]))
        return message

    def add_bill(self, provider_name, message_id, amount_text, subject=None):
        subject = subject or f"Your {provider_name} bill is ready"
        return self.add(provider_name, make_message(message_id, subject=subject, snippet=f"Amount due: {amount_text}"))

    def add_payment(self, sender_name, message_id, amount_text, date="Jan 5, 2024"):
        body = f"You received money!\nDate: {date}\nSent From: {sender_name}\nAmount: {amount_text}\n"
        return self.add(f'from:"{sender_name}"', make_message(message_id, subject="Payment received", body=body))

    def list_messages(self, query, max_results=None):
        self.queries.append(query)
        return [{"id": mid} for token, mid in self.tokens if token in query]

    def get_message(self, message_id):
        return self.messages[message_id]

    def send_message(self, raw_message):
        self.sent.append(raw_message)
        return {"id": f"sent-{len(self.sent)}"}


@pytest.fixture
def app():
    app = create_app("billsplit.config.TestingConfig")
    with app.app_context():
        _db.create_all()
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def db(app):
    return _db


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def runner(app):
    return app.test_cli_runner()


@pytest.fixture
def user(db):
    u = User(
        provider_account_id="acct-1",
        name="Lana Landlord",
        email="lana@example.com",
        access_token="mail-token",
        access_token_expires_at=int(time.time()) + 3600,
    )
    db.session.add(u)
    db.session.commit()
    return u


@pytest.fixture
def auth_headers(user):
    token = create_access_token(identity=str(user.id))
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def other_user(db):
    u = User(provider_account_id="acct-2", name="Other", email="other@example.com")
    db.session.add(u)
    db.session.commit()
    return u


@pytest.fixture
def gmail(monkeypatch):
    fake = FakeGmailClient()
    monkeypatch.setattr("billsplit.utils.inbox.get_gmail_client", lambda user: fake)
    return fake


@pytest.fixture
def make_provider(db):
    def _make(user, name="City Water", category="Water", **kwargs):
        provider = UtilityProvider(user_id=user.id, name=name, category=category, **kwargs)
        db.session.add(provider)
        db.session.commit()
        return provider

    return _make


@pytest.fixture
def make_tenant(db):
    def _make(user, name="Tina Tenant", email="tina@example.com", shares=None, balance="0", **kwargs):
        tenant = Tenant(
            user_id=user.id,
            name=name,
            email=email,
            shares=shares if shares is not None else {"Water": 50, "Gas": 50, "Electricity": 50, "Internet": 50},
            outstanding_balance=Decimal(balance),
            **kwargs,
        )
        db.session.add(tenant)
        db.session.commit()
        return tenant

    return _make


@pytest.fixture
def make_bill(db):
    def _make(user, tenant=None, year=2024, month=1, items=None, paid=False, payment_message_id=None):
        items = items or {"Water": ("City Water", "100.00")}
        bill = ConsolidatedBill(
            user_id=user.id,
            tenant_id=tenant.id if tenant else None,
            year=year,
            month=month,
            paid=paid,
            payment_message_id=payment_message_id,
        )
        for category, (provider_name, amount) in items.items():
            bill.categories.append(
                BillCategory(category=category, provider_name=provider_name, amount=Decimal(amount))
            )
        bill.recalculate_total()
        db.session.add(bill)
        db.session.commit()
        return bill

    return _make
