"""Match payment emails from a tenant against their unpaid consolidated bills."""
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Optional

from flask import current_app

from ..extensions import db
from ..models import ConsolidatedBill
from .billing import get_tenant_shares, round_to_currency
from .inbox import iter_payments

DEFAULT_TOLERANCE = Decimal("0.01")


@dataclass
class ReconciliationResult:
    matched: bool
    reason: str
    bill_id: Optional[int] = None
    amount: Optional[Decimal] = None
    expected_amount: Optional[Decimal] = None
    message_id: Optional[str] = None
    outstanding_balance: Optional[Decimal] = None

    def serialize(self):
        return {
            "matched": self.matched,
            "reason": self.reason,
            "bill_id": self.bill_id,
            "amount": float(self.amount) if self.amount is not None else None,
            "expected_amount": float(self.expected_amount) if self.expected_amount is not None else None,
            "message_id": self.message_id,
            "outstanding_balance": float(self.outstanding_balance) if self.outstanding_balance is not None else None,
        }


def _tolerance():
    return Decimal(str(current_app.config.get("PAYMENT_MATCH_TOLERANCE", DEFAULT_TOLERANCE)))


def unpaid_bills_for(tenant):
    """Unpaid bills of the tenant, oldest first."""
    return (
        ConsolidatedBill.query.filter_by(user_id=tenant.user_id, tenant_id=tenant.id, paid=False)
        .order_by(ConsolidatedBill.year.asc(), ConsolidatedBill.month.asc())
        .all()
    )


def expected_amounts(tenant, bills):
    """(bill, expected) pairs; the oldest bill also carries the tenant's balance."""
    pairs = []
    for index, bill in enumerate(sorted(bills, key=lambda b: (b.year, b.month))):
        _, tenant_total = get_tenant_shares(bill, tenant)
        if index == 0:
            tenant_total += tenant.balance
        pairs.append((bill, round_to_currency(tenant_total)))
    return pairs


def match_payment_to_bills(tenant, bills, amount, tolerance=DEFAULT_TOLERANCE):
    """Return (bill, expected) for the first bill the amount pays, else (None, None)."""
    for bill, expected in expected_amounts(tenant, bills):
        if abs(Decimal(str(amount)) - expected) <= tolerance:
            return bill, expected
    return None, None


def apply_payment(tenant, bill, payment):
    bill.mark_paid(payment_message_id=payment.gmail_message_id)
    new_balance = tenant.balance - payment.amount
    tenant.outstanding_balance = round_to_currency(max(new_balance, Decimal("0")))
    db.session.commit()
    current_app.logger.info(
        "Bill %s marked paid from message %s; tenant %s balance now %s",
        bill.id,
        payment.gmail_message_id,
        tenant.id,
        tenant.outstanding_balance,
    )


def _search_window(bills, start=None, end=None, today=None):
    today = today or datetime.utcnow().date()
    if start is None:
        oldest = bills[0]
        start = date(oldest.year, oldest.month, 1)
    if end is None:
        end = today + timedelta(days=1)
    return start, end


def applied_payment_bills(user):
    """Map of payment message id -> bill id for every payment already recorded for the user."""
    rows = (
        db.session.query(ConsolidatedBill.payment_message_id, ConsolidatedBill.id)
        .filter(ConsolidatedBill.user_id == user.id, ConsolidatedBill.payment_message_id.isnot(None))
        .all()
    )
    return {message_id: bill_id for message_id, bill_id in rows}


def reconcile_tenant_payment(user, tenant, start=None, end=None, today=None):
    """Look for a payment email from the tenant and settle the bill it pays."""
    bills = unpaid_bills_for(tenant)
    if not bills:
        current_app.logger.info("Tenant %s has no unpaid bills", tenant.id)
        return ReconciliationResult(matched=False, reason="no_unpaid_bills", outstanding_balance=tenant.balance)

    start, end = _search_window(bills, start, end, today)
    applied = applied_payment_bills(user)

    payment, skipped = None, None
    for name in tenant.payer_names:
        for candidate in iter_payments(user, name, start, end):
            if candidate.gmail_message_id in applied:
                skipped = skipped or candidate
                continue
            payment = candidate
            break
        if payment:
            break

    if payment is None and skipped is not None:
        bill_id = applied[skipped.gmail_message_id]
        current_app.logger.info("Payment message %s was already applied to bill %s", skipped.gmail_message_id, bill_id)
        return ReconciliationResult(
            matched=False,
            reason="payment_already_applied",
            bill_id=bill_id,
            amount=skipped.amount,
            message_id=skipped.gmail_message_id,
            outstanding_balance=tenant.balance,
        )
    if payment is None:
        current_app.logger.info("No payment email found for tenant %s between %s and %s", tenant.id, start, end)
        return ReconciliationResult(matched=False, reason="no_payment_found", outstanding_balance=tenant.balance)

    bill, expected = match_payment_to_bills(tenant, bills, payment.amount, _tolerance())
    if bill is None:
        current_app.logger.warning(
            "Payment of %s from tenant %s does not match any unpaid bill", payment.amount, tenant.id
        )
        return ReconciliationResult(
            matched=False,
            reason="no_matching_bill",
            amount=payment.amount,
            message_id=payment.gmail_message_id,
            outstanding_balance=tenant.balance,
        )

    apply_payment(tenant, bill, payment)
    return ReconciliationResult(
        matched=True,
        reason="matched",
        bill_id=bill.id,
        amount=payment.amount,
        expected_amount=expected,
        message_id=payment.gmail_message_id,
        outstanding_balance=tenant.balance,
    )
