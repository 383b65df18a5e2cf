import calendar
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional

from dateutil.relativedelta import relativedelta
from flask import current_app, render_template

from ..models import BillCategory, ConsolidatedBill, UtilityProvider

CENT = Decimal("0.01")


@dataclass
class UtilityBill:
    """A provider's charges for one month, as found in the mailbox."""

    provider: UtilityProvider
    amount: Decimal
    month: int
    year: int
    gmail_message_ids: List[str] = field(default_factory=list)

    def serialize(self):
        return {
            "provider_id": self.provider.id,
            "provider_name": self.provider.name,
            "category": self.provider.category,
            "amount": float(self.amount),
            "month": self.month,
            "year": self.year,
            "gmail_message_id": ",".join(self.gmail_message_ids),
        }


@dataclass(frozen=True)
class EmailContent:
    subject: str
    body: str


def round_to_currency(amount) -> Decimal:
    return Decimal(str(amount)).quantize(CENT, rounding=ROUND_HALF_UP)


def format_currency(amount) -> str:
    return f"${round_to_currency(amount):,.2f}"


def month_name(month):
    return calendar.month_name[month]


def month_bounds(year, month):
    """First day of the month and first day of the following month."""
    start = date(year, month, 1)
    return start, start + relativedelta(months=1)


def previous_month(day: date):
    prev = date(day.year, day.month, 1) - relativedelta(months=1)
    return prev.year, prev.month


def get_tenant_shares(bill, tenant):
    """Split each category of the bill by the tenant's percentages.

    Returns (shares_by_category, tenant_total); a category the tenant has no
    percentage for counts as 0.
    """
    shares = {}
    for item in bill.categories:
        pct = tenant.share_for(item.category) if tenant else Decimal("0")
        shares[item.category] = Decimal(item.amount or 0) * pct / Decimal("100")
    tenant_total = sum(shares.values(), Decimal("0"))
    return shares, tenant_total


def initialize_consolidated_bill(user_id, bills, current_date: Optional[date] = None):
    """Fold the month's provider bills into an unsaved ConsolidatedBill."""
    current_date = current_date or datetime.utcnow().date()
    grouped = {}
    for bill in bills:
        category = bill.provider.category
        entry = grouped.setdefault(
            category,
            {"provider_ids": [], "names": [], "message_ids": [], "amount": Decimal("0")},
        )
        entry["provider_ids"].append(bill.provider.id)
        entry["names"].append(bill.provider.name)
        entry["message_ids"].extend(bill.gmail_message_ids)
        entry["amount"] += Decimal(bill.amount)

    items = []
    for category, entry in grouped.items():
        items.append(
            BillCategory(
                category=category,
                # several providers in one category keep no single provider id
                provider_id=entry["provider_ids"][0] if len(entry["provider_ids"]) == 1 else None,
                provider_name=", ".join(entry["names"]),
                gmail_message_id=",".join(entry["message_ids"]) or None,
                amount=round_to_currency(entry["amount"]),
            )
        )

    bill = ConsolidatedBill(
        user_id=user_id,
        year=current_date.year,
        month=current_date.month,
        tenant_id=None,
        paid=False,
        categories=items,
    )
    bill.recalculate_total()
    return bill


def construct_email(tenant, bill):
    """Build the HTML bill email for a tenant."""
    month = month_name(bill.month)
    subject = f"Utility Bills for {month} of {bill.year}"
    shares, tenant_total = get_tenant_shares(bill, tenant)
    outstanding = tenant.balance

    rows = []
    for item in bill.categories:
        total = Decimal(item.amount or 0)
        share = shares.get(item.category, Decimal("0"))
        percent = (share / total * 100) if total > 0 else Decimal("0")
        rows.append(
            {
                "label": f"{item.category} - {item.provider_name}",
                "total": f"{round_to_currency(total):.2f}",
                "percent": f"{percent.quantize(Decimal('0.1'), rounding=ROUND_HALF_UP)}",
                "share": f"{round_to_currency(share):.2f}",
            }
        )

    body = render_template(
        "email/bill.html",
        tenant_name=tenant.name,
        month=month,
        year=bill.year,
        rows=rows,
        tenant_total=f"{round_to_currency(tenant_total):.2f}",
        outstanding=f"{round_to_currency(outstanding):.2f}",
        amount_due=f"{round_to_currency(tenant_total + outstanding):.2f}",
        app_name=current_app.config.get("APP_DISPLAY_NAME", "BillSplit"),
    )
    return EmailContent(subject=subject, body=body)
