from datetime import date
from decimal import Decimal

from billsplit.utils.inbox import query_for_bill_payment
from billsplit.utils.reconciliation import (
    expected_amounts,
    match_payment_to_bills,
    reconcile_tenant_payment,
    unpaid_bills_for,
)


def _bills(user, tenant, make_bill):
    # tenant pays half: January share 50.00, February share 40.00
    feb = make_bill(user, tenant, year=2024, month=2, items={"Water": ("City Water", "80.00")})
    jan = make_bill(user, tenant, year=2024, month=1, items={"Water": ("City Water", "100.00")})
    return jan, feb


def test_unpaid_bills_are_oldest_first(user, make_tenant, make_bill):
    tenant = make_tenant(user, shares={"Water": 50})
    jan, feb = _bills(user, tenant, make_bill)
    make_bill(user, tenant, year=2023, month=12, paid=True)
    assert [b.id for b in unpaid_bills_for(tenant)] == [jan.id, feb.id]


def test_oldest_bill_carries_the_balance(user, make_tenant, make_bill):
    tenant = make_tenant(user, shares={"Water": 50}, balance="10.00")
    jan, feb = _bills(user, tenant, make_bill)
    pairs = expected_amounts(tenant, [feb, jan])
    assert pairs == [(jan, Decimal("60.00")), (feb, Decimal("40.00"))]


def test_match_within_one_cent(user, make_tenant, make_bill):
    tenant = make_tenant(user, shares={"Water": 50}, balance="10.00")
    jan, feb = _bills(user, tenant, make_bill)

    assert match_payment_to_bills(tenant, [jan, feb], Decimal("59.99"))[0] is jan
    assert match_payment_to_bills(tenant, [jan, feb], Decimal("40.01"))[0] is feb
    assert match_payment_to_bills(tenant, [jan, feb], Decimal("59.98")) == (None, None)
    # without the balance the January share alone does not match
    assert match_payment_to_bills(tenant, [jan, feb], Decimal("50.00")) == (None, None)


def test_reconcile_marks_bill_paid_and_reduces_balance(user, make_tenant, make_bill, gmail):
    tenant = make_tenant(user, name="Tina Tenant", shares={"Water": 50}, balance="10.00")
    jan, feb = _bills(user, tenant, make_bill)
    gmail.add_payment("Tina Tenant", "pay-1", "$60.00")

    result = reconcile_tenant_payment(user, tenant, today=date(2024, 3, 5))

    assert result.matched and result.reason == "matched"
    assert result.bill_id == jan.id
    assert result.expected_amount == Decimal("60.00")
    assert jan.paid and jan.payment_message_id == "pay-1" and jan.date_paid is not None
    assert not feb.paid
    assert tenant.balance == Decimal("0.00")
    assert gmail.queries[0] == 'from:"Tina Tenant" after:2024/01/01 before:2024/03/06'


def test_balance_never_goes_negative(user, make_tenant, make_bill, gmail):
    tenant = make_tenant(user, name="Tina Tenant", shares={"Water": 50}, balance="0.01")
    make_bill(user, tenant, year=2024, month=1, items={"Water": ("City Water", "100.00")})
    gmail.add_payment("Tina Tenant", "pay-1", "$50.01")

    result = reconcile_tenant_payment(user, tenant, today=date(2024, 2, 1))

    assert result.matched
    assert tenant.balance == Decimal("0.00")


def test_secondary_name_is_searched_when_primary_has_nothing(user, make_tenant, make_bill, gmail):
    tenant = make_tenant(user, name="Tina Tenant", secondary_name="Tom Tenant", shares={"Water": 50})
    bill = make_bill(user, tenant, year=2024, month=1, items={"Water": ("City Water", "100.00")})
    gmail.add_payment("Tom Tenant", "pay-2", "$50.00")

    result = reconcile_tenant_payment(user, tenant, today=date(2024, 2, 1))

    assert result.matched and result.bill_id == bill.id
    assert len(gmail.queries) == 2


def test_no_payment_or_no_match_leaves_state_alone(user, make_tenant, make_bill, gmail):
    tenant = make_tenant(user, name="Tina Tenant", shares={"Water": 50}, balance="5.00")
    bill = make_bill(user, tenant, year=2024, month=1, items={"Water": ("City Water", "100.00")})

    result = reconcile_tenant_payment(user, tenant, today=date(2024, 2, 1))
    assert result.reason == "no_payment_found"

    gmail.add_payment("Tina Tenant", "pay-3", "$20.00")
    result = reconcile_tenant_payment(user, tenant, today=date(2024, 2, 1))
    assert result.reason == "no_matching_bill"
    assert result.amount == Decimal("20.00")
    assert not bill.paid
    assert tenant.balance == Decimal("5.00")


def test_no_unpaid_bills(user, make_tenant, gmail):
    tenant = make_tenant(user)
    result = reconcile_tenant_payment(user, tenant)
    assert result.reason == "no_unpaid_bills"
    assert gmail.queries == []


def test_payment_is_not_applied_twice(user, make_tenant, make_bill, gmail):
    tenant = make_tenant(user, name="Tina Tenant", shares={"Water": 50})
    make_bill(user, tenant, year=2024, month=1, paid=True, payment_message_id="pay-1")
    feb = make_bill(user, tenant, year=2024, month=2, items={"Water": ("City Water", "100.00")})
    gmail.add_payment("Tina Tenant", "pay-1", "$50.00")

    result = reconcile_tenant_payment(user, tenant, today=date(2024, 3, 1))

    assert result.reason == "payment_already_applied"
    assert not feb.paid


def test_applied_payment_does_not_hide_a_new_one_from_the_secondary_name(user, make_tenant, make_bill, gmail):
    tenant = make_tenant(user, name="Tina Tenant", secondary_name="Tom Tenant", shares={"Water": 50})
    jan = make_bill(user, tenant, year=2024, month=1, paid=True, payment_message_id="pay-1")
    feb = make_bill(user, tenant, year=2024, month=2, items={"Water": ("City Water", "100.00")})
    gmail.add_payment("Tina Tenant", "pay-1", "$50.00")
    gmail.add_payment("Tom Tenant", "pay-2", "$50.00")

    result = reconcile_tenant_payment(user, tenant, today=date(2024, 3, 1))

    assert result.matched and result.bill_id == feb.id
    assert result.message_id == "pay-2"
    assert feb.paid and feb.payment_message_id == "pay-2"
    assert jan.payment_message_id == "pay-1"
    assert len(gmail.queries) == 2


def test_applied_payment_does_not_hide_a_later_message_from_the_same_sender(user, make_tenant, make_bill, gmail):
    tenant = make_tenant(user, name="Tina Tenant", secondary_name="Tom Tenant", shares={"Water": 50})
    make_bill(user, tenant, year=2024, month=1, paid=True, payment_message_id="pay-1")
    feb = make_bill(user, tenant, year=2024, month=2, items={"Water": ("City Water", "100.00")})
    gmail.add_payment("Tina Tenant", "pay-1", "$50.00")
    gmail.add_payment("Tina Tenant", "pay-3", "$50.00")

    result = reconcile_tenant_payment(user, tenant, today=date(2024, 3, 1))

    assert result.matched and result.message_id == "pay-3"
    assert feb.paid
    assert len(gmail.queries) == 1


def test_float_amount_matches_at_exactly_one_cent(user, make_tenant, make_bill):
    tenant = make_tenant(user, shares={"Water": 50})
    bill = make_bill(user, tenant, year=2024, month=1, items={"Water": ("City Water", "80.04")})

    assert match_payment_to_bills(tenant, [bill], 40.01, Decimal("0.01")) == (bill, Decimal("40.02"))


def test_query_for_bill_payment_skips_excluded_messages(user, gmail):
    gmail.add_payment("Tina Tenant", "pay-1", "$50.00")
    gmail.add_payment("Tina Tenant", "pay-2", "$25.00")

    payment = query_for_bill_payment(user, "Tina Tenant", date(2024, 1, 1), date(2024, 2, 1), exclude={"pay-1"})
    assert payment.gmail_message_id == "pay-2"
    assert payment.amount == Decimal("25.00")

    assert query_for_bill_payment(user, "Tina Tenant", date(2024, 1, 1), date(2024, 2, 1), exclude={"pay-1", "pay-2"}) is None
