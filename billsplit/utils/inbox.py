"""Mailbox operations: bill discovery, bill delivery and payment lookup."""
from decimal import Decimal

from flask import current_app

from ..errors import AppError, NetworkError
from .billing import UtilityBill, month_bounds
from .email_parsing import extract_dollar_amounts, get_header, get_message_body, parse_payment_details, to_decimal
from .gmail import get_gmail_client


def _gmail_date(day):
    return day.strftime("%Y/%m/%d")


def _max_results():
    return current_app.config.get("GMAIL_MAX_RESULTS")


def parse_bill_messages(client, messages, provider_name):
    """Collect (message_id, amount) pairs from bill emails of one provider.

    Only messages whose subject mentions both the provider and "bill" count.
    """
    found = []
    wanted = provider_name.lower()
    for message in messages:
        details = client.get_message(message["id"])
        subject = (get_header(details, "subject") or "No Subject").lower()
        if wanted not in subject or "bill" not in subject:
            continue
        for amount in extract_dollar_amounts(details.get("snippet") or ""):
            found.append((message["id"], to_decimal(amount)))
    return found


def fetch_user_bills(user, providers, month, year):
    """Scan the mailbox for each provider's bill for the given month."""
    client = get_gmail_client(user)
    start, end = month_bounds(year, month)
    bills = []
    try:
        for provider in providers:
            query = f'"{provider.name}" after:{_gmail_date(start)} before:{_gmail_date(end)}'
            messages = client.list_messages(query, max_results=_max_results())
            if not messages:
                bills.append(UtilityBill(provider=provider, amount=Decimal("0"), month=month, year=year))
                continue

            details = parse_bill_messages(client, messages, provider.name)
            message_ids = []
            for message_id, _ in details:
                if message_id not in message_ids:
                    message_ids.append(message_id)
            bills.append(
                UtilityBill(
                    provider=provider,
                    amount=sum((amount for _, amount in details), Decimal("0")),
                    month=month,
                    year=year,
                    gmail_message_ids=message_ids,
                )
            )
    except AppError:
        raise
    except Exception as e:
        current_app.logger.exception("Error fetching bills: %s", e)
        raise NetworkError("Failed to fetch bills")
    return bills


def build_raw_email(to, subject, body):
    return "\r\n".join(
        [
            f"To: {to}",
            f"Subject: {subject}",
            'Content-Type: text/html; charset="UTF-8"',
            "",
            body,
        ]
    )


def send_email(user, email_content, tenant):
    """Send the bill email from the landlord's mailbox; returns the message id."""
    client = get_gmail_client(user)
    raw = build_raw_email(tenant.email, email_content.subject, email_content.body)
    result = client.send_message(raw)
    message_id = result.get("id")
    if not message_id:
        raise NetworkError("Failed to send email", method="POST")
    current_app.logger.info("Sent bill email to tenant %s (message %s)", tenant.id, message_id)
    return message_id


def iter_payments(user, sender_name, start, end):
    """Yield every payment notification from `sender_name` in [start, end), in mailbox order."""
    client = get_gmail_client(user)
    query = f'from:"{sender_name}" after:{_gmail_date(start)} before:{_gmail_date(end)}'
    messages = client.list_messages(query, max_results=_max_results())
    for message in messages:
        details = client.get_message(message["id"])
        body = get_message_body(details.get("payload") or {})
        payment = parse_payment_details(body, message_id=message["id"])
        if payment:
            yield payment


def query_for_bill_payment(user, sender_name, start, end, exclude=()):
    """Return the first payment from `sender_name` whose message id is not in `exclude`."""
    for payment in iter_payments(user, sender_name, start, end):
        if payment.gmail_message_id not in exclude:
            return payment
    return None
