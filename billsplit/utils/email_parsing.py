"""Helpers for pulling bill amounts and payment details out of Gmail messages."""
import base64
import binascii
import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

# 123.45 or 1,234.56, with or without the dollar sign
DOLLAR_AMOUNT_RE = re.compile(r"\d{1,3}(?:,\d{3})+\.\d{2}|\d+\.\d{2}")

PAYMENT_DATE_RE = re.compile(r"Date:\s*(.+)", re.IGNORECASE)
PAYMENT_SENDER_RE = re.compile(r"Sent From:\s*(.+)", re.IGNORECASE)
PAYMENT_AMOUNT_RE = re.compile(r"Amount:\s*\$?([\d,]+\.\d{2})", re.IGNORECASE)


@dataclass(frozen=True)
class Payment:
    gmail_message_id: str
    date: str
    sent_from: str
    amount: Decimal

    def serialize(self):
        return {
            "gmail_message_id": self.gmail_message_id,
            "date": self.date,
            "sent_from": self.sent_from,
            "amount": float(self.amount),
        }


def to_decimal(amount: str) -> Decimal:
    return Decimal(amount.replace("$", "").replace(",", ""))


def extract_dollar_amounts(text):
    return DOLLAR_AMOUNT_RE.findall(text or "")


def get_header(message, name, default=None):
    headers = (message.get("payload") or {}).get("headers") or []
    for header in headers:
        if (header.get("name") or "").lower() == name.lower():
            return header.get("value")
    return default


def _decode(data):
    # Gmail uses URL-safe base64 and drops the padding
    padded = data + "=" * (-len(data) % 4)
    try:
        return base64.urlsafe_b64decode(padded).decode("utf-8", errors="replace")
    except (binascii.Error, ValueError):
        return ""


def get_message_body(payload):
    """Return the first text body found in a (possibly nested) message payload."""
    if not payload:
        return ""
    body = payload.get("body") or {}
    if body.get("data"):
        return _decode(body["data"])
    for part in payload.get("parts") or []:
        if part.get("mimeType") in ("text/plain", "text/html"):
            data = (part.get("body") or {}).get("data")
            if data:
                return _decode(data)
        nested = get_message_body(part)
        if nested:
            return nested
    return ""


def parse_payment_details(body, message_id="") -> Optional[Payment]:
    """Parse a payment notification; all of date, sender and amount are required."""
    date_match = PAYMENT_DATE_RE.search(body or "")
    sender_match = PAYMENT_SENDER_RE.search(body or "")
    amount_match = PAYMENT_AMOUNT_RE.search(body or "")
    if not date_match or not sender_match or not amount_match:
        return None
    return Payment(
        gmail_message_id=message_id,
        date=date_match.group(1).strip(),
        sent_from=sender_match.group(1).strip(),
        amount=to_decimal(amount_match.group(1).strip()),
    )
