"""
analytics/coercion.py

Best-effort conversion of raw feed strings into typed values.

Every function here is pure and never raises on bad input: monetary and
percentage values fall back to ``0``, timestamps to ``None``.  Metrics must
stay computable over partially malformed feeds.

The payment-status synonym table lives only in this module.  Metrics, table
filters and display helpers all go through :func:`parse_payment_status` so
they cannot disagree on what counts as a successful payment.
"""

from __future__ import annotations

import re
import unicodedata
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Mapping

from analytics.records import (
    PaymentStatus,
    RawRecord,
    TicketRecord,
    TypedRecord,
)

ZERO = Decimal("0")

TIMESTAMP_FORMATS: tuple[str, ...] = (
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y/%m/%d %H:%M:%S",
    "%Y/%m/%d",
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y %H:%M",
    "%m/%d/%Y %I:%M:%S %p",
    "%m/%d/%Y %I:%M %p",
    "%m/%d/%Y",
    "%d/%m/%Y %H:%M:%S",
    "%d/%m/%Y %H:%M",
    "%d/%m/%Y",
    "%d-%m-%Y %H:%M:%S",
    "%d-%m-%Y",
    "%b %d, %Y %I:%M:%S %p",
    "%b %d, %Y",
    "%d %b %Y",
)

_CURRENCY_PREFIXES: tuple[str, ...] = ("inr", "rs.", "rs", "usd")

_SUCCESS_STATUSES = frozenset({"success", "successful", "paid", "completed"})
_PENDING_STATUSES = frozenset({"", "pending", "processing", "not attempted"})
_FAILED_STATUSES = frozenset({"failed", "failure", "declined"})

_TRUE_VALUES = frozenset({"true", "yes"})
_FALSE_VALUES = frozenset({"false", "no"})


# ---------------------------------------------------------------------------
# Scalars
# ---------------------------------------------------------------------------


def normalize_text(value: Any) -> str:
    """Lower-case and trim *value*; ``None`` becomes ``""``."""
    if value is None:
        return ""
    return str(value).strip().lower()


def _to_decimal(text: str) -> Decimal:
    if not text:
        return ZERO
    try:
        parsed = Decimal(text)
    except (InvalidOperation, ValueError):
        return ZERO
    if not parsed.is_finite():
        return ZERO
    return parsed


def parse_amount(raw: Any) -> Decimal:
    """
    Parse a monetary amount such as ``"₹1,234.50"`` into a Decimal.

    Currency symbols, ``Rs``/``INR`` prefixes, thousands separators and
    whitespace are stripped.  Anything non-numeric yields ``0``.
    """
    if raw is None or isinstance(raw, bool):
        return ZERO
    if isinstance(raw, Decimal):
        return raw if raw.is_finite() else ZERO
    if isinstance(raw, (int, float)):
        return _to_decimal(str(raw))

    cleaned = "".join(
        ch
        for ch in str(raw)
        if not (ch.isspace() or ch == "," or unicodedata.category(ch) == "Sc")
    )
    lowered = cleaned.lower()
    for prefix in _CURRENCY_PREFIXES:
        if lowered.startswith(prefix):
            cleaned = cleaned[len(prefix):]
            break
    return _to_decimal(cleaned)


def parse_percentage(raw: Any) -> Decimal:
    """Parse ``"12.5%"`` into ``Decimal("12.5")``; fallback ``0``."""
    if raw is None or isinstance(raw, bool):
        return ZERO
    if isinstance(raw, (int, float, Decimal)):
        return _to_decimal(str(raw))
    return _to_decimal(str(raw).replace("%", "").strip())


def parse_timestamp(raw: Any) -> datetime | None:
    """
    Parse a feed timestamp into a naive local datetime.

    ISO-8601 values are tried first; offsets (including a trailing ``Z``)
    are converted to local time.  Spreadsheet formats in
    ``TIMESTAMP_FORMATS`` follow.  Empty or unparseable input gives ``None``.
    """
    if raw is None:
        return None
    if isinstance(raw, datetime):
        return raw.astimezone().replace(tzinfo=None) if raw.tzinfo else raw

    text = str(raw).strip()
    if not text:
        return None

    normalized = text[:-1] + "+00:00" if text.endswith("Z") else text
    try:
        parsed = datetime.fromisoformat(normalized)
    except ValueError:
        parsed = None
    if parsed is not None:
        if parsed.tzinfo is not None:
            return parsed.astimezone().replace(tzinfo=None)
        return parsed

    for fmt in TIMESTAMP_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


def parse_bool_like(raw: Any) -> bool | str:
    """
    Map the textual spellings of a flag onto ``True``/``False``.

    Unrecognised values pass through lower-cased so filters can still
    match them literally.
    """
    if raw is True or raw is False:
        return raw
    text = normalize_text(raw)
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    return text


def bool_like_label(raw: Any) -> str:
    """Display form of a boolean-like cell: ``Yes``, ``No`` or the raw text."""
    value = parse_bool_like(raw)
    if value is True:
        return "Yes"
    if value is False:
        return "No"
    return "" if raw is None else str(raw).strip()


# ---------------------------------------------------------------------------
# Payment status
# ---------------------------------------------------------------------------


def normalize_status(raw: Any) -> str:
    """Lower-cased, trimmed status text with underscores read as spaces."""
    return normalize_text(raw).replace("_", " ")


def parse_payment_status(raw: Any) -> PaymentStatus:
    """
    Classify a raw ``payment_status`` cell.

    An empty cell means the lead has not paid yet and counts as pending.
    """
    if isinstance(raw, PaymentStatus):
        return raw

    status = normalize_status(raw)
    if status in _SUCCESS_STATUSES:
        return PaymentStatus.SUCCESS
    if status in _PENDING_STATUSES:
        return PaymentStatus.PENDING
    if "need time" in status or "needtime" in status:
        return PaymentStatus.NEED_TIME
    if status in _FAILED_STATUSES:
        return PaymentStatus.FAILED
    return PaymentStatus.UNKNOWN


def get_payment_status_display(raw: Any) -> str:
    """
    Human label for a raw payment status.

    ``""`` → ``"Pending"``, any need-time spelling → ``"Need Time"``,
    otherwise the raw text capitalised with underscores as spaces.
    """
    text = "" if raw is None else str(raw).strip()
    if normalize_status(text) == "":
        return "Pending"
    if parse_payment_status(text) is PaymentStatus.NEED_TIME:
        return "Need Time"
    return text[:1].upper() + text[1:].replace("_", " ")


def get_payment_badge(raw: Any) -> str:
    """Badge tone for a payment status: success, warning, error or default."""
    status = parse_payment_status(raw)
    if status is PaymentStatus.SUCCESS:
        return "success"
    if status in (PaymentStatus.PENDING, PaymentStatus.NEED_TIME):
        return "warning"
    if status is PaymentStatus.FAILED:
        return "error"
    return "default"


def format_source_display(raw: str | None) -> str:
    """Turn ``"RegistrationPage"`` or ``"landing_page2"`` into a readable label."""
    if not raw:
        return "-"
    text = re.sub(r"([a-z])([A-Z])", r"\1 \2", raw)
    text = re.sub(r"([a-zA-Z])(\d)", r"\1 \2", text)
    text = re.sub(r"[_-]", " ", text)
    return " ".join(word[:1].upper() + word[1:].lower() for word in text.split(" "))


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


def lookup(raw: Mapping[str, str], *names: str) -> str:
    """
    Return the first non-empty value among *names*, trimmed.

    Exact header names win; a case-insensitive match is tried next because
    spreadsheet exports are not consistent about header casing.
    """
    for name in names:
        value = raw.get(name)
        if value:
            return str(value).strip()

    lowered = {key.strip().lower(): key for key in raw}
    for name in names:
        key = lowered.get(name.lower())
        if key is not None and raw[key]:
            return str(raw[key]).strip()
    return ""


def coerce_lead_record(raw: RawRecord) -> TypedRecord:
    """Build a TypedRecord from one lead-feed row without touching *raw*."""
    return TypedRecord(
        name=lookup(raw, "name"),
        email=lookup(raw, "email"),
        mobile=lookup(raw, "mobile"),
        role=lookup(raw, "role"),
        source=lookup(raw, "source"),
        client_status=lookup(raw, "client_status"),
        nurturing=lookup(raw, "nurturing"),
        unsubscribed=parse_bool_like(lookup(raw, "Unsubscribed")),
        payable_amount=parse_amount(lookup(raw, "payable_amt")),
        paid_amount=parse_amount(lookup(raw, "paid_amt")),
        discount_amount=parse_amount(lookup(raw, "discount_amt")),
        discount_percentage=parse_percentage(lookup(raw, "discount_percentage")),
        payment_status=parse_payment_status(lookup(raw, "payment_status")),
        coupon_given=lookup(raw, "couponcode_given"),
        coupon_applied=lookup(raw, "couponcode_applied"),
        txn_id=lookup(raw, "txn_id"),
        txn_timestamp=parse_timestamp(lookup(raw, "txn_timestamp")),
        currency=lookup(raw, "currency"),
        reg_timestamp=parse_timestamp(lookup(raw, "reg_timestamp")),
        raw=raw,
    )


def coerce_lead_records(raws: Iterable[RawRecord]) -> list[TypedRecord]:
    return [coerce_lead_record(raw) for raw in raws]


def coerce_ticket_record(raw: RawRecord) -> TicketRecord:
    """Build a TicketRecord; ``Status`` wins over ``query_status``."""
    return TicketRecord(
        status=normalize_text(lookup(raw, "Status", "query_status")),
        query_timestamp=parse_timestamp(lookup(raw, "query_timestamp", "Timestamp")),
        raw=raw,
    )


def coerce_ticket_records(raws: Iterable[RawRecord]) -> list[TicketRecord]:
    return [coerce_ticket_record(raw) for raw in raws]
