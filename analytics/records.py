"""
analytics/records.py

Record types shared by the feed pipeline.

A feed row lives in two shapes:

    RawRecord    — read-only ``column → string`` mapping, exactly as parsed.
    TypedRecord  — semantically typed lead fields derived from one RawRecord.

Tickets only need their status and timestamp typed; everything else stays
in ``raw`` for the table and the export.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Mapping

RawRecord = Mapping[str, str]


def make_raw_record(values: Mapping[str, str]) -> RawRecord:
    """Freeze *values* into an immutable, insertion-ordered RawRecord."""
    return MappingProxyType(dict(values))


class PaymentStatus(str, Enum):
    """
    Canonical payment outcome of a lead.
    """

    SUCCESS = "success"
    PENDING = "pending"
    NEED_TIME = "need_time"
    FAILED = "failed"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class TypedRecord:
    """
    One lead row after field coercion.

    Monetary fields are signed decimals defaulting to ``0``; timestamps are
    naive local datetimes or ``None`` when the raw value was unparseable.
    """

    name: str
    email: str
    mobile: str
    role: str
    source: str
    client_status: str
    nurturing: str
    unsubscribed: bool | str
    payable_amount: Decimal
    paid_amount: Decimal
    discount_amount: Decimal
    discount_percentage: Decimal
    payment_status: PaymentStatus
    coupon_given: str
    coupon_applied: str
    txn_id: str
    txn_timestamp: datetime | None
    currency: str
    reg_timestamp: datetime | None
    raw: RawRecord

    @property
    def timestamp(self) -> datetime | None:
        """Timestamp used for window scoping."""
        return self.reg_timestamp


@dataclass(frozen=True)
class TicketRecord:
    """
    One support-ticket row.
    """

    status: str
    query_timestamp: datetime | None
    raw: RawRecord

    @property
    def timestamp(self) -> datetime | None:
        return self.query_timestamp
