"""
tests/conftest.py

Shared record builders for the pipeline tests.
"""

from __future__ import annotations

from typing import Callable

import pytest

from analytics.coercion import coerce_lead_record, coerce_ticket_record
from analytics.records import TicketRecord, TypedRecord, make_raw_record

LEAD_COLUMNS: tuple[str, ...] = (
    "name",
    "mobile",
    "email",
    "role",
    "client_status",
    "nurturing",
    "payment_status",
    "source",
    "reg_timestamp",
    "payable_amt",
    "paid_amt",
    "discount_percentage",
    "discount_amt",
    "couponcode_given",
    "couponcode_applied",
    "txn_id",
    "txn_timestamp",
    "currency",
    "Unsubscribed",
)

TICKET_COLUMNS: tuple[str, ...] = (
    "ticket_id",
    "name",
    "email",
    "mobile",
    "query",
    "Status",
    "query_timestamp",
)


def build_lead(**values: str) -> TypedRecord:
    """Lead with every feed column present; unspecified cells are empty."""
    row = {column: "" for column in LEAD_COLUMNS}
    row.update(values)
    return coerce_lead_record(make_raw_record(row))


def build_ticket(**values: str) -> TicketRecord:
    row = {column: "" for column in TICKET_COLUMNS}
    row.update(values)
    return coerce_ticket_record(make_raw_record(row))


@pytest.fixture()
def lead() -> Callable[..., TypedRecord]:
    return build_lead


@pytest.fixture()
def ticket() -> Callable[..., TicketRecord]:
    return build_ticket
