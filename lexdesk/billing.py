"""
Billing display: invoices with their items, overdue detection, totals,
unbilled time and storage usage. Read-only.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from .backend import BackendClient
from .db import InvoiceStatus, TimeEntryStatus
from .errors import RecordNotFound
from .schemas import InvoiceRow, InvoiceItemRow, TimeEntryRow

logger = logging.getLogger(__name__)

SETTLED_STATUSES = (InvoiceStatus.PAID.value, InvoiceStatus.CANCELLED.value)


class InvoiceView(BaseModel):
    invoice: InvoiceRow
    items: List[InvoiceItemRow] = Field(default_factory=list)
    is_overdue: bool = False
    items_total: float = 0.0


class UnbilledTime(BaseModel):
    entries: int = 0
    hours: float = 0.0
    amount: float = 0.0


class StorageUsage(BaseModel):
    used_bytes: int = 0
    limit_bytes: int = 0
    percent_used: float = 0.0


class BillingSummary(BaseModel):
    invoices: List[InvoiceView] = Field(default_factory=list)
    totals: Dict[str, float] = Field(default_factory=dict)
    unbilled: UnbilledTime = Field(default_factory=UnbilledTime)
    storage: StorageUsage = Field(default_factory=StorageUsage)


def is_overdue(invoice: InvoiceRow, now: datetime) -> bool:
    """Past due and neither paid nor cancelled."""
    if invoice.status == InvoiceStatus.OVERDUE.value:
        return True
    return invoice.status not in SETTLED_STATUSES and invoice.due_date < now


def effective_status(invoice: InvoiceRow, now: datetime) -> str:
    return InvoiceStatus.OVERDUE.value if is_overdue(invoice, now) else invoice.status


def invoice_totals(invoices: List[InvoiceRow], now: datetime) -> Dict[str, float]:
    """Amount per effective status, plus everything still outstanding."""
    totals = {status.value: 0.0 for status in InvoiceStatus}
    for invoice in invoices:
        totals[effective_status(invoice, now)] += invoice.amount
    totals["outstanding"] = round(
        totals[InvoiceStatus.SENT.value] + totals[InvoiceStatus.OVERDUE.value], 2
    )
    return {k: round(v, 2) for k, v in totals.items()}


def unbilled_time(entries: List[TimeEntryRow]) -> UnbilledTime:
    billable = [
        e for e in entries
        if e.billable and (e.status or TimeEntryStatus.UNBILLED.value) == TimeEntryStatus.UNBILLED.value
    ]
    return UnbilledTime(
        entries=len(billable),
        hours=round(sum(e.duration for e in billable), 2),
        amount=round(sum(e.duration * (e.rate or 0.0) for e in billable), 2),
    )


class BillingService:
    def __init__(self, backend: BackendClient, user_id: str, storage_limit_bytes: int):
        self.backend = backend
        self.user_id = user_id
        self.storage_limit_bytes = storage_limit_bytes

    def _items(self, invoice_ids: List[str]) -> Dict[str, List[InvoiceItemRow]]:
        grouped: Dict[str, List[InvoiceItemRow]] = {i: [] for i in invoice_ids}
        if not invoice_ids:
            return grouped
        rows = self.backend.table("invoice_items").select("*").in_("invoice_id", invoice_ids).execute().data
        for row in rows:
            item = InvoiceItemRow.model_validate(row)
            grouped[item.invoice_id].append(item)
        return grouped

    def _view(self, invoice: InvoiceRow, items: List[InvoiceItemRow], now: datetime) -> InvoiceView:
        return InvoiceView(
            invoice=invoice,
            items=items,
            is_overdue=is_overdue(invoice, now),
            items_total=round(sum(i.amount for i in items), 2),
        )

    def _invoices(self, client_id: Optional[str] = None) -> List[InvoiceRow]:
        query = self.backend.table("invoices").select("*").eq("created_by", self.user_id)
        if client_id:
            query = query.eq("client_id", client_id)
        rows = query.order("issue_date", desc=True).execute().data
        return [InvoiceRow.model_validate(r) for r in rows]

    def list_invoices(self, client_id: Optional[str] = None) -> List[InvoiceView]:
        now = self.backend.clock()
        invoices = self._invoices(client_id)
        items = self._items([i.id for i in invoices])
        return [self._view(i, items[i.id], now) for i in invoices]

    def get_invoice(self, invoice_id: str) -> InvoiceView:
        row = (
            self.backend.table("invoices").select("*")
            .eq("id", invoice_id).eq("created_by", self.user_id)
            .maybe_single().execute().data
        )
        if not row:
            raise RecordNotFound("Invoice", invoice_id)
        invoice = InvoiceRow.model_validate(row)
        return self._view(invoice, self._items([invoice.id])[invoice.id], self.backend.clock())

    def unbilled(self, client_id: Optional[str] = None) -> UnbilledTime:
        query = self.backend.table("time_entries").select("*").eq("attorney_id", self.user_id)
        if client_id:
            query = query.eq("client_id", client_id)
        return unbilled_time([TimeEntryRow.model_validate(r) for r in query.execute().data])

    def storage_usage(self) -> StorageUsage:
        used = self.backend.storage.usage_bytes(self.user_id)
        limit = self.storage_limit_bytes
        percent = round(used / limit * 100, 1) if limit else 0.0
        return StorageUsage(used_bytes=used, limit_bytes=limit, percent_used=percent)

    def summary(self, client_id: Optional[str] = None) -> BillingSummary:
        views = self.list_invoices(client_id)
        return BillingSummary(
            invoices=views,
            totals=invoice_totals([v.invoice for v in views], self.backend.clock()),
            unbilled=self.unbilled(client_id),
            storage=self.storage_usage(),
        )
