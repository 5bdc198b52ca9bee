"""
Invoice calculators, status machine and the service that applies them over
the configured data store.
"""
from __future__ import annotations

import logging
import random
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional

from umrah_office.domain import Agent, Client, Invoice, InvoiceItem
from umrah_office.errors import InvalidTransition, NotFoundError, ValidationError
from umrah_office.store.base import DataStoreInterface

logger = logging.getLogger(__name__)


# ---------- Calculators ----------

def item_total(quantity: float, unit_price: float) -> float:
    return quantity * unit_price


def subtotal(items: Iterable[InvoiceItem]) -> float:
    return sum((item_total(i.quantity, i.unit_price) for i in items), 0.0)


def tax(subtotal_amount: float, rate: float = 0.0) -> float:
    return subtotal_amount * rate


def total(subtotal_amount: float, tax_amount: float) -> float:
    return subtotal_amount + tax_amount


def generate_invoice_number(today: Optional[date] = None, rng: random.Random = None) -> str:
    """INV-YYYYMMDD-NNN with a random three digit suffix."""
    today = today or date.today()
    rng = rng or random
    return f"INV-{today:%Y%m%d}-{rng.randint(0, 999):03d}"


# ---------- Status machine ----------

ALLOWED_TRANSITIONS = {
    "draft": {"sent"},
    "sent": {"paid", "overdue"},
    "overdue": {"paid"},
    "paid": set(),
}

INITIAL_STATUSES = ("draft", "sent")


def check_transition(current: str, new: str) -> None:
    if new not in ALLOWED_TRANSITIONS.get(current, set()):
        raise InvalidTransition(f"Cannot move invoice from '{current}' to '{new}'")


# ---------- Listing helpers ----------

def filter_invoices(
    invoices: Iterable[Invoice],
    query: str = "",
    status: Optional[str] = None,
    visa_status: Optional[str] = None,
    agent_id: Optional[str] = None,
) -> List[Invoice]:
    q = (query or "").strip().lower()
    out = []
    for inv in invoices:
        if q and not (
            q in inv.client_name.lower()
            or q in (inv.invoice_number or "").lower()
            or q in inv.client_email.lower()
        ):
            continue
        if status and inv.status != status:
            continue
        if visa_status and inv.visa_status != visa_status:
            continue
        if agent_id and inv.agent_id != agent_id:
            continue
        out.append(inv)
    return out


_SORT_KEYS = {
    "date": lambda inv: inv.created_at or datetime.min,
    "amount": lambda inv: inv.total,
    "client": lambda inv: inv.client_name.lower(),
}


def sort_invoices(invoices: Iterable[Invoice], by: str = "date", order: str = "desc") -> List[Invoice]:
    key = _SORT_KEYS.get(by)
    if key is None:
        raise ValidationError({"sort": f"Unknown sort field: {by}"})
    return sorted(invoices, key=key, reverse=(order != "asc"))


def summarize(invoices: Iterable[Invoice]) -> Dict[str, float]:
    invoices = list(invoices)
    return {
        "count": len(invoices),
        "total_amount": sum(inv.total for inv in invoices),
        "paid_amount": sum(inv.total for inv in invoices if inv.status == "paid"),
        "pending_amount": sum(inv.total for inv in invoices if inv.status == "sent"),
    }


# ---------- Service ----------

class InvoiceService:
    """Invoice use cases, scoped to the acting agent."""

    def __init__(self, store: DataStoreInterface, tax_rate: float = 0.0):
        self.store = store
        self.tax_rate = tax_rate

    # scoping

    def list_for(self, agent: Agent) -> List[Invoice]:
        if agent.is_director:
            return self.store.get_invoices()
        return self.store.get_invoices(agent_id=agent.id)

    def get_for(self, invoice_id: str, agent: Agent) -> Invoice:
        invoice = self.store.get_invoice(invoice_id)
        if not agent.is_director and invoice.agent_id != agent.id:
            # other agents' invoices are invisible, not forbidden
            raise NotFoundError(f"Invoice not found: {invoice_id}")
        return invoice

    # writes

    def _items(self, data: Dict[str, Any]) -> List[InvoiceItem]:
        return [
            InvoiceItem(
                id=None,
                description=i["description"],
                quantity=i["quantity"],
                unit_price=i["unit_price"],
            )
            for i in data.get("items") or []
        ]

    def _totals(self, items: List[InvoiceItem]) -> Dict[str, float]:
        sub = subtotal(items)
        tax_amount = tax(sub, self.tax_rate)
        return {"subtotal": sub, "tax": tax_amount, "total": total(sub, tax_amount)}

    def _resolve_client(self, data: Dict[str, Any]) -> str:
        if data.get("client_id"):
            # raises NotFoundError for a dangling reference
            return self.store.get_client(data["client_id"]).id

        contact = data.get("client") or {}
        client = self.store.create_client(
            Client(
                id=None,
                name=contact.get("name", ""),
                email=contact.get("email", ""),
                phone=contact.get("phone", ""),
                address=contact.get("address", ""),
                passport_number=data.get("passport_number") or "",
                gender=data.get("gender"),
                date_of_birth=data.get("date_of_birth"),
            )
        )
        logger.info("Created client %s (%s) from invoice form", client.id, client.name)
        return client.id

    def _sync_client(self, client_id: str, data: Dict[str, Any]) -> None:
        """Copy the travel fields typed on the invoice onto the client record."""
        fields = {
            key: data[key]
            for key in ("passport_number", "gender", "date_of_birth")
            if data.get(key)
        }
        for key, value in (data.get("client") or {}).items():
            if value:
                fields[key] = value
        if fields:
            self.store.update_client(client_id, fields)

    def _invoice_fields(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return {
            key: data.get(key)
            for key in (
                "due_date",
                "notes",
                "passport_number",
                "gender",
                "flight_number",
                "room_type",
                "visa_status",
                "departure_date",
                "date_of_birth",
            )
        }

    def create(self, data: Dict[str, Any], agent: Agent) -> Invoice:
        status = data.get("status") or "draft"
        if status not in INITIAL_STATUSES:
            raise ValidationError({"status": "New invoices start as draft or sent"})

        client_id = self._resolve_client(data)
        if data.get("client_id"):
            self._sync_client(client_id, data)

        items = self._items(data)
        invoice = Invoice(
            id=None,
            invoice_number=data.get("invoice_number") or generate_invoice_number(),
            agent_id=agent.id,
            status=status,
            client_id=client_id,
            **self._totals(items),
            **self._invoice_fields(data),
        )
        created = self.store.create_invoice(invoice, items)
        logger.info("Agent %s created invoice %s (%s)", agent.id, created.invoice_number, created.status)
        return created

    def update(self, invoice_id: str, data: Dict[str, Any], agent: Agent) -> Invoice:
        current = self.get_for(invoice_id, agent)

        fields = self._invoice_fields(data)
        new_status = data.get("status")
        if new_status and new_status != current.status:
            check_transition(current.status, new_status)
            fields["status"] = new_status

        client_id = self._resolve_client(data)
        self._sync_client(client_id, data)
        fields["client_id"] = client_id
        if data.get("invoice_number"):
            fields["invoice_number"] = data["invoice_number"]

        items = self._items(data)
        fields.update(self._totals(items))
        updated = self.store.update_invoice(invoice_id, fields, items)
        logger.info("Agent %s updated invoice %s", agent.id, updated.invoice_number)
        return updated

    def change_status(self, invoice_id: str, status: str, agent: Agent) -> Invoice:
        current = self.get_for(invoice_id, agent)
        check_transition(current.status, status)
        updated = self.store.update_invoice(invoice_id, {"status": status})
        logger.info(
            "Invoice %s moved %s -> %s by %s", current.invoice_number, current.status, status, agent.id
        )
        return updated

    def delete(self, invoice_id: str, agent: Agent) -> None:
        current = self.get_for(invoice_id, agent)
        self.store.delete_invoice(invoice_id)
        logger.info("Agent %s deleted invoice %s", agent.id, current.invoice_number)
