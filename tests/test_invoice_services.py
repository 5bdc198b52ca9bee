import random
import re
from datetime import date, datetime

import pytest

from umrah_office.domain import Client, Invoice, InvoiceItem
from umrah_office.errors import InvalidTransition, ValidationError
from umrah_office.invoices.services import (
    ALLOWED_TRANSITIONS,
    check_transition,
    filter_invoices,
    generate_invoice_number,
    item_total,
    sort_invoices,
    subtotal,
    summarize,
    tax,
    total,
)


def _item(q, p):
    return InvoiceItem(id=None, description="x", quantity=q, unit_price=p)


def _invoice(number, status="draft", amount=0.0, client_name="", created=None, agent_id="a1", visa=None):
    client = Client(id=f"c-{number}", name=client_name, email=f"{client_name.lower().replace(' ', '.')}@mail.test")
    return Invoice(
        id=number,
        invoice_number=number,
        agent_id=agent_id,
        status=status,
        client_id=client.id,
        client=client,
        total=amount,
        created_at=created,
        visa_status=visa,
    )


class TestCalculators:
    def test_item_total(self):
        assert item_total(3, 250.0) == 750.0

    @pytest.mark.parametrize(
        "pairs",
        [
            [],
            [(1, 100.0)],
            [(2, 1500.0), (1, 0.0), (4, 12.5)],
        ],
    )
    def test_subtotal_is_sum_of_lines(self, pairs):
        items = [_item(q, p) for q, p in pairs]
        assert subtotal(items) == sum(q * p for q, p in pairs)

    def test_tax_defaults_to_zero(self):
        assert tax(1000.0) == 0.0
        assert tax(1000.0, 0.1) == pytest.approx(100.0)

    def test_total(self):
        sub = subtotal([_item(2, 1500.0)])
        assert total(sub, tax(sub)) == 3000.0


def test_invoice_number_format():
    number = generate_invoice_number(date(2026, 3, 7), random.Random(1))
    assert re.fullmatch(r"INV-20260307-\d{3}", number)


class TestTransitions:
    @pytest.mark.parametrize(
        "current,new",
        [("draft", "sent"), ("sent", "paid"), ("sent", "overdue"), ("overdue", "paid")],
    )
    def test_allowed(self, current, new):
        check_transition(current, new)

    @pytest.mark.parametrize("new", ["draft", "sent", "overdue", "paid"])
    def test_paid_is_terminal(self, new):
        with pytest.raises(InvalidTransition):
            check_transition("paid", new)

    @pytest.mark.parametrize(
        "current,new",
        [("draft", "paid"), ("draft", "overdue"), ("overdue", "sent"), ("sent", "draft"), ("sent", "sent")],
    )
    def test_rejected(self, current, new):
        with pytest.raises(InvalidTransition):
            check_transition(current, new)

    def test_every_status_has_an_entry(self):
        assert set(ALLOWED_TRANSITIONS) == {"draft", "sent", "paid", "overdue"}


class TestListing:
    @pytest.fixture()
    def invoices(self):
        return [
            _invoice("INV-1", "paid", 900.0, "Ahmed Ali", datetime(2026, 1, 3), visa="Issued"),
            _invoice("INV-2", "sent", 400.0, "Fatima Zahra", datetime(2026, 1, 5), agent_id="a2"),
            _invoice("INV-3", "draft", 100.0, "Omar Idrissi", datetime(2026, 1, 4), visa="Pending"),
        ]

    def test_text_search_is_case_insensitive(self, invoices):
        assert [i.id for i in filter_invoices(invoices, "FATIMA")] == ["INV-2"]
        assert [i.id for i in filter_invoices(invoices, "inv-3")] == ["INV-3"]
        assert [i.id for i in filter_invoices(invoices, "ahmed.ali@")] == ["INV-1"]

    def test_filters_combine(self, invoices):
        assert [i.id for i in filter_invoices(invoices, status="paid", visa_status="Issued")] == ["INV-1"]
        assert [i.id for i in filter_invoices(invoices, agent_id="a2")] == ["INV-2"]
        assert filter_invoices(invoices, status="overdue") == []

    def test_sort(self, invoices):
        assert [i.id for i in sort_invoices(invoices)] == ["INV-2", "INV-3", "INV-1"]
        assert [i.id for i in sort_invoices(invoices, "amount", "asc")] == ["INV-3", "INV-2", "INV-1"]
        assert [i.id for i in sort_invoices(invoices, "client", "asc")] == ["INV-1", "INV-2", "INV-3"]

    def test_unknown_sort_field(self, invoices):
        with pytest.raises(ValidationError):
            sort_invoices(invoices, "colour")

    def test_summary(self, invoices):
        assert summarize(invoices) == {
            "count": 3,
            "total_amount": 1400.0,
            "paid_amount": 900.0,
            "pending_amount": 400.0,
        }
