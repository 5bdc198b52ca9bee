from __future__ import annotations

import uuid
from datetime import datetime

from umrah_office.auth.models import Agent
from umrah_office.clients.models import Client
from umrah_office.domain import Invoice as InvoiceRecord, InvoiceItem as InvoiceItemRecord
from umrah_office.extensions import db


def _iso_date(value):
    return value.isoformat() if value else None


class Invoice(db.Model):
    __tablename__ = "invoices"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    invoice_number = db.Column(db.String(40), nullable=False, index=True)

    # Relations
    client_id = db.Column(db.String(36), db.ForeignKey("clients.id", ondelete="SET NULL"), nullable=True, index=True)
    agent_id = db.Column(db.String(36), db.ForeignKey("agents.id"), nullable=False, index=True)

    # Core fields
    status = db.Column(db.String(10), nullable=False, default="draft", index=True)
    subtotal = db.Column(db.Float, nullable=False, default=0.0)
    tax = db.Column(db.Float, nullable=False, default=0.0)
    total = db.Column(db.Float, nullable=False, default=0.0)
    due_date = db.Column(db.Date, nullable=True, index=True)
    notes = db.Column(db.Text, nullable=True)

    # Umrah travel fields
    passport_number = db.Column(db.String(50), nullable=True)
    gender = db.Column(db.String(10), nullable=True)
    flight_number = db.Column(db.String(20), nullable=True)
    room_type = db.Column(db.String(10), nullable=True)
    visa_status = db.Column(db.String(10), nullable=True)
    departure_date = db.Column(db.Date, nullable=True)
    date_of_birth = db.Column(db.Date, nullable=True)

    # Audit
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    client = db.relationship(Client, backref=db.backref("invoices", lazy=True), foreign_keys=[client_id])
    agent = db.relationship(Agent, backref=db.backref("invoices", lazy=True), foreign_keys=[agent_id])
    items = db.relationship(
        "InvoiceItem",
        back_populates="invoice",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="InvoiceItem.position",
    )

    def __repr__(self) -> str:  # pragma: no cover - debug only
        return f"<Invoice {self.invoice_number} total={self.total} status={self.status}>"

    def to_domain(self) -> InvoiceRecord:
        return InvoiceRecord(
            id=self.id,
            invoice_number=self.invoice_number,
            agent_id=self.agent_id,
            agent_name=self.agent.name if self.agent else "Unknown Agent",
            status=self.status,
            client_id=self.client_id,
            client=self.client.to_domain() if self.client else None,
            items=[item.to_domain() for item in self.items],
            subtotal=self.subtotal or 0.0,
            tax=self.tax or 0.0,
            total=self.total or 0.0,
            created_at=self.created_at,
            updated_at=self.updated_at,
            due_date=_iso_date(self.due_date),
            notes=self.notes or "",
            passport_number=self.passport_number or "",
            gender=self.gender,
            flight_number=self.flight_number or "",
            room_type=self.room_type,
            visa_status=self.visa_status,
            departure_date=_iso_date(self.departure_date),
            date_of_birth=_iso_date(self.date_of_birth),
        )


class InvoiceItem(db.Model):
    __tablename__ = "items"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    invoice_id = db.Column(db.String(36), db.ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)
    description = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Float, nullable=False, default=1)
    unit_price = db.Column(db.Float, nullable=False, default=0.0)

    invoice = db.relationship(Invoice, back_populates="items")

    def to_domain(self) -> InvoiceItemRecord:
        return InvoiceItemRecord(
            id=self.id,
            description=self.description,
            quantity=self.quantity,
            unit_price=self.unit_price,
            invoice_id=self.invoice_id,
        )
