"""
SQL data store (Postgres in production, SQLite in tests) on Flask-SQLAlchemy.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import joinedload, selectinload

from umrah_office.auth.models import Agent
from umrah_office.clients.models import Client
from umrah_office.domain import (
    Agent as AgentRecord,
    Assignment as AssignmentRecord,
    Client as ClientRecord,
    Invoice as InvoiceRecord,
    InvoiceItem as InvoiceItemRecord,
    Room as RoomRecord,
)
from umrah_office.errors import CapacityExceeded, NotFoundError, RoomNotEmpty, StoreError, UmrahError
from umrah_office.extensions import db
from umrah_office.invoices.models import Invoice, InvoiceItem
from umrah_office.rooming.models import Room, RoomAssignment
from umrah_office.store.base import (
    AGENT_FIELDS,
    CLIENT_FIELDS,
    INVOICE_FIELDS,
    DataStoreInterface,
    pick_fields,
    prepare_room_fields,
)

logger = logging.getLogger(__name__)

_DATE_COLUMNS = {"due_date", "departure_date", "date_of_birth"}


def _to_date(value: Any) -> Optional[date]:
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _column_values(fields: Dict[str, Any]) -> Dict[str, Any]:
    out = {}
    for key, value in fields.items():
        out[key] = _to_date(value) if key in _DATE_COLUMNS else value
    return out


class SqlStore(DataStoreInterface):
    """Relational backend; every write is a single transaction."""

    def __init__(self, config: Dict = None):
        self.config = config or {}

    # ---------- Helpers ----------

    @contextmanager
    def _reading(self, action: str):
        try:
            yield
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.exception("%s failed", action)
            raise StoreError(f"{action} failed") from exc

    @contextmanager
    def _writing(self, action: str):
        try:
            yield
            db.session.commit()
        except UmrahError:
            db.session.rollback()
            raise
        except IntegrityError as exc:
            db.session.rollback()
            logger.warning("%s rejected by a database constraint: %s", action, exc.orig)
            raise StoreError(f"{action} conflicts with existing data") from exc
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.exception("%s failed", action)
            raise StoreError(f"{action} failed") from exc

    @staticmethod
    def _get_or_raise(model, object_id: str, label: str):
        row = db.session.get(model, object_id) if object_id else None
        if row is None:
            raise NotFoundError(f"{label} not found: {object_id}")
        return row

    @staticmethod
    def _item_rows(items: List[InvoiceItemRecord]) -> List[InvoiceItem]:
        return [
            InvoiceItem(
                position=pos,
                description=item.description,
                quantity=item.quantity,
                unit_price=item.unit_price,
            )
            for pos, item in enumerate(items or [])
        ]

    # ---------- Invoices ----------

    def _invoice_query(self):
        return Invoice.query.options(
            selectinload(Invoice.items),
            joinedload(Invoice.client),
            joinedload(Invoice.agent),
        )

    def get_invoices(self, agent_id: Optional[str] = None) -> List[InvoiceRecord]:
        with self._reading("Load invoices"):
            query = self._invoice_query()
            if agent_id:
                query = query.filter(Invoice.agent_id == agent_id)
            rows = query.order_by(Invoice.created_at.desc()).all()
            return [row.to_domain() for row in rows]

    def get_invoice(self, invoice_id: str) -> InvoiceRecord:
        with self._reading("Load invoice"):
            row = self._invoice_query().filter(Invoice.id == invoice_id).first()
            if row is None:
                raise NotFoundError(f"Invoice not found: {invoice_id}")
            return row.to_domain()

    def create_invoice(self, invoice: InvoiceRecord, items: List[InvoiceItemRecord]) -> InvoiceRecord:
        values = {field: getattr(invoice, field) for field in INVOICE_FIELDS}
        with self._writing("Create invoice"):
            row = Invoice(**_column_values(values))
            if invoice.created_at:
                row.created_at = invoice.created_at
            row.items = self._item_rows(items)
            db.session.add(row)
            db.session.flush()
            invoice_id = row.id
        return self.get_invoice(invoice_id)

    def update_invoice(
        self,
        invoice_id: str,
        fields: Dict[str, Any],
        items: Optional[List[InvoiceItemRecord]] = None,
    ) -> InvoiceRecord:
        with self._writing("Update invoice"):
            row = self._get_or_raise(Invoice, invoice_id, "Invoice")
            for key, value in _column_values(pick_fields(fields, INVOICE_FIELDS)).items():
                setattr(row, key, value)
            if items is not None:
                row.items = self._item_rows(items)
            row.updated_at = datetime.utcnow()
        return self.get_invoice(invoice_id)

    def delete_invoice(self, invoice_id: str) -> None:
        with self._writing("Delete invoice"):
            row = self._get_or_raise(Invoice, invoice_id, "Invoice")
            db.session.delete(row)

    # ---------- Clients ----------

    def get_clients(self) -> List[ClientRecord]:
        with self._reading("Load clients"):
            return [row.to_domain() for row in Client.query.order_by(Client.name.asc()).all()]

    def get_client(self, client_id: str) -> ClientRecord:
        with self._reading("Load client"):
            return self._get_or_raise(Client, client_id, "Client").to_domain()

    @staticmethod
    def _client_row(client: ClientRecord) -> Client:
        values = {field: getattr(client, field) for field in CLIENT_FIELDS}
        return Client(**_column_values(values))

    def create_client(self, client: ClientRecord) -> ClientRecord:
        with self._writing("Create client"):
            row = self._client_row(client)
            db.session.add(row)
            db.session.flush()
            record = row.to_domain()
        return record

    def bulk_create_clients(self, clients: List[ClientRecord]) -> List[ClientRecord]:
        with self._writing("Import clients"):
            rows = [self._client_row(c) for c in clients]
            db.session.add_all(rows)
            db.session.flush()
            records = [row.to_domain() for row in rows]
        return records

    def update_client(self, client_id: str, fields: Dict[str, Any]) -> ClientRecord:
        with self._writing("Update client"):
            row = self._get_or_raise(Client, client_id, "Client")
            for key, value in _column_values(pick_fields(fields, CLIENT_FIELDS)).items():
                setattr(row, key, value)
            db.session.flush()
            record = row.to_domain()
        return record

    def delete_client(self, client_id: str) -> None:
        with self._writing("Delete client"):
            row = self._get_or_raise(Client, client_id, "Client")
            # assignments cascade through Client.assignments
            db.session.delete(row)

    # ---------- Rooms ----------

    def get_rooms(self, city: Optional[str] = None) -> List[RoomRecord]:
        with self._reading("Load rooms"):
            query = Room.query.options(
                selectinload(Room.assignments).joinedload(RoomAssignment.client)
            )
            if city:
                query = query.filter(Room.city == city)
            rows = query.order_by(Room.hotel_name.asc(), Room.room_number.asc()).all()
            return [row.to_domain() for row in rows]

    def get_room(self, room_id: str) -> RoomRecord:
        with self._reading("Load room"):
            return self._get_or_raise(Room, room_id, "Room").to_domain()

    def create_room(self, room: RoomRecord) -> RoomRecord:
        values = prepare_room_fields(
            {
                "hotel_name": room.hotel_name,
                "city": room.city,
                "type": room.type,
                "floor_number": room.floor_number,
                "room_number": room.room_number,
            }
        )
        with self._writing("Create room"):
            row = Room(**values)
            db.session.add(row)
            db.session.flush()
            record = row.to_domain(with_assignments=False)
        return record

    def update_room(self, room_id: str, fields: Dict[str, Any]) -> RoomRecord:
        with self._writing("Update room"):
            row = self._get_or_raise(Room, room_id, "Room")
            for key, value in prepare_room_fields(fields).items():
                setattr(row, key, value)
            db.session.flush()
            record = row.to_domain()
        return record

    def delete_room(self, room_id: str) -> None:
        with self._writing("Delete room"):
            row = self._get_or_raise(Room, room_id, "Room")
            if row.assignments:
                raise RoomNotEmpty(f"Room {row.room_number or row.id} still has {len(row.assignments)} pilgrim(s)")
            db.session.delete(row)

    def assign_client_to_room(self, room_id: str, client_id: str, city: str) -> AssignmentRecord:
        with self._writing("Assign client"):
            room = self._get_or_raise(Room, room_id, "Room")
            self._get_or_raise(Client, client_id, "Client")

            for previous in RoomAssignment.query.filter_by(client_id=client_id, city=city).all():
                db.session.delete(previous)
            db.session.flush()

            occupancy = RoomAssignment.query.filter_by(room_id=room_id).count()
            if occupancy >= room.capacity:
                raise CapacityExceeded(f"Room {room.room_number or room.id} is full ({room.capacity})")

            row = RoomAssignment(
                room_id=room_id,
                client_id=client_id,
                city=city,
                assigned_at=datetime.utcnow(),
            )
            db.session.add(row)
            db.session.flush()
            record = row.to_domain()
        return record

    def remove_client_from_room(self, client_id: str, city: Optional[str] = None) -> int:
        with self._writing("Unassign client"):
            query = RoomAssignment.query.filter_by(client_id=client_id)
            if city:
                query = query.filter_by(city=city)
            rows = query.all()
            for row in rows:
                db.session.delete(row)
        return len(rows)

    # ---------- Agents ----------

    def get_agents(self) -> List[AgentRecord]:
        with self._reading("Load agents"):
            return [row.to_domain() for row in Agent.query.order_by(Agent.name.asc()).all()]

    def get_agent(self, agent_id: str) -> AgentRecord:
        with self._reading("Load agent"):
            return self._get_or_raise(Agent, agent_id, "Agent").to_domain()

    def get_agent_by_email(self, email: str) -> Optional[AgentRecord]:
        with self._reading("Load agent"):
            row = Agent.query.filter(Agent.email == (email or "").strip().lower()).first()
            return row.to_domain() if row else None

    def create_agent(self, agent: AgentRecord) -> AgentRecord:
        with self._writing("Create agent"):
            row = Agent(
                name=agent.name,
                email=agent.email.strip().lower(),
                role=agent.role,
                department=agent.department,
            )
            if agent.id:
                row.id = agent.id
            db.session.add(row)
            db.session.flush()
            record = row.to_domain()
        return record

    def update_agent(self, agent_id: str, fields: Dict[str, Any]) -> AgentRecord:
        values = pick_fields(fields, AGENT_FIELDS)
        if "email" in values:
            values["email"] = (values["email"] or "").strip().lower()
        with self._writing("Update agent"):
            row = self._get_or_raise(Agent, agent_id, "Agent")
            for key, value in values.items():
                setattr(row, key, value)
            db.session.flush()
            record = row.to_domain()
        return record
