"""
Document-database data store.

Speaks the hosted provider's REST API (databases / collections / documents)
with `requests`. Documents use camelCase attributes and `$id` / `$createdAt`
system fields; relations are plain id attributes joined client-side.
"""
from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

import requests

from umrah_office.domain import (
    Agent as AgentRecord,
    Assignment as AssignmentRecord,
    Client as ClientRecord,
    Invoice as InvoiceRecord,
    InvoiceItem as InvoiceItemRecord,
    Room as RoomRecord,
)
from umrah_office.errors import CapacityExceeded, NotFoundError, RoomNotEmpty, StoreError
from umrah_office.store.base import (
    AGENT_FIELDS,
    CLIENT_FIELDS,
    INVOICE_FIELDS,
    DataStoreInterface,
    pick_fields,
    prepare_room_fields,
)
from umrah_office.utils.retry import retry_request

logger = logging.getLogger(__name__)


DEFAULT_COLLECTIONS = {
    "agents": "agents",
    "clients": "clients",
    "invoices": "invoices",
    "items": "items",
    "rooms": "rooms",
    "assignments": "room_assignments",
}

# domain attribute -> document attribute
INVOICE_ATTRS = {
    "invoice_number": "invoiceNumber",
    "client_id": "clientId",
    "agent_id": "agentId",
    "status": "status",
    "subtotal": "subtotal",
    "tax": "tax",
    "total": "total",
    "due_date": "dueDate",
    "notes": "notes",
    "passport_number": "passportNumber",
    "gender": "gender",
    "flight_number": "flightNumber",
    "room_type": "roomType",
    "visa_status": "visaStatus",
    "departure_date": "departureDate",
    "date_of_birth": "dateOfBirth",
}

CLIENT_ATTRS = {
    "name": "name",
    "email": "email",
    "phone": "phone",
    "address": "address",
    "passport_number": "passportNumber",
    "gender": "gender",
    "date_of_birth": "dateOfBirth",
}

ROOM_ATTRS = {
    "hotel_name": "hotelName",
    "city": "city",
    "type": "type",
    "capacity": "capacity",
    "floor_number": "floorNumber",
    "room_number": "roomNumber",
}


def _to_doc(fields: Dict[str, Any], attrs: Dict[str, str]) -> Dict[str, Any]:
    return {attrs[k]: v for k, v in fields.items() if k in attrs}


def _ref(value: Any) -> Optional[str]:
    # relationship attributes come back either as an id or as the expanded document
    if isinstance(value, dict):
        return value.get("$id")
    return value


def _parse_ts(value: Any) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _equal(attribute: str, value: Any) -> str:
    values = list(value) if isinstance(value, (list, tuple, set)) else [value]
    return json.dumps({"method": "equal", "attribute": attribute, "values": values})


def _order(attribute: str, descending: bool = False) -> str:
    return json.dumps({"method": "orderDesc" if descending else "orderAsc", "attribute": attribute})


def _limit(n: int) -> str:
    return json.dumps({"method": "limit", "values": [n]})


def _offset(n: int) -> str:
    return json.dumps({"method": "offset", "values": [n]})


class DocumentStore(DataStoreInterface):
    """Document-database backend. Writes are not transactional; see assign_client_to_room."""

    def __init__(self, config: Dict = None, session: Optional[requests.Session] = None):
        self.config = config or {}
        self.endpoint = (self.config.get("endpoint") or "").rstrip("/")
        self.database_id = self.config.get("database_id") or ""
        if not self.endpoint or not self.database_id:
            raise StoreError("Document database is not configured (endpoint / database id missing)")

        self.collections = dict(DEFAULT_COLLECTIONS)
        self.collections.update(self.config.get("collections") or {})
        self.timeout = float(self.config.get("timeout") or 15)
        self.list_limit = int(self.config.get("list_limit") or 1000)
        self.retry_delay = float(self.config.get("retry_delay", 1.0))

        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "Content-Type": "application/json",
                "X-Appwrite-Project": self.config.get("project_id") or "",
                "X-Appwrite-Key": self.config.get("api_key") or "",
            }
        )

    # ---------- HTTP ----------

    def _path(self, collection: str, document_id: Optional[str] = None) -> str:
        path = f"{self.endpoint}/databases/{self.database_id}/collections/{self.collections[collection]}/documents"
        return f"{path}/{document_id}" if document_id else path

    def _request(self, method: str, url: str, params: Dict = None, payload: Dict = None) -> Dict[str, Any]:
        try:
            resp = self.session.request(method, url, params=params, json=payload, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.warning("Document database unreachable (%s %s): %s", method, url, exc)
            raise StoreError(f"Document database unreachable: {exc}") from exc

        if resp.status_code == 204:
            return {}
        try:
            body = resp.json()
        except ValueError:
            body = {}

        if resp.status_code == 404:
            raise NotFoundError(body.get("message") or "Document not found")
        if resp.status_code >= 400:
            message = body.get("message") or resp.reason or "Unknown error"
            logger.warning("Document database error %s on %s %s: %s", resp.status_code, method, url, message)
            raise StoreError(
                f"Document database error ({resp.status_code}): {message}",
                upstream_status=resp.status_code,
            )
        return body

    def _list(self, collection: str, *queries: str) -> List[Dict[str, Any]]:
        """All matching documents, fetched page by page."""
        documents: List[Dict[str, Any]] = []
        while True:
            params = {"queries[]": list(queries) + [_limit(self.list_limit), _offset(len(documents))]}

            def fetch(params=params):
                return self._request("GET", self._path(collection), params=params)

            page = list(retry_request(fetch, initial_delay=self.retry_delay).get("documents") or [])
            documents.extend(page)
            if len(page) < self.list_limit:
                return documents

    def _get(self, collection: str, document_id: str) -> Dict[str, Any]:
        if not document_id:
            raise NotFoundError(f"{collection} document id missing")
        return self._request("GET", self._path(collection, document_id))

    def _create(self, collection: str, data: Dict[str, Any]) -> Dict[str, Any]:
        payload = {"documentId": uuid.uuid4().hex[:20], "data": data}
        return self._request("POST", self._path(collection), payload=payload)

    def _update(self, collection: str, document_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("PATCH", self._path(collection, document_id), payload={"data": data})

    def _delete(self, collection: str, document_id: str, missing_ok: bool = False) -> None:
        try:
            self._request("DELETE", self._path(collection, document_id))
        except NotFoundError:
            if not missing_ok:
                raise

    def _delete_all(self, collection: str, docs: Iterable[Dict[str, Any]]) -> int:
        count = 0
        for doc in docs:
            self._delete(collection, doc["$id"], missing_ok=True)
            count += 1
        return count

    # ---------- Mappers ----------

    @staticmethod
    def _client_from_doc(doc: Dict[str, Any]) -> ClientRecord:
        return ClientRecord(
            id=doc.get("$id"),
            name=doc.get("name") or "",
            email=doc.get("email") or "",
            phone=doc.get("phone") or "",
            address=doc.get("address") or "",
            passport_number=doc.get("passportNumber") or "",
            gender=doc.get("gender"),
            date_of_birth=doc.get("dateOfBirth"),
        )

    @staticmethod
    def _agent_from_doc(doc: Dict[str, Any]) -> AgentRecord:
        return AgentRecord(
            id=doc.get("$id"),
            name=doc.get("name") or "",
            email=doc.get("email") or "",
            role=doc.get("role") or "agent",
            department=doc.get("department") or "",
        )

    @staticmethod
    def _item_from_doc(doc: Dict[str, Any]) -> InvoiceItemRecord:
        return InvoiceItemRecord(
            id=doc.get("$id"),
            description=doc.get("description") or "",
            quantity=float(doc.get("quantity") or 0),
            unit_price=float(doc.get("unitPrice") or 0),
            invoice_id=_ref(doc.get("invoiceId")),
        )

    def _invoice_from_doc(
        self,
        doc: Dict[str, Any],
        clients: Dict[str, ClientRecord],
        items: List[InvoiceItemRecord],
        agents: Dict[str, AgentRecord],
    ) -> InvoiceRecord:
        client_ref = doc.get("clientId")
        client_id = _ref(client_ref)
        if isinstance(client_ref, dict):
            client = self._client_from_doc(client_ref)
        else:
            client = clients.get(client_id)
        agent = agents.get(doc.get("agentId"))
        return InvoiceRecord(
            id=doc.get("$id"),
            invoice_number=doc.get("invoiceNumber") or "",
            agent_id=doc.get("agentId") or "",
            agent_name=agent.name if agent else "Unknown Agent",
            status=doc.get("status") or "draft",
            client_id=client_id,
            client=client,
            items=items,
            subtotal=float(doc.get("subtotal") or 0),
            tax=float(doc.get("tax") or 0),
            total=float(doc.get("total") or 0),
            created_at=_parse_ts(doc.get("$createdAt") or doc.get("createdAt")),
            updated_at=_parse_ts(doc.get("$updatedAt")),
            due_date=doc.get("dueDate"),
            notes=doc.get("notes") or "",
            passport_number=doc.get("passportNumber") or "",
            gender=doc.get("gender"),
            flight_number=doc.get("flightNumber") or "",
            room_type=doc.get("roomType"),
            visa_status=doc.get("visaStatus"),
            departure_date=doc.get("departureDate"),
            date_of_birth=doc.get("dateOfBirth"),
        )

    def _room_from_doc(
        self,
        doc: Dict[str, Any],
        assignments: List[Dict[str, Any]],
        clients: Dict[str, ClientRecord],
    ) -> RoomRecord:
        records = []
        for a in assignments:
            client_id = _ref(a.get("clientId"))
            records.append(
                AssignmentRecord(
                    id=a.get("$id"),
                    room_id=_ref(a.get("roomId")),
                    client_id=client_id,
                    city=a.get("city") or doc.get("city") or "Makkah",
                    assigned_at=_parse_ts(a.get("assignedAt")),
                    client=clients.get(client_id),
                )
            )
        records.sort(key=lambda r: r.assigned_at or datetime.min)
        return RoomRecord(
            id=doc.get("$id"),
            hotel_name=doc.get("hotelName") or "",
            city=doc.get("city") or "Makkah",
            type=doc.get("type") or "Double",
            capacity=int(doc.get("capacity") or 0),
            floor_number=doc.get("floorNumber"),
            room_number=doc.get("roomNumber") or "",
            created_at=_parse_ts(doc.get("$createdAt")),
            assignments=records,
        )

    def _client_map(self) -> Dict[str, ClientRecord]:
        return {doc["$id"]: self._client_from_doc(doc) for doc in self._list("clients")}

    def _agent_map(self) -> Dict[str, AgentRecord]:
        return {doc["$id"]: self._agent_from_doc(doc) for doc in self._list("agents")}

    def _items_for(self, invoice_ids: List[str]) -> Dict[str, List[InvoiceItemRecord]]:
        grouped: Dict[str, List[InvoiceItemRecord]] = {i: [] for i in invoice_ids}
        if not invoice_ids:
            return grouped
        docs = self._list("items", _equal("invoiceId", invoice_ids))
        docs.sort(key=lambda d: d.get("position") or 0)
        for doc in docs:
            item = self._item_from_doc(doc)
            grouped.setdefault(item.invoice_id, []).append(item)
        return grouped

    def _create_items(self, invoice_id: str, items: List[InvoiceItemRecord]) -> List[str]:
        created = []
        for pos, item in enumerate(items or []):
            doc = self._create(
                "items",
                {
                    "invoiceId": invoice_id,
                    "position": pos,
                    "description": item.description,
                    "quantity": item.quantity,
                    "unitPrice": item.unit_price,
                },
            )
            created.append(doc["$id"])
        return created

    # ---------- Invoices ----------

    def get_invoices(self, agent_id: Optional[str] = None) -> List[InvoiceRecord]:
        queries = [_order("$createdAt", descending=True)]
        if agent_id:
            queries.append(_equal("agentId", agent_id))
        docs = self._list("invoices", *queries)
        clients = self._client_map()
        agents = self._agent_map()
        items = self._items_for([d["$id"] for d in docs])
        return [self._invoice_from_doc(d, clients, items.get(d["$id"], []), agents) for d in docs]

    def get_invoice(self, invoice_id: str) -> InvoiceRecord:
        doc = self._get("invoices", invoice_id)
        clients: Dict[str, ClientRecord] = {}
        client_id = doc.get("clientId")
        if isinstance(client_id, str) and client_id:
            try:
                clients[client_id] = self._client_from_doc(self._get("clients", client_id))
            except NotFoundError:
                logger.warning("Invoice %s references missing client %s", invoice_id, client_id)
        agents: Dict[str, AgentRecord] = {}
        agent_id = doc.get("agentId")
        if agent_id:
            try:
                agents[agent_id] = self._agent_from_doc(self._get("agents", agent_id))
            except NotFoundError:
                pass
        items = self._items_for([invoice_id]).get(invoice_id, [])
        return self._invoice_from_doc(doc, clients, items, agents)

    def create_invoice(self, invoice: InvoiceRecord, items: List[InvoiceItemRecord]) -> InvoiceRecord:
        data = _to_doc({f: getattr(invoice, f) for f in INVOICE_FIELDS}, INVOICE_ATTRS)
        doc = self._create("invoices", data)
        try:
            self._create_items(doc["$id"], items)
        except StoreError:
            logger.error("Item creation failed; removing invoice %s", doc["$id"])
            self._delete_all("items", self._list("items", _equal("invoiceId", doc["$id"])))
            self._delete("invoices", doc["$id"], missing_ok=True)
            raise
        return self.get_invoice(doc["$id"])

    def update_invoice(
        self,
        invoice_id: str,
        fields: Dict[str, Any],
        items: Optional[List[InvoiceItemRecord]] = None,
    ) -> InvoiceRecord:
        data = _to_doc(pick_fields(fields, INVOICE_FIELDS), INVOICE_ATTRS)
        if data:
            self._update("invoices", invoice_id, data)
        else:
            self._get("invoices", invoice_id)
        if items is not None:
            self._delete_all("items", self._list("items", _equal("invoiceId", invoice_id)))
            self._create_items(invoice_id, items)
        return self.get_invoice(invoice_id)

    def delete_invoice(self, invoice_id: str) -> None:
        self._get("invoices", invoice_id)
        self._delete_all("items", self._list("items", _equal("invoiceId", invoice_id)))
        self._delete("invoices", invoice_id)

    # ---------- Clients ----------

    def get_clients(self) -> List[ClientRecord]:
        return [self._client_from_doc(d) for d in self._list("clients", _order("name"))]

    def get_client(self, client_id: str) -> ClientRecord:
        return self._client_from_doc(self._get("clients", client_id))

    def create_client(self, client: ClientRecord) -> ClientRecord:
        data = _to_doc({f: getattr(client, f) for f in CLIENT_FIELDS}, CLIENT_ATTRS)
        return self._client_from_doc(self._create("clients", data))

    def bulk_create_clients(self, clients: List[ClientRecord]) -> List[ClientRecord]:
        created: List[ClientRecord] = []
        try:
            for client in clients:
                created.append(self.create_client(client))
        except StoreError:
            logger.error("Bulk client creation failed after %s of %s; rolling back", len(created), len(clients))
            for record in created:
                self._delete("clients", record.id, missing_ok=True)
            raise
        return created

    def update_client(self, client_id: str, fields: Dict[str, Any]) -> ClientRecord:
        data = _to_doc(pick_fields(fields, CLIENT_FIELDS), CLIENT_ATTRS)
        if not data:
            return self.get_client(client_id)
        return self._client_from_doc(self._update("clients", client_id, data))

    def delete_client(self, client_id: str) -> None:
        self._get("clients", client_id)
        self._delete_all("assignments", self._list("assignments", _equal("clientId", client_id)))
        self._delete("clients", client_id)

    # ---------- Rooms ----------

    def get_rooms(self, city: Optional[str] = None) -> List[RoomRecord]:
        queries = [_equal("city", city)] if city else []
        room_docs = self._list("rooms", *queries)
        assignments = self._list("assignments")
        clients = self._client_map()
        by_room: Dict[str, List[Dict[str, Any]]] = {}
        for a in assignments:
            by_room.setdefault(_ref(a.get("roomId")), []).append(a)
        rooms = [self._room_from_doc(d, by_room.get(d["$id"], []), clients) for d in room_docs]
        rooms.sort(key=lambda r: (r.hotel_name, r.room_number))
        return rooms

    def get_room(self, room_id: str) -> RoomRecord:
        doc = self._get("rooms", room_id)
        assignments = self._list("assignments", _equal("roomId", room_id))
        clients: Dict[str, ClientRecord] = {}
        for a in assignments:
            client_id = _ref(a.get("clientId"))
            try:
                clients[client_id] = self.get_client(client_id)
            except NotFoundError:
                logger.warning("Room %s holds an assignment for missing client %s", room_id, client_id)
        return self._room_from_doc(doc, assignments, clients)

    def create_room(self, room: RoomRecord) -> RoomRecord:
        fields = prepare_room_fields(
            {
                "hotel_name": room.hotel_name,
                "city": room.city,
                "type": room.type,
                "floor_number": room.floor_number,
                "room_number": room.room_number,
            }
        )
        return self._room_from_doc(self._create("rooms", _to_doc(fields, ROOM_ATTRS)), [], {})

    def update_room(self, room_id: str, fields: Dict[str, Any]) -> RoomRecord:
        data = _to_doc(prepare_room_fields(fields), ROOM_ATTRS)
        if data:
            self._update("rooms", room_id, data)
        return self.get_room(room_id)

    def delete_room(self, room_id: str) -> None:
        self._get("rooms", room_id)
        occupants = self._list("assignments", _equal("roomId", room_id))
        if occupants:
            raise RoomNotEmpty(f"Room {room_id} still has {len(occupants)} pilgrim(s)")
        self._delete("rooms", room_id)

    @staticmethod
    def _in_plan(doc: Dict[str, Any], city: Optional[str]) -> bool:
        # legacy rows without a city belong to every plan
        return not city or not doc.get("city") or doc.get("city") == city

    def assign_client_to_room(self, room_id: str, client_id: str, city: str) -> AssignmentRecord:
        room = self._get("rooms", room_id)
        client = self.get_client(client_id)

        previous = [a for a in self._list("assignments", _equal("clientId", client_id)) if self._in_plan(a, city)]

        # No transaction here: two sessions racing for the last bed can both pass
        # this check. The overflow shows up on the next refresh.
        occupants = [
            a for a in self._list("assignments", _equal("roomId", room_id))
            if a.get("clientId") != client_id
        ]
        capacity = int(room.get("capacity") or 0)
        if len(occupants) >= capacity:
            raise CapacityExceeded(f"Room {room.get('roomNumber') or room_id} is full ({capacity})")

        # the old room is only given up once the new one is known to have a bed
        self._delete_all("assignments", previous)

        assigned_at = datetime.utcnow()
        doc = self._create(
            "assignments",
            {
                "roomId": room_id,
                "clientId": client_id,
                "city": city,
                "assignedAt": assigned_at.isoformat() + "Z",
            },
        )
        return AssignmentRecord(
            id=doc.get("$id"),
            room_id=room_id,
            client_id=client_id,
            city=city,
            assigned_at=assigned_at,
            client=client,
        )

    def remove_client_from_room(self, client_id: str, city: Optional[str] = None) -> int:
        rows = [a for a in self._list("assignments", _equal("clientId", client_id)) if self._in_plan(a, city)]
        return self._delete_all("assignments", rows)

    # ---------- Agents ----------

    def get_agents(self) -> List[AgentRecord]:
        return [self._agent_from_doc(d) for d in self._list("agents", _order("name"))]

    def get_agent(self, agent_id: str) -> AgentRecord:
        return self._agent_from_doc(self._get("agents", agent_id))

    def get_agent_by_email(self, email: str) -> Optional[AgentRecord]:
        docs = self._list("agents", _equal("email", (email or "").strip().lower()))
        return self._agent_from_doc(docs[0]) if docs else None

    def create_agent(self, agent: AgentRecord) -> AgentRecord:
        doc = self._create(
            "agents",
            {
                "name": agent.name,
                "email": agent.email.strip().lower(),
                "role": agent.role,
                "department": agent.department,
            },
        )
        return self._agent_from_doc(doc)

    def update_agent(self, agent_id: str, fields: Dict[str, Any]) -> AgentRecord:
        data = pick_fields(fields, AGENT_FIELDS)
        if "email" in data:
            data["email"] = (data["email"] or "").strip().lower()
        if not data:
            return self.get_agent(agent_id)
        return self._agent_from_doc(self._update("agents", agent_id, data))
