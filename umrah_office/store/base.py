"""
Data Store Adapters
Abstract interface shared by the SQL and document-database backends
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from umrah_office.domain import Agent, Assignment, Client, Invoice, InvoiceItem, Room, capacity_for


# Writable fields per entity (domain attribute names)
INVOICE_FIELDS = (
    "invoice_number",
    "client_id",
    "agent_id",
    "status",
    "subtotal",
    "tax",
    "total",
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

CLIENT_FIELDS = (
    "name",
    "email",
    "phone",
    "address",
    "passport_number",
    "gender",
    "date_of_birth",
)

ROOM_FIELDS = (
    "hotel_name",
    "city",
    "type",
    "floor_number",
    "room_number",
)

AGENT_FIELDS = (
    "name",
    "email",
    "role",
    "department",
)


def pick_fields(fields: Dict[str, Any], allowed) -> Dict[str, Any]:
    return {k: v for k, v in (fields or {}).items() if k in allowed}


def prepare_room_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Drop any caller-supplied capacity and derive it from the type."""
    data = pick_fields(fields, ROOM_FIELDS)
    if "type" in data:
        data["capacity"] = capacity_for(data["type"])
    return data


class DataStoreInterface(ABC):
    """Abstract base class for the back-office persistence backends"""

    # ---------- Invoices ----------

    @abstractmethod
    def get_invoices(self, agent_id: Optional[str] = None) -> List[Invoice]:
        """List invoices with their client and items, optionally for one agent"""

    @abstractmethod
    def get_invoice(self, invoice_id: str) -> Invoice:
        """
        Fetch a single invoice

        Raises:
            NotFoundError if the id is absent
        """

    @abstractmethod
    def create_invoice(self, invoice: Invoice, items: List[InvoiceItem]) -> Invoice:
        """Insert an invoice and its items; returns the stored invoice"""

    @abstractmethod
    def update_invoice(
        self,
        invoice_id: str,
        fields: Dict[str, Any],
        items: Optional[List[InvoiceItem]] = None,
    ) -> Invoice:
        """
        Patch invoice fields; when `items` is given the item list is replaced

        Returns:
            The stored invoice after the update
        """

    @abstractmethod
    def delete_invoice(self, invoice_id: str) -> None:
        """Delete an invoice and its items"""

    # ---------- Clients ----------

    @abstractmethod
    def get_clients(self) -> List[Client]:
        pass

    @abstractmethod
    def get_client(self, client_id: str) -> Client:
        pass

    @abstractmethod
    def create_client(self, client: Client) -> Client:
        pass

    @abstractmethod
    def bulk_create_clients(self, clients: List[Client]) -> List[Client]:
        """Create all clients or none"""

    @abstractmethod
    def update_client(self, client_id: str, fields: Dict[str, Any]) -> Client:
        pass

    @abstractmethod
    def delete_client(self, client_id: str) -> None:
        """Delete a client together with its room assignments"""

    # ---------- Rooms ----------

    @abstractmethod
    def get_rooms(self, city: Optional[str] = None) -> List[Room]:
        """List rooms with their nested assignments (and assigned clients)"""

    @abstractmethod
    def get_room(self, room_id: str) -> Room:
        pass

    @abstractmethod
    def create_room(self, room: Room) -> Room:
        pass

    @abstractmethod
    def update_room(self, room_id: str, fields: Dict[str, Any]) -> Room:
        """Patch a room; capacity follows the type and is never written directly"""

    @abstractmethod
    def delete_room(self, room_id: str) -> None:
        """
        Delete an empty room

        Raises:
            RoomNotEmpty if assignments still reference it
        """

    @abstractmethod
    def assign_client_to_room(self, room_id: str, client_id: str, city: str) -> Assignment:
        """
        Retire the client's assignments in `city`, then link it to `room_id`

        Returns:
            The new assignment
        """

    @abstractmethod
    def remove_client_from_room(self, client_id: str, city: Optional[str] = None) -> int:
        """
        Delete the client's assignments (in `city` when given)

        Returns:
            Number of deleted assignments; zero is not an error
        """

    # ---------- Agents ----------

    @abstractmethod
    def get_agents(self) -> List[Agent]:
        pass

    @abstractmethod
    def get_agent(self, agent_id: str) -> Agent:
        pass

    @abstractmethod
    def get_agent_by_email(self, email: str) -> Optional[Agent]:
        pass

    @abstractmethod
    def create_agent(self, agent: Agent) -> Agent:
        pass

    @abstractmethod
    def update_agent(self, agent_id: str, fields: Dict[str, Any]) -> Agent:
        """Apply name / email / role / department changes; the email is stored lower-cased."""
        pass
