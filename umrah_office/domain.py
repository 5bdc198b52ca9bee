"""
Backend-neutral domain records.

Both data store adapters translate their own rows/documents into these
dataclasses, so services and routes never see which backend is active.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


CITIES = ("Makkah", "Madinah")

# capacity is fully determined by the room type
ROOM_CAPACITY = {
    "Double": 2,
    "Triple": 3,
    "Quad": 4,
    "Quint": 5,
}

GENDERS = ("Male", "Female")
VISA_STATUSES = ("Pending", "Issued")
AGENT_ROLES = ("agent", "director")


def capacity_for(room_type: str) -> int:
    try:
        return ROOM_CAPACITY[room_type]
    except KeyError:
        raise ValueError(f"Unknown room type: {room_type}") from None


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass
class Agent:
    id: Optional[str]
    name: str
    email: str
    role: str = "agent"
    department: str = ""

    @property
    def is_director(self) -> bool:
        return self.role == "director"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "department": self.department,
        }


@dataclass
class Client:
    id: Optional[str]
    name: str
    email: str = ""
    phone: str = ""
    address: str = ""
    passport_number: str = ""
    gender: Optional[str] = None
    date_of_birth: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "passportNumber": self.passport_number,
            "gender": self.gender,
            "dateOfBirth": self.date_of_birth,
        }


@dataclass
class Assignment:
    id: Optional[str]
    room_id: str
    client_id: str
    city: str
    assigned_at: Optional[datetime] = None
    client: Optional[Client] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "roomId": self.room_id,
            "clientId": self.client_id,
            "city": self.city,
            "assignedAt": _iso(self.assigned_at),
            "client": self.client.to_dict() if self.client else None,
        }


@dataclass
class Room:
    id: Optional[str]
    hotel_name: str
    city: str
    type: str
    capacity: int
    floor_number: Optional[int] = None
    room_number: str = ""
    created_at: Optional[datetime] = None
    assignments: List[Assignment] = field(default_factory=list)

    @property
    def occupancy(self) -> int:
        return len(self.assignments)

    @property
    def is_full(self) -> bool:
        return self.occupancy >= self.capacity

    def holds(self, client_id: str) -> bool:
        return any(a.client_id == client_id for a in self.assignments)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "hotelName": self.hotel_name,
            "city": self.city,
            "type": self.type,
            "capacity": self.capacity,
            "floorNumber": self.floor_number,
            "roomNumber": self.room_number,
            "createdAt": _iso(self.created_at),
            "assignments": [a.to_dict() for a in self.assignments],
            "currentOccupancy": self.occupancy,
        }


@dataclass
class InvoiceItem:
    id: Optional[str]
    description: str
    quantity: float
    unit_price: float
    invoice_id: Optional[str] = None

    @property
    def total(self) -> float:
        return self.quantity * self.unit_price

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "description": self.description,
            "quantity": self.quantity,
            "unitPrice": self.unit_price,
            "total": self.total,
            "invoiceId": self.invoice_id,
        }


@dataclass
class Invoice:
    id: Optional[str]
    invoice_number: str
    agent_id: str
    status: str = "draft"
    client_id: Optional[str] = None
    client: Optional[Client] = None
    agent_name: str = ""
    items: List[InvoiceItem] = field(default_factory=list)
    subtotal: float = 0.0
    tax: float = 0.0
    total: float = 0.0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    due_date: Optional[str] = None
    notes: str = ""
    # Umrah travel fields
    passport_number: str = ""
    gender: Optional[str] = None
    flight_number: str = ""
    room_type: Optional[str] = None
    visa_status: Optional[str] = None
    departure_date: Optional[str] = None
    date_of_birth: Optional[str] = None

    @property
    def client_name(self) -> str:
        return self.client.name if self.client else "Unknown"

    @property
    def client_email(self) -> str:
        return self.client.email if self.client else ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "invoiceNumber": self.invoice_number,
            "agentId": self.agent_id,
            "agentName": self.agent_name,
            "clientId": self.client_id,
            "clientName": self.client_name,
            "clientEmail": self.client_email,
            "client": self.client.to_dict() if self.client else None,
            "items": [i.to_dict() for i in self.items],
            "subtotal": self.subtotal,
            "tax": self.tax,
            "total": self.total,
            "status": self.status,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
            "dueDate": self.due_date,
            "notes": self.notes,
            "passportNumber": self.passport_number,
            "gender": self.gender,
            "flightNumber": self.flight_number,
            "roomType": self.room_type,
            "visaStatus": self.visa_status,
            "departureDate": self.departure_date,
            "dateOfBirth": self.date_of_birth,
        }
