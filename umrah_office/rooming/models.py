import uuid
from datetime import datetime

from umrah_office.clients.models import Client
from umrah_office.domain import Assignment as AssignmentRecord, Room as RoomRecord
from umrah_office.extensions import db


class Room(db.Model):
    __tablename__ = "rooms"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    hotel_name = db.Column(db.String(200), nullable=False)
    city = db.Column(db.String(20), nullable=False, default="Makkah", index=True)  # Makkah / Madinah
    type = db.Column(db.String(10), nullable=False)  # Double / Triple / Quad / Quint
    capacity = db.Column(db.Integer, nullable=False)
    floor_number = db.Column(db.Integer, nullable=True)
    room_number = db.Column(db.String(20), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    assignments = db.relationship(
        "RoomAssignment",
        back_populates="room",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="RoomAssignment.assigned_at",
    )

    def __repr__(self) -> str:  # pragma: no cover - debug only
        return f"<Room {self.id} {self.hotel_name!r} #{self.room_number} {self.type}>"

    def to_domain(self, with_assignments: bool = True) -> RoomRecord:
        return RoomRecord(
            id=self.id,
            hotel_name=self.hotel_name,
            city=self.city,
            type=self.type,
            capacity=self.capacity,
            floor_number=self.floor_number,
            room_number=self.room_number or "",
            created_at=self.created_at,
            assignments=[a.to_domain() for a in self.assignments] if with_assignments else [],
        )


class RoomAssignment(db.Model):
    """A client housed in a room within one city's rooming plan."""

    __tablename__ = "room_assignments"
    __table_args__ = (
        db.UniqueConstraint("client_id", "city", name="uq_room_assignment_client_city"),
    )

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    room_id = db.Column(db.String(36), db.ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False, index=True)
    client_id = db.Column(db.String(36), db.ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True)
    city = db.Column(db.String(20), nullable=False, index=True)
    assigned_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    room = db.relationship(Room, back_populates="assignments")
    client = db.relationship(
        Client,
        backref=db.backref("assignments", lazy=True, cascade="all, delete-orphan"),
    )

    def to_domain(self) -> AssignmentRecord:
        return AssignmentRecord(
            id=self.id,
            room_id=self.room_id,
            client_id=self.client_id,
            city=self.city,
            assigned_at=self.assigned_at,
            client=self.client.to_domain() if self.client else None,
        )
