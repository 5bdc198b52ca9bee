import uuid
from datetime import datetime

from umrah_office.domain import Client as ClientRecord
from umrah_office.extensions import db


class Client(db.Model):
    __tablename__ = "clients"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = db.Column(db.String(200), nullable=False, index=True)
    email = db.Column(db.String(200), nullable=True)
    phone = db.Column(db.String(50), nullable=True, index=True)
    address = db.Column(db.String(255), nullable=True)
    passport_number = db.Column(db.String(50), nullable=True, index=True)
    gender = db.Column(db.String(10), nullable=True)  # Male / Female
    date_of_birth = db.Column(db.Date, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self) -> str:  # pragma: no cover - debug friendly only
        return f"<Client {self.id} {self.name!r}>"

    def to_domain(self) -> ClientRecord:
        return ClientRecord(
            id=self.id,
            name=self.name,
            email=self.email or "",
            phone=self.phone or "",
            address=self.address or "",
            passport_number=self.passport_number or "",
            gender=self.gender,
            date_of_birth=self.date_of_birth.isoformat() if self.date_of_birth else None,
        )
