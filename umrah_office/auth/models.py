import uuid
from datetime import datetime

from umrah_office.domain import Agent as AgentRecord
from umrah_office.extensions import db


class Agent(db.Model):
    __tablename__ = "agents"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = db.Column(db.String(150), nullable=False)
    email = db.Column(db.String(120), nullable=False, unique=True, index=True)
    role = db.Column(db.String(20), nullable=False, default="agent", index=True)  # agent / director
    department = db.Column(db.String(100), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def __repr__(self) -> str:  # pragma: no cover - debug only
        return f"<Agent {self.id} {self.email!r} role={self.role}>"

    def to_domain(self) -> AgentRecord:
        return AgentRecord(
            id=self.id,
            name=self.name,
            email=self.email,
            role=self.role,
            department=self.department or "",
        )
