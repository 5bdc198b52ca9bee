"""
Create the tables and seed agents.

    python -m umrah_office.init_db agents.json

agents.json is a list of {"name", "email", "role", "department", "password"}.
Passwords are never stored with the agent: their Werkzeug hashes are
written to AGENT_CREDENTIALS_FILE (or printed, to paste into
AGENT_CREDENTIALS).
"""
import json
import logging
import sys
from typing import Dict, Iterable, List

from werkzeug.security import generate_password_hash

from umrah_office.domain import AGENT_ROLES, Agent
from umrah_office.store.base import DataStoreInterface

logger = logging.getLogger(__name__)


def seed_agents(store: DataStoreInterface, entries: Iterable[Dict]) -> Dict[str, str]:
    """Create the agents that do not exist yet; returns email -> password hash."""
    hashes: Dict[str, str] = {}
    for entry in entries:
        email = (entry.get("email") or "").strip().lower()
        role = entry.get("role") or "agent"
        if not email or role not in AGENT_ROLES:
            raise ValueError(f"Invalid agent entry: {entry!r}")

        if store.get_agent_by_email(email) is None:
            store.create_agent(
                Agent(
                    id=entry.get("id"),
                    name=entry.get("name") or email,
                    email=email,
                    role=role,
                    department=entry.get("department") or "",
                )
            )
            logger.info("Seeded agent %s (%s)", email, role)
        if entry.get("password"):
            hashes[email] = generate_password_hash(entry["password"])
    return hashes


def init_database(app, entries: List[Dict] = None) -> Dict[str, str]:
    with app.app_context():
        store = app.extensions["store"]
        hashes = seed_agents(store, entries or [])

    path = app.config.get("AGENT_CREDENTIALS_FILE")
    if hashes and path:
        existing = {}
        try:
            with open(path, "r", encoding="utf-8") as fh:
                existing = json.load(fh)
        except FileNotFoundError:
            pass
        existing.update(hashes)
        with open(path, "w", encoding="utf-8") as fh:
            json.dump(existing, fh, indent=2)
        logger.info("Wrote %s credential(s) to %s", len(hashes), path)
    return hashes


if __name__ == "__main__":
    from umrah_office.app import create_app

    seed = []
    if len(sys.argv) > 1:
        with open(sys.argv[1], "r", encoding="utf-8") as fh:
            seed = json.load(fh)

    application = create_app()
    written = init_database(application, seed)
    if written and not application.config.get("AGENT_CREDENTIALS_FILE"):
        print("AGENT_CREDENTIALS=" + json.dumps(written))
    print("✅ Database initialized")
