"""Agent management for directors."""
from __future__ import annotations

import logging
from typing import Any, Dict

from umrah_office.auth.credentials import HashedCredentialVerifier
from umrah_office.domain import Agent
from umrah_office.errors import ValidationError
from umrah_office.store.base import DataStoreInterface

logger = logging.getLogger(__name__)


def _check_email_free(store: DataStoreInterface, email: str, agent_id: str = None) -> None:
    existing = store.get_agent_by_email(email)
    if existing is not None and existing.id != agent_id:
        raise ValidationError({"email": "Another agent already uses this email"})


def add_agent(store: DataStoreInterface, verifier: HashedCredentialVerifier, data: Dict[str, Any]) -> Agent:
    _check_email_free(store, data["email"])
    agent = store.create_agent(
        Agent(
            id=None,
            name=data["name"],
            email=data["email"],
            role=data.get("role") or "agent",
            department=data.get("department") or "",
        )
    )
    if data.get("password"):
        verifier.set_password(agent.email, data["password"])
    logger.info("Agent %s added (%s)", agent.email, agent.role)
    return agent


def edit_agent(
    store: DataStoreInterface,
    verifier: HashedCredentialVerifier,
    agent_id: str,
    data: Dict[str, Any],
) -> Agent:
    current = store.get_agent(agent_id)
    fields = {k: v for k, v in data.items() if k != "password"}
    if fields.get("email") and fields["email"] != current.email:
        _check_email_free(store, fields["email"], agent_id)

    agent = store.update_agent(agent_id, fields)
    if agent.email != current.email:
        verifier.rename(current.email, agent.email)
    if data.get("password"):
        verifier.set_password(agent.email, data["password"])
    logger.info("Agent %s updated", agent.email)
    return agent
