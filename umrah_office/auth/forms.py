from __future__ import annotations

import re
from typing import Any, Dict, Tuple

from umrah_office.domain import AGENT_ROLES

_email_re = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

MIN_PASSWORD_LENGTH = 8


def _clean(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def validate_agent_form(form: Dict[str, Any], partial: bool = False) -> Tuple[Dict[str, Any], Dict[str, str]]:
    """
    Validates agent data sent by a director.
    The password is optional and only ever handed to the credential verifier.
    Returns (cleaned_data, errors)
    """
    data: Dict[str, Any] = {
        key: _clean(form.get(key))
        for key in ("name", "email", "role", "department")
        if not partial or key in form
    }
    if "email" in data:
        data["email"] = data["email"].lower()
    if not partial:
        data["role"] = data["role"] or "agent"

    errors: Dict[str, str] = {}

    if "name" in data and not data["name"]:
        errors["name"] = "Name is required"
    if "email" in data and not _email_re.match(data["email"]):
        errors["email"] = "Invalid email address"
    if "role" in data and data["role"] not in AGENT_ROLES:
        errors["role"] = "Role must be agent or director"

    password = form.get("password")
    if password:
        if len(str(password)) < MIN_PASSWORD_LENGTH:
            errors["password"] = f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
        else:
            data["password"] = str(password)

    return data, errors
