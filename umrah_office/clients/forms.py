from __future__ import annotations

import datetime as _dt
import re
from typing import Any, Dict, Optional, Tuple

from umrah_office.domain import GENDERS

_email_re = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _clean(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _parse_date(value: str) -> Optional[_dt.date]:
    try:
        return _dt.datetime.strptime(value[:10], "%Y-%m-%d").date()
    except ValueError:
        return None


# JSON key -> record field
_CLIENT_KEYS = {
    "name": "name",
    "email": "email",
    "phone": "phone",
    "address": "address",
    "passportNumber": "passport_number",
    "gender": "gender",
    "dateOfBirth": "date_of_birth",
}


def validate_client_form(form: Dict[str, Any], partial: bool = False) -> Tuple[Dict[str, Any], Dict[str, str]]:
    """
    Validates client data coming from a JSON body.
    With partial=True only the keys present in the body are returned (patch).
    Returns (cleaned_data, errors)
    """
    data: Dict[str, Any] = {
        field: _clean(form.get(key))
        for key, field in _CLIENT_KEYS.items()
        if not partial or key in form
    }

    errors: Dict[str, str] = {}

    if "name" in data and not data["name"]:
        errors["name"] = "Name is required"

    if data.get("email") and not _email_re.match(data["email"]):
        errors["email"] = "Invalid email address"

    if "gender" in data:
        data["gender"] = data["gender"] or None
        if data["gender"] and data["gender"] not in GENDERS:
            errors["gender"] = "Gender must be Male or Female"

    if "date_of_birth" in data:
        raw = data["date_of_birth"]
        parsed = _parse_date(raw) if raw else None
        if raw and parsed is None:
            errors["dateOfBirth"] = "Invalid date (expected YYYY-MM-DD)"
        data["date_of_birth"] = parsed.isoformat() if parsed else None

    return data, errors
