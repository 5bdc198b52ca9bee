from __future__ import annotations

import datetime as _dt
from typing import Any, Dict, List, Optional, Tuple

from umrah_office.domain import GENDERS, ROOM_CAPACITY, VISA_STATUSES

INVOICE_STATUSES = [
    "draft",
    "sent",
    "paid",
    "overdue",
]


def _clean(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _parse_date(value: Any) -> Optional[_dt.date]:
    value = _clean(value)
    if not value:
        return None
    try:
        return _dt.datetime.strptime(value[:10], "%Y-%m-%d").date()
    except ValueError:
        return None


def _number(value: Any) -> Optional[float]:
    if value is None or _clean(value) == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _validate_items(raw: Any, errors: Dict[str, str]) -> List[Dict[str, Any]]:
    if not isinstance(raw, list) or not raw:
        errors["items"] = "At least one item is required"
        return []

    items = []
    for idx, entry in enumerate(raw):
        entry = entry if isinstance(entry, dict) else {}
        description = _clean(entry.get("description"))
        quantity = _number(entry.get("quantity"))
        unit_price = _number(entry.get("unitPrice", entry.get("unit_price")))

        if not description:
            errors[f"items.{idx}.description"] = "Description is required"
        if quantity is None or quantity <= 0:
            errors[f"items.{idx}.quantity"] = "Quantity must be greater than zero"
        if unit_price is None or unit_price < 0:
            errors[f"items.{idx}.unitPrice"] = "Unit price must be zero or more"

        items.append(
            {
                "description": description,
                "quantity": quantity or 0.0,
                "unit_price": unit_price or 0.0,
            }
        )
    return items


def validate_invoice_form(form: Dict[str, Any]) -> Tuple[Dict[str, Any], Dict[str, str]]:
    client = form.get("client") if isinstance(form.get("client"), dict) else {}
    data: Dict[str, Any] = {
        "invoice_number": _clean(form.get("invoiceNumber")),
        "client_id": _clean(form.get("clientId") or client.get("id")) or None,
        "client": {
            "name": _clean(client.get("name") or form.get("clientName")),
            "email": _clean(client.get("email") or form.get("clientEmail")),
            "phone": _clean(client.get("phone")),
            "address": _clean(client.get("address")),
        },
        "status": _clean(form.get("status")) or None,
        "due_date": _clean(form.get("dueDate")),
        "notes": _clean(form.get("notes")),
        "passport_number": _clean(form.get("passportNumber")),
        "gender": _clean(form.get("gender")) or None,
        "flight_number": _clean(form.get("flightNumber")),
        "room_type": _clean(form.get("roomType")) or None,
        "visa_status": _clean(form.get("visaStatus")) or None,
        "departure_date": _clean(form.get("departureDate")),
        "date_of_birth": _clean(form.get("dateOfBirth")),
    }

    errors: Dict[str, str] = {}

    if not data["client_id"] and not data["client"]["name"]:
        errors["client"] = "Client name is required"

    data["items"] = _validate_items(form.get("items"), errors)

    # dates
    for key, label in (
        ("due_date", "dueDate"),
        ("departure_date", "departureDate"),
        ("date_of_birth", "dateOfBirth"),
    ):
        if not data[key]:
            data[key] = None
            continue
        parsed = _parse_date(data[key])
        if parsed is None:
            errors[label] = "Invalid date (expected YYYY-MM-DD)"
            data[key] = None
        else:
            data[key] = parsed.isoformat()

    # enums
    if data["status"] and data["status"] not in INVOICE_STATUSES:
        errors["status"] = "Invalid invoice status"
    if data["gender"] and data["gender"] not in GENDERS:
        errors["gender"] = "Gender must be Male or Female"
    if data["room_type"] and data["room_type"] not in ROOM_CAPACITY:
        errors["roomType"] = "Invalid room type"
    if data["visa_status"] and data["visa_status"] not in VISA_STATUSES:
        errors["visaStatus"] = "Invalid visa status"

    return data, errors


def validate_status_form(form: Dict[str, Any]) -> Tuple[Dict[str, Any], Dict[str, str]]:
    data: Dict[str, Any] = {"status": _clean(form.get("status"))}
    errors: Dict[str, str] = {}

    if data["status"] not in INVOICE_STATUSES:
        errors["status"] = "Invalid invoice status"

    return data, errors
