from __future__ import annotations

from typing import Any, Dict, Tuple

from umrah_office.domain import CITIES, ROOM_CAPACITY


def _clean(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


# JSON key -> record field
_ROOM_KEYS = {
    "hotelName": "hotel_name",
    "city": "city",
    "type": "type",
    "floorNumber": "floor_number",
    "roomNumber": "room_number",
}


def validate_room_form(form: Dict[str, Any], partial: bool = False) -> Tuple[Dict[str, Any], Dict[str, str]]:
    """Capacity is never read from the form; it follows the room type."""
    data: Dict[str, Any] = {
        field: _clean(form.get(key))
        for key, field in _ROOM_KEYS.items()
        if not partial or key in form
    }
    if not partial:
        data["city"] = data["city"] or "Makkah"
        data["type"] = data["type"] or "Double"

    errors: Dict[str, str] = {}

    if "hotel_name" in data and not data["hotel_name"]:
        errors["hotelName"] = "Hotel name is required"
    if "room_number" in data and not data["room_number"]:
        errors["roomNumber"] = "Room number is required"
    if "city" in data and data["city"] not in CITIES:
        errors["city"] = "City must be Makkah or Madinah"
    if "type" in data and data["type"] not in ROOM_CAPACITY:
        errors["type"] = "Room type must be one of: " + ", ".join(ROOM_CAPACITY)

    if "floor_number" in data:
        if data["floor_number"] == "":
            data["floor_number"] = None
        else:
            try:
                data["floor_number"] = int(data["floor_number"])
                if data["floor_number"] < 0:
                    raise ValueError
            except ValueError:
                errors["floorNumber"] = "Floor must be a whole number"

    return data, errors


def validate_assignment_form(form: Dict[str, Any], need_room: bool = True) -> Tuple[Dict[str, Any], Dict[str, str]]:
    data = {
        "room_id": _clean(form.get("roomId")),
        "client_id": _clean(form.get("clientId")),
        "city": _clean(form.get("city")) or None,
    }
    errors: Dict[str, str] = {}

    if need_room and not data["room_id"]:
        errors["roomId"] = "Room is required"
    if not data["client_id"]:
        errors["clientId"] = "Client is required"
    if need_room and not data["city"]:
        errors["city"] = "City is required"
    if data["city"] and data["city"] not in CITIES:
        errors["city"] = "City must be Makkah or Madinah"

    return data, errors
