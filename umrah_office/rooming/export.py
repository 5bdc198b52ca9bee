"""Rooming list export as .xlsx (one sheet per city)."""

from __future__ import annotations

from io import BytesIO
from typing import Iterable, List, Optional, Sequence

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font
from openpyxl.utils import get_column_letter

from umrah_office.domain import CITIES, Room

HEADERS = ("Hotel", "Floor", "Room", "Type", "Capacity", "Occupancy", "Pilgrim", "Gender", "Passport")


def rooming_rows(rooms: Iterable[Room]) -> List[Sequence[object]]:
    """One row per pilgrim; empty rooms still get a row so free beds are visible."""
    rows = []
    for room in rooms:
        base = (room.hotel_name, room.floor_number, room.room_number, room.type, room.capacity, room.occupancy)
        if not room.assignments:
            rows.append(base + ("", "", ""))
            continue
        for a in room.assignments:
            client = a.client
            rows.append(
                base
                + (
                    client.name if client else a.client_id,
                    (client.gender or "") if client else "",
                    (client.passport_number or "") if client else "",
                )
            )
    return rows


def _fill_sheet(ws, title: str, rows: Iterable[Sequence[object]]) -> None:
    # Excel sheet name max 31
    ws.title = (title or "Sheet1")[:31]

    ws.append(list(HEADERS))
    header_font = Font(bold=True)
    for col in range(1, len(HEADERS) + 1):
        cell = ws.cell(row=1, column=col)
        cell.font = header_font
        cell.alignment = Alignment(horizontal="center", vertical="center", wrap_text=True)

    for r in rows:
        ws.append(["" if v is None else v for v in r])

    ws.freeze_panes = "A2"

    for col_idx in range(1, len(HEADERS) + 1):
        col_letter = get_column_letter(col_idx)
        max_len = max(len("" if c.value is None else str(c.value)) for c in ws[col_letter])
        ws.column_dimensions[col_letter].width = min(max(10, max_len + 2), 55)


def make_rooming_xlsx(rooms: Sequence[Room], city: Optional[str] = None) -> bytes:
    wb = Workbook()
    cities = [city] if city else list(CITIES)
    for idx, name in enumerate(cities):
        ws = wb.active if idx == 0 else wb.create_sheet()
        _fill_sheet(ws, name, rooming_rows(r for r in rooms if r.city == name))

    bio = BytesIO()
    wb.save(bio)
    return bio.getvalue()
