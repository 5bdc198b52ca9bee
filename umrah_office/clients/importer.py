"""Pilgrim list import.

Rooming sheets arrive in whatever layout the hotel or the group leader
used, so instead of mapping columns we scan every cell and keep the ones
that look like a person's name ("smart scan").

The heuristic is lossy in both directions: short or keyword-bearing
names are missed, and any two-word text without digits gets through.
Use ``dry_run`` to review the batch before committing it.
"""

from __future__ import annotations

import csv
import io
import logging
import re
import zipfile
from abc import ABC, abstractmethod
from typing import Any, Iterable, List, Optional, Sequence

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from umrah_office.domain import Client
from umrah_office.errors import ImportParseError
from umrah_office.store.base import DataStoreInterface

logger = logging.getLogger(__name__)


# Headers, room types, cities and agency words that show up in rooming sheets
IGNORE_KEYWORDS = (
    "خماسي", "رباعي", "ثلاثي", "ثنائي", "فردي",
    "مكة", "المدينة", "Makkah", "Madinah",
    "رجال", "نساء", "غرفة", "غرفه", "رقم",
    "Room", "Type", "Hotel", "Floor",
    "تسكين", "لائحة", "تقرير", "بواسطة",
    "Beausejour", "Voyage", "Unknown", "Name",
)

_digit_re = re.compile(r"\d")

MAX_ROWS = 10000


class TokenClassifier(ABC):
    """Decides whether a cell value is a person's name."""

    @abstractmethod
    def is_name(self, text: str) -> bool:
        pass


class DenylistNameClassifier(TokenClassifier):
    """Length / digit / keyword / word-count heuristic."""

    def __init__(self, keywords: Sequence[str] = IGNORE_KEYWORDS, min_length: int = 5, min_words: int = 2):
        self.keywords = tuple(keywords)
        self.min_length = min_length
        self.min_words = min_words

    def is_name(self, text: str) -> bool:
        trimmed = (text or "").strip()
        if len(trimmed) < self.min_length:
            return False
        if _digit_re.search(trimmed):
            return False
        if any(k in trimmed for k in self.keywords):
            return False
        words = [w for w in trimmed.split() if len(w) > 1]
        return len(words) >= self.min_words


def looks_like_name(text: str) -> bool:
    return DenylistNameClassifier().is_name(text)


def placeholder_email(name: str) -> str:
    return re.sub(r"\s+", ".", name).lower() + "@example.com"


def read_rows(stream, filename: str, max_rows: int = MAX_ROWS) -> List[List[Any]]:
    """Read the first sheet of an .xlsx (or a .csv) into a list of rows."""
    data = stream.read() if hasattr(stream, "read") else stream
    name = (filename or "").lower()
    try:
        if name.endswith(".csv"):
            text = data.decode("utf-8-sig") if isinstance(data, bytes) else data
            rows = list(csv.reader(io.StringIO(text)))
        elif name.endswith((".xlsx", ".xlsm")):
            wb = load_workbook(io.BytesIO(data), data_only=True, read_only=True)
            try:
                if not wb.sheetnames:
                    raise ImportParseError("Spreadsheet has no sheets")
                ws = wb[wb.sheetnames[0]]
                rows = [list(r) for r in ws.iter_rows(values_only=True)]
            finally:
                wb.close()
        else:
            raise ImportParseError("Unsupported file type (expected .xlsx or .csv)")
    except ImportParseError:
        raise
    except (zipfile.BadZipFile, InvalidFileException, UnicodeDecodeError, csv.Error, KeyError, OSError) as exc:
        logger.warning("Could not read %s: %s", filename, exc)
        raise ImportParseError(f"Could not read {filename or 'file'}") from exc

    if len(rows) > max_rows:
        raise ImportParseError(f"Spreadsheet has more than {max_rows} rows")
    return rows


def smart_scan(rows: Iterable[Iterable[Any]], classifier: Optional[TokenClassifier] = None) -> List[str]:
    """Distinct name-like cell values in reading order (exact-match dedupe)."""
    classifier = classifier or DenylistNameClassifier()
    seen = set()
    names = []
    for row in rows:
        for cell in row or ():
            if cell is None:
                continue
            text = str(cell).strip()
            if not text or text in seen:
                continue
            if classifier.is_name(text):
                seen.add(text)
                names.append(text)
    return names


def import_clients(
    store: DataStoreInterface,
    stream,
    filename: str,
    dry_run: bool = False,
    classifier: Optional[TokenClassifier] = None,
) -> List[Client]:
    """Scan an uploaded sheet and create one client per name found.

    Nothing is written when the file is unreadable or holds no names, and
    the batch is written in one call so a backend failure leaves no partial
    import behind.
    """
    names = smart_scan(read_rows(stream, filename), classifier)
    if not names:
        raise ImportParseError("No pilgrim names found in the file")

    batch = [Client(id=None, name=n, email=placeholder_email(n)) for n in names]
    if dry_run:
        logger.info("Import preview of %s: %s names", filename, len(batch))
        return batch

    created = store.bulk_create_clients(batch)
    logger.info("Imported %s clients from %s", len(created), filename)
    return created
