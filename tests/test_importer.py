from io import BytesIO

import pytest
from openpyxl import Workbook

from umrah_office.clients.importer import (
    DenylistNameClassifier,
    TokenClassifier,
    import_clients,
    looks_like_name,
    placeholder_email,
    read_rows,
    smart_scan,
)
from umrah_office.errors import ImportParseError


def _xlsx(rows):
    wb = Workbook()
    ws = wb.active
    for row in rows:
        ws.append(row)
    bio = BytesIO()
    wb.save(bio)
    bio.seek(0)
    return bio


def test_structural_tokens_are_skipped():
    rows = [["Room 101", "Ahmed Ali"], ["مكة", "فاطمة الزهراء"]]
    assert set(smart_scan(rows)) == {"Ahmed Ali", "فاطمة الزهراء"}


@pytest.mark.parametrize(
    "text,expected",
    [
        ("Ahmed Ali", True),
        ("Ali", False),                    # too short
        ("Ahmed Ali 2", False),            # digits
        ("Hotel Hilton", False),           # denylisted word
        ("Mohammed", False),               # single word
        ("A Mohammed", False),             # one-letter tokens do not count
        ("  Sara   Bennani  ", True),
    ],
)
def test_looks_like_name(text, expected):
    assert looks_like_name(text) is expected


def test_dedupe_is_exact():
    rows = [["Ahmed Ali", "Ahmed Ali"], ["ahmed ali", None, 42]]
    assert smart_scan(rows) == ["Ahmed Ali", "ahmed ali"]


def test_placeholder_email():
    assert placeholder_email("Ahmed  Ben Ali") == "ahmed.ben.ali@example.com"


def test_classifier_is_swappable():
    class UpperOnly(TokenClassifier):
        def is_name(self, text):
            return text.isupper()

    assert smart_scan([["AHMED", "Ahmed Ali"]], UpperOnly()) == ["AHMED"]
    assert DenylistNameClassifier(keywords=("Ali",)).is_name("Ahmed Ali") is False


def test_reads_xlsx_and_csv():
    assert read_rows(_xlsx([["Name", "Room"], ["Ahmed Ali", 101]]), "list.xlsx") == [
        ["Name", "Room"],
        ["Ahmed Ali", 101],
    ]
    csv_bytes = BytesIO("Name,Room\nفاطمة الزهراء,102\n".encode("utf-8-sig"))
    assert read_rows(csv_bytes, "list.csv")[1] == ["فاطمة الزهراء", "102"]


def test_unreadable_file():
    with pytest.raises(ImportParseError):
        read_rows(BytesIO(b"not a zip file"), "broken.xlsx")
    with pytest.raises(ImportParseError):
        read_rows(BytesIO(b"%PDF"), "scan.pdf")


def test_import_creates_clients(store):
    sheet = _xlsx([["Hotel Hilton", "Floor 3"], ["Room 101", "Ahmed Ali"], ["", "Fatima Zahra"]])
    created = import_clients(store, sheet, "makkah.xlsx")

    assert [c.name for c in created] == ["Ahmed Ali", "Fatima Zahra"]
    assert all(c.id for c in created)
    assert {c.email for c in store.get_clients()} == {"ahmed.ali@example.com", "fatima.zahra@example.com"}


def test_dry_run_writes_nothing(store):
    preview = import_clients(store, _xlsx([["Ahmed Ali"]]), "list.xlsx", dry_run=True)
    assert [c.name for c in preview] == ["Ahmed Ali"]
    assert preview[0].id is None
    assert store.get_clients() == []


def test_no_names_found(store):
    with pytest.raises(ImportParseError):
        import_clients(store, _xlsx([["Room 101", "Makkah"], [1, 2]]), "empty.xlsx")
    assert store.get_clients() == []
