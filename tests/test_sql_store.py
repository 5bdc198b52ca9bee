import pytest

from umrah_office.domain import Agent, Client, Invoice, InvoiceItem, Room
from umrah_office.errors import CapacityExceeded, NotFoundError, RoomNotEmpty
from umrah_office.store.factory import StoreFactory
from umrah_office.store.sql import SqlStore


def _room(store, city="Makkah", type_="Quad", number="101"):
    return store.create_room(
        Room(id=None, hotel_name="Hilton Makkah", city=city, type=type_, capacity=0, floor_number=1, room_number=number)
    )


def _client(store, name):
    return store.create_client(Client(id=None, name=name))


def _holders(store, city):
    return {room.id: [a.client_id for a in room.assignments] for room in store.get_rooms(city)}


def test_factory_picks_sql(store):
    assert isinstance(store, SqlStore)
    assert StoreFactory.list_adapters() == ["sql", "documents"]
    with pytest.raises(ValueError):
        StoreFactory.get_store("mongo")


@pytest.mark.parametrize("type_,capacity", [("Double", 2), ("Triple", 3), ("Quad", 4), ("Quint", 5)])
def test_capacity_follows_type(store, type_, capacity):
    room = _room(store, type_=type_)
    assert room.capacity == capacity


def test_changing_type_changes_capacity(store):
    room = _room(store, type_="Double")
    updated = store.update_room(room.id, {"type": "Quint", "capacity": 99})
    assert (updated.type, updated.capacity) == ("Quint", 5)

    # capacity alone is not writable
    same = store.update_room(room.id, {"capacity": 1})
    assert same.capacity == 5


def test_reassign_moves_client(store):
    r1, r2 = _room(store, number="101"), _room(store, number="102")
    c = _client(store, "Ahmed Ali")

    store.assign_client_to_room(r1.id, c.id, "Makkah")
    store.assign_client_to_room(r2.id, c.id, "Makkah")

    holders = _holders(store, "Makkah")
    assert holders[r1.id] == []
    assert holders[r2.id] == [c.id]


def test_cities_are_independent(store):
    makkah = _room(store, city="Makkah")
    madinah = _room(store, city="Madinah", number="201")
    other_makkah = _room(store, city="Makkah", number="102")
    c = _client(store, "Fatima Zahra")

    store.assign_client_to_room(makkah.id, c.id, "Makkah")
    store.assign_client_to_room(madinah.id, c.id, "Madinah")
    store.assign_client_to_room(other_makkah.id, c.id, "Makkah")

    assert _holders(store, "Madinah")[madinah.id] == [c.id]
    assert _holders(store, "Makkah")[other_makkah.id] == [c.id]


def test_remove_unassigned_client_is_noop(store):
    c = _client(store, "Omar Idrissi")
    assert store.remove_client_from_room(c.id, "Makkah") == 0
    assert store.remove_client_from_room(c.id) == 0


def test_quad_room_rejects_fifth_pilgrim(store):
    room = _room(store, type_="Quad")
    clients = [_client(store, f"Pilgrim Number {n}") for n in "ABCDE"]
    for c in clients[:4]:
        store.assign_client_to_room(room.id, c.id, "Makkah")

    with pytest.raises(CapacityExceeded):
        store.assign_client_to_room(room.id, clients[4].id, "Makkah")
    assert store.get_room(room.id).occupancy == 4


def test_reassigning_to_same_full_room_is_allowed(store):
    room = _room(store, type_="Double")
    a, b = _client(store, "Youssef Amrani"), _client(store, "Salma Bennani")
    store.assign_client_to_room(room.id, a.id, "Makkah")
    store.assign_client_to_room(room.id, b.id, "Makkah")

    store.assign_client_to_room(room.id, a.id, "Makkah")
    assert sorted(x.client_id for x in store.get_room(room.id).assignments) == sorted([a.id, b.id])


def test_delete_room_requires_empty(store):
    room = _room(store)
    c = _client(store, "Karim Tazi")
    store.assign_client_to_room(room.id, c.id, "Makkah")

    with pytest.raises(RoomNotEmpty):
        store.delete_room(room.id)

    store.remove_client_from_room(c.id, "Makkah")
    store.delete_room(room.id)
    with pytest.raises(NotFoundError):
        store.get_room(room.id)


def test_delete_client_removes_assignments(store):
    room = _room(store)
    c = _client(store, "Hamza Alaoui")
    store.assign_client_to_room(room.id, c.id, "Makkah")

    store.delete_client(c.id)
    assert store.get_room(room.id).occupancy == 0


def test_assign_unknown_ids(store):
    room = _room(store)
    with pytest.raises(NotFoundError):
        store.assign_client_to_room(room.id, "missing", "Makkah")
    with pytest.raises(NotFoundError):
        store.assign_client_to_room("missing", "missing", "Makkah")


def test_invoice_items_roundtrip_and_cascade(store, agent):
    c = _client(store, "Ahmed Ali")
    items = [
        InvoiceItem(id=None, description="Umrah package", quantity=1, unit_price=15000.0),
        InvoiceItem(id=None, description="Visa", quantity=1, unit_price=1200.0),
    ]
    created = store.create_invoice(
        Invoice(
            id=None,
            invoice_number="INV-20260101-001",
            agent_id=agent.id,
            client_id=c.id,
            subtotal=16200.0,
            total=16200.0,
            departure_date="2026-02-10",
        ),
        items,
    )
    assert [i.description for i in created.items] == ["Umrah package", "Visa"]
    assert created.client_name == "Ahmed Ali"
    assert created.agent_name == agent.name
    assert created.departure_date == "2026-02-10"

    updated = store.update_invoice(created.id, {"notes": "VIP"}, [items[1]])
    assert updated.notes == "VIP"
    assert [i.description for i in updated.items] == ["Visa"]

    assert [i.id for i in store.get_invoices(agent_id=agent.id)] == [created.id]
    assert store.get_invoices(agent_id="someone-else") == []

    store.delete_invoice(created.id)
    with pytest.raises(NotFoundError):
        store.get_invoice(created.id)


def test_bulk_create_clients(store):
    created = store.bulk_create_clients([Client(id=None, name="Ahmed Ali"), Client(id=None, name="Fatima Zahra")])
    assert len({c.id for c in created}) == 2
    assert [c.name for c in store.get_clients()] == ["Ahmed Ali", "Fatima Zahra"]


def test_agent_email_is_case_insensitive(store, agent):
    assert store.get_agent_by_email("AGENT@example.com").id == agent.id
    assert store.get_agent_by_email("nobody@example.com") is None


def test_update_agent(store):
    agent = store.create_agent(Agent(id=None, name="Samir", email="samir@example.com"))
    updated = store.update_agent(agent.id, {"email": " Samir.B@Example.com ", "role": "director", "id": "ignored"})
    assert (updated.id, updated.email, updated.role) == (agent.id, "samir.b@example.com", "director")
    assert store.get_agent_by_email("samir.b@example.com").id == agent.id
    with pytest.raises(NotFoundError):
        store.update_agent("missing", {"name": "Nobody"})
