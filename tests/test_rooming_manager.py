from datetime import datetime

import pytest

from umrah_office.domain import Client, Invoice
from umrah_office.errors import CapacityExceeded, RoomNotEmpty, StoreError, ValidationError
from umrah_office.rooming.services import RoomingRefresher, enrich_clients


def _new_room(manager, city="Makkah", type_="Double", number="101"):
    return manager.create_room(
        {"hotel_name": "Dar Al Tawhid", "city": city, "type": type_, "floor_number": 3, "room_number": number}
    )


def _clients(store, *names):
    return [store.create_client(Client(id=None, name=n)) for n in names]


def _occupants(manager, room_id):
    room = next(r for r in manager.rooms_with_occupancy() if r.id == room_id)
    return sorted(a.client_id for a in room.assignments)


def test_assign_then_reassign_leaves_one_room(manager, store):
    r1, r2 = _new_room(manager, number="101"), _new_room(manager, number="102")
    (c,) = _clients(store, "Ahmed Ali")
    manager.mark_dirty()

    manager.assign(r1.id, c.id, "Makkah")
    manager.assign(r2.id, c.id, "Makkah")

    assert _occupants(manager, r1.id) == []
    assert _occupants(manager, r2.id) == [c.id]
    assert manager.assignment_of(c.id, "Makkah").room_id == r2.id


def test_unassigned_is_per_city(manager, store):
    makkah = _new_room(manager, "Makkah")
    a, b = _clients(store, "Ahmed Ali", "Fatima Zahra")
    manager.mark_dirty()

    manager.assign(makkah.id, a.id, "Makkah")

    assert [c.id for c in manager.unassigned_clients("Makkah")] == [b.id]
    assert {c.id for c in manager.unassigned_clients("Madinah")} == {a.id, b.id}
    assert [c.id for c in manager.unassigned_clients("Madinah", "fatima")] == [b.id]


def test_madinah_assignment_does_not_touch_makkah(manager, store):
    makkah = _new_room(manager, "Makkah")
    madinah = _new_room(manager, "Madinah", number="201")
    (c,) = _clients(store, "Omar Idrissi")
    manager.mark_dirty()

    manager.assign(makkah.id, c.id, "Makkah")
    manager.assign(madinah.id, c.id, "Madinah")
    manager.unassign(c.id, "Madinah")

    assert _occupants(manager, makkah.id) == [c.id]
    assert _occupants(manager, madinah.id) == []


def test_unassign_twice_is_noop(manager, store):
    (c,) = _clients(store, "Karim Tazi")
    manager.mark_dirty()
    assert manager.unassign(c.id, "Makkah") == 0
    assert manager.unassign(c.id, "Makkah") == 0


def test_room_city_must_match(manager, store):
    room = _new_room(manager, "Makkah")
    (c,) = _clients(store, "Salma Bennani")
    manager.mark_dirty()
    with pytest.raises(ValidationError):
        manager.assign(room.id, c.id, "Madinah")


def test_fifth_pilgrim_in_quad_is_rejected(manager, store):
    room = _new_room(manager, type_="Quad")
    clients = _clients(store, "Pilgrim Alpha", "Pilgrim Bravo", "Pilgrim Charlie", "Pilgrim Delta", "Pilgrim Echo")
    manager.mark_dirty()
    for c in clients[:4]:
        manager.assign(room.id, c.id, "Makkah")

    with pytest.raises(CapacityExceeded):
        manager.assign(room.id, clients[4].id, "Makkah")

    assert len(_occupants(manager, room.id)) == 4
    assert store.get_room(room.id).occupancy == 4


def test_failed_write_discards_optimistic_update(manager, store, monkeypatch):
    room = _new_room(manager)
    (c,) = _clients(store, "Hamza Alaoui")
    manager.mark_dirty()
    manager.rooms_with_occupancy()

    seen = []
    manager.subscribe(lambda rooms, clients: seen.append([len(r.assignments) for r in rooms]))

    def boom(*args, **kwargs):
        raise StoreError("network down")

    monkeypatch.setattr(store, "assign_client_to_room", boom)
    with pytest.raises(StoreError):
        manager.assign(room.id, c.id, "Makkah")

    # reloaded from the store, which never saw the assignment
    assert not manager.dirty
    assert _occupants(manager, room.id) == []
    assert seen and seen[-1] == [0]


def test_sync_picks_up_changes_from_another_session(manager, store):
    room = _new_room(manager)
    (c,) = _clients(store, "Youssef Amrani")
    manager.sync()
    assert manager.sync() is False

    # someone else writes straight to the store
    store.assign_client_to_room(room.id, c.id, "Makkah")

    received = []
    unsubscribe = manager.subscribe(lambda rooms, clients: received.append(rooms))
    assert manager.sync() is True
    assert _occupants(manager, room.id) == [c.id]
    assert len(received) == 1

    unsubscribe()
    store.remove_client_from_room(c.id)
    assert manager.sync() is True
    assert len(received) == 1


def test_update_room_cannot_shrink_below_occupancy(manager, store):
    room = _new_room(manager, type_="Triple")
    clients = _clients(store, "Pilgrim Alpha", "Pilgrim Bravo", "Pilgrim Charlie")
    manager.mark_dirty()
    for c in clients:
        manager.assign(room.id, c.id, "Makkah")

    with pytest.raises(CapacityExceeded):
        manager.update_room(room.id, {"type": "Double"})

    bigger = manager.update_room(room.id, {"type": "Quint"})
    assert bigger.capacity == 5


def test_delete_occupied_room(manager, store):
    room = _new_room(manager)
    (c,) = _clients(store, "Nour Elhouda")
    manager.mark_dirty()
    manager.assign(room.id, c.id, "Makkah")

    with pytest.raises(RoomNotEmpty):
        manager.delete_room(room.id)

    manager.unassign(c.id, "Makkah")
    manager.delete_room(room.id)
    assert manager.rooms_with_occupancy() == []


def test_enrichment_prefers_client_values():
    clients = [
        Client(id="c1", name="Ahmed Ali"),
        Client(id="c2", name="Fatima Zahra", passport_number="KEEP1", gender="Female"),
    ]
    invoices = [
        Invoice(id="i1", invoice_number="1", agent_id="a", client_id="c1", passport_number="OLD",
                gender="Male", created_at=datetime(2026, 1, 1)),
        Invoice(id="i2", invoice_number="2", agent_id="a", client_id="c1", passport_number="NEW",
                created_at=datetime(2026, 1, 2)),
        Invoice(id="i3", invoice_number="3", agent_id="a", client_id="c2", passport_number="IGNORED",
                created_at=datetime(2026, 1, 3)),
    ]
    enriched = {c.id: c for c in enrich_clients(clients, invoices)}

    assert enriched["c1"].passport_number == "NEW"
    assert enriched["c1"].gender is None
    assert enriched["c2"].passport_number == "KEEP1"
    # the input records are left alone
    assert clients[0].passport_number == ""


def test_refresher_runs_sync_in_app_context(app, manager, store):
    room = _new_room(manager)
    (c,) = _clients(store, "Zineb Fassi")
    store.assign_client_to_room(room.id, c.id, "Makkah")

    refresher = RoomingRefresher(app, manager, interval=30, timeout=10)
    assert refresher._run_once() is True
    assert _occupants(manager, room.id) == [c.id]
