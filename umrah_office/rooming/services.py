"""
Room assignment manager.

Keeps a local view of the rooming list (rooms with their assignments, and
the pilgrims) on top of the data store. Writes patch the local view first
and are then sent to the store; when the store rejects a write the whole
view is thrown away and reloaded. The store is always the source of truth.

A background RoomingRefresher calls ``sync()`` periodically so edits made
by other sessions show up without a manual refresh.
"""
from __future__ import annotations

import copy
import logging
import os
import threading
import uuid
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple

from umrah_office.clients.services import client_matches
from umrah_office.domain import Assignment, Client, Room, capacity_for
from umrah_office.errors import (
    CapacityExceeded,
    NotFoundError,
    RoomNotEmpty,
    UmrahError,
    ValidationError,
)
from umrah_office.store.base import DataStoreInterface
from umrah_office.utils.retry import with_timeout

logger = logging.getLogger(__name__)

Listener = Callable[[List[Room], List[Client]], None]


def enrich_clients(clients: List[Client], invoices) -> List[Client]:
    """Fill a missing passport number / gender from the client's latest invoice.

    Values already on the client record win.
    """
    latest: Dict[str, Tuple[str, Optional[str]]] = {}
    for inv in sorted(invoices, key=lambda i: i.created_at or datetime.min, reverse=True):
        if inv.client_id and inv.client_id not in latest and (inv.passport_number or inv.gender):
            latest[inv.client_id] = (inv.passport_number, inv.gender)

    enriched = []
    for client in clients:
        passport, gender = latest.get(client.id, ("", None))
        c = copy.copy(client)
        c.passport_number = client.passport_number or passport or ""
        c.gender = client.gender or gender
        enriched.append(c)
    return enriched


def _snapshot(rooms: List[Room], clients: List[Client]):
    return [r.to_dict() for r in rooms], [c.to_dict() for c in clients]


class RoomAssignmentManager:
    def __init__(self, store: DataStoreInterface):
        self.store = store
        self._lock = threading.RLock()
        self._rooms: List[Room] = []
        self._clients: List[Client] = []
        self._loaded = False
        self._dirty = True
        self._listeners: List[Listener] = []

    # ---------- cache ----------

    @property
    def dirty(self) -> bool:
        return self._dirty

    def mark_dirty(self) -> None:
        """Flag the local view as out of date; the next read or sync reloads it."""
        with self._lock:
            self._dirty = True

    def _fetch(self) -> Tuple[List[Room], List[Client]]:
        rooms = self.store.get_rooms()
        clients = self.store.get_clients()
        invoices = self.store.get_invoices()
        return rooms, enrich_clients(clients, invoices)

    def _replace(self, rooms: List[Room], clients: List[Client]) -> None:
        with self._lock:
            self._rooms = rooms
            self._clients = clients
            self._loaded = True
            self._dirty = False

    def refresh(self) -> None:
        """Reload everything from the store and notify subscribers."""
        rooms, clients = self._fetch()
        self._replace(rooms, clients)
        self._notify()

    def sync(self) -> bool:
        """Reconcile with the store; returns True when the local view was replaced."""
        rooms, clients = self._fetch()
        with self._lock:
            changed = (
                self._dirty
                or not self._loaded
                or _snapshot(rooms, clients) != _snapshot(self._rooms, self._clients)
            )
            if changed:
                self._replace(rooms, clients)
        if changed:
            logger.info("Rooming list changed on the server; local view replaced")
            self._notify()
        return changed

    def _ensure_loaded(self) -> None:
        if not self._loaded or self._dirty:
            self.refresh()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        with self._lock:
            listeners = list(self._listeners)
            rooms = copy.deepcopy(self._rooms)
            clients = copy.deepcopy(self._clients)
        for listener in listeners:
            try:
                listener(rooms, clients)
            except Exception:
                logger.exception("Rooming listener %r failed", listener)

    def _recover(self, action: str, exc: Exception) -> None:
        """Drop the optimistic view after a failed write."""
        logger.warning("%s failed (%s); reloading rooming list", action, exc)
        try:
            self.refresh()
        except UmrahError:
            logger.exception("Reload after failed %s also failed", action)
            self.mark_dirty()

    # ---------- queries ----------

    def rooms_with_occupancy(self, city: Optional[str] = None) -> List[Room]:
        self._ensure_loaded()
        with self._lock:
            rooms = [r for r in self._rooms if not city or r.city == city]
            return copy.deepcopy(rooms)

    def unassigned_clients(self, city: str, query: str = "") -> List[Client]:
        self._ensure_loaded()
        with self._lock:
            assigned = {
                a.client_id
                for room in self._rooms
                for a in room.assignments
                if a.city == city
            }
            return [
                copy.copy(c)
                for c in self._clients
                if c.id not in assigned and client_matches(c, query)
            ]

    def assignment_of(self, client_id: str, city: str) -> Optional[Assignment]:
        self._ensure_loaded()
        with self._lock:
            for room in self._rooms:
                for a in room.assignments:
                    if a.client_id == client_id and a.city == city:
                        return copy.copy(a)
        return None

    # ---------- assignment ----------

    def _find_room(self, room_id: str) -> Room:
        for room in self._rooms:
            if room.id == room_id:
                return room
        raise NotFoundError(f"Room not found: {room_id}")

    def _drop_local(self, client_id: str, city: Optional[str]) -> None:
        for room in self._rooms:
            room.assignments = [
                a for a in room.assignments
                if not (a.client_id == client_id and (city is None or a.city == city))
            ]

    def assign(self, room_id: str, client_id: str, city: str) -> Assignment:
        """Move the client into `room_id` for `city`, retiring any earlier room there."""
        self._ensure_loaded()
        with self._lock:
            try:
                room = self._find_room(room_id)
            except NotFoundError:
                # possibly created by another session since the last refresh
                self.refresh()
                room = self._find_room(room_id)
            if room.city != city:
                raise ValidationError({"city": f"Room {room.room_number} is in {room.city}, not {city}"})
            # advisory; the store has the last word
            if not room.holds(client_id) and room.is_full:
                raise CapacityExceeded(f"Room {room.room_number or room.id} is full ({room.capacity})")

            client = next((c for c in self._clients if c.id == client_id), None)
            pending = Assignment(
                id=f"pending-{uuid.uuid4().hex[:8]}",
                room_id=room_id,
                client_id=client_id,
                city=city,
                assigned_at=datetime.utcnow(),
                client=client,
            )
            self._drop_local(client_id, city)
            room.assignments.append(pending)
            self._dirty = True

        try:
            stored = self.store.assign_client_to_room(room_id, client_id, city)
        except UmrahError as exc:
            self._recover("Assignment", exc)
            raise

        with self._lock:
            for r in self._rooms:
                r.assignments = [stored if a.id == pending.id else a for a in r.assignments]
            if stored.client is None:
                stored.client = client
        logger.info("Client %s assigned to room %s (%s)", client_id, room_id, city)
        self._notify()
        return stored

    def unassign(self, client_id: str, city: Optional[str] = None) -> int:
        """Remove the client from its room; unassigning twice is a no-op."""
        self._ensure_loaded()
        with self._lock:
            self._drop_local(client_id, city)
            self._dirty = True

        try:
            removed = self.store.remove_client_from_room(client_id, city)
        except UmrahError as exc:
            self._recover("Unassignment", exc)
            raise

        if removed:
            logger.info("Client %s removed from %s room(s) (%s)", client_id, removed, city or "all cities")
        self._notify()
        return removed

    # ---------- rooms ----------

    def create_room(self, fields: Dict) -> Room:
        room = self.store.create_room(
            Room(
                id=None,
                hotel_name=fields["hotel_name"],
                city=fields["city"],
                type=fields["type"],
                capacity=capacity_for(fields["type"]),
                floor_number=fields.get("floor_number"),
                room_number=fields.get("room_number") or "",
            )
        )
        logger.info("Room %s created in %s (%s)", room.room_number, room.city, room.type)
        self.refresh()
        return room

    def update_room(self, room_id: str, fields: Dict) -> Room:
        current = self.store.get_room(room_id)
        if "type" in fields and capacity_for(fields["type"]) < current.occupancy:
            raise CapacityExceeded(
                f"Room {current.room_number} holds {current.occupancy} pilgrim(s); "
                f"a {fields['type']} room only fits {capacity_for(fields['type'])}"
            )
        if "city" in fields and fields["city"] != current.city and current.occupancy:
            raise RoomNotEmpty("Empty the room before moving it to another city")
        room = self.store.update_room(room_id, fields)
        self.refresh()
        return room

    def delete_room(self, room_id: str) -> None:
        room = self.store.get_room(room_id)
        if room.occupancy:
            raise RoomNotEmpty(f"Room {room.room_number or room.id} still has {room.occupancy} pilgrim(s)")
        self.store.delete_room(room_id)
        logger.info("Room %s deleted", room.room_number or room.id)
        self.refresh()


class RoomingRefresher:
    """Daemon thread calling ``manager.sync()`` every `interval` seconds."""

    def __init__(self, app, manager: RoomAssignmentManager, interval: int = 30, timeout: float = None):
        self.app = app
        self.manager = manager
        self.interval = max(1, int(interval))
        self.timeout = timeout or max(5.0, self.interval * 0.8)
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def _run_once(self) -> bool:
        def job():
            with self.app.app_context():
                return self.manager.sync()

        return with_timeout(job, self.timeout, "Rooming refresh timed out")

    def _worker(self) -> None:
        while not self._stop.wait(self.interval):
            try:
                self._run_once()
            except UmrahError as exc:
                logger.warning("Background rooming refresh failed: %s", exc)
            except Exception:
                # keep the thread alive; the next tick retries
                logger.exception("Background rooming refresh crashed")

    def start(self) -> bool:
        # avoid starting twice under the Flask reloader
        if self.app.debug and os.environ.get("WERKZEUG_RUN_MAIN") != "true":
            return False
        if self._thread and self._thread.is_alive():
            return False
        self._stop.clear()
        self._thread = threading.Thread(target=self._worker, daemon=True, name="RoomingRefresher")
        self._thread.start()
        logger.info("Rooming refresher started (every %ss)", self.interval)
        return True

    def stop(self, wait: float = 0) -> None:
        self._stop.set()
        if wait and self._thread:
            self._thread.join(wait)
