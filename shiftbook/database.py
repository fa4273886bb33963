from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Iterator, MutableMapping
from datetime import date, datetime
from pathlib import Path
from typing import Generic, TypeVar

from shiftbook import config
from shiftbook.models import (
    CustomShiftHours,
    Franchisee,
    Reservation,
    ReservationStatus,
    Worker,
    WorkerShift,
)

logger = logging.getLogger(__name__)

K = TypeVar("K")
V = TypeVar("V")


class InMemoryKeyValueDatabase(Generic[K, V]):
    """
    Simple in-memory key/value database.
    """

    def __init__(self) -> None:
        self._store: MutableMapping[K, V] = {}

    def put(self, key: K, value: V) -> None:
        self._store[key] = value

    def get(self, key: K) -> V | None:
        return self._store.get(key)

    def delete(self, key: K) -> None:
        self._store.pop(key, None)

    def all(self) -> list[V]:
        return list(self._store.values())

    def clear(self) -> None:
        self._store.clear()

    def __iter__(self) -> Iterator[V]:
        return iter(self._store.values())

    def __len__(self) -> int:
        return len(self._store)


class Database:
    """
    Container for all database instances.

    Status updates are conditional on the current status, so two clients
    racing to move the same reservation cannot both apply. None of the
    update methods await, which makes each one atomic on the event loop.
    """

    def __init__(self) -> None:
        self.reservations: InMemoryKeyValueDatabase[str, Reservation] = (
            InMemoryKeyValueDatabase()
        )
        self.workers: InMemoryKeyValueDatabase[str, Worker] = (
            InMemoryKeyValueDatabase()
        )
        self.franchisees: InMemoryKeyValueDatabase[str, Franchisee] = (
            InMemoryKeyValueDatabase()
        )
        self.worker_shifts: InMemoryKeyValueDatabase[str, WorkerShift] = (
            InMemoryKeyValueDatabase()
        )
        # Keyed by worker_shift_id
        self.custom_shift_hours: InMemoryKeyValueDatabase[str, CustomShiftHours] = (
            InMemoryKeyValueDatabase()
        )

    def clear(self) -> None:
        self.reservations.clear()
        self.workers.clear()
        self.franchisees.clear()
        self.worker_shifts.clear()
        self.custom_shift_hours.clear()

    # Reservations

    def list_reservations(
        self,
        statuses: Iterable[ReservationStatus] | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
        worker_id: str | None = None,
    ) -> list[Reservation]:
        """List reservations matching every given filter."""
        wanted = set(statuses) if statuses is not None else None
        result = []
        for reservation in self.reservations.all():
            if wanted is not None and reservation.status not in wanted:
                continue
            if date_from is not None and reservation.date < date_from:
                continue
            if date_to is not None and reservation.date > date_to:
                continue
            if worker_id is not None and reservation.worker_id != worker_id:
                continue
            result.append(reservation)
        return result

    def update_status(
        self,
        reservation_id: str,
        expected_from: ReservationStatus,
        to_status: ReservationStatus,
        now: datetime,
        **changes,
    ) -> bool:
        """
        Move a reservation to `to_status` only if it is still in
        `expected_from`. Returns False when the update was a no-op.
        """
        reservation = self.reservations.get(reservation_id)
        if reservation is None or reservation.status != expected_from:
            return False
        self.reservations.put(
            reservation_id,
            reservation.model_copy(
                update={"status": to_status, "updated_at": now, **changes}
            ),
        )
        return True

    def update_status_bulk(
        self,
        reservation_ids: Iterable[str],
        expected_from_statuses: Iterable[ReservationStatus],
        to_status: ReservationStatus,
        now: datetime,
    ) -> list[str]:
        """Conditional update of many reservations. Returns the IDs updated."""
        allowed = set(expected_from_statuses)
        updated = []
        for reservation_id in reservation_ids:
            reservation = self.reservations.get(reservation_id)
            if reservation is None or reservation.status not in allowed:
                continue
            self.reservations.put(
                reservation_id,
                reservation.model_copy(
                    update={"status": to_status, "updated_at": now}
                ),
            )
            updated.append(reservation_id)
        return updated

    def next_reservation_number(self) -> str:
        return f"RES-{len(self.reservations) + 1:04d}"

    # Shifts

    def get_worker_shift(self, worker_id: str, on_date: date) -> WorkerShift | None:
        for shift in self.worker_shifts.all():
            if shift.worker_id == worker_id and shift.date == on_date:
                return shift
        return None

    def get_custom_hours(self, worker_shift_id: str) -> CustomShiftHours | None:
        return self.custom_shift_hours.get(worker_shift_id)

    def get_shifts_on(self, on_date: date) -> list[WorkerShift]:
        return [shift for shift in self.worker_shifts.all() if shift.date == on_date]


_db: Database | None = None


def get_db() -> Database:
    """Get the global database instance."""
    global _db
    if _db is None:
        _db = Database()
    return _db


def load_sample_data(db: Database | None = None, path: Path | None = None) -> None:
    """Load sample data from sample_data.json into the database."""
    if db is None:
        db = get_db()
    if path is None:
        path = config.SAMPLE_DATA_PATH

    with open(path) as f:
        data = json.load(f)

    for worker_data in data.get("workers", []):
        worker = Worker(**worker_data)
        db.workers.put(worker.id, worker)

    for franchisee_data in data.get("franchisees", []):
        franchisee = Franchisee(**franchisee_data)
        db.franchisees.put(franchisee.id, franchisee)

    for shift_data in data.get("worker_shifts", []):
        shift = WorkerShift(**shift_data)
        db.worker_shifts.put(shift.id, shift)

    for hours_data in data.get("custom_shift_hours", []):
        hours = CustomShiftHours(**hours_data)
        db.custom_shift_hours.put(hours.worker_shift_id, hours)

    for reservation_data in data.get("reservations", []):
        reservation = Reservation(**reservation_data)
        db.reservations.put(reservation.id, reservation)

    logger.info(
        f"Loaded sample data: {len(db.workers)} workers, "
        f"{len(db.reservations)} reservations"
    )
