from datetime import date, datetime

import pytest

from shiftbook import booking
from shiftbook.database import Database
from shiftbook.errors import ReservationRuleViolation, WorkerNotFound
from shiftbook.models import Reservation, ReservationStatus, Worker

NOW = datetime(2026, 10, 20, 15, 30)
CREATED = datetime(2026, 10, 15, 9, 0)


def _reservation(
    reservation_id: str,
    start: str,
    end: str,
    status: ReservationStatus = ReservationStatus.COMPLETED,
    on_date: date = date(2026, 10, 15),
    worker_id: str | None = "worker-1",
) -> Reservation:
    return Reservation(
        id=reservation_id,
        reservation_number=f"RES-{reservation_id}",
        franchisee_id="franchisee-1",
        date=on_date,
        start_time=start,
        end_time=end,
        status=status,
        worker_id=worker_id,
        created_at=CREATED,
        updated_at=CREATED,
    )


@pytest.fixture
def db() -> Database:
    database = Database()
    database.workers.put(
        "worker-1", Worker(id="worker-1", name="Anna", phone="+48 500 100 200")
    )
    return database


@pytest.mark.parametrize(
    "start_time, end_time, hours",
    [("08:10", "16:10", 8), ("14:10", "16:10", 2), ("09:00", "13:30", 4.5)],
)
def test_validate_new_reservation_duration_limits_are_inclusive(
    start_time: str, end_time: str, hours: float
) -> None:
    assert (
        booking.validate_new_reservation(date(2026, 10, 22), start_time, end_time, NOW)
        == hours
    )


@pytest.mark.parametrize(
    "start_time, end_time", [("08:10", "16:11"), ("14:10", "16:09")]
)
def test_validate_new_reservation_rejects_one_minute_past_limits(
    start_time: str, end_time: str
) -> None:
    with pytest.raises(ReservationRuleViolation):
        booking.validate_new_reservation(date(2026, 10, 22), start_time, end_time, NOW)


def test_worker_history_leaves_malformed_record_out_of_total(db, caplog) -> None:
    for reservation in [
        _reservation("morning", "08:10", "16:10"),
        _reservation("short", "14:10", "16:10", on_date=date(2026, 10, 16)),
        _reservation("broken", "08:00", "25:00", on_date=date(2026, 10, 17)),
    ]:
        db.reservations.put(reservation.id, reservation)

    with caplog.at_level("ERROR"):
        reservations, total_hours = booking.worker_history(db, "worker-1")

    assert [r.id for r in reservations] == ["broken", "short", "morning"]
    assert total_hours == 10
    assert "broken" in caplog.text


def test_assign_unknown_worker_raises_worker_not_found(db) -> None:
    reservation = _reservation(
        "open", "09:00", "13:00", status=ReservationStatus.UNASSIGNED, worker_id=None
    )
    db.reservations.put(reservation.id, reservation)

    with pytest.raises(WorkerNotFound):
        booking.assign_worker(db, "open", "nobody", NOW)
    assert db.reservations.get("open").status == ReservationStatus.UNASSIGNED


def test_assign_known_worker(db) -> None:
    reservation = _reservation(
        "open", "09:00", "13:00", status=ReservationStatus.UNASSIGNED, worker_id=None
    )
    db.reservations.put(reservation.id, reservation)

    assigned = booking.assign_worker(db, "open", "worker-1", NOW)
    assert assigned.status == ReservationStatus.ASSIGNED
    assert assigned.worker_id == "worker-1"
