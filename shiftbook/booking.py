"""
Reservation actions taken by franchisees, workers and the admin:
creating, accepting, assigning and cancelling, plus the read-side
queries the worker and admin views are built from.
"""

import logging
import uuid
from collections import Counter
from datetime import date, datetime, timedelta

from shiftbook import config
from shiftbook.database import Database
from shiftbook.errors import (
    ConflictingTransition,
    InvalidTimeFormat,
    ReservationNotFound,
    ReservationNotOffered,
    ReservationRuleViolation,
    WorkerNotFound,
)
from shiftbook.models import Reservation, ReservationStatus
from shiftbook.shift_matcher import (
    find_available_workers,
    is_offered_to_worker,
    require_shift_window,
)
from shiftbook.timeutil import parse_minutes_of_day

logger = logging.getLogger(__name__)


def get_reservation(db: Database, reservation_id: str) -> Reservation:
    reservation = db.reservations.get(reservation_id)
    if reservation is None:
        raise ReservationNotFound(f"Reservation {reservation_id} not found")
    return reservation


def validate_new_reservation(
    on_date: date, start_time: str, end_time: str, now: datetime
) -> float:
    """
    Check the booking rules and return the reservation length in hours.
    The date must be at least the lead time ahead (in whole days) and
    the duration within the allowed range.
    """
    start = parse_minutes_of_day(start_time)
    end = parse_minutes_of_day(end_time)
    if start >= end:
        raise ReservationRuleViolation("End time must be after start time")

    minutes = end - start
    if minutes < round(config.MIN_DURATION_HOURS * 60):
        raise ReservationRuleViolation(
            f"Reservation must last at least {config.MIN_DURATION_HOURS:g} hours"
        )
    if minutes > round(config.MAX_DURATION_HOURS * 60):
        raise ReservationRuleViolation(
            f"Reservation can last at most {config.MAX_DURATION_HOURS:g} hours"
        )

    lead_days = timedelta(hours=config.MIN_LEAD_HOURS).days
    earliest = now.date() + timedelta(days=lead_days)
    if on_date < earliest:
        raise ReservationRuleViolation(
            f"Reservations require {config.MIN_LEAD_HOURS:g} hours notice "
            f"(earliest date {earliest.isoformat()})"
        )
    return minutes / 60


def create_reservation(
    db: Database,
    franchisee_id: str,
    on_date: date,
    start_time: str,
    end_time: str,
    now: datetime,
) -> Reservation:
    if db.franchisees.get(franchisee_id) is None:
        raise ReservationRuleViolation(f"Franchisee {franchisee_id} not found")
    hours = validate_new_reservation(on_date, start_time, end_time, now)

    reservation = Reservation(
        id=str(uuid.uuid4()),
        reservation_number=db.next_reservation_number(),
        franchisee_id=franchisee_id,
        date=on_date,
        start_time=start_time,
        end_time=end_time,
        status=ReservationStatus.UNASSIGNED,
        created_at=now,
        updated_at=now,
    )
    db.reservations.put(reservation.id, reservation)
    logger.info(
        f"Reservation {reservation.reservation_number} created for "
        f"{on_date.isoformat()} {start_time}-{end_time} ({hours:g}h)"
    )
    return reservation


def accept_reservation(
    db: Database, reservation_id: str, worker_id: str, now: datetime
) -> Reservation:
    """A worker takes an open reservation that fits their shift."""
    reservation = get_reservation(db, reservation_id)
    if reservation.status != ReservationStatus.UNASSIGNED:
        raise ConflictingTransition(
            f"Reservation {reservation_id} is already {reservation.status}"
        )

    shift = db.get_worker_shift(worker_id, reservation.date)
    custom_hours = db.get_custom_hours(shift.id) if shift is not None else None
    # Raises MissingShiftWindow when the worker is off that day
    require_shift_window(shift, custom_hours)
    if not is_offered_to_worker(reservation, shift, custom_hours):
        raise ReservationNotOffered(
            f"Reservation {reservation_id} does not fit the worker's shift"
        )

    return _assign(db, reservation, worker_id, now)


def assign_worker(
    db: Database, reservation_id: str, worker_id: str, now: datetime
) -> Reservation:
    """Assign a worker directly, without checking their shift."""
    reservation = get_reservation(db, reservation_id)
    if db.workers.get(worker_id) is None:
        raise WorkerNotFound(f"Worker {worker_id} not found")
    return _assign(db, reservation, worker_id, now)


def _assign(
    db: Database, reservation: Reservation, worker_id: str, now: datetime
) -> Reservation:
    updated = db.update_status(
        reservation.id,
        ReservationStatus.UNASSIGNED,
        ReservationStatus.ASSIGNED,
        now,
        worker_id=worker_id,
    )
    if not updated:
        raise ConflictingTransition(
            f"Reservation {reservation.id} was already taken"
        )
    logger.info(f"Reservation {reservation.id} assigned to worker {worker_id}")
    return get_reservation(db, reservation.id)


def cancel_reservation(db: Database, reservation_id: str, now: datetime) -> Reservation:
    reservation = get_reservation(db, reservation_id)
    if reservation.status.is_terminal:
        raise ConflictingTransition(
            f"Reservation {reservation_id} is already {reservation.status}"
        )
    if not db.update_status(
        reservation_id, reservation.status, ReservationStatus.CANCELLED, now
    ):
        raise ConflictingTransition(
            f"Reservation {reservation_id} changed while cancelling"
        )
    logger.info(f"Reservation {reservation_id} cancelled (was {reservation.status})")
    return get_reservation(db, reservation_id)


def open_reservations_for_worker(db: Database, worker_id: str) -> list[Reservation]:
    """Unassigned reservations that fit the worker's shift, newest date first."""
    offered = []
    for reservation in db.list_reservations(statuses=[ReservationStatus.UNASSIGNED]):
        shift = db.get_worker_shift(worker_id, reservation.date)
        custom_hours = db.get_custom_hours(shift.id) if shift is not None else None
        if is_offered_to_worker(reservation, shift, custom_hours):
            offered.append(reservation)
    return sorted(offered, key=lambda r: r.date, reverse=True)


def available_workers(db: Database, reservation_id: str) -> list[str]:
    reservation = get_reservation(db, reservation_id)
    shifts = db.get_shifts_on(reservation.date)
    custom_hours = {
        shift.id: hours
        for shift in shifts
        if (hours := db.get_custom_hours(shift.id)) is not None
    }
    return find_available_workers(reservation, shifts, custom_hours)


def worker_history(
    db: Database,
    worker_id: str,
    date_from: date | None = None,
    date_to: date | None = None,
) -> tuple[list[Reservation], float]:
    """Completed reservations of a worker and their total hours."""
    completed = db.list_reservations(
        statuses=[ReservationStatus.COMPLETED],
        date_from=date_from,
        date_to=date_to,
        worker_id=worker_id,
    )
    completed.sort(key=lambda r: r.date, reverse=True)

    total_minutes = 0
    for reservation in completed:
        try:
            total_minutes += reservation.duration_minutes
        except InvalidTimeFormat as e:
            logger.error(
                f"Leaving reservation {reservation.id} out of the hours total: {e}"
            )
    return completed, total_minutes / 60


def status_counts(db: Database) -> dict[str, int]:
    counts = Counter(r.status for r in db.reservations.all())
    return {status.value: counts.get(status, 0) for status in ReservationStatus}
