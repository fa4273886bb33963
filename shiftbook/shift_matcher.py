"""
Shift-fit matching: which workers may take an open reservation.

A shift window is a pair of decimal hours. Fixed shifts have constant
windows; custom shifts carry explicit hours and may wrap past midnight.
Reservations never wrap, so only the shift side needs wrap handling.
"""

import logging
from collections.abc import Iterable, Mapping

from shiftbook.errors import InvalidTimeFormat, MissingShiftWindow
from shiftbook.models import (
    CustomShiftHours,
    Reservation,
    ReservationStatus,
    ShiftType,
    ShiftWindow,
    WorkerShift,
)
from shiftbook.timeutil import parse_time_of_day

logger = logging.getLogger(__name__)

FIXED_SHIFT_WINDOWS: dict[ShiftType, ShiftWindow] = {
    ShiftType.Z1: ShiftWindow(start=6, end=14),
    ShiftType.Z2: ShiftWindow(start=10, end=18),
    ShiftType.Z3: ShiftWindow(start=15, end=23),
}


def resolve_shift_window(
    shift_type: ShiftType, custom_hours: CustomShiftHours | None = None
) -> ShiftWindow | None:
    """
    Map a shift type to its window. Returns None for a day off, or for a
    custom shift without hours.
    """
    match shift_type:
        case ShiftType.Z1 | ShiftType.Z2 | ShiftType.Z3:
            return FIXED_SHIFT_WINDOWS[shift_type]
        case ShiftType.CUSTOM:
            if custom_hours is None:
                return None
            return ShiftWindow(
                start=parse_time_of_day(custom_hours.start),
                end=parse_time_of_day(custom_hours.end),
            )
        case ShiftType.OFF:
            return None


def require_shift_window(
    worker_shift: WorkerShift | None, custom_hours: CustomShiftHours | None = None
) -> ShiftWindow:
    if worker_shift is None:
        raise MissingShiftWindow("Worker has no shift on this date")
    window = resolve_shift_window(worker_shift.shift_type, custom_hours)
    if window is None:
        raise MissingShiftWindow(
            f"Shift {worker_shift.id} ({worker_shift.shift_type}) "
            f"has no working hours on {worker_shift.date.isoformat()}"
        )
    return window


def fits_in_shift(window: ShiftWindow, candidate: ShiftWindow) -> bool:
    """Check that the candidate interval lies inside the shift window."""
    if window.wraps_midnight:
        # Either side of the wrap is accepted independently.
        return candidate.start >= window.start or candidate.end <= window.end
    return candidate.start >= window.start and candidate.end <= window.end


def reservation_window(reservation: Reservation) -> ShiftWindow:
    return ShiftWindow(start=reservation.start_hours, end=reservation.end_hours)


def is_offered_to_worker(
    reservation: Reservation,
    worker_shift: WorkerShift | None,
    custom_hours: CustomShiftHours | None = None,
) -> bool:
    """
    An open reservation is offered to a worker when the worker's shift on
    that date resolves to a window containing the reservation.
    """
    if reservation.status != ReservationStatus.UNASSIGNED:
        return False
    if worker_shift is not None and worker_shift.date != reservation.date:
        return False

    try:
        window = require_shift_window(worker_shift, custom_hours)
        candidate = reservation_window(reservation)
    except MissingShiftWindow:
        return False
    except InvalidTimeFormat as e:
        logger.error(f"Cannot match reservation {reservation.id}: {e}")
        return False

    return fits_in_shift(window, candidate)


def find_available_workers(
    reservation: Reservation,
    shifts: Iterable[WorkerShift],
    custom_hours_by_shift: Mapping[str, CustomShiftHours],
) -> list[str]:
    """Return IDs of workers whose shift on the reservation date fits it."""
    try:
        candidate = reservation_window(reservation)
    except InvalidTimeFormat as e:
        logger.error(f"Cannot match reservation {reservation.id}: {e}")
        return []

    worker_ids = []
    for shift in shifts:
        if shift.date != reservation.date:
            continue
        try:
            window = require_shift_window(
                shift, custom_hours_by_shift.get(shift.id)
            )
        except MissingShiftWindow:
            continue
        except InvalidTimeFormat as e:
            logger.error(f"Skipping shift {shift.id} with bad custom hours: {e}")
            continue
        if fits_in_shift(window, candidate) and shift.worker_id not in worker_ids:
            worker_ids.append(shift.worker_id)
    return worker_ids
