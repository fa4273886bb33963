from datetime import date, datetime

import pytest

from shiftbook.errors import InvalidTimeFormat, MissingShiftWindow
from shiftbook.models import (
    CustomShiftHours,
    Reservation,
    ReservationStatus,
    ShiftType,
    ShiftWindow,
    WorkerShift,
)
from shiftbook.shift_matcher import (
    find_available_workers,
    fits_in_shift,
    is_offered_to_worker,
    require_shift_window,
    resolve_shift_window,
)
from shiftbook.timeutil import (
    format_hours,
    parse_minutes_of_day,
    parse_time_of_day,
)

DAY = date(2026, 10, 20)
CREATED = datetime(2026, 10, 15, 9, 0)


def _reservation(
    start: str,
    end: str,
    status: ReservationStatus = ReservationStatus.UNASSIGNED,
    on_date: date = DAY,
    reservation_id: str = "res-1",
) -> Reservation:
    return Reservation(
        id=reservation_id,
        reservation_number="RES-0001",
        franchisee_id="franchisee-1",
        date=on_date,
        start_time=start,
        end_time=end,
        status=status,
        created_at=CREATED,
        updated_at=CREATED,
    )


def _shift(
    shift_type: ShiftType, worker_id: str = "worker-1", shift_id: str = "shift-1"
) -> WorkerShift:
    return WorkerShift(id=shift_id, worker_id=worker_id, date=DAY, shift_type=shift_type)


def test_parse_time_of_day_formats() -> None:
    assert parse_time_of_day("06:00") == 6
    assert parse_time_of_day("14:30") == 14.5
    assert parse_time_of_day("09:15:59") == 9.25
    assert parse_time_of_day("7:45") == 7.75


@pytest.mark.parametrize("value", ["", "noon", "25:00", "12:60", "12", "12:3", None])
def test_parse_time_of_day_rejects_malformed(value) -> None:
    with pytest.raises(InvalidTimeFormat):
        parse_time_of_day(value)


def test_parse_minutes_of_day_is_exact() -> None:
    assert parse_minutes_of_day("08:10") == 490
    assert parse_minutes_of_day("16:10:45") == 970
    assert _reservation("08:10", "16:10").hours == 8
    assert _reservation("14:10", "16:10").hours == 2


def test_format_hours() -> None:
    assert format_hours(9.5) == "09:30"
    assert format_hours(22) == "22:00"


def test_resolve_fixed_shifts() -> None:
    assert resolve_shift_window(ShiftType.Z1) == ShiftWindow(start=6, end=14)
    assert resolve_shift_window(ShiftType.Z2) == ShiftWindow(start=10, end=18)
    assert resolve_shift_window(ShiftType.Z3) == ShiftWindow(start=15, end=23)


def test_resolve_day_off_has_no_window() -> None:
    assert resolve_shift_window(ShiftType.OFF) is None


def test_resolve_custom_shift() -> None:
    hours = CustomShiftHours(worker_shift_id="shift-1", start="07:30", end="12:45:00")
    assert resolve_shift_window(ShiftType.CUSTOM, hours) == ShiftWindow(
        start=7.5, end=12.75
    )


def test_resolve_custom_shift_without_hours() -> None:
    assert resolve_shift_window(ShiftType.CUSTOM) is None


def test_require_shift_window_raises_when_missing() -> None:
    with pytest.raises(MissingShiftWindow):
        require_shift_window(None)
    with pytest.raises(MissingShiftWindow):
        require_shift_window(_shift(ShiftType.OFF))
    with pytest.raises(MissingShiftWindow):
        require_shift_window(_shift(ShiftType.CUSTOM))


def test_fits_in_regular_shift() -> None:
    window = ShiftWindow(start=6, end=14)
    assert fits_in_shift(window, ShiftWindow(start=8, end=12))
    assert fits_in_shift(window, ShiftWindow(start=6, end=14))
    assert not fits_in_shift(window, ShiftWindow(start=13, end=15))
    assert not fits_in_shift(window, ShiftWindow(start=5, end=9))


def test_fits_in_overnight_shift() -> None:
    window = ShiftWindow(start=22, end=6)
    assert fits_in_shift(window, ShiftWindow(start=23, end=24))
    assert fits_in_shift(window, ShiftWindow(start=2, end=4))
    assert not fits_in_shift(window, ShiftWindow(start=10, end=12))
    assert not fits_in_shift(window, ShiftWindow(start=5, end=23))


def test_overnight_shift_accepts_early_hours_of_the_same_date() -> None:
    """
    Either side of the wrap is accepted on its own, so a 22:00-06:00 shift
    on a date also matches 00:00-04:00 of that same date, which is really
    the tail of the previous night. Kept for compatibility with existing
    bookings; tightening it would change which workers are offered a job.
    """
    window = ShiftWindow(start=22, end=6)
    assert fits_in_shift(window, ShiftWindow(start=0, end=4))


def test_is_offered_to_worker_with_fixed_shift() -> None:
    reservation = _reservation("08:00", "12:00")
    assert is_offered_to_worker(reservation, _shift(ShiftType.Z1))
    assert not is_offered_to_worker(reservation, _shift(ShiftType.Z3))


def test_is_offered_to_worker_requires_unassigned() -> None:
    reservation = _reservation("08:00", "12:00", status=ReservationStatus.ASSIGNED)
    assert not is_offered_to_worker(reservation, _shift(ShiftType.Z1))


def test_is_offered_to_worker_without_shift() -> None:
    reservation = _reservation("08:00", "12:00")
    assert not is_offered_to_worker(reservation, None)
    assert not is_offered_to_worker(reservation, _shift(ShiftType.OFF))
    assert not is_offered_to_worker(reservation, _shift(ShiftType.CUSTOM))


def test_is_offered_to_worker_shift_on_other_date() -> None:
    reservation = _reservation("08:00", "12:00", on_date=date(2026, 10, 21))
    assert not is_offered_to_worker(reservation, _shift(ShiftType.Z1))


def test_is_offered_to_worker_custom_overnight() -> None:
    hours = CustomShiftHours(worker_shift_id="shift-1", start="22:00", end="06:00")
    shift = _shift(ShiftType.CUSTOM)
    assert is_offered_to_worker(_reservation("22:30", "23:59"), shift, hours)
    assert is_offered_to_worker(_reservation("01:00", "05:00"), shift, hours)
    assert not is_offered_to_worker(_reservation("12:00", "16:00"), shift, hours)


def test_is_offered_to_worker_malformed_reservation() -> None:
    reservation = _reservation("8 o'clock", "12:00")
    assert not is_offered_to_worker(reservation, _shift(ShiftType.Z1))


def test_find_available_workers() -> None:
    reservation = _reservation("16:00", "20:00")
    shifts = [
        _shift(ShiftType.Z1, worker_id="early", shift_id="s1"),
        _shift(ShiftType.Z3, worker_id="late", shift_id="s2"),
        _shift(ShiftType.CUSTOM, worker_id="custom", shift_id="s3"),
        _shift(ShiftType.CUSTOM, worker_id="no-hours", shift_id="s4"),
        _shift(ShiftType.OFF, worker_id="off", shift_id="s5"),
    ]
    custom_hours = {
        "s3": CustomShiftHours(worker_shift_id="s3", start="12:00", end="21:00"),
    }

    assert find_available_workers(reservation, shifts, custom_hours) == [
        "late",
        "custom",
    ]


def test_find_available_workers_skips_bad_custom_hours() -> None:
    reservation = _reservation("16:00", "20:00")
    shifts = [_shift(ShiftType.CUSTOM, worker_id="custom", shift_id="s1")]
    custom_hours = {
        "s1": CustomShiftHours(worker_shift_id="s1", start="later", end="21:00"),
    }

    assert find_available_workers(reservation, shifts, custom_hours) == []
