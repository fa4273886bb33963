"""
Domain models for reservations, worker shifts and lifecycle transitions.
"""

from collections.abc import Iterator
from datetime import date, datetime
from enum import StrEnum

from pydantic import BaseModel, Field

from shiftbook.errors import InvalidTimeFormat
from shiftbook.timeutil import parse_minutes_of_day, parse_time_of_day


class ReservationStatus(StrEnum):
    UNASSIGNED = "unassigned"  # Open, waiting for a worker
    ASSIGNED = "assigned"  # Worker accepted or was assigned
    IN_PROGRESS = "in_progress"  # Current time is inside the reservation
    PENDING_VERIFICATION = "pending_verification"  # Grace period after the end
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (ReservationStatus.COMPLETED, ReservationStatus.CANCELLED)


class ShiftType(StrEnum):
    Z1 = "Z1"  # 06:00 - 14:00
    Z2 = "Z2"  # 10:00 - 18:00
    Z3 = "Z3"  # 15:00 - 23:00
    CUSTOM = "custom"
    OFF = "off"


class Worker(BaseModel):
    id: str
    name: str
    phone: str


class Franchisee(BaseModel):
    id: str
    name: str
    phone: str
    mpk_number: str
    store_address: str


class Reservation(BaseModel):
    """A booked work interval on a single civil day."""

    id: str
    reservation_number: str
    franchisee_id: str
    date: date
    start_time: str  # "HH:MM" or "HH:MM:SS", as stored
    end_time: str
    status: ReservationStatus = ReservationStatus.UNASSIGNED
    worker_id: str | None = None
    created_at: datetime
    updated_at: datetime

    @property
    def start_hours(self) -> float:
        return parse_time_of_day(self.start_time)

    @property
    def end_hours(self) -> float:
        return parse_time_of_day(self.end_time)

    @property
    def start_minutes(self) -> int:
        return parse_minutes_of_day(self.start_time)

    @property
    def end_minutes(self) -> int:
        return parse_minutes_of_day(self.end_time)

    @property
    def duration_minutes(self) -> int:
        return self.end_minutes - self.start_minutes

    @property
    def hours(self) -> float:
        """Duration in decimal hours, always derived from start and end."""
        return self.duration_minutes / 60


class WorkerShift(BaseModel):
    id: str
    worker_id: str
    date: date
    shift_type: ShiftType


class CustomShiftHours(BaseModel):
    """Explicit hours for a custom shift. start > end wraps past midnight."""

    worker_shift_id: str
    start: str
    end: str


class ShiftWindow(BaseModel, frozen=True):
    start: float
    end: float

    @property
    def wraps_midnight(self) -> bool:
        return self.start > self.end


class Transition(BaseModel):
    reservation_id: str
    from_status: ReservationStatus
    to_status: ReservationStatus


class TransitionBatch(BaseModel):
    """Transitions proposed by one reconcile pass, grouped by rule."""

    expired: list[Transition] = []
    started: list[Transition] = []
    ended_with_worker: list[Transition] = []
    ended_without_worker: list[Transition] = []
    verification_expired: list[Transition] = []
    skipped: list[str] = []  # Reservation IDs with unparseable times

    def categories(self) -> dict[str, list[Transition]]:
        return {
            "expired": self.expired,
            "started": self.started,
            "ended_with_worker": self.ended_with_worker,
            "ended_without_worker": self.ended_without_worker,
            "verification_expired": self.verification_expired,
        }

    def transitions(self) -> Iterator[Transition]:
        for transitions in self.categories().values():
            yield from transitions

    @property
    def count(self) -> int:
        return sum(len(t) for t in self.categories().values())

    @property
    def is_empty(self) -> bool:
        return self.count == 0

    def apply_to(
        self, reservations: list[Reservation], now: datetime
    ) -> list[Reservation]:
        """Return copies of the reservations with the transitions applied."""
        targets = {t.reservation_id: t for t in self.transitions()}
        updated = []
        for reservation in reservations:
            transition = targets.get(reservation.id)
            if transition is None or reservation.status != transition.from_status:
                updated.append(reservation)
                continue
            updated.append(
                reservation.model_copy(
                    update={"status": transition.to_status, "updated_at": now}
                )
            )
        return updated


class ReconciliationSummary(BaseModel):
    """Outcome of applying a TransitionBatch to the store."""

    ran_at: datetime
    applied: dict[str, list[str]] = Field(default_factory=dict)
    conflicts: list[str] = []
    skipped: list[str] = []

    @property
    def total_applied(self) -> int:
        return sum(len(ids) for ids in self.applied.values())


class ReservationCreate(BaseModel):
    """Request body for a new reservation."""

    franchisee_id: str
    date: date
    start_time: str
    end_time: str


class WorkerRequest(BaseModel):
    worker_id: str


class ReservationView(BaseModel):
    """A reservation as returned by the API, with derived hours."""

    id: str
    reservation_number: str
    franchisee_id: str
    date: date
    start_time: str
    end_time: str
    hours: float | None  # None when the stored times cannot be parsed
    status: ReservationStatus
    worker_id: str | None = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_reservation(cls, reservation: Reservation) -> "ReservationView":
        try:
            hours = reservation.hours
        except InvalidTimeFormat:
            hours = None
        return cls(hours=hours, **reservation.model_dump())
