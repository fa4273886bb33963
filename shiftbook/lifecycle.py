"""
Time-driven reservation status transitions.

The engine is a pure function of (now, reservations): it proposes
transitions and never writes. Rules are evaluated per record in order:

  1. expired       past-date unassigned/assigned/in_progress -> completed
  2. started       today, assigned with worker, now in [start, end) -> in_progress
  3. ended         today, assigned/in_progress, now >= end
                     with worker    -> pending_verification (or completed
                                       when the verification step is off)
                     without worker -> completed
  4. verification  pending_verification for >= 24h -> completed
"""

import logging
from datetime import date, datetime, timedelta

from shiftbook.errors import InvalidTimeFormat
from shiftbook.models import (
    Reservation,
    ReservationStatus,
    Transition,
    TransitionBatch,
)

logger = logging.getLogger(__name__)

EXPIRABLE_STATUSES = frozenset(
    {
        ReservationStatus.UNASSIGNED,
        ReservationStatus.ASSIGNED,
        ReservationStatus.IN_PROGRESS,
    }
)
SAME_DAY_STATUSES = frozenset(
    {ReservationStatus.ASSIGNED, ReservationStatus.IN_PROGRESS}
)
DEFAULT_VERIFICATION_WINDOW = timedelta(hours=24)


def _elapsed(now: datetime, since: datetime) -> timedelta:
    # Naive timestamps are taken to be in the same zone as `now`.
    if (now.tzinfo is None) != (since.tzinfo is None):
        if now.tzinfo is None:
            since = since.replace(tzinfo=None)
        else:
            since = since.replace(tzinfo=now.tzinfo)
    return now - since


class ReservationLifecycleEngine:
    def __init__(
        self,
        verification_step_enabled: bool = True,
        verification_window: timedelta = DEFAULT_VERIFICATION_WINDOW,
    ) -> None:
        self.verification_step_enabled = verification_step_enabled
        self.verification_window = verification_window

    def reconcile(
        self, now: datetime, reservations: list[Reservation]
    ) -> TransitionBatch:
        """Compute the transitions due at `now`. Malformed records are skipped."""
        batch = TransitionBatch()
        today = now.date()
        # Times are compared at minute granularity.
        now_minutes = now.hour * 60 + now.minute

        for reservation in reservations:
            try:
                self._evaluate(reservation, now, today, now_minutes, batch)
            except InvalidTimeFormat as e:
                logger.error(f"Skipping reservation {reservation.id}: {e}")
                batch.skipped.append(reservation.id)

        if not batch.is_empty:
            counts = {name: len(t) for name, t in batch.categories().items() if t}
            logger.info(f"Reconcile proposed {batch.count} transition(s): {counts}")
        return batch

    def _evaluate(
        self,
        reservation: Reservation,
        now: datetime,
        today: date,
        now_minutes: int,
        batch: TransitionBatch,
    ) -> None:
        status = reservation.status

        match status:
            case ReservationStatus.COMPLETED | ReservationStatus.CANCELLED:
                return
            case ReservationStatus.PENDING_VERIFICATION:
                if _elapsed(now, reservation.updated_at) >= self.verification_window:
                    batch.verification_expired.append(
                        self._transition(reservation, ReservationStatus.COMPLETED)
                    )
                return
            case (
                ReservationStatus.UNASSIGNED
                | ReservationStatus.ASSIGNED
                | ReservationStatus.IN_PROGRESS
            ):
                pass

        if reservation.date < today and status in EXPIRABLE_STATUSES:
            batch.expired.append(
                self._transition(reservation, ReservationStatus.COMPLETED)
            )
            return

        if reservation.date != today or status not in SAME_DAY_STATUSES:
            return

        start = reservation.start_minutes
        end = reservation.end_minutes

        if start <= now_minutes < end:
            if status == ReservationStatus.ASSIGNED:
                if reservation.worker_id:
                    batch.started.append(
                        self._transition(reservation, ReservationStatus.IN_PROGRESS)
                    )
                else:
                    logger.warning(
                        f"Reservation {reservation.id} is assigned without a worker; "
                        "not starting it"
                    )
            return

        if now_minutes >= end:
            if reservation.worker_id:
                target = (
                    ReservationStatus.PENDING_VERIFICATION
                    if self.verification_step_enabled
                    else ReservationStatus.COMPLETED
                )
                batch.ended_with_worker.append(self._transition(reservation, target))
            else:
                batch.ended_without_worker.append(
                    self._transition(reservation, ReservationStatus.COMPLETED)
                )

    @staticmethod
    def _transition(
        reservation: Reservation, to_status: ReservationStatus
    ) -> Transition:
        return Transition(
            reservation_id=reservation.id,
            from_status=reservation.status,
            to_status=to_status,
        )
