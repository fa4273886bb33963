"""
Applies lifecycle transitions to the store and runs them on a timer.
"""

import asyncio
import logging
from collections import defaultdict
from datetime import datetime, timedelta

from shiftbook import config
from shiftbook.database import Database, get_db
from shiftbook.lifecycle import ReservationLifecycleEngine
from shiftbook.models import (
    ReconciliationSummary,
    ReservationStatus,
    TransitionBatch,
)

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = (
    ReservationStatus.UNASSIGNED,
    ReservationStatus.ASSIGNED,
    ReservationStatus.IN_PROGRESS,
    ReservationStatus.PENDING_VERIFICATION,
)


def local_now() -> datetime:
    """Current local civil time. Reservation dates carry no timezone."""
    return datetime.now()


def build_engine() -> ReservationLifecycleEngine:
    return ReservationLifecycleEngine(
        verification_step_enabled=config.VERIFICATION_STEP_ENABLED,
        verification_window=timedelta(hours=config.VERIFICATION_WINDOW_HOURS),
    )


def apply_transitions(
    db: Database, batch: TransitionBatch, now: datetime
) -> ReconciliationSummary:
    """
    Persist a batch with one conditional bulk update per category and
    (from, to) status pair. Each ID is only written while it still holds
    the status it was evaluated in. IDs the store refuses have already been
    moved by another client; they are logged and left for the next pass.
    """
    summary = ReconciliationSummary(ran_at=now, skipped=list(batch.skipped))

    for category, transitions in batch.categories().items():
        by_pair: dict[
            tuple[ReservationStatus, ReservationStatus], list[str]
        ] = defaultdict(list)
        for transition in transitions:
            pair = (transition.from_status, transition.to_status)
            by_pair[pair].append(transition.reservation_id)

        for (from_status, to_status), ids in by_pair.items():
            updated = db.update_status_bulk(ids, [from_status], to_status, now)
            if updated:
                summary.applied.setdefault(category, []).extend(updated)
                logger.info(
                    f"{category}: {len(updated)} reservation(s) -> {to_status}"
                )
            for reservation_id in ids:
                if reservation_id in updated:
                    continue
                summary.conflicts.append(reservation_id)
                logger.info(
                    f"Conflicting transition for reservation {reservation_id} "
                    f"-> {to_status}; already changed by another client"
                )

    return summary


def run_reconciliation(
    db: Database | None = None,
    engine: ReservationLifecycleEngine | None = None,
    now: datetime | None = None,
) -> ReconciliationSummary:
    """Fetch fresh non-terminal reservations, reconcile and apply."""
    if db is None:
        db = get_db()
    if engine is None:
        engine = build_engine()
    if now is None:
        now = local_now()

    reservations = db.list_reservations(statuses=ACTIVE_STATUSES)
    batch = engine.reconcile(now, reservations)
    if batch.is_empty:
        logger.debug("No reservation status updates needed")
        return ReconciliationSummary(ran_at=now, skipped=list(batch.skipped))
    return apply_transitions(db, batch, now)


class ReconciliationScheduler:
    """
    Periodically runs reconciliation in a background task.
    Owned by the application lifespan, not by the engine.
    """

    def __init__(
        self,
        interval_seconds: float = config.RECONCILE_INTERVAL_SECONDS,
        run_immediately: bool = config.RECONCILE_ON_STARTUP,
        engine: ReservationLifecycleEngine | None = None,
    ) -> None:
        self.interval_seconds = interval_seconds
        self.run_immediately = run_immediately
        self.engine = engine or build_engine()
        self.last_summary: ReconciliationSummary | None = None
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run())
        logger.info(
            f"Reconciliation scheduler started (every {self.interval_seconds}s)"
        )

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Reconciliation scheduler stopped")

    def tick(self) -> ReconciliationSummary:
        self.last_summary = run_reconciliation(engine=self.engine)
        return self.last_summary

    async def _run(self) -> None:
        if not self.run_immediately:
            await asyncio.sleep(self.interval_seconds)
        while True:
            try:
                self.tick()
            except Exception:
                logger.exception("Reservation reconciliation failed")
            await asyncio.sleep(self.interval_seconds)
