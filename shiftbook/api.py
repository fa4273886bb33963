import logging
from contextlib import asynccontextmanager
from datetime import date

from fastapi import APIRouter, FastAPI, HTTPException, Query, status

from shiftbook import booking, config
from shiftbook.database import get_db, load_sample_data
from shiftbook.errors import (
    ConflictingTransition,
    InvalidTimeFormat,
    MissingShiftWindow,
    ReservationNotFound,
    ReservationNotOffered,
    ReservationRuleViolation,
    ShiftbookError,
    WorkerNotFound,
)
from shiftbook.models import (
    ReservationCreate,
    ReservationStatus,
    ReservationView,
    WorkerRequest,
)
from shiftbook.reconciler import (
    ReconciliationScheduler,
    build_engine,
    local_now,
    run_reconciliation,
)

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

router = APIRouter()

_scheduler: ReconciliationScheduler | None = None

ERROR_STATUS_CODES: dict[type[ShiftbookError], int] = {
    ReservationNotFound: status.HTTP_404_NOT_FOUND,
    WorkerNotFound: status.HTTP_404_NOT_FOUND,
    ConflictingTransition: status.HTTP_409_CONFLICT,
    MissingShiftWindow: status.HTTP_403_FORBIDDEN,
    ReservationNotOffered: status.HTTP_403_FORBIDDEN,
    ReservationRuleViolation: status.HTTP_400_BAD_REQUEST,
    InvalidTimeFormat: status.HTTP_400_BAD_REQUEST,
}


def _http_error(error: ShiftbookError) -> HTTPException:
    code = ERROR_STATUS_CODES.get(type(error), status.HTTP_400_BAD_REQUEST)
    return HTTPException(status_code=code, detail=str(error))


@router.get("/health")
async def health_check() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/reservations")
async def list_reservations(
    status_filter: list[ReservationStatus] | None = Query(None, alias="status"),
    date_from: date | None = None,
    date_to: date | None = None,
    worker_id: str | None = None,
) -> list[ReservationView]:
    db = get_db()
    reservations = db.list_reservations(
        statuses=status_filter,
        date_from=date_from,
        date_to=date_to,
        worker_id=worker_id,
    )
    reservations.sort(key=lambda r: (r.date, r.start_time))
    return [ReservationView.from_reservation(r) for r in reservations]


@router.post("/reservations", status_code=status.HTTP_201_CREATED)
async def create_reservation(payload: ReservationCreate) -> ReservationView:
    """Create an open reservation for a franchisee."""
    try:
        reservation = booking.create_reservation(
            get_db(),
            payload.franchisee_id,
            payload.date,
            payload.start_time,
            payload.end_time,
            local_now(),
        )
    except ShiftbookError as e:
        raise _http_error(e)
    return ReservationView.from_reservation(reservation)


@router.get("/reservations/stats")
async def reservation_stats() -> dict[str, int]:
    return booking.status_counts(get_db())


@router.get("/reservations/{reservation_id}")
async def get_reservation(reservation_id: str) -> ReservationView:
    try:
        reservation = booking.get_reservation(get_db(), reservation_id)
    except ShiftbookError as e:
        raise _http_error(e)
    return ReservationView.from_reservation(reservation)


@router.post("/reservations/{reservation_id}/accept")
async def accept_reservation(
    reservation_id: str, payload: WorkerRequest
) -> ReservationView:
    """
    A worker accepts an open reservation. Only reservations that fit the
    worker's shift on that date can be accepted; the first worker wins.
    """
    try:
        reservation = booking.accept_reservation(
            get_db(), reservation_id, payload.worker_id, local_now()
        )
    except ShiftbookError as e:
        raise _http_error(e)
    return ReservationView.from_reservation(reservation)


@router.post("/reservations/{reservation_id}/assign")
async def assign_worker(
    reservation_id: str, payload: WorkerRequest
) -> ReservationView:
    try:
        reservation = booking.assign_worker(
            get_db(), reservation_id, payload.worker_id, local_now()
        )
    except ShiftbookError as e:
        raise _http_error(e)
    return ReservationView.from_reservation(reservation)


@router.post("/reservations/{reservation_id}/cancel")
async def cancel_reservation(reservation_id: str) -> ReservationView:
    try:
        reservation = booking.cancel_reservation(get_db(), reservation_id, local_now())
    except ShiftbookError as e:
        raise _http_error(e)
    return ReservationView.from_reservation(reservation)


@router.get("/reservations/{reservation_id}/available-workers")
async def available_workers(reservation_id: str) -> dict[str, list[str]]:
    try:
        worker_ids = booking.available_workers(get_db(), reservation_id)
    except ShiftbookError as e:
        raise _http_error(e)
    return {"worker_ids": worker_ids}


@router.get("/workers/{worker_id}/open-reservations")
async def open_reservations(worker_id: str) -> list[ReservationView]:
    db = get_db()
    if db.workers.get(worker_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Worker {worker_id} not found",
        )
    return [
        ReservationView.from_reservation(r)
        for r in booking.open_reservations_for_worker(db, worker_id)
    ]


@router.get("/workers/{worker_id}/history")
async def worker_history(
    worker_id: str, date_from: date | None = None, date_to: date | None = None
) -> dict:
    db = get_db()
    if db.workers.get(worker_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Worker {worker_id} not found",
        )
    try:
        reservations, total_hours = booking.worker_history(
            db, worker_id, date_from, date_to
        )
    except ShiftbookError as e:
        raise _http_error(e)
    return {
        "count": len(reservations),
        "total_hours": total_hours,
        "reservations": [ReservationView.from_reservation(r) for r in reservations],
    }


@router.post("/reconcile")
async def reconcile_now() -> dict:
    """Run one reconciliation pass immediately."""
    summary = run_reconciliation(get_db(), build_engine(), local_now())
    return {
        "ran_at": summary.ran_at.isoformat(),
        "total_applied": summary.total_applied,
        "applied": summary.applied,
        "conflicts": summary.conflicts,
        "skipped": summary.skipped,
    }


async def stop_scheduler() -> None:
    global _scheduler
    if _scheduler is not None:
        await _scheduler.stop()
        _scheduler = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    global _scheduler
    logger.info("Application starting up...")
    if config.LOAD_SAMPLE_DATA and len(get_db().reservations) == 0:
        try:
            load_sample_data()
        except FileNotFoundError:
            logger.warning(f"Sample data not found at {config.SAMPLE_DATA_PATH}")
    _scheduler = ReconciliationScheduler()
    _scheduler.start()
    yield
    await stop_scheduler()
    logger.info("Application shutting down...")


def create_app() -> FastAPI:
    app = FastAPI(title="Shiftbook API", lifespan=lifespan)
    app.include_router(router)
    return app
