import asyncio
import os

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from agenda_api.config import settings
from agenda_api.database import SessionLocal, get_db, init_db
from agenda_api.logging_config import get_logger, setup_logging
from agenda_api.models import Appointment, ConversationStatus, PendingAppointment
from agenda_api.routers import appointments, booking, conversations, maintenance, slot_config, webhook
from agenda_api.services.errors import AgendaError
from agenda_api.services.pending_appointment_service import sweep_expired_pending_appointments

setup_logging(settings.log_level)

app = FastAPI(
    title="Agenda API",
    description="Conversation status and appointment reservation backend",
    version="0.1.0",
)

cors_origins = [origin.strip() for origin in settings.cors_allow_origins.split(",") if origin.strip()]
if not cors_origins:
    cors_origins = ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(webhook.router)
app.include_router(conversations.router)
app.include_router(booking.router)
app.include_router(appointments.router)
app.include_router(slot_config.router)
app.include_router(maintenance.router)

logger = get_logger("main")
sweep_logger = get_logger("hold_sweep_worker")
_sweep_worker_task: asyncio.Task | None = None


@app.exception_handler(AgendaError)
async def agenda_error_handler(request: Request, exc: AgendaError):
    if exc.http_status >= 500:
        logger.error(
            "Request failed",
            extra={"context": {"path": request.url.path, "error_code": exc.error_code, "error": exc.message}},
        )
    return JSONResponse(
        status_code=exc.http_status,
        content={"detail": exc.message, "error_code": exc.error_code},
    )


def _is_sweep_worker_enabled() -> bool:
    if os.environ.get("PYTEST_CURRENT_TEST"):
        return False
    return settings.hold_sweep_enabled


def _run_sweep() -> int:
    db = SessionLocal()
    try:
        removed = sweep_expired_pending_appointments(db)
        db.commit()
        return removed
    finally:
        db.close()


async def _sweep_worker_loop() -> None:
    interval_seconds = max(settings.hold_sweep_interval_seconds, 1.0)
    while True:
        try:
            await asyncio.sleep(interval_seconds)
            removed = await asyncio.to_thread(_run_sweep)
            if removed:
                sweep_logger.info("Hold sweep processed", extra={"context": {"removed": removed}})
        except asyncio.CancelledError:
            break
        except Exception as exc:
            sweep_logger.error(
                "Hold sweep loop failed",
                extra={"context": {"error": str(exc)}},
            )


@app.on_event("startup")
async def start_sweep_worker() -> None:
    global _sweep_worker_task
    init_db()
    if not _is_sweep_worker_enabled():
        return
    if _sweep_worker_task is None or _sweep_worker_task.done():
        _sweep_worker_task = asyncio.create_task(_sweep_worker_loop())
        sweep_logger.info("Hold sweep worker started")


@app.on_event("shutdown")
async def stop_sweep_worker() -> None:
    global _sweep_worker_task
    if _sweep_worker_task is None:
        return
    _sweep_worker_task.cancel()
    try:
        await _sweep_worker_task
    except asyncio.CancelledError:
        pass
    _sweep_worker_task = None


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/db-check")
def db_check(db: Session = Depends(get_db)):
    return {
        "status": "ok",
        "conversations": db.query(ConversationStatus).count(),
        "pending_appointments": db.query(PendingAppointment).count(),
        "appointments": db.query(Appointment).count(),
    }
