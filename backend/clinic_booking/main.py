import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from redis import Redis
from redis.exceptions import RedisError

from .config import settings
from .data_access import AdminDataAccess
from .exceptions import BookingCoreError
from .routers import bookings, slots
from .services.booking import BookingTransaction
from .services.calendar_sync import CalendarSyncer
from .services.slots import AvailabilityService, get_booking_config

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)


def create_app(
    data_access: AdminDataAccess | None = None,
    redis: Redis | None = None,
    calendar_syncer: CalendarSyncer | None = None,
) -> FastAPI:
    """
    Build the API. Collaborators default to the process-wide ones
    (SessionLocal, REDIS_URL client, Google Calendar syncer).
    """
    if data_access is None:
        from .database import SessionLocal

        data_access = AdminDataAccess(SessionLocal)
    if redis is None:
        from .redis_client import redis_client

        redis = redis_client
    if calendar_syncer is None:
        calendar_syncer = CalendarSyncer(
            data_access,
            timezone=settings.clinic_timezone,
            timeout=settings.calendar_sync_timeout_seconds,
            max_workers=settings.calendar_sync_workers,
        )

    config = get_booking_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        calendar_syncer.shutdown(wait=False)

    app = FastAPI(title="Clinic Booking API", lifespan=lifespan)

    app.state.data_access = data_access
    app.state.redis = redis
    app.state.calendar_syncer = calendar_syncer
    app.state.availability_service = AvailabilityService(data_access, config, redis=redis)
    app.state.booking_transaction = BookingTransaction(
        data_access,
        config,
        on_committed=calendar_syncer.schedule,
        redis=redis,
    )

    app.include_router(slots.router)
    app.include_router(bookings.router)

    @app.exception_handler(BookingCoreError)
    async def booking_core_error_handler(request: Request, exc: BookingCoreError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc}")
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})

    @app.exception_handler(RequestValidationError)
    async def request_validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"error": "Missing or invalid data", "details": jsonable_encoder(exc.errors())})

    @app.get("/health")
    def health():
        if app.state.redis is None:
            return {"status": "ok", "redis": None}
        try:
            return {"status": "ok", "redis": app.state.redis.ping()}
        except RedisError:
            return {"status": "ok", "redis": False}

    return app


app = create_app()
