"""
backend/clinic_booking/services/booking.py

Booking commit (the write path).

1. Validate identifiers, date and times
2. Client, professional and service must belong to the organization
3. Take the (professional, date) lock, re-read the live ledger and reject
   overlaps (buffered unless recheck_with_buffer is off)
4. Insert the appointment as "confirmed"
5. After commit: emit booking_created and queue the calendar sync; neither
   can fail the booking

Steps 3-4 run in one transaction. The lock serializes concurrent commits for
the same professional and day; the partial unique index on live
(professional_id, date, start_time) backs it up at the database level.
"""

import hashlib
import logging
from typing import Any, Callable

from redis import Redis
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..data_access import AdminDataAccess
from ..exceptions import (
    BookingCoreError,
    BookingNotFound,
    ClientNotFound,
    ConflictError,
    InternalError,
    ProfessionalNotFound,
    ValidationError,
)
from ..models.generated import Appointments, BookingDayLocks, Clients, Professionals
from .events import emit_event
from .slots.availability import get_service_with_duration
from .slots.config import (
    MINUTES_PER_DAY,
    BookingConfig,
    get_booking_config,
    minutes_to_time_str,
    parse_date,
    time_str_to_minutes,
)
from .slots.conflicts import find_conflicts
from .slots.sources import BookingLedger, wrap_db_errors

logger = logging.getLogger(__name__)

BOOKING_STATUSES = ("pending", "confirmed", "cancelled", "completed", "no_show")

STATUS_TRANSITIONS = {
    "pending": {"confirmed", "cancelled", "no_show"},
    "confirmed": {"completed", "cancelled", "no_show"},
    "cancelled": set(),
    "completed": set(),
    "no_show": set(),
}

CommitHook = Callable[[int, int], Any]


def can_transition(current: str, new: str) -> bool:
    return new in STATUS_TRANSITIONS.get(current, set())


class BookingTransaction:
    def __init__(
        self,
        data_access: AdminDataAccess,
        config: BookingConfig | None = None,
        on_committed: CommitHook | None = None,
        redis: Redis | None = None,
    ):
        """
        Args:
            on_committed: Called with (appointment_id, professional_id) after
                a successful commit; expected to return quickly (the calendar
                syncer only queues work)
        """
        self.data_access = data_access
        self.config = config or get_booking_config()
        self.on_committed = on_committed
        self.redis = redis

    def book(
        self,
        organization_id: int,
        professional_id: int,
        service_id: int,
        client_id: int,
        date,
        start_time: str,
        end_time: str,
        notes: str | None = None,
        consultation_id: int | None = None,
    ) -> dict:
        """
        Commit a booking for an exact slot.

        `end_time` is advisory: the stored end is always start + service duration.

        Returns:
            The created booking record, with professional/service/client names

        Raises:
            ValidationError: Missing or malformed input
            NotFoundError: Client, professional or service not in the organization
            ConflictError: The slot is no longer free
            InternalError: Persistence failure
        """
        for name, value in (
            ("organization_id", organization_id),
            ("professional_id", professional_id),
            ("service_id", service_id),
            ("client_id", client_id),
        ):
            _require_id(name, value)
        if consultation_id is not None:
            _require_id("consultation_id", consultation_id)

        target_date = parse_date(date)
        date_str = target_date.isoformat()
        start = time_str_to_minutes(start_time)
        requested_end = time_str_to_minutes(end_time)
        if requested_end <= start:
            raise ValidationError("end_time must be after start_time")

        context = {"professional_id": professional_id, "date": date_str, "start_time": minutes_to_time_str(start)}

        try:
            with self.data_access.transaction() as db:
                client = _get_client(db, client_id, organization_id)
                professional = _get_professional(db, professional_id, organization_id)
                service, duration = get_service_with_duration(db, service_id, organization_id)

                end = start + duration
                if end > MINUTES_PER_DAY:
                    raise ValidationError("Booking would run past midnight")
                if end != requested_end:
                    logger.info(
                        f"Requested end {end_time} ignored for professional={professional_id}, "
                        f"using service duration {duration} min"
                    )

                _acquire_day_lock(db, professional_id, date_str)

                ledger = BookingLedger(db).intervals_for(professional_id, target_date, statuses=None)
                conflicts = find_conflicts(start, end, ledger, self.config.recheck_buffer_minutes)
                if conflicts:
                    first = conflicts[0]
                    logger.info(
                        f"Slot conflict for professional={professional_id} date={date_str} "
                        f"{minutes_to_time_str(start)}-{minutes_to_time_str(end)}: "
                        f"{first.kind} {first.source_id} "
                        f"{minutes_to_time_str(first.start)}-{minutes_to_time_str(first.end)}"
                    )
                    raise ConflictError(**context)

                appointment = Appointments(
                    organization_id=organization_id,
                    professional_id=professional_id,
                    client_id=client_id,
                    service_id=service_id,
                    consultation_id=consultation_id,
                    date=date_str,
                    start_time=minutes_to_time_str(start),
                    end_time=minutes_to_time_str(end),
                    duration=duration,
                    status="confirmed",
                    notes=notes or None,
                    is_group_activity=0,
                )
                db.add(appointment)
                db.flush()

                record = _booking_record(appointment, professional, service, client)
        except IntegrityError as e:
            logger.info(f"Live-slot constraint rejected booking ({context}): {e.orig}")
            raise ConflictError(**context) from e
        except BookingCoreError:
            raise
        except SQLAlchemyError as e:
            logger.exception(f"create_booking failed ({context})")
            raise InternalError(operation="create_booking", **context) from e

        logger.info(
            f"Booking {record['id']} confirmed: professional={professional_id} "
            f"date={date_str} {record['start_time']}-{record['end_time']}"
        )
        self._after_commit(record)
        return record

    def _after_commit(self, record: dict) -> None:
        emit_event("booking_created", {
            "booking_id": record["id"],
            "organization_id": record["organization_id"],
            "professional_id": record["professional_id"],
            "client_id": record["client_id"],
        }, redis=self.redis)

        if self.on_committed is None:
            return
        try:
            self.on_committed(record["id"], record["professional_id"])
        except Exception:
            logger.exception(f"Post-commit hook failed for booking {record['id']}")


def transition_status(
    data_access: AdminDataAccess,
    booking_id: int,
    organization_id: int,
    new_status: str,
    redis: Redis | None = None,
) -> dict:
    """
    Move a booking along the status machine.

    Raises:
        ValidationError: Unknown status or illegal transition
        BookingNotFound: No such booking in the organization
    """
    if new_status not in BOOKING_STATUSES:
        raise ValidationError(f"Unknown status: {new_status}")

    with data_access.transaction() as db:
        with wrap_db_errors("transition_status", booking_id=booking_id):
            appointment = db.query(Appointments).filter(
                Appointments.id == booking_id,
                Appointments.organization_id == organization_id,
            ).first()
        if appointment is None:
            raise BookingNotFound(booking_id=booking_id)

        old_status = appointment.status
        if not can_transition(old_status, new_status):
            raise ValidationError(f"Cannot change status from {old_status} to {new_status}")

        appointment.status = new_status
        with wrap_db_errors("transition_status", booking_id=booking_id):
            db.flush()
        record = _booking_record(appointment, appointment.professional, appointment.service, appointment.client)

    logger.info(f"Booking {booking_id} status {old_status} → {new_status}")
    emit_event("booking_status_changed", {
        "booking_id": booking_id,
        "old_status": old_status,
        "new_status": new_status,
    }, redis=redis)
    return record


# ── Helpers ──────────────────────────────────────────────────────────────


def _require_id(name: str, value) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError(f"Invalid {name}: {value!r}")


def _get_client(db: Session, client_id: int, organization_id: int) -> Clients:
    client = db.query(Clients).filter(
        Clients.id == client_id,
        Clients.organization_id == organization_id,
    ).first()
    if client is None:
        raise ClientNotFound(client_id=client_id, organization_id=organization_id)
    return client


def _get_professional(db: Session, professional_id: int, organization_id: int) -> Professionals:
    professional = db.query(Professionals).filter(
        Professionals.id == professional_id,
        Professionals.organization_id == organization_id,
        Professionals.is_active == 1,
    ).first()
    if professional is None:
        raise ProfessionalNotFound(professional_id=professional_id, organization_id=organization_id)
    return professional


def _advisory_key(professional_id: int, date_str: str) -> int:
    h = hashlib.sha256(f"booking:{professional_id}:{date_str}".encode()).digest()
    return int.from_bytes(h[:8], byteorder="big", signed=False) & ((1 << 63) - 1)


def _acquire_day_lock(db: Session, professional_id: int, date_str: str) -> None:
    """
    Serialize booking commits for one professional and day.

    PostgreSQL: transaction-scoped advisory lock.
    SQLite: upsert of the lock row, which takes the database write lock.
    Others: SELECT ... FOR UPDATE on the lock row.
    """
    dialect = db.get_bind().dialect.name

    if dialect == "postgresql":
        db.execute(text("SELECT pg_advisory_xact_lock(:k)"), {"k": _advisory_key(professional_id, date_str)})
        return

    if dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert

        stmt = insert(BookingDayLocks).values(professional_id=professional_id, date=date_str, version=1)
        stmt = stmt.on_conflict_do_update(
            index_elements=["professional_id", "date"],
            set_={"version": BookingDayLocks.version + 1},
        )
        db.execute(stmt)
        return

    lock = db.get(BookingDayLocks, (professional_id, date_str), with_for_update=True)
    if lock is None:
        db.add(BookingDayLocks(professional_id=professional_id, date=date_str, version=1))
    else:
        lock.version += 1
    db.flush()


def _booking_record(appointment: Appointments, professional, service, client) -> dict:
    return {
        "id": appointment.id,
        "organization_id": appointment.organization_id,
        "professional_id": appointment.professional_id,
        "service_id": appointment.service_id,
        "client_id": appointment.client_id,
        "consultation_id": appointment.consultation_id,
        "date": appointment.date,
        "start_time": appointment.start_time,
        "end_time": appointment.end_time,
        "duration": appointment.duration,
        "status": appointment.status,
        "notes": appointment.notes,
        "professional": {"name": professional.name if professional else None},
        "service": {"name": service.name if service else None},
        "client": {
            "name": client.name if client else None,
            "phone": client.phone if client else None,
            "email": client.email if client else None,
        },
    }
