# backend/clinic_booking/services/slots/availability.py
"""
Service availability calculation (the read path).

For a (professional, service, date) triple:
1. Resolve the service duration
2. Approved absence on the date → empty ("vacation"), nothing else is read
3. Work windows for the date → none: empty ("no_schedule")
4. Live bookings (individual + group) for the date
5. Per window: candidates → break filter → buffered booking filter
6. Chronological merge; today's slots that already started are dropped

Pure read: nothing here writes, so calls can run with any concurrency.
The result is a snapshot, not a reservation.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from zoneinfo import ZoneInfo

from redis import Redis
from sqlalchemy.orm import Session

from ...data_access import AdminDataAccess
from ...exceptions import (
    BookingCoreError,
    InvalidDuration,
    OrganizationNotFound,
    ProfessionalNotFound,
    ServiceNotFound,
)
from ...models.generated import Organizations, Professionals, Services, t_professional_services
from .config import BookingConfig, get_booking_config
from .conflicts import filter_slots, remove_breaks
from .generator import ScheduleWindow, Slot, generate
from .redis_store import SlotsRedisStore
from .sources import AbsenceSource, BookingLedger, ScheduleSource, wrap_db_errors

logger = logging.getLogger(__name__)

REASON_VACATION = "vacation"
REASON_NO_SCHEDULE = "no_schedule"


@dataclass
class AvailabilityResult:
    professional_id: int
    service_id: int
    date: date
    duration: int
    slots: list[Slot] = field(default_factory=list)
    reason: str | None = None  # set only when the day is blocked as a whole


@dataclass(frozen=True)
class ProfessionalSlot:
    slot: Slot
    professional_id: int
    professional_name: str


@dataclass
class AnyAvailabilityResult:
    organization_id: int
    service_id: int
    date: date
    duration: int
    slots: list[ProfessionalSlot] = field(default_factory=list)
    reason: str | None = None  # set only when every professional is blocked for the day


class AvailabilityService:
    def __init__(
        self,
        data_access: AdminDataAccess,
        config: BookingConfig | None = None,
        redis: Redis | None = None,
    ):
        self.data_access = data_access
        self.config = config or get_booking_config()
        self.store = SlotsRedisStore(redis, self.config) if redis is not None else None

    # ── Public API ───────────────────────────────────────────────────────

    def get_available_slots(
        self,
        professional_id: int,
        service_id: int,
        target_date: date,
        organization_id: int | None = None,
        now: datetime | None = None,
    ) -> AvailabilityResult:
        """
        Bookable slots of one professional for a service on a date.

        Raises:
            OrganizationNotFound, ServiceNotFound: unknown organization/service
            ProfessionalNotFound: the professional is not an active member of
                the organization
            InvalidDuration: the service duration is not a positive number
        """
        with self.data_access.session() as db:
            if organization_id is not None:
                _ensure_organization(db, organization_id)
                _ensure_professional(db, professional_id, organization_id)
            duration = resolve_service_duration(db, service_id, organization_id)

            slots, reason = self._slots_for_professional(db, professional_id, duration, target_date, now)

        if reason:
            logger.info(
                f"No availability for professional={professional_id} "
                f"date={target_date.isoformat()}: {reason}"
            )

        return AvailabilityResult(
            professional_id=professional_id,
            service_id=service_id,
            date=target_date,
            duration=duration,
            slots=slots,
            reason=reason,
        )

    def get_available_slots_any(
        self,
        organization_id: int,
        service_id: int,
        target_date: date,
        now: datetime | None = None,
    ) -> AnyAvailabilityResult:
        """
        Slots offered by any professional of the organization.

        Professionals linked to the service are used; when none is linked,
        every active professional of the organization is. Identical
        start/end pairs are reported once, for the first professional found.

        The reason is "vacation" when every professional is absent, and
        "no_schedule" when each one is absent or has no work window (or there
        is nobody to ask). A professional that failed leaves it unset.
        """
        with self.data_access.session() as db:
            _ensure_organization(db, organization_id)
            duration = resolve_service_duration(db, service_id, organization_id)
            professionals = _get_service_professionals(db, organization_id, service_id)

            merged: dict[str, ProfessionalSlot] = {}
            reasons: list[str | None] = []
            for prof in professionals:
                name = prof.name or "Professional"
                try:
                    slots, reason = self._slots_for_professional(db, prof.id, duration, target_date, now)
                except BookingCoreError:
                    logger.exception(f"Error getting slots for professional {prof.id} ({name})")
                    reasons.append(None)
                    continue

                reasons.append(reason)
                for slot in slots:
                    merged.setdefault(slot.label, ProfessionalSlot(slot, prof.id, name))

        reason = _merged_reason(reasons)
        if reason:
            logger.info(
                f"No availability for any professional of organization={organization_id} "
                f"date={target_date.isoformat()}: {reason}"
            )

        return AnyAvailabilityResult(
            organization_id=organization_id,
            service_id=service_id,
            date=target_date,
            duration=duration,
            slots=sorted(merged.values(), key=lambda ps: (ps.slot.start, ps.slot.end)),
            reason=reason,
        )

    # ── Core ─────────────────────────────────────────────────────────────

    def _slots_for_professional(
        self,
        db: Session,
        professional_id: int,
        duration: int,
        target_date: date,
        now: datetime | None,
    ) -> tuple[list[Slot], str | None]:
        if AbsenceSource(db).is_absent(professional_id, target_date):
            return [], REASON_VACATION

        window_count, base = self._base_candidates(db, professional_id, duration, target_date)
        if window_count == 0:
            return [], REASON_NO_SCHEDULE

        bookings = BookingLedger(db).intervals_for(professional_id, target_date)
        slots = filter_slots(base, (), bookings, self.config.buffer_minutes)
        slots = _drop_overlapping(sorted(slots), professional_id)
        slots = self._drop_started(slots, target_date, now)
        return slots, None

    def _base_candidates(
        self,
        db: Session,
        professional_id: int,
        duration: int,
        target_date: date,
    ) -> tuple[int, list[Slot]]:
        """Schedule-derived candidates (breaks removed), via Redis when available."""
        source = ScheduleSource(db)
        fingerprint = None
        if self.store is not None:
            fingerprint = source.fingerprint(professional_id)
            cached = self.store.get_base_slots(professional_id, target_date, duration, fingerprint)
            if cached is not None:
                return cached

        windows = source.windows_for(professional_id, target_date)
        base = _cut_windows(windows, duration)

        if self.store is not None:
            self.store.store_base_slots(professional_id, target_date, duration, fingerprint, len(windows), base)
        return len(windows), base

    def _drop_started(self, slots: list[Slot], target_date: date, now: datetime | None) -> list[Slot]:
        """Hide today's slots starting at or before now + cutoff (clinic time)."""
        tz = ZoneInfo(self.config.timezone)
        if now is None:
            now = datetime.now(tz)
        elif now.tzinfo is not None:
            now = now.astimezone(tz)

        if now.date() != target_date:
            return slots

        cutoff = now.hour * 60 + now.minute + self.config.past_cutoff_minutes
        return [s for s in slots if s.start > cutoff]


# ── Helpers ──────────────────────────────────────────────────────────────


def _cut_windows(windows: list[ScheduleWindow], duration: int) -> list[Slot]:
    slots: list[Slot] = []
    for window in windows:
        slots.extend(remove_breaks(generate(window, duration), window.breaks))
    return slots


def _drop_overlapping(slots: list[Slot], professional_id: int) -> list[Slot]:
    """
    Keep the earliest of any overlapping candidates.

    Overlaps only appear when two active windows of the same day overlap.
    """
    kept: list[Slot] = []
    for slot in slots:
        if kept and slot.start < kept[-1].end:
            logger.warning(
                f"Overlapping work windows for professional={professional_id}: "
                f"dropping {slot.label} (overlaps {kept[-1].label})"
            )
            continue
        kept.append(slot)
    return kept


def _merged_reason(reasons: list[str | None]) -> str | None:
    if reasons and all(r == REASON_VACATION for r in reasons):
        return REASON_VACATION
    if all(r in (REASON_VACATION, REASON_NO_SCHEDULE) for r in reasons):
        return REASON_NO_SCHEDULE
    return None


def resolve_service_duration(db: Session, service_id: int, organization_id: int | None = None) -> int:
    """Service duration in minutes, optionally scoped to an organization."""
    return get_service_with_duration(db, service_id, organization_id)[1]


def get_service_with_duration(db: Session, service_id: int, organization_id: int | None = None) -> tuple[Services, int]:
    service = _get_service(db, service_id, organization_id)
    if service is None:
        raise ServiceNotFound(service_id=service_id, organization_id=organization_id)

    try:
        duration = int(service.duration)
    except (TypeError, ValueError):
        duration = 0
    if duration <= 0:
        logger.error(f"Invalid duration {service.duration!r} for service {service_id}")
        raise InvalidDuration(service_id=service_id)
    return service, duration


def _ensure_organization(db: Session, organization_id: int) -> None:
    with wrap_db_errors("fetch_organization", organization_id=organization_id):
        org = db.get(Organizations, organization_id)
    if org is None:
        raise OrganizationNotFound(organization_id=organization_id)


def _ensure_professional(db: Session, professional_id: int, organization_id: int) -> None:
    with wrap_db_errors("fetch_professional", professional_id=professional_id):
        hit = (
            db.query(Professionals.id)
            .filter(
                Professionals.id == professional_id,
                Professionals.organization_id == organization_id,
                Professionals.is_active == 1,
            )
            .first()
        )
    if hit is None:
        raise ProfessionalNotFound(professional_id=professional_id, organization_id=organization_id)


def _get_service(db: Session, service_id: int, organization_id: int | None):
    with wrap_db_errors("fetch_service", service_id=service_id):
        query = db.query(Services).filter(
            Services.id == service_id,
            Services.is_active == 1,
        )
        if organization_id is not None:
            query = query.filter(Services.organization_id == organization_id)
        return query.first()


def _get_service_professionals(db: Session, organization_id: int, service_id: int) -> list:
    """Active professionals offering the service; all active ones as fallback."""
    with wrap_db_errors("fetch_professionals", organization_id=organization_id, service_id=service_id):
        linked = (
            db.query(Professionals)
            .join(
                t_professional_services,
                Professionals.id == t_professional_services.c.professional_id,
            )
            .filter(
                t_professional_services.c.service_id == service_id,
                Professionals.organization_id == organization_id,
                Professionals.is_active == 1,
            )
            .order_by(Professionals.id)
            .all()
        )
        if linked:
            return linked

        return (
            db.query(Professionals)
            .filter(
                Professionals.organization_id == organization_id,
                Professionals.is_active == 1,
            )
            .order_by(Professionals.id)
            .all()
        )
