# backend/clinic_booking/services/slots/sources.py
"""
Read-only views over persisted scheduling state.

ScheduleSource: work windows (weekday or per-date exception) with breaks
AbsenceSource: approved vacation/absence days
BookingLedger: occupied intervals: appointments + group activities
"""

import hashlib
import logging
from contextlib import contextmanager
from datetime import date

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from ...exceptions import InternalError, ValidationError
from ...models.generated import (
    Appointments,
    GroupActivities,
    VacationRequests,
    WorkScheduleBreaks,
    WorkSchedules,
)
from .config import schedule_weekday, time_str_to_minutes
from .conflicts import LIVE_STATUSES, BookedInterval
from .generator import BreakWindow, ScheduleWindow

logger = logging.getLogger(__name__)

# group_activities.status -> booking status
GROUP_STATUS_MAP = {
    "active": "confirmed",
    "cancelled": "cancelled",
    "completed": "completed",
}


@contextmanager
def wrap_db_errors(operation: str, **context):
    """Re-raise persistence failures as InternalError with diagnostic context."""
    try:
        yield
    except SQLAlchemyError as e:
        logger.error(f"{operation} failed ({context}): {e}")
        raise InternalError(operation=operation, **context) from e


class ScheduleSource:
    def __init__(self, db: Session):
        self.db = db

    def windows_for(self, professional_id: int, target_date: date) -> list[ScheduleWindow]:
        """
        Active work windows of a professional on a date.

        Exception rows dated `target_date` replace the weekday schedule.
        """
        date_str = target_date.isoformat()
        with wrap_db_errors("fetch_schedules", professional_id=professional_id, date=date_str):
            rows = (
                self.db.query(WorkSchedules)
                .options(selectinload(WorkSchedules.breaks))
                .filter(
                    WorkSchedules.professional_id == professional_id,
                    WorkSchedules.is_active == 1,
                    WorkSchedules.is_exception == 1,
                    WorkSchedules.date_exception == date_str,
                )
                .all()
            )
            if not rows:
                rows = (
                    self.db.query(WorkSchedules)
                    .options(selectinload(WorkSchedules.breaks))
                    .filter(
                        WorkSchedules.professional_id == professional_id,
                        WorkSchedules.is_active == 1,
                        WorkSchedules.is_exception == 0,
                        WorkSchedules.day_of_week == schedule_weekday(target_date),
                    )
                    .all()
                )

        windows = [_to_window(row) for row in rows]
        windows = [w for w in windows if w is not None]
        windows.sort(key=lambda w: (w.start, w.end))
        return windows

    def fingerprint(self, professional_id: int) -> str:
        """
        Short digest of a professional's schedule and break rows.

        Built from row counts, highest ids and summed versions, so any insert,
        delete or ORM update of a schedule or break row changes it.
        """
        with wrap_db_errors("fetch_schedule_fingerprint", professional_id=professional_id):
            schedules = (
                self.db.query(
                    func.count(WorkSchedules.id),
                    func.coalesce(func.max(WorkSchedules.id), 0),
                    func.coalesce(func.sum(WorkSchedules.version), 0),
                )
                .filter(WorkSchedules.professional_id == professional_id)
                .one()
            )
            breaks = (
                self.db.query(
                    func.count(WorkScheduleBreaks.id),
                    func.coalesce(func.max(WorkScheduleBreaks.id), 0),
                    func.coalesce(func.sum(WorkScheduleBreaks.version), 0),
                )
                .select_from(WorkScheduleBreaks)
                .join(WorkSchedules, WorkScheduleBreaks.work_schedule_id == WorkSchedules.id)
                .filter(WorkSchedules.professional_id == professional_id)
                .one()
            )

        raw = ":".join(str(int(v)) for v in (*schedules, *breaks))
        return hashlib.sha1(raw.encode()).hexdigest()[:12]


class AbsenceSource:
    def __init__(self, db: Session):
        self.db = db

    def is_absent(self, professional_id: int, target_date: date) -> bool:
        """True when an approved absence covers the whole of target_date."""
        date_str = target_date.isoformat()
        with wrap_db_errors("fetch_absences", professional_id=professional_id, date=date_str):
            hit = (
                self.db.query(VacationRequests.id)
                .filter(
                    VacationRequests.professional_id == professional_id,
                    VacationRequests.status == "approved",
                    VacationRequests.start_date <= date_str,
                    VacationRequests.end_date >= date_str,
                )
                .first()
            )
        return hit is not None


class BookingLedger:
    def __init__(self, db: Session):
        self.db = db

    def intervals_for(
        self,
        professional_id: int,
        target_date: date,
        statuses: tuple[str, ...] | None = LIVE_STATUSES,
    ) -> list[BookedInterval]:
        """
        Occupied intervals for a professional on a date, sorted by start.

        Args:
            statuses: Booking statuses to include; None means every status
                except "cancelled" (the commit-time view)
        """
        date_str = target_date.isoformat()
        with wrap_db_errors("fetch_bookings", professional_id=professional_id, date=date_str):
            appt_query = self.db.query(Appointments).filter(
                Appointments.professional_id == professional_id,
                Appointments.date == date_str,
            )
            if statuses is None:
                appt_query = appt_query.filter(Appointments.status != "cancelled")
            else:
                appt_query = appt_query.filter(Appointments.status.in_(statuses))
            appointments = appt_query.all()

            groups = (
                self.db.query(GroupActivities)
                .filter(
                    GroupActivities.professional_id == professional_id,
                    GroupActivities.date == date_str,
                )
                .all()
            )

        intervals = [
            BookedInterval(
                professional_id=professional_id,
                date=date_str,
                start=_stored_minutes(a.start_time),
                end=_stored_minutes(a.end_time),
                status=a.status,
                kind="individual",
                source_id=a.id,
            )
            for a in appointments
        ]

        for g in groups:
            status = GROUP_STATUS_MAP.get(g.status, g.status)
            if statuses is None and status == "cancelled":
                continue
            if statuses is not None and status not in statuses:
                continue
            intervals.append(BookedInterval(
                professional_id=professional_id,
                date=date_str,
                start=_stored_minutes(g.start_time),
                end=_stored_minutes(g.end_time),
                status=status,
                kind="group",
                source_id=g.id,
            ))

        intervals.sort(key=lambda i: (i.start, i.end))
        return intervals


# ── Helpers ──────────────────────────────────────────────────────────────


def _to_window(row: WorkSchedules) -> ScheduleWindow | None:
    start = _stored_minutes(row.start_time)
    end = _stored_minutes(row.end_time)
    if start >= end:
        logger.warning(f"Skipping work schedule {row.id}: start {row.start_time} >= end {row.end_time}")
        return None

    breaks = tuple(
        BreakWindow(
            start=_stored_minutes(b.start_time),
            end=_stored_minutes(b.end_time),
            is_active=bool(b.is_active),
            name=b.break_name,
        )
        for b in row.breaks
    )
    return ScheduleWindow(
        id=row.id,
        professional_id=row.professional_id,
        weekday=row.day_of_week,
        start=start,
        end=end,
        is_active=bool(row.is_active),
        breaks=breaks,
    )


def _stored_minutes(value: str) -> int:
    """Stored times are trusted to parse; a bad row is a data error, not a client error."""
    try:
        return time_str_to_minutes(value)
    except ValidationError as e:
        raise InternalError("Malformed time in stored schedule data", value=value) from e
