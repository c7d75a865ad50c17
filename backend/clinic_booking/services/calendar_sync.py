"""
backend/clinic_booking/services/calendar_sync.py

Fire-and-forget sync of appointments to the professional's Google Calendar.

The booking commit never waits for this: `schedule()` hands the work to a
small thread pool and returns. Each job opens its own DB session and every
Google call carries its own HTTP timeout. Failures are logged and dropped.
"""

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime, timedelta, timezone

from googleapiclient.errors import HttpError
from sqlalchemy.orm import Session

from ..data_access import AdminDataAccess
from ..exceptions import UpstreamSyncError
from ..models.generated import Appointments, Clients, ProfessionalGoogleTokens, Services
from . import google_calendar
from .google_calendar import TOKEN_TIME_FORMAT

logger = logging.getLogger(__name__)

# Tokens expiring within this margin are refreshed before use
TOKEN_REFRESH_MARGIN = timedelta(minutes=5)


class CalendarSyncer:
    def __init__(
        self,
        data_access: AdminDataAccess,
        timezone: str = "Europe/Madrid",
        timeout: float = 10.0,
        max_workers: int = 4,
        calendar_client=google_calendar,
    ):
        self.data_access = data_access
        self.timezone = timezone
        self.timeout = timeout
        self.client = calendar_client
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="calendar-sync")

    def schedule(self, appointment_id: int, professional_id: int) -> Future | None:
        """Queue a sync job; returns immediately."""
        try:
            return self._executor.submit(self._run, appointment_id, professional_id)
        except RuntimeError:
            logger.warning(f"Calendar sync executor is shut down, appointment {appointment_id} not synced")
            return None

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def _run(self, appointment_id: int, professional_id: int) -> dict:
        try:
            return self.sync_appointment(appointment_id, professional_id)
        except UpstreamSyncError as e:
            logger.error(f"Google Calendar sync failed: {e}")
        except Exception:
            logger.exception(f"Unexpected error syncing appointment {appointment_id} to Google Calendar")
        return {"synced": False, "reason": "error"}

    # ── Sync ─────────────────────────────────────────────────────────────

    def sync_appointment(self, appointment_id: int, professional_id: int) -> dict:
        """
        Create or update the calendar event of an appointment.

        Returns:
            {"synced": True, "event_id": str, "action": "created" | "updated"}
            or {"synced": False, "reason": str} when nothing had to be done

        Raises:
            UpstreamSyncError: Google rejected the call or timed out
        """
        logger.info(f"Syncing appointment {appointment_id} to Google Calendar")

        with self.data_access.session() as db:
            tokens = self.get_valid_tokens(db, professional_id)
            if tokens is None:
                logger.info(f"Professional {professional_id} has no Google Calendar connected, skipping sync")
                return {"synced": False, "reason": "No active integration"}

            appointment = db.get(Appointments, appointment_id)
            if appointment is None:
                raise UpstreamSyncError("Appointment not found", appointment_id=appointment_id)

            client = db.get(Clients, appointment.client_id)
            service = db.get(Services, appointment.service_id)
            event = google_calendar.build_event_body(
                {
                    "date": appointment.date,
                    "start_time": appointment.start_time,
                    "end_time": appointment.end_time,
                    "client_name": client.name if client else None,
                    "client_phone": client.phone if client else None,
                    "client_email": client.email if client else None,
                    "service_name": service.name if service else None,
                    "notes": appointment.notes,
                },
                self.timezone,
            )

            try:
                if appointment.google_calendar_event_id:
                    result = self.client.update_event(
                        access_token=tokens.access_token,
                        refresh_token=tokens.refresh_token,
                        calendar_id=tokens.calendar_id or "primary",
                        event_id=appointment.google_calendar_event_id,
                        event=event,
                        timeout=self.timeout,
                    )
                    action = "updated"
                else:
                    result = self.client.create_event(
                        access_token=tokens.access_token,
                        refresh_token=tokens.refresh_token,
                        calendar_id=tokens.calendar_id or "primary",
                        event=event,
                        timeout=self.timeout,
                    )
                    action = "created"
            except (HttpError, OSError) as e:
                raise UpstreamSyncError(
                    "Google Calendar call failed",
                    appointment_id=appointment_id,
                    professional_id=professional_id,
                ) from e

            appointment.google_calendar_event_id = result["event_id"]
            appointment.synced_with_google = 1
            db.commit()

        logger.info(f"Appointment {appointment_id} {action} in Google Calendar: event_id={result['event_id']}")
        return {"synced": True, "event_id": result["event_id"], "action": action}

    def get_valid_tokens(self, db: Session, professional_id: int) -> ProfessionalGoogleTokens | None:
        """
        Stored tokens of a professional, refreshed when close to expiry.

        A refresh token Google no longer accepts is deleted; None is returned.
        """
        tokens = db.query(ProfessionalGoogleTokens).filter(
            ProfessionalGoogleTokens.professional_id == professional_id,
        ).first()
        if tokens is None:
            return None

        if tokens.expires_at:
            try:
                # stored as naive UTC
                expires_at = datetime.strptime(tokens.expires_at, TOKEN_TIME_FORMAT).replace(tzinfo=timezone.utc)
            except ValueError:
                expires_at = None
            if expires_at is not None and expires_at > datetime.now(timezone.utc) + TOKEN_REFRESH_MARGIN:
                return tokens

        logger.info(f"Refreshing Google tokens for professional {professional_id}")
        try:
            new_tokens = self.client.refresh_access_token(tokens.refresh_token)
        except ValueError:
            logger.warning(f"Refresh token rejected for professional {professional_id}, removing stored tokens")
            db.delete(tokens)
            db.commit()
            return None

        tokens.access_token = new_tokens["access_token"]
        tokens.expires_at = new_tokens["token_expires_at"]
        tokens.updated_at = datetime.now(timezone.utc).strftime(TOKEN_TIME_FORMAT)
        db.commit()
        return tokens
