"""
Shared fixtures: in-memory SQLite, seed data, Redis/Google fakes.
"""

import fnmatch
from datetime import date

import pytest
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from clinic_booking.data_access import AdminDataAccess
from clinic_booking.database import build_engine
from clinic_booking.models import Base
from clinic_booking.models.generated import (
    Appointments,
    Clients,
    GroupActivities,
    Organizations,
    ProfessionalGoogleTokens,
    Professionals,
    Services,
    VacationRequests,
    WorkScheduleBreaks,
    WorkSchedules,
    t_professional_services,
)
from clinic_booking.services.slots import BookingConfig

# A Monday (stored day_of_week 1)
MONDAY = date(2030, 1, 7)


class FakeRedis:
    """Just enough of redis.Redis for the slots cache and the event queue."""

    def __init__(self):
        self.data: dict[str, bytes] = {}
        self.lists: dict[str, list] = {}
        self.ttls: dict[str, int] = {}

    def get(self, key):
        return self.data.get(key)

    def setex(self, key, ttl, value):
        self.data[key] = value.encode() if isinstance(value, str) else value
        self.ttls[key] = ttl

    def scan_iter(self, match="*"):
        return [k for k in list(self.data) if fnmatch.fnmatchcase(k, match)]

    def delete(self, *keys):
        deleted = 0
        for key in keys:
            if self.data.pop(key, None) is not None:
                deleted += 1
        return deleted

    def rpush(self, key, value):
        self.lists.setdefault(key, []).append(value)
        return len(self.lists[key])

    def ping(self):
        return True


class Seeder:
    """Inserts rows and returns their ids."""

    def __init__(self, data_access: AdminDataAccess):
        self.data_access = data_access

    def _add(self, obj) -> int:
        with self.data_access.transaction() as db:
            db.add(obj)
            db.flush()
            return obj.id

    def organization(self, name="Clinic") -> int:
        return self._add(Organizations(name=name))

    def professional(self, organization_id, name="Dr. Ana", is_active=1) -> int:
        return self._add(Professionals(organization_id=organization_id, name=name, is_active=is_active))

    def client(self, organization_id, name="Maria", phone="+34 600 000 000", email="maria@example.com") -> int:
        return self._add(Clients(organization_id=organization_id, name=name, phone=phone, email=email))

    def service(self, organization_id, name="Physiotherapy", duration=30, is_active=1) -> int:
        return self._add(Services(organization_id=organization_id, name=name, duration=duration, is_active=is_active))

    def link(self, professional_id, service_id) -> None:
        with self.data_access.transaction() as db:
            db.execute(t_professional_services.insert().values(
                professional_id=professional_id,
                service_id=service_id,
            ))

    def schedule(self, professional_id, start="09:00", end="13:00", day_of_week=1, breaks=(), is_active=1) -> int:
        with self.data_access.transaction() as db:
            row = WorkSchedules(
                professional_id=professional_id,
                day_of_week=day_of_week,
                start_time=start,
                end_time=end,
                is_active=is_active,
                is_exception=0,
            )
            db.add(row)
            db.flush()
            for b in breaks:
                b_start, b_end = b[0], b[1]
                b_active = b[2] if len(b) > 2 else 1
                db.add(WorkScheduleBreaks(
                    work_schedule_id=row.id,
                    break_name="Break",
                    start_time=b_start,
                    end_time=b_end,
                    is_active=b_active,
                ))
            return row.id

    def schedule_break(self, schedule_id, start, end, is_active=1) -> int:
        return self._add(WorkScheduleBreaks(
            work_schedule_id=schedule_id,
            break_name="Break",
            start_time=start,
            end_time=end,
            is_active=is_active,
        ))

    def exception_schedule(self, professional_id, on: date, start, end) -> int:
        return self._add(WorkSchedules(
            professional_id=professional_id,
            day_of_week=None,
            start_time=start,
            end_time=end,
            is_active=1,
            is_exception=1,
            date_exception=on.isoformat(),
        ))

    def vacation(self, professional_id, start: date, end: date, status="approved") -> int:
        return self._add(VacationRequests(
            professional_id=professional_id,
            start_date=start.isoformat(),
            end_date=end.isoformat(),
            status=status,
        ))

    def appointment(self, organization_id, professional_id, client_id, service_id, on: date, start, end, status="confirmed") -> int:
        return self._add(Appointments(
            organization_id=organization_id,
            professional_id=professional_id,
            client_id=client_id,
            service_id=service_id,
            date=on.isoformat(),
            start_time=start,
            end_time=end,
            duration=30,
            status=status,
        ))

    def group_activity(self, organization_id, professional_id, on: date, start, end, status="active") -> int:
        return self._add(GroupActivities(
            organization_id=organization_id,
            professional_id=professional_id,
            name="Pilates",
            date=on.isoformat(),
            start_time=start,
            end_time=end,
            status=status,
        ))

    def google_tokens(self, professional_id, expires_at="2099-01-01 00:00:00", access_token="access", refresh_token="refresh") -> int:
        return self._add(ProfessionalGoogleTokens(
            professional_id=professional_id,
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=expires_at,
        ))


@pytest.fixture
def engine():
    engine = build_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def data_access(engine):
    return AdminDataAccess(sessionmaker(autocommit=False, autoflush=False, bind=engine))


@pytest.fixture
def seed(data_access):
    return Seeder(data_access)


@pytest.fixture
def clinic(seed):
    """One organization, one professional offering a 30-minute service, one client."""
    org_id = seed.organization()
    professional_id = seed.professional(org_id)
    service_id = seed.service(org_id)
    client_id = seed.client(org_id)
    seed.link(professional_id, service_id)
    return {
        "organization_id": org_id,
        "professional_id": professional_id,
        "service_id": service_id,
        "client_id": client_id,
    }


@pytest.fixture
def config():
    return BookingConfig(buffer_minutes=5, recheck_with_buffer=True, past_cutoff_minutes=5, timezone="Europe/Madrid")


@pytest.fixture
def fake_redis():
    return FakeRedis()
