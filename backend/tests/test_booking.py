"""
Tests for BookingTransaction (the write path) and the status machine.
"""

import json
import threading

import pytest
from sqlalchemy.orm import sessionmaker

from clinic_booking.data_access import AdminDataAccess
from clinic_booking.database import build_engine
from clinic_booking.exceptions import (
    ClientNotFound,
    ConflictError,
    BookingNotFound,
    ProfessionalNotFound,
    ServiceNotFound,
    ValidationError,
)
from clinic_booking.models import Base
from clinic_booking.models.generated import Appointments
from clinic_booking.services import booking as booking_module
from clinic_booking.services.booking import BookingTransaction, can_transition, transition_status
from clinic_booking.services.events import P2P_QUEUE
from clinic_booking.services.slots import AvailabilityService, BookingConfig

from conftest import MONDAY, Seeder


def book(transaction, clinic, start="10:00", end="10:30", **overrides):
    params = {
        "organization_id": clinic["organization_id"],
        "professional_id": clinic["professional_id"],
        "service_id": clinic["service_id"],
        "client_id": clinic["client_id"],
        "date": MONDAY.isoformat(),
        "start_time": start,
        "end_time": end,
    }
    params.update(overrides)
    return transaction.book(**params)


def count_appointments(data_access) -> int:
    with data_access.session() as db:
        return db.query(Appointments).count()


@pytest.fixture
def transaction(data_access, config, fake_redis):
    return BookingTransaction(data_access, config, redis=fake_redis)


class TestBook:
    """Tests for a single booking commit."""

    def test_books_free_slot(self, transaction, data_access, clinic):
        record = book(transaction, clinic, notes="first visit")

        assert record["status"] == "confirmed"
        assert (record["start_time"], record["end_time"], record["duration"]) == ("10:00", "10:30", 30)
        assert record["professional"]["name"] == "Dr. Ana"
        assert record["service"]["name"] == "Physiotherapy"
        assert record["client"]["name"] == "Maria"
        assert record["notes"] == "first visit"

        with data_access.session() as db:
            row = db.get(Appointments, record["id"])
            assert row.is_group_activity == 0
            assert row.organization_id == clinic["organization_id"]

    def test_end_time_follows_service_duration(self, transaction, clinic):
        record = book(transaction, clinic, start="10:00", end="11:45")

        assert record["end_time"] == "10:30"

    def test_booked_slot_disappears_from_availability(self, transaction, data_access, config, seed, clinic):
        seed.schedule(clinic["professional_id"], "09:00", "11:00")
        availability = AvailabilityService(data_access, config)

        book(transaction, clinic, start="10:00", end="10:30")
        result = availability.get_available_slots(clinic["professional_id"], clinic["service_id"], MONDAY)

        assert [s.label for s in result.slots] == ["09:00-09:30"]

    def test_second_booking_of_same_slot_conflicts(self, transaction, data_access, clinic):
        book(transaction, clinic)

        with pytest.raises(ConflictError, match="slot no longer available"):
            book(transaction, clinic)

        assert count_appointments(data_access) == 1

    def test_partial_overlap_conflicts(self, transaction, clinic):
        book(transaction, clinic, start="10:00", end="10:30")

        with pytest.raises(ConflictError):
            book(transaction, clinic, start="10:15", end="10:45")

    def test_recheck_applies_buffer(self, transaction, clinic):
        book(transaction, clinic, start="10:00", end="10:30")

        with pytest.raises(ConflictError):
            book(transaction, clinic, start="10:30", end="11:00")

    def test_recheck_without_buffer(self, data_access, clinic):
        transaction = BookingTransaction(data_access, BookingConfig(buffer_minutes=5, recheck_with_buffer=False))
        book(transaction, clinic, start="10:00", end="10:30")

        record = book(transaction, clinic, start="10:30", end="11:00")

        assert record["start_time"] == "10:30"

    def test_cancelled_booking_frees_slot(self, transaction, seed, clinic):
        seed.appointment(
            clinic["organization_id"], clinic["professional_id"], clinic["client_id"], clinic["service_id"],
            MONDAY, "10:00", "10:30", status="cancelled",
        )

        record = book(transaction, clinic)

        assert record["status"] == "confirmed"

    def test_completed_booking_still_blocks(self, transaction, seed, clinic):
        """The recheck considers every status except cancelled."""
        seed.appointment(
            clinic["organization_id"], clinic["professional_id"], clinic["client_id"], clinic["service_id"],
            MONDAY, "10:00", "10:30", status="completed",
        )

        with pytest.raises(ConflictError):
            book(transaction, clinic)

    def test_group_activity_blocks(self, transaction, seed, clinic):
        seed.group_activity(clinic["organization_id"], clinic["professional_id"], MONDAY, "10:00", "11:00")

        with pytest.raises(ConflictError):
            book(transaction, clinic, start="10:30", end="11:00")

    def test_unique_index_backstop(self, transaction, data_access, seed, clinic, monkeypatch):
        """A live duplicate start slipping past the recheck is still a conflict."""
        seed.appointment(
            clinic["organization_id"], clinic["professional_id"], clinic["client_id"], clinic["service_id"],
            MONDAY, "10:00", "10:30",
        )
        monkeypatch.setattr(booking_module, "find_conflicts", lambda *args, **kwargs: [])

        with pytest.raises(ConflictError):
            book(transaction, clinic)

        assert count_appointments(data_access) == 1

    def test_other_professional_same_time_is_free(self, transaction, seed, clinic):
        other = seed.professional(clinic["organization_id"], name="Dr. Luis")
        book(transaction, clinic)

        record = book(transaction, clinic, professional_id=other)

        assert record["professional"]["name"] == "Dr. Luis"

    def test_emits_booking_created(self, transaction, clinic, fake_redis):
        record = book(transaction, clinic)

        events = [json.loads(raw) for raw in fake_redis.lists[P2P_QUEUE]]
        assert events[0]["type"] == "booking_created"
        assert events[0]["booking_id"] == record["id"]


class TestBookValidation:
    """Tests for rejected requests."""

    def test_client_of_other_organization(self, transaction, seed, clinic):
        other_org = seed.organization("Other")
        stranger = seed.client(other_org, name="Stranger")

        with pytest.raises(ClientNotFound):
            book(transaction, clinic, client_id=stranger)

    def test_unknown_professional(self, transaction, clinic):
        with pytest.raises(ProfessionalNotFound):
            book(transaction, clinic, professional_id=999)

    def test_unknown_service(self, transaction, clinic):
        with pytest.raises(ServiceNotFound):
            book(transaction, clinic, service_id=999)

    def test_end_before_start(self, transaction, clinic):
        with pytest.raises(ValidationError, match="end_time must be after start_time"):
            book(transaction, clinic, start="10:30", end="10:00")

    def test_malformed_date(self, transaction, clinic):
        with pytest.raises(ValidationError):
            book(transaction, clinic, date="2030-13-40")

    def test_malformed_time(self, transaction, clinic):
        with pytest.raises(ValidationError):
            book(transaction, clinic, start="ten", end="10:30")

    def test_invalid_identifier(self, transaction, clinic):
        with pytest.raises(ValidationError, match="Invalid client_id"):
            book(transaction, clinic, client_id=0)

    def test_past_midnight(self, transaction, clinic):
        with pytest.raises(ValidationError, match="midnight"):
            book(transaction, clinic, start="23:45", end="24:00")

    def test_nothing_written_on_rejection(self, transaction, data_access, clinic):
        with pytest.raises(ServiceNotFound):
            book(transaction, clinic, service_id=999)

        assert count_appointments(data_access) == 0


class TestPostCommitHook:
    """The calendar side effect never changes the booking outcome."""

    def test_hook_called_with_ids(self, data_access, config, clinic):
        calls = []
        transaction = BookingTransaction(data_access, config, on_committed=lambda *args: calls.append(args))

        record = book(transaction, clinic)

        assert calls == [(record["id"], clinic["professional_id"])]

    def test_hook_failure_swallowed(self, data_access, config, clinic):
        def explode(appointment_id, professional_id):
            raise RuntimeError("calendar down")

        transaction = BookingTransaction(data_access, config, on_committed=explode)

        record = book(transaction, clinic)

        assert record["status"] == "confirmed"
        assert count_appointments(data_access) == 1

    def test_hook_not_called_on_conflict(self, data_access, config, clinic):
        calls = []
        transaction = BookingTransaction(data_access, config, on_committed=lambda *args: calls.append(args))
        book(transaction, clinic)

        with pytest.raises(ConflictError):
            book(transaction, clinic)

        assert len(calls) == 1


class TestConcurrentBooking:
    """Two simultaneous commits of the same slot: exactly one wins."""

    def test_exactly_one_succeeds(self, tmp_path, config):
        engine = build_engine(f"sqlite:///{tmp_path / 'concurrent.db'}")
        Base.metadata.create_all(engine)
        data_access = AdminDataAccess(sessionmaker(autocommit=False, autoflush=False, bind=engine))

        seed = Seeder(data_access)
        org_id = seed.organization()
        clinic = {
            "organization_id": org_id,
            "professional_id": seed.professional(org_id),
            "service_id": seed.service(org_id),
            "client_id": seed.client(org_id),
        }
        transaction = BookingTransaction(data_access, config)

        workers = 4
        barrier = threading.Barrier(workers)
        outcomes = []
        lock = threading.Lock()

        def attempt():
            barrier.wait()
            try:
                book(transaction, clinic)
                result = "ok"
            except ConflictError:
                result = "conflict"
            with lock:
                outcomes.append(result)

        threads = [threading.Thread(target=attempt) for _ in range(workers)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30)

        try:
            assert sorted(outcomes) == ["conflict"] * (workers - 1) + ["ok"]
            assert count_appointments(data_access) == 1
        finally:
            engine.dispose()


class TestStatusMachine:
    """Tests for booking status transitions."""

    @pytest.mark.parametrize("current,new", [
        ("pending", "confirmed"),
        ("pending", "cancelled"),
        ("pending", "no_show"),
        ("confirmed", "completed"),
        ("confirmed", "cancelled"),
        ("confirmed", "no_show"),
    ])
    def test_allowed(self, current, new):
        assert can_transition(current, new)

    @pytest.mark.parametrize("current,new", [
        ("pending", "completed"),
        ("confirmed", "pending"),
        ("cancelled", "confirmed"),
        ("completed", "cancelled"),
        ("no_show", "confirmed"),
    ])
    def test_forbidden(self, current, new):
        assert not can_transition(current, new)

    def test_cancel_frees_slot(self, transaction, data_access, clinic):
        record = book(transaction, clinic)

        updated = transition_status(data_access, record["id"], clinic["organization_id"], "cancelled")
        again = book(transaction, clinic)

        assert updated["status"] == "cancelled"
        assert again["id"] != record["id"]

    def test_illegal_transition(self, transaction, data_access, clinic):
        record = book(transaction, clinic)
        transition_status(data_access, record["id"], clinic["organization_id"], "completed")

        with pytest.raises(ValidationError, match="Cannot change status"):
            transition_status(data_access, record["id"], clinic["organization_id"], "cancelled")

    def test_unknown_status(self, transaction, data_access, clinic):
        record = book(transaction, clinic)

        with pytest.raises(ValidationError, match="Unknown status"):
            transition_status(data_access, record["id"], clinic["organization_id"], "archived")

    def test_booking_of_other_organization(self, transaction, data_access, seed, clinic):
        record = book(transaction, clinic)
        other_org = seed.organization("Other")

        with pytest.raises(BookingNotFound):
            transition_status(data_access, record["id"], other_org, "cancelled")
