from datetime import timedelta

import pytest
from sqlalchemy.exc import SQLAlchemyError

from agenda_api.models import ConversationStatus, PendingAppointment
from agenda_api.services import pending_appointment_service
from agenda_api.services.conversation_status_service import find_status_row, get_conversation_status
from agenda_api.services.errors import HoldExpiredError, HoldNotFoundError, StoreError, ValidationError
from agenda_api.services.pending_appointment_service import (
    PendingAppointmentData,
    clear_pending_appointment,
    get_pending_appointment,
    list_live_holds_for_date,
    require_live_hold,
    store_pending_appointment,
    sweep_expired_pending_appointments,
)
from agenda_api.services.state_machine import ACTIVE, CLOSED, StatusKind
from agenda_api.services.timeutils import utcnow

INSTANCE = "instance-1"
OWNER = "owner-1"
CONTACT = "5511999990000"


def _data(**overrides):
    values = {"date": "10/12/2025", "time": "14:00", "service": "Corte"}
    values.update(overrides)
    return PendingAppointmentData(**values)


def _expire_all(db):
    db.query(PendingAppointment).update({"expires_at": utcnow() - timedelta(minutes=1)})
    db.flush()


class TestPendingAppointmentData:
    def test_normalizes_iso_date_and_time(self):
        data = _data(date="2025-12-10", time="9:05").validated()
        assert data.date == "10/12/2025"
        assert data.time == "09:05"

    def test_rejects_bad_date(self):
        with pytest.raises(ValidationError):
            _data(date="31/02/2025").validated()

    def test_requires_service(self):
        with pytest.raises(ValidationError):
            _data(service="  ").validated()


class TestStorePendingAppointment:
    def test_store_and_get(self, db_session):
        stored = store_pending_appointment(db_session, INSTANCE, CONTACT, _data(duration_minutes=45), OWNER)

        hold = get_pending_appointment(db_session, INSTANCE, CONTACT)
        assert hold is not None
        assert hold.hold_id == stored.hold_id
        assert hold.service == "Corte"
        assert hold.duration_minutes == 45
        assert hold.owner_user_id == OWNER
        assert hold.expires_at > utcnow()

    def test_flips_status_to_pending(self, db_session):
        stored = store_pending_appointment(db_session, INSTANCE, CONTACT, _data(), OWNER)

        status = get_conversation_status(db_session, INSTANCE, CONTACT)
        assert status.kind == StatusKind.PENDING_APPOINTMENT
        assert status.hold_id == stored.hold_id

    def test_second_hold_replaces_first(self, db_session):
        first = store_pending_appointment(db_session, INSTANCE, CONTACT, _data(), OWNER)
        second = store_pending_appointment(db_session, INSTANCE, "+55 (11) 99999-0000", _data(time="15:00"), OWNER)

        assert first.hold_id != second.hold_id
        assert db_session.query(PendingAppointment).count() == 1

        hold = get_pending_appointment(db_session, INSTANCE, CONTACT)
        assert hold.time == "15:00"
        assert hold.hold_id == second.hold_id
        assert get_conversation_status(db_session, INSTANCE, CONTACT).hold_id == second.hold_id

    def test_replaces_hold_stored_under_legacy_key(self, db_session):
        now = utcnow()
        db_session.add(
            PendingAppointment(
                owner_user_id=OWNER,
                instance_id=INSTANCE,
                contact_number="11999990000",
                date="10/12/2025",
                time="10:00",
                service="Barba",
                created_at=now,
                expires_at=now + timedelta(minutes=30),
            )
        )
        db_session.flush()

        assert get_pending_appointment(db_session, INSTANCE, CONTACT).service == "Barba"

        store_pending_appointment(db_session, INSTANCE, CONTACT, _data(), OWNER)

        rows = db_session.query(PendingAppointment).all()
        assert [row.contact_number for row in rows] == [CONTACT]

    def test_holds_are_scoped_by_instance(self, db_session):
        store_pending_appointment(db_session, INSTANCE, CONTACT, _data(), OWNER)

        assert get_pending_appointment(db_session, "other-instance", CONTACT) is None


class TestExpiry:
    def test_expired_hold_is_absent_and_purged(self, db_session):
        stored = store_pending_appointment(db_session, INSTANCE, CONTACT, _data(), OWNER)
        _expire_all(db_session)

        assert get_pending_appointment(db_session, INSTANCE, CONTACT) is None
        assert db_session.query(PendingAppointment).count() == 0
        assert get_pending_appointment(db_session, INSTANCE, CONTACT) is None

        row = find_status_row(db_session, INSTANCE, CONTACT)
        assert row.status == "active"
        assert row.hold_id is None
        assert row.expired_hold_id == stored.hold_id

    def test_sweep_removes_only_expired(self, db_session):
        store_pending_appointment(db_session, INSTANCE, CONTACT, _data(), OWNER)
        _expire_all(db_session)
        store_pending_appointment(db_session, INSTANCE, "5511888880000", _data(), OWNER)

        assert sweep_expired_pending_appointments(db_session) == 1
        assert [row.contact_number for row in db_session.query(PendingAppointment).all()] == ["5511888880000"]
        assert sweep_expired_pending_appointments(db_session) == 0

    def test_sweep_store_failure_raises(self, db_session, monkeypatch):
        store_pending_appointment(db_session, INSTANCE, CONTACT, _data(), OWNER)
        _expire_all(db_session)

        def failing_purge(db, hold_ids):
            raise SQLAlchemyError("database unavailable")

        monkeypatch.setattr(pending_appointment_service, "_purge", failing_purge)

        with pytest.raises(StoreError):
            sweep_expired_pending_appointments(db_session)

    def test_custom_ttl(self, db_session):
        stored = store_pending_appointment(db_session, INSTANCE, CONTACT, _data(), OWNER, ttl_minutes=5)

        assert utcnow() + timedelta(minutes=4) < stored.expires_at <= utcnow() + timedelta(minutes=5)


class TestRequireLiveHold:
    def test_returns_live_hold(self, db_session):
        stored = store_pending_appointment(db_session, INSTANCE, CONTACT, _data(), OWNER)

        assert require_live_hold(db_session, INSTANCE, CONTACT).id == stored.hold_id

    def test_expired_hold(self, db_session):
        store_pending_appointment(db_session, INSTANCE, CONTACT, _data(), OWNER)
        _expire_all(db_session)

        with pytest.raises(HoldExpiredError):
            require_live_hold(db_session, INSTANCE, CONTACT)

    def test_hold_purged_before_confirmation_still_reports_expiry(self, db_session):
        store_pending_appointment(db_session, INSTANCE, CONTACT, _data(), OWNER)
        _expire_all(db_session)
        sweep_expired_pending_appointments(db_session)

        with pytest.raises(HoldExpiredError):
            require_live_hold(db_session, INSTANCE, CONTACT)

    def test_no_hold(self, db_session):
        with pytest.raises(HoldNotFoundError):
            require_live_hold(db_session, INSTANCE, CONTACT)


class TestClearPendingAppointment:
    def test_clear_releases_status(self, db_session):
        store_pending_appointment(db_session, INSTANCE, CONTACT, _data(), OWNER)

        assert clear_pending_appointment(db_session, INSTANCE, CONTACT) is True
        assert get_pending_appointment(db_session, INSTANCE, CONTACT) is None
        assert get_conversation_status(db_session, INSTANCE, CONTACT) == ACTIVE

    def test_clear_to_other_status(self, db_session):
        store_pending_appointment(db_session, INSTANCE, CONTACT, _data(), OWNER)

        clear_pending_appointment(db_session, INSTANCE, CONTACT, next_status=CLOSED)

        assert get_conversation_status(db_session, INSTANCE, CONTACT) == CLOSED

    def test_clear_without_hold(self, db_session):
        assert clear_pending_appointment(db_session, INSTANCE, CONTACT) is False

    def test_clear_leaves_non_pending_status_alone(self, db_session):
        store_pending_appointment(db_session, INSTANCE, CONTACT, _data(), OWNER)
        _expire_all(db_session)
        get_pending_appointment(db_session, INSTANCE, CONTACT)
        db_session.query(ConversationStatus).update({"status": "waiting_human"})
        db_session.flush()

        clear_pending_appointment(db_session, INSTANCE, CONTACT)

        assert find_status_row(db_session, INSTANCE, CONTACT).status == "waiting_human"


class TestLiveHoldsForDate:
    def test_lists_live_holds_for_owner_and_day(self, db_session):
        store_pending_appointment(db_session, INSTANCE, CONTACT, _data(), OWNER)
        store_pending_appointment(db_session, INSTANCE, "5511888880000", _data(date="11/12/2025"), OWNER)
        store_pending_appointment(db_session, INSTANCE, "5511777770000", _data(), "other-owner")

        holds = list_live_holds_for_date(db_session, OWNER, INSTANCE, "10/12/2025")

        assert [hold.contact_number for hold in holds] == [CONTACT]


class TestEndToEnd:
    def test_formatted_and_canonical_numbers_share_a_hold(self, db_session):
        formatted = "+55 (11) 99999-0000"
        canonical = "5511999990000"

        store_pending_appointment(db_session, INSTANCE, formatted, _data(), OWNER)

        hold = get_pending_appointment(db_session, INSTANCE, canonical)
        assert (hold.date, hold.time, hold.service) == ("10/12/2025", "14:00", "Corte")

        assert clear_pending_appointment(db_session, INSTANCE, formatted) is True
        assert get_pending_appointment(db_session, INSTANCE, canonical) is None
        assert get_conversation_status(db_session, INSTANCE, canonical) == ACTIVE
