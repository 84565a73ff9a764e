from datetime import datetime, timedelta

from agenda_api.models import Appointment, PendingAppointment
from agenda_api.services import appointment_service, booking_service
from agenda_api.services.conversation_status_service import get_conversation_status, request_human
from agenda_api.services.errors import StoreError
from agenda_api.services.pending_appointment_service import PendingAppointmentData, sweep_expired_pending_appointments
from agenda_api.services.state_machine import ACTIVE, StatusKind
from agenda_api.services.timeutils import utcnow

INSTANCE = "instance-1"
OWNER = "owner-1"
CONTACT = "+55 (11) 99999-0000"


def _store(db, **overrides):
    values = {"date": "10/12/2025", "time": "14:00", "service": "Corte"}
    values.update(overrides)
    return booking_service.store_pending_hold(db, INSTANCE, CONTACT, OWNER, PendingAppointmentData(**values))


class TestStoreAndGetHold:
    def test_store_returns_hold(self, db_session):
        result = _store(db_session)

        assert result.ok
        assert result.value.hold_id
        assert booking_service.get_pending_hold(db_session, INSTANCE, "5511999990000").value.service == "Corte"

    def test_invalid_hold_is_a_failure(self, db_session):
        result = _store(db_session, time="25:00")

        assert not result.ok
        assert result.error_code == "validation_error"
        assert db_session.query(PendingAppointment).count() == 0

    def test_no_hold(self, db_session):
        result = booking_service.get_pending_hold(db_session, INSTANCE, CONTACT)
        assert result.ok
        assert result.value is None


class TestConfirmPendingHold:
    def test_confirm_creates_appointment_and_releases_conversation(self, db_session):
        hold = _store(db_session, duration_minutes=45, description="degradê", contact_name="João").value

        result = booking_service.confirm_pending_hold(db_session, INSTANCE, CONTACT, OWNER)

        assert result.ok
        appointment = result.value
        assert appointment.owner_user_id == OWNER
        assert appointment.contact_number == "5511999990000"
        assert appointment.date == datetime(2025, 12, 10, 14, 0)
        assert appointment.duration_minutes == 45
        assert appointment.description == "Corte - degradê"
        assert appointment.contact_name == "João"
        assert appointment.status == "pending"

        assert db_session.query(PendingAppointment).filter(PendingAppointment.id == hold.hold_id).count() == 0
        assert get_conversation_status(db_session, INSTANCE, CONTACT) == ACTIVE

    def test_default_duration(self, db_session):
        _store(db_session)

        appointment = booking_service.confirm_pending_hold(db_session, INSTANCE, CONTACT).value

        assert appointment.duration_minutes == 60
        assert appointment.description == "Corte"

    def test_second_confirm_finds_nothing(self, db_session):
        _store(db_session)
        booking_service.confirm_pending_hold(db_session, INSTANCE, CONTACT, OWNER)

        result = booking_service.confirm_pending_hold(db_session, INSTANCE, CONTACT, OWNER)

        assert not result.ok
        assert result.error_code == "no_pending_hold"
        assert db_session.query(Appointment).count() == 1

    def test_expired_hold(self, db_session):
        _store(db_session)
        db_session.query(PendingAppointment).update({"expires_at": utcnow() - timedelta(minutes=1)})
        db_session.flush()

        result = booking_service.confirm_pending_hold(db_session, INSTANCE, CONTACT, OWNER)

        assert not result.ok
        assert result.error_code == "hold_expired"
        assert db_session.query(Appointment).count() == 0
        assert db_session.query(PendingAppointment).count() == 0

    def test_expired_hold_after_status_change_and_sweep(self, db_session):
        _store(db_session)
        db_session.query(PendingAppointment).update({"expires_at": utcnow() - timedelta(minutes=1)})
        db_session.flush()

        assert request_human(db_session, INSTANCE, CONTACT) is True
        assert sweep_expired_pending_appointments(db_session) == 1

        result = booking_service.confirm_pending_hold(db_session, INSTANCE, CONTACT, OWNER)

        assert not result.ok
        assert result.error_code == "hold_expired"
        assert get_conversation_status(db_session, INSTANCE, CONTACT).kind == StatusKind.WAITING_HUMAN

    def test_nothing_to_confirm(self, db_session):
        result = booking_service.confirm_pending_hold(db_session, INSTANCE, CONTACT, OWNER)

        assert not result.ok
        assert result.error_code == "no_pending_hold"

    def test_other_tenant_cannot_confirm(self, db_session):
        _store(db_session)

        result = booking_service.confirm_pending_hold(db_session, INSTANCE, CONTACT, "other-owner")

        assert not result.ok
        assert result.error_code == "no_pending_hold"
        assert db_session.query(PendingAppointment).count() == 1

    def test_store_failure_keeps_hold(self, db_session, monkeypatch):
        _store(db_session)
        db_session.commit()

        def failing_create(*args, **kwargs):
            raise StoreError("Could not create the appointment")

        monkeypatch.setattr(appointment_service, "create_appointment", failing_create)

        result = booking_service.confirm_pending_hold(db_session, INSTANCE, CONTACT, OWNER)

        assert not result.ok
        assert result.error_code == "confirm_failed"
        assert "try again" in result.error
        assert db_session.query(PendingAppointment).count() == 1
        assert get_conversation_status(db_session, INSTANCE, CONTACT).kind == StatusKind.PENDING_APPOINTMENT


class TestCancelPendingHold:
    def test_cancel(self, db_session):
        _store(db_session)

        result = booking_service.cancel_pending_hold(db_session, INSTANCE, CONTACT)

        assert result.ok
        assert result.value is True
        assert get_conversation_status(db_session, INSTANCE, CONTACT) == ACTIVE

    def test_cancel_twice(self, db_session):
        _store(db_session)
        booking_service.cancel_pending_hold(db_session, INSTANCE, CONTACT)

        result = booking_service.cancel_pending_hold(db_session, INSTANCE, CONTACT)

        assert result.ok
        assert result.value is False


class TestToolQueries:
    def test_available_times(self, db_session):
        result = booking_service.get_available_times(db_session, OWNER, INSTANCE, "10/12/2025")

        assert result.ok
        assert result.value.available_times[0] == "08:00"

    def test_available_times_bad_date(self, db_session):
        result = booking_service.get_available_times(db_session, OWNER, INSTANCE, "32/12/2025")

        assert not result.ok
        assert result.error_code == "validation_error"

    def test_check_availability(self, db_session):
        _store(db_session)
        booking_service.confirm_pending_hold(db_session, INSTANCE, CONTACT, OWNER)

        result = booking_service.check_availability(db_session, OWNER, "10/12/2025")

        assert result.ok
        assert [interval.date.hour for interval in result.value] == [14]

    def test_user_appointments_and_reschedule(self, db_session):
        _store(db_session, date="10/12/2099")
        booking_service.confirm_pending_hold(db_session, INSTANCE, CONTACT, OWNER)

        appointments = booking_service.get_user_appointments(db_session, OWNER, INSTANCE, CONTACT).value
        assert len(appointments) == 1

        result = booking_service.reschedule_appointment(db_session, OWNER, appointments[0].id, "11/12/2099 09:00")
        assert result.ok
        assert result.value.end_date == datetime(2099, 12, 11, 10, 0)

    def test_reschedule_unknown(self, db_session):
        result = booking_service.reschedule_appointment(db_session, OWNER, "missing", "11/12/2099 09:00")

        assert not result.ok
        assert result.error_code == "not_found"
