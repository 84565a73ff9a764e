from datetime import timedelta

from agenda_api.models import ConversationStatus, InteractiveMessage
from agenda_api.services import contact_cache
from agenda_api.services.inbound_service import (
    InboundMessage,
    handle_inbound_message,
    record_interactive_message,
    resolve_button_reply,
)
from agenda_api.services.pending_appointment_service import PendingAppointmentData, store_pending_appointment
from agenda_api.services.state_machine import ACTIVE, StatusKind
from agenda_api.services.timeutils import utcnow

INSTANCE = "instance-1"
CONTACT = "5511999990000"

BUTTONS = [{"id": "confirm", "title": "Confirmar"}, {"id": "cancel", "title": "Cancelar"}]


def _message(**overrides):
    values = {
        "sender": "+55 (11) 99999-0000",
        "to": "5511333330000",
        "body": "Oi",
        "message_id": "wamid.1",
        "timestamp_seconds": 1765370000,
    }
    values.update(overrides)
    return InboundMessage(**values)


class TestHandleInboundMessage:
    def test_creates_conversation_and_caches_name(self, db_session):
        result = handle_inbound_message(db_session, INSTANCE, _message(contact_name="Maria"))

        assert result.contact_number == CONTACT
        assert result.status == ACTIVE
        assert db_session.query(ConversationStatus).count() == 1
        assert contact_cache.get_contact_name(INSTANCE, CONTACT) == "Maria"

    def test_name_from_cache_on_later_messages(self, db_session):
        handle_inbound_message(db_session, INSTANCE, _message(contact_name="Maria"))

        result = handle_inbound_message(db_session, INSTANCE, _message(sender="11999990000"))

        assert result.contact_name == "Maria"
        assert db_session.query(ConversationStatus).count() == 1

    def test_reports_pending_appointment(self, db_session):
        store_pending_appointment(
            db_session,
            INSTANCE,
            CONTACT,
            PendingAppointmentData(date="10/12/2025", time="14:00", service="Corte"),
            "owner-1",
        )

        result = handle_inbound_message(db_session, INSTANCE, _message())

        assert result.status.kind == StatusKind.PENDING_APPOINTMENT

    def test_button_reply_with_known_id(self, db_session):
        record_interactive_message(db_session, INSTANCE, CONTACT, BUTTONS, body="Confirma?")

        result = handle_inbound_message(
            db_session,
            INSTANCE,
            _message(type="interactive_button_reply", body="Confirmar", interactive_button_id="confirm"),
        )

        assert result.button_id == "confirm"
        assert result.button_title == "Confirmar"

    def test_button_reply_without_id_matches_title(self, db_session):
        record_interactive_message(db_session, INSTANCE, CONTACT, BUTTONS)

        result = handle_inbound_message(
            db_session, INSTANCE, _message(type="interactive_button_reply", body=" cancelar ")
        )

        assert result.button_id == "cancel"
        assert result.button_title == "Cancelar"

    def test_text_messages_skip_button_resolution(self, db_session):
        record_interactive_message(db_session, INSTANCE, CONTACT, BUTTONS)

        result = handle_inbound_message(db_session, INSTANCE, _message(body="Confirmar"))

        assert result.button_id is None


class TestResolveButtonReply:
    def test_uses_most_recent_message(self, db_session):
        older = record_interactive_message(db_session, INSTANCE, CONTACT, [{"id": "old", "title": "Sim"}])
        older.created_at = utcnow() - timedelta(hours=1)
        record_interactive_message(db_session, INSTANCE, CONTACT, [{"id": "new", "title": "Sim"}])
        db_session.flush()

        assert resolve_button_reply(db_session, INSTANCE, CONTACT, None, "Sim") == ("new", "Sim")

    def test_unknown_id_falls_back_to_title(self, db_session):
        record_interactive_message(db_session, INSTANCE, CONTACT, BUTTONS)

        assert resolve_button_reply(db_session, INSTANCE, CONTACT, "btn_0", "Confirmar") == ("confirm", "Confirmar")

    def test_nothing_recorded_keeps_provider_values(self, db_session):
        assert resolve_button_reply(db_session, INSTANCE, CONTACT, "btn_0", "Sim") == ("btn_0", "Sim")


class TestRecordInteractiveMessage:
    def test_canonicalizes_contact(self, db_session):
        record_interactive_message(db_session, INSTANCE, "+55 (11) 99999-0000", BUTTONS, message_id="wamid.2")

        message = db_session.query(InteractiveMessage).one()
        assert message.contact_number == CONTACT
        assert message.buttons == BUTTONS
