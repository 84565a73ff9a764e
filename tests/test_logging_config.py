import json
import logging

from agenda_api.logging_config import JSONFormatter, conversation_logger, setup_logging


def _record(context=None):
    record = logging.LogRecord("agenda.test", logging.INFO, __file__, 1, "hello %s", ("world",), None)
    if context is not None:
        record.context = context
    return record


class TestJSONFormatter:
    def test_basic_fields(self):
        entry = json.loads(JSONFormatter().format(_record()))

        assert entry["message"] == "hello world"
        assert entry["level"] == "INFO"
        assert entry["logger"] == "agenda.test"
        assert "context" not in entry

    def test_conversation_keys_are_lifted(self):
        entry = json.loads(
            JSONFormatter().format(_record({"instance_id": "i-1", "contact": "5511999990000", "hold_id": "h-1"}))
        )

        assert entry["instance_id"] == "i-1"
        assert entry["contact"] == "5511999990000"
        assert entry["context"] == {"hold_id": "h-1"}


class TestConversationLogger:
    def test_merges_bound_and_call_context(self):
        adapter = conversation_logger("test", "i-1", "5511999990000")

        msg, kwargs = adapter.process("x", {"context": {"hold_id": "h-1"}})

        assert kwargs["extra"]["context"] == {"instance_id": "i-1", "contact": "5511999990000", "hold_id": "h-1"}


class TestSetupLogging:
    def test_unknown_level_falls_back_to_info(self):
        root = logging.getLogger()
        previous_level, previous_handlers = root.level, root.handlers[:]
        try:
            setup_logging("chatty")
            assert root.level == logging.INFO
        finally:
            root.handlers[:] = previous_handlers
            root.setLevel(previous_level)
