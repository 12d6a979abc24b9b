"""Test structured logging setup and request id propagation."""

import json
import logging

import pytest

from training_booking.observability.logger import (
    get_request_id,
    new_request_id,
    set_request_id,
    setup_logging,
)


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


class TestRequestId:
    def test_set_and_get(self):
        set_request_id("abc")
        assert get_request_id() == "abc"

    def test_new_request_id_is_set(self):
        rid = new_request_id()
        assert len(rid) == 32
        assert get_request_id() == rid


class TestSetupLogging:
    def test_stdlib_records_render_as_json(self, restore_root_logger, capsys):
        setup_logging(level="INFO", format="json")
        set_request_id("req-42")

        logging.getLogger("training_booking.test").info("Booked training %s", 7)

        line = capsys.readouterr().err.strip().splitlines()[-1]
        entry = json.loads(line)
        assert entry["event"] == "Booked training 7"
        assert entry["level"] == "info"
        assert entry["request_id"] == "req-42"
        assert entry["logger"] == "training_booking.test"

    def test_level_filters(self, restore_root_logger, capsys):
        setup_logging(level="WARNING", format="console")
        logging.getLogger("training_booking.test").info("hidden")
        assert "hidden" not in capsys.readouterr().err
