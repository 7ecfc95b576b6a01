import json
import logging

from askdocs.logging_config import AUDIT_LOGGER_NAME, MinimalJSONFormatter, audit, configure_logging
from askdocs.telemetry import log_event, traced_duration


def _record(msg, **extra) -> logging.LogRecord:
    record = logging.LogRecord("askdocs.test", logging.INFO, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_formatter_merges_dict_messages():
    payload = json.loads(MinimalJSONFormatter().format(_record({"step": "ingest", "count": 2})))

    assert payload["step"] == "ingest"
    assert payload["count"] == 2
    assert payload["level"] == "INFO"
    assert payload["logger"] == "askdocs.test"
    assert payload["ts"].endswith("Z")
    assert "msg" not in payload


def test_formatter_includes_extra_attributes():
    payload = json.loads(MinimalJSONFormatter().format(_record("hello %s", request_id="abc")))

    assert payload["message"] == "hello %s"
    assert payload["request_id"] == "abc"


def test_audit_events_go_to_rotating_file(tmp_path):
    configure_logging(log_dir=tmp_path)
    try:
        audit("ingest", document_id=1, chunk_count=3)
        for handler in logging.getLogger(AUDIT_LOGGER_NAME).handlers:
            handler.flush()

        lines = (tmp_path / "audit.log").read_text(encoding="utf-8").splitlines()
        record = json.loads(lines[-1])
        assert record["event"] == "ingest"
        assert record["chunk_count"] == 3
    finally:
        configure_logging()


def test_log_event_drops_empty_details(caplog):
    logger = logging.getLogger("askdocs.test.telemetry")

    with caplog.at_level(logging.INFO, logger="askdocs.test.telemetry"):
        log_event("custom.step", logger=logger, session_id="s1", kept="v", missing=None)

    event = caplog.records[0].msg
    assert event == {"step": "custom.step", "session_id": "s1", "details": {"kept": "v"}}


def test_log_event_records_errors(caplog):
    logger = logging.getLogger("askdocs.test.telemetry")

    with caplog.at_level(logging.INFO, logger="askdocs.test.telemetry"):
        try:
            raise KeyError("gone")
        except KeyError as error:
            log_event("lookup", logger=logger, error=error)

    record = caplog.records[0]
    assert record.levelno == logging.ERROR
    assert record.msg["error"] == "KeyError: 'gone'"
    assert "Traceback" in record.msg["traceback"]


def test_traced_duration_success_and_failure(caplog):
    logger = logging.getLogger("askdocs.test.telemetry")

    with caplog.at_level(logging.INFO, logger="askdocs.test.telemetry"):
        with traced_duration("work", logger=logger, file="a.txt"):
            pass
        try:
            with traced_duration("broken", logger=logger):
                raise ValueError("bad input")
        except ValueError:
            pass

    steps = [record.msg["step"] for record in caplog.records]
    assert steps == ["work.start", "work.complete", "broken.start", "broken.error"]
    assert caplog.records[1].msg["details"] == {"file": "a.txt"}
    assert "duration_ms" in caplog.records[1].msg
