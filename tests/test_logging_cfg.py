"""
Tests for structured logging helpers.
"""
import json
import logging

from lpkeeper.infra.logging_cfg import JsonFormatter, ThrottledFilter, build_logger, log_event


def _record(msg, level=logging.WARNING):
    return logging.LogRecord("lpkeeper", level, __file__, 1, msg, None, None)


class TestThrottledFilter:
    def test_repeats_are_suppressed_per_label(self):
        f = ThrottledFilter(cooldown_sec=60.0)
        retry_a = json.dumps({"event": "rpc_retry", "label": "position"})
        retry_b = json.dumps({"event": "rpc_retry", "label": "balances"})
        assert f.filter(_record(retry_a)) is True
        assert f.filter(_record(retry_a)) is False
        assert f.filter(_record(retry_b)) is True

    def test_other_events_pass(self):
        f = ThrottledFilter(cooldown_sec=60.0)
        msg = json.dumps({"event": "rebalance_done"})
        assert f.filter(_record(msg)) is True
        assert f.filter(_record(msg)) is True

    def test_plain_text_passes(self):
        assert ThrottledFilter().filter(_record("not json")) is True


def test_json_formatter():
    out = json.loads(JsonFormatter().format(_record("hello")))
    assert out["level"] == "WARNING"
    assert out["msg"] == "hello"


def test_log_event_serializes_payload(caplog):
    logger = logging.getLogger("lpkeeper.test_events")
    with caplog.at_level(logging.INFO, logger="lpkeeper.test_events"):
        log_event(logger, "state_saved", position_id="5", extra=object())
    payload = json.loads(caplog.records[-1].getMessage())
    assert payload["event"] == "state_saved"
    assert payload["position_id"] == "5"


def test_build_logger_is_idempotent(tmp_path):
    path = tmp_path / "keeper.log"
    first = build_logger("lpkeeper.test_build", file_path=str(path), async_file=False)
    second = build_logger("lpkeeper.test_build", file_path=str(path), async_file=False)
    assert first is second
    assert len(first.handlers) == 2
    assert first.propagate is False
