"""
Tests for EvaluationContext trace fields.
"""
import json
import logging

from lpkeeper.eval_context import EvaluationContext


def _payloads(caplog):
    return [json.loads(r.getMessage()) for r in caplog.records if r.name == "lpkeeper"]


def test_events_carry_marker_and_trace_id(caplog):
    trace = EvaluationContext(marker=812)
    with caplog.at_level(logging.DEBUG, logger="lpkeeper"):
        trace.info("rebalance_start", old_position_id="9")
        trace.debug("in_range", tick=5)

    first, second = _payloads(caplog)
    assert first["event"] == "rebalance_start"
    assert first["marker"] == 812
    assert first["trace_id"] == trace.trace_id == second["trace_id"]
    assert first["old_position_id"] == "9"
    assert "phase" not in first
    assert caplog.records[-1].levelno == logging.DEBUG


def test_child_names_phase_and_parent(caplog):
    trace = EvaluationContext(marker=812)
    swap = trace.child("swap")
    with caplog.at_level(logging.INFO, logger="lpkeeper"):
        swap.warning("swap_skipped", volatile=0)

    payload = _payloads(caplog)[-1]
    assert payload["phase"] == "swap"
    assert payload["parent_trace_id"] == trace.trace_id
    assert payload["trace_id"] == swap.trace_id != trace.trace_id
    assert payload["marker"] == 812
    assert payload["elapsed_ms"] >= 0
