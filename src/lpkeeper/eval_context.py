"""
Trace context for one trigger evaluation.

Every event logged through an EvaluationContext carries the trigger marker
and a trace id. Rebalance phases log through child contexts, which add the
phase name and the parent's trace id.
"""

from __future__ import annotations

import logging
import time
import uuid
from typing import Any, Optional

from lpkeeper.infra.logging_cfg import log_event

log = logging.getLogger("lpkeeper")


class EvaluationContext:
    def __init__(self, marker: Any, phase: Optional[str] = None, parent: Optional[str] = None) -> None:
        self.marker = marker
        self.phase = phase
        self.parent = parent
        self.trace_id = uuid.uuid4().hex[:16]
        self._started = time.monotonic()

    def _emit(self, level: int, event: str, data: dict) -> None:
        scope = {"trace_id": self.trace_id, "marker": self.marker}
        if self.phase:
            scope.update(phase=self.phase, parent_trace_id=self.parent)
        ms = round((time.monotonic() - self._started) * 1000.0, 1)
        log_event(log, event, level=level, **scope, elapsed_ms=ms, **data)

    def debug(self, event: str, **data: Any) -> None:
        self._emit(logging.DEBUG, event, data)

    def info(self, event: str, **data: Any) -> None:
        self._emit(logging.INFO, event, data)

    def warning(self, event: str, **data: Any) -> None:
        self._emit(logging.WARNING, event, data)

    def error(self, event: str, **data: Any) -> None:
        self._emit(logging.ERROR, event, data)

    def child(self, phase: str) -> "EvaluationContext":
        return EvaluationContext(self.marker, phase=phase, parent=self.trace_id)
