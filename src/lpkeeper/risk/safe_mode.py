"""
SafeModeBreaker: terminal, fail-closed breaker driven by the hedge health check.

Unlike an error-rate breaker there is no cooldown and no reset. Once tripped
it stays tripped for the life of the process; clearing it takes an operator
restart.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, TYPE_CHECKING

from lpkeeper.errors import RiskPanic

if TYPE_CHECKING:
    from lpkeeper.risk.hedge import HedgeCollaborator

log = logging.getLogger("lpkeeper")


@dataclass
class SafeModeConfig:
    """Configuration for SafeModeBreaker."""
    log_every: int = 100  # suppressed triggers between log lines


class SafeModeBreaker:
    def __init__(
        self,
        hedge: "HedgeCollaborator",
        config: Optional[SafeModeConfig] = None,
        on_trip: Optional[Callable[[str], Awaitable[None]]] = None,
        log_event: Optional[Callable[..., None]] = None,
    ) -> None:
        self.hedge = hedge
        self.config = config or SafeModeConfig()
        self._on_trip = on_trip
        self._log_event = log_event or self._default_log
        self._tripped = False
        self._tripped_at: Optional[float] = None
        self._reason: Optional[str] = None
        self._suppressed = 0

    def _default_log(self, event: str, level: int = logging.INFO, **kwargs: Any) -> None:
        log.log(level, json.dumps({"event": event, **kwargs}, default=str))

    @property
    def is_tripped(self) -> bool:
        return self._tripped

    async def check(self, position_id: str) -> None:
        """
        Ask the hedge collaborator for a verdict.

        Raises RiskPanic (after tripping) on an unhealthy verdict. Errors from
        the collaborator itself propagate unchanged and are not a verdict.
        """
        healthy = await self.hedge.check_health_and_panic(position_id)
        if not healthy:
            await self.trip(f"health check failed for position {position_id}")
            raise RiskPanic(self._reason)

    async def trip(self, reason: str) -> None:
        if self._tripped:
            return
        self._tripped = True
        self._tripped_at = time.time()
        self._reason = reason
        self._log_event("safe_mode_entered", level=logging.CRITICAL, reason=reason)
        if self._on_trip:
            await self._on_trip(reason)

    def note_suppressed(self, marker: Any) -> None:
        """Count a trigger skipped because of safe mode; log every log_every-th one."""
        self._suppressed += 1
        if self._suppressed % self.config.log_every == 1 or self.config.log_every == 1:
            self._log_event(
                "safe_mode_suppressed", level=logging.WARNING,
                marker=marker, suppressed=self._suppressed, reason=self._reason,
            )

    def get_state(self) -> dict:
        return {
            "tripped": self._tripped,
            "tripped_at": self._tripped_at,
            "reason": self._reason,
            "suppressed": self._suppressed,
        }
