"""
Reconciler: recover a ledger-owned position the local record does not know about.

A crash between "mint settled" and "state saved" leaves the account owning
a position token while the record says "none". This is the only repair
path: it reads the owner enumeration, adopts the newest token, and writes
the record before anything else is allowed to mutate.

Only one token is ever adopted. Extra tokens are reported, never touched.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, TYPE_CHECKING

from lpkeeper.state.state import NO_POSITION

if TYPE_CHECKING:
    from lpkeeper.ledger.gateway import LedgerGateway
    from lpkeeper.monitoring.alerting import AlertManager
    from lpkeeper.state.state_atomic import AtomicStateStore

log = logging.getLogger("lpkeeper")


@dataclass
class ReconcilerConfig:
    """Configuration for Reconciler."""
    alert_on_multiple: bool = True
    log_event_callback: Optional[Callable[..., None]] = None


@dataclass
class ReconcileResult:
    """Outcome of one ownership scan."""
    recovered_id: str = NO_POSITION
    owned_count: int = 0
    ignored_ids: List[str] = field(default_factory=list)

    @property
    def recovered(self) -> bool:
        return self.recovered_id != NO_POSITION


class Reconciler:
    def __init__(
        self,
        gateway: "LedgerGateway",
        state_store: "AtomicStateStore",
        alerts: Optional["AlertManager"] = None,
        config: Optional[ReconcilerConfig] = None,
    ) -> None:
        self.gateway = gateway
        self.state_store = state_store
        self.alerts = alerts
        self.config = config or ReconcilerConfig()
        self._log_event = self.config.log_event_callback or self._default_log

    def _default_log(self, event: str, level: int = logging.INFO, **kwargs: Any) -> None:
        log.log(level, json.dumps({"event": event, **kwargs}))

    async def find_owned_position(self) -> ReconcileResult:
        """Read-only scan. The newest token is the one at the last enumeration index."""
        count = await self.gateway.owned_position_count()
        if count <= 0:
            return ReconcileResult(owned_count=0)

        recovered_id = await self.gateway.owned_position_at(count - 1)
        ignored: List[str] = []
        for index in range(count - 1):
            ignored.append(await self.gateway.owned_position_at(index))
        return ReconcileResult(recovered_id=recovered_id, owned_count=count, ignored_ids=ignored)

    async def recover(self) -> ReconcileResult:
        """Scan and, when a token is found, persist it as the tracked position."""
        result = await self.find_owned_position()
        if not result.recovered:
            self._log_event("orphan_scan_clean", account=self.gateway.account)
            return result

        await self.state_store.save(result.recovered_id)
        self._log_event(
            "orphan_recovered",
            level=logging.WARNING,
            position_id=result.recovered_id,
            owned_count=result.owned_count,
        )

        if result.ignored_ids:
            self._log_event(
                "orphan_multiple_owned",
                level=logging.WARNING,
                adopted=result.recovered_id,
                ignored=result.ignored_ids,
            )
            if self.alerts and self.config.alert_on_multiple:
                await self.alerts.notify(
                    "Multiple positions owned",
                    f"Adopted {result.recovered_id}; left untouched: {', '.join(result.ignored_ids)}",
                    kind="ORPHAN_MULTIPLE",
                    details={"adopted": result.recovered_id, "ignored": result.ignored_ids},
                )
        return result
