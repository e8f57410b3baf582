"""
PositionScheduler: the per-trigger decision path.

One evaluation per trigger, never two at once. A trigger that arrives while
an evaluation is running is dropped, not queued.

Decision path:
    SAFE_MODE            -> suppressed, nothing read or written
    record == none       -> reconcile; if still none, open a position
    tracked position     -> health check (may enter SAFE_MODE)
                            read pool + position concurrently
                            unknown id       -> reset record, reconcile
                            zero liquidity   -> alert, rebalance
                            out of range     -> rebalance
                            in range         -> hedge adjust (interval gated)

Mode is owned here and changes only through _transition().
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Callable, Dict, List, Optional, TYPE_CHECKING

from lpkeeper.errors import ProtocolInvariantViolation, RiskPanic
from lpkeeper.eval_context import EvaluationContext
from lpkeeper.monitoring.alerting import AlertSeverity
from lpkeeper.risk.hedge import lp_volatile_exposure
from lpkeeper.state.state import NO_POSITION

if TYPE_CHECKING:
    from lpkeeper.engine.rebalance import RebalanceEngine
    from lpkeeper.engine.reconciler import Reconciler
    from lpkeeper.ledger.gateway import LedgerGateway
    from lpkeeper.monitoring.alerting import AlertManager
    from lpkeeper.monitoring.metrics import KeeperMetrics
    from lpkeeper.risk.hedge import HedgeCollaborator
    from lpkeeper.risk.safe_mode import SafeModeBreaker
    from lpkeeper.state.state_atomic import AtomicStateStore

log = logging.getLogger("lpkeeper")


class SystemMode(Enum):
    SCANNING = auto()   # no tracked position
    ACTIVE = auto()     # tracking a position
    SAFE_MODE = auto()  # terminal: no reads, no writes


VALID_TRANSITIONS: Dict[SystemMode, List[SystemMode]] = {
    SystemMode.SCANNING: [
        SystemMode.ACTIVE,     # minted or recovered
    ],
    SystemMode.ACTIVE: [
        SystemMode.SCANNING,   # exit settled but no new id, or record reset
        SystemMode.SAFE_MODE,  # health check failed
    ],
    SystemMode.SAFE_MODE: [],
}


class InvalidTransition(RuntimeError):
    pass


class TriggerOutcome(Enum):
    SUPPRESSED = auto()
    DROPPED = auto()
    COMPLETED = auto()
    FAILED = auto()


@dataclass
class EvaluationResult:
    """Result of one trigger."""
    outcome: TriggerOutcome
    mode: SystemMode
    marker: Any = None
    action: Optional[str] = None
    position_id: Optional[str] = None
    error: Optional[str] = None
    duration_ms: float = 0.0


@dataclass
class SchedulerConfig:
    """Configuration for PositionScheduler."""
    hedge_interval_sec: float = 60.0
    log_event_callback: Optional[Callable[..., None]] = None


class PositionScheduler:
    def __init__(
        self,
        gateway: "LedgerGateway",
        state_store: "AtomicStateStore",
        reconciler: "Reconciler",
        engine: "RebalanceEngine",
        breaker: "SafeModeBreaker",
        hedge: "HedgeCollaborator",
        alerts: Optional["AlertManager"] = None,
        metrics: Optional["KeeperMetrics"] = None,
        config: Optional[SchedulerConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.gateway = gateway
        self.state_store = state_store
        self.reconciler = reconciler
        self.engine = engine
        self.breaker = breaker
        self.hedge = hedge
        self.alerts = alerts
        self.metrics = metrics
        self.config = config or SchedulerConfig()
        self._clock = clock
        self._log_event = self.config.log_event_callback or self._default_log

        self._mode = SystemMode.SCANNING
        self._processing = False
        self._last_hedge_at: Optional[float] = None
        self.evaluations = 0

    def _default_log(self, event: str, level: int = logging.INFO, **kwargs: Any) -> None:
        log.log(level, json.dumps({"event": event, **kwargs}, default=str))

    @property
    def mode(self) -> SystemMode:
        return self._mode

    @property
    def is_busy(self) -> bool:
        return self._processing

    def _transition(self, new_mode: SystemMode, reason: str) -> None:
        if new_mode == self._mode:
            return
        if new_mode not in VALID_TRANSITIONS[self._mode]:
            raise InvalidTransition(f"{self._mode.name} -> {new_mode.name} ({reason})")
        old = self._mode
        self._mode = new_mode
        self._log_event("mode_transition", level=logging.WARNING if new_mode is SystemMode.SAFE_MODE else logging.INFO,
                        old=old.name, new=new_mode.name, reason=reason)
        if self.metrics:
            self.metrics.set_mode(new_mode.name)

    async def _alert(self, subject: str, body: str, severity: AlertSeverity, kind: str, **details: Any) -> None:
        if self.alerts:
            await self.alerts.notify(subject, body, severity=severity, kind=kind, details=details)

    async def on_trigger(self, marker: Any) -> EvaluationResult:
        if self._mode is SystemMode.SAFE_MODE:
            self.breaker.note_suppressed(marker)
            if self.metrics:
                self.metrics.triggers.labels(outcome="suppressed").inc()
            return EvaluationResult(TriggerOutcome.SUPPRESSED, self._mode, marker=marker)

        if self._processing:
            self._log_event("trigger_dropped", level=logging.DEBUG, marker=marker)
            if self.metrics:
                self.metrics.triggers.labels(outcome="dropped").inc()
            return EvaluationResult(TriggerOutcome.DROPPED, self._mode, marker=marker)

        # No await between the check above and this assignment
        self._processing = True
        trace = EvaluationContext(marker=marker)
        start = time.perf_counter()
        try:
            action, position_id = await self._evaluate(trace)
            result = EvaluationResult(
                TriggerOutcome.COMPLETED, self._mode, marker=marker, action=action, position_id=position_id,
            )
        except RiskPanic as exc:
            self._transition(SystemMode.SAFE_MODE, str(exc))
            await self._alert(
                "Safe mode entered", f"Automation stopped: {exc}. Manual intervention required.",
                AlertSeverity.CRITICAL, "SAFE_MODE", marker=marker,
            )
            result = EvaluationResult(TriggerOutcome.COMPLETED, self._mode, marker=marker, action="safe_mode")
        except ProtocolInvariantViolation as exc:
            trace.error("protocol_invariant_violation", err=str(exc))
            await self._alert(
                "Protocol invariant violated", f"{exc}. Capital may be unmanaged; check the account.",
                AlertSeverity.CRITICAL, "PROTOCOL_INVARIANT", marker=marker,
            )
            result = self._failed(marker, exc)
        except Exception as exc:
            trace.error("evaluation_failed", err=str(exc), err_type=type(exc).__name__)
            result = self._failed(marker, exc)
        finally:
            self._processing = False
            self.evaluations += 1

        result.duration_ms = (time.perf_counter() - start) * 1000.0
        if self.metrics:
            self.metrics.triggers.labels(outcome=result.outcome.name.lower()).inc()
            self.metrics.evaluation_ms.observe(result.duration_ms)
        return result

    def _failed(self, marker: Any, exc: BaseException) -> EvaluationResult:
        if self.metrics:
            self.metrics.errors.labels(error=type(exc).__name__).inc()
        return EvaluationResult(TriggerOutcome.FAILED, self._mode, marker=marker, error=str(exc))

    async def _evaluate(self, trace: EvaluationContext):
        record = await self.state_store.load()
        position_id = record.position_id

        if not record.has_position:
            self._transition(SystemMode.SCANNING, "no tracked position")
            recovered = await self.reconciler.recover()
            if not recovered.recovered:
                trace.info("opening_position")
                result = await self._run_engine(NO_POSITION, trace)
                # A fresh position has no hedge yet; the next trigger sizes it.
                self._last_hedge_at = None
                return "opened", result.new_position_id
            position_id = recovered.recovered_id

        self._transition(SystemMode.ACTIVE, f"tracking {position_id}")
        if self.metrics:
            self.metrics.set_position(position_id)

        await self.breaker.check(position_id)

        pool, position = await asyncio.gather(
            self.gateway.pool_snapshot(),
            self.gateway.position(position_id),
        )

        if position.is_uninitialized:
            trace.warning("position_unknown", position_id=position_id)
            await self.state_store.save(NO_POSITION)
            self._transition(SystemMode.SCANNING, f"position {position_id} not found on ledger")
            recovered = await self.reconciler.recover()
            if recovered.recovered:
                self._transition(SystemMode.ACTIVE, f"tracking {recovered.recovered_id}")
            return "reset", recovered.recovered_id

        if position.is_empty:
            trace.warning("position_closed", position_id=position_id)
            await self._alert(
                "Position closed", f"Position {position_id} has zero liquidity; re-opening.",
                AlertSeverity.CRITICAL, "POSITION_CLOSED", position_id=position_id,
            )
            result = await self._run_engine(position_id, trace)
            return "rebalanced", result.new_position_id

        if not position.contains(pool.tick):
            trace.info(
                "out_of_range", tick=pool.tick,
                tick_lower=position.tick_lower, tick_upper=position.tick_upper,
            )
            result = await self._run_engine(position_id, trace)
            return "rebalanced", result.new_position_id

        now = self._clock()
        if self._last_hedge_at is not None and now - self._last_hedge_at < self.config.hedge_interval_sec:
            trace.debug("in_range", tick=pool.tick)
            return "in_range", position_id

        net = self.gateway.ctx.network
        exposure = lp_volatile_exposure(
            position, pool, self.gateway.ctx.volatile_is_token0, net.volatile.decimals,
        )
        await self.hedge.adjust_hedge(exposure, position_id)
        self._last_hedge_at = now
        trace.info("hedge_adjusted", position_id=position_id, exposure=exposure)
        return "hedged", position_id

    async def _run_engine(self, old_position_id: str, trace: EvaluationContext):
        try:
            result = await self.engine.execute(old_position_id, trace)
        except Exception:
            record = await self.state_store.load()
            if not record.has_position:
                self._transition(SystemMode.SCANNING, "rebalance produced no position")
            raise
        self._transition(SystemMode.ACTIVE, f"tracking {result.new_position_id}")
        self._last_hedge_at = self._clock()
        if self.metrics:
            self.metrics.set_position(result.new_position_id)
        await self._alert(
            "Rebalanced", f"{old_position_id} -> {result.new_position_id} "
            f"[{result.tick_lower}, {result.tick_upper}]",
            AlertSeverity.INFO, "REBALANCED",
            swapped=result.swapped,
        )
        return result
