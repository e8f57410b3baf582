"""
Component wiring and lifecycle for one managed account.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Optional, Union

from lpkeeper.config.config import Settings
from lpkeeper.engine.rebalance import RebalanceConfig, RebalanceEngine
from lpkeeper.engine.reconciler import Reconciler
from lpkeeper.errors import ConfigError
from lpkeeper.infra.async_ledger import AsyncLedger
from lpkeeper.ledger.approvals import approve_all
from lpkeeper.ledger.context import LedgerContext
from lpkeeper.ledger.gateway import GatewayConfig, LedgerGateway
from lpkeeper.monitoring.alerting import AlertConfig, AlertManager, AlertSeverity
from lpkeeper.monitoring.metrics import KeeperMetrics
from lpkeeper.orchestrator.scheduler import PositionScheduler, SchedulerConfig
from lpkeeper.risk.hedge import AaveHealthGuard, HedgeCollaborator, NullHedge
from lpkeeper.risk.safe_mode import SafeModeBreaker, SafeModeConfig
from lpkeeper.state.state_atomic import AtomicStateStore
from lpkeeper.transport.block_watcher import BlockWatcher, IntervalTrigger, WatcherConfig

log = logging.getLogger("lpkeeper")


@dataclass
class Keeper:
    cfg: Settings
    ctx: LedgerContext
    executor: AsyncLedger
    gateway: LedgerGateway
    state_store: AtomicStateStore
    alerts: AlertManager
    metrics: KeeperMetrics
    scheduler: PositionScheduler
    trigger: Union[BlockWatcher, IntervalTrigger]

    async def initialize(self) -> None:
        """Preflight: chain id, approvals, startup orphan scan."""
        net = self.cfg.network
        chain_id = await self.gateway.chain_id()
        if chain_id != net.chain_id:
            raise ConfigError(f"node chain id {chain_id} != {net.name} ({net.chain_id})")

        await approve_all(self.gateway)

        record = await self.state_store.load()
        if not record.has_position:
            await self.scheduler.reconciler.recover()
            record = await self.state_store.load()

        log.info(json.dumps({
            "event": "startup",
            "network": net.name,
            "account": self.ctx.address,
            "position_id": record.position_id,
            "trigger_mode": self.cfg.trigger_mode,
        }))
        await self.alerts.notify(
            "Keeper started",
            f"{net.name} account {self.ctx.address}, tracking {record.position_id}",
            severity=AlertSeverity.INFO,
            kind="STARTUP",
        )

    async def run(self) -> None:
        await self.trigger.run()

    async def shutdown(self, reason: str = "normal") -> None:
        self.trigger.stop()
        drained = await self.trigger.drain(self.cfg.shutdown_grace_sec)
        if not drained:
            log.warning(json.dumps({"event": "shutdown_evaluation_abandoned", "grace_sec": self.cfg.shutdown_grace_sec}))
        await self.alerts.notify(
            "Keeper stopped", f"Shutdown: {reason}",
            severity=AlertSeverity.INFO if reason == "normal" else AlertSeverity.WARNING,
            kind="SHUTDOWN",
        )
        await self.alerts.close()
        await self.executor.close(wait=drained)
        log.info(json.dumps({"event": "shutdown_complete", "mode": self.scheduler.mode.name}))


def build_hedge(cfg: Settings, gateway: LedgerGateway) -> HedgeCollaborator:
    if cfg.hedge_mode == "aave":
        return AaveHealthGuard(gateway, min_health_factor=cfg.min_health_factor)
    return NullHedge()


def build_keeper(
    cfg: Settings,
    ctx: Optional[LedgerContext] = None,
    metrics: Optional[KeeperMetrics] = None,
) -> Keeper:
    if ctx is None:
        ctx = LedgerContext(
            cfg.network,
            cfg.rpc_url,
            cfg.resolve_signer(),
            fallback_url=cfg.rpc_fallback_url,
            request_timeout=cfg.rpc_timeout_sec,
        )
    metrics = metrics or KeeperMetrics()
    executor = AsyncLedger(timeout=cfg.rpc_timeout_sec)
    gateway = LedgerGateway(ctx, executor, GatewayConfig(
        max_retries=cfg.max_retries,
        retry_base_sec=cfg.retry_base_sec,
        tx_timeout_sec=cfg.tx_timeout_sec,
        tx_deadline_sec=cfg.tx_deadline_sec,
    ))
    state_store = AtomicStateStore(ctx.address, cfg.state_dir)
    alerts = AlertManager(AlertConfig(
        webhook_url=cfg.alert_webhook_url,
        webhook_type=cfg.alert_webhook_type,
        enabled=cfg.alert_enabled,
    ))
    hedge = build_hedge(cfg, gateway)
    breaker = SafeModeBreaker(hedge, SafeModeConfig(log_every=cfg.safe_mode_log_every))
    reconciler = Reconciler(gateway, state_store, alerts=alerts)
    engine = RebalanceEngine(gateway, state_store, RebalanceConfig(
        range_width_ticks=cfg.range_width_ticks,
        slippage_bps=cfg.slippage_bps,
        min_rebalance_usd=cfg.min_rebalance_usd,
        exit_mode=cfg.exit_mode,
    ), metrics=metrics)
    scheduler = PositionScheduler(
        gateway, state_store, reconciler, engine, breaker, hedge,
        alerts=alerts, metrics=metrics,
        config=SchedulerConfig(hedge_interval_sec=cfg.hedge_interval_sec),
    )

    trigger: Union[BlockWatcher, IntervalTrigger]
    if cfg.trigger_mode == "block":
        trigger = BlockWatcher(
            gateway, scheduler.on_trigger,
            WatcherConfig(
                poll_sec=cfg.block_poll_sec,
                stale_after_sec=cfg.stale_after_sec,
                reconnect_after_errors=cfg.reconnect_after_errors,
            ),
            metrics=metrics,
        )
    else:
        trigger = IntervalTrigger(scheduler.on_trigger, interval_sec=cfg.interval_sec)

    return Keeper(
        cfg=cfg,
        ctx=ctx,
        executor=executor,
        gateway=gateway,
        state_store=state_store,
        alerts=alerts,
        metrics=metrics,
        scheduler=scheduler,
        trigger=trigger,
    )
