"""
Trigger sources: new blocks (BlockWatcher) or a fixed interval (IntervalTrigger).

BlockWatcher polls the node's head and hands each new height to the
scheduler as a fire-and-forget task, so a slow evaluation never stalls
block detection. Repeated poll errors or a head that stops moving make it
rebuild the provider with exponential backoff. Only the transport is
rebuilt; scheduler mode and the position record are untouched.
"""

from __future__ import annotations

import asyncio
import json
import logging
import random
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Set, TYPE_CHECKING

if TYPE_CHECKING:
    from lpkeeper.ledger.gateway import LedgerGateway
    from lpkeeper.monitoring.metrics import KeeperMetrics

log = logging.getLogger("lpkeeper")

TriggerCallback = Callable[[Any], Awaitable[Any]]


@dataclass
class WatcherConfig:
    """Configuration for BlockWatcher."""
    poll_sec: float = 2.0
    stale_after_sec: float = 60.0
    reconnect_after_errors: int = 3
    backoff_initial_sec: float = 5.0
    backoff_max_sec: float = 60.0


class _Dispatcher:
    """Runs trigger callbacks as tasks and keeps references until they finish."""

    def __init__(self, on_trigger: TriggerCallback) -> None:
        self._on_trigger = on_trigger
        self._tasks: Set[asyncio.Task] = set()

    def dispatch(self, marker: Any) -> asyncio.Task:
        task = asyncio.create_task(self._on_trigger(marker))
        self._tasks.add(task)
        task.add_done_callback(self._done)
        return task

    def _done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            log.error(json.dumps({"event": "trigger_task_error", "err": str(task.exception())}))

    async def drain(self, timeout: float) -> bool:
        """Wait for in-flight callbacks. Returns False if any were still running at timeout."""
        if not self._tasks:
            return True
        _, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        return not pending


class BlockWatcher:
    def __init__(
        self,
        gateway: "LedgerGateway",
        on_block: TriggerCallback,
        config: Optional[WatcherConfig] = None,
        on_reconnect: Optional[Callable[[], Awaitable[None]]] = None,
        metrics: Optional["KeeperMetrics"] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.gateway = gateway
        self.config = config or WatcherConfig()
        self._dispatcher = _Dispatcher(on_block)
        self._on_reconnect = on_reconnect
        self.metrics = metrics
        self._sleep = sleep
        self._clock = clock
        self._stopped = False
        self.last_block: Optional[int] = None
        self._last_progress = clock()
        self.error_streak = 0
        self.reconnects = 0

    def stop(self) -> None:
        self._stopped = True

    async def drain(self, timeout: float) -> bool:
        return await self._dispatcher.drain(timeout)

    async def run(self) -> None:
        log.info(json.dumps({"event": "block_watcher_start", "poll_sec": self.config.poll_sec}))
        while not self._stopped:
            await self.poll_once()
            await self._sleep(self.config.poll_sec)

    async def poll_once(self) -> Optional[int]:
        """One head check. Returns the height dispatched, if any."""
        try:
            height = await self.gateway.block_number()
        except Exception as exc:
            self.error_streak += 1
            log.warning(json.dumps({
                "event": "block_poll_error", "streak": self.error_streak, "err": str(exc),
            }))
            if self.error_streak >= self.config.reconnect_after_errors:
                await self.reconnect(f"{self.error_streak} consecutive poll errors")
            return None

        self.error_streak = 0
        if self.last_block is None or height > self.last_block:
            self.last_block = height
            self._last_progress = self._clock()
            if self.metrics:
                self.metrics.last_block.set(height)
            self._dispatcher.dispatch(height)
            return height

        gap = self._clock() - self._last_progress
        if gap >= self.config.stale_after_sec:
            await self.reconnect(f"no new block for {gap:.0f}s")
        return None

    async def reconnect(self, reason: str) -> None:
        """Rebuild the provider until the new one answers, backing off between tries."""
        backoff = self.config.backoff_initial_sec
        attempt = 0
        while not self._stopped:
            attempt += 1
            try:
                self.gateway.ctx.reconnect()
                await self.gateway.block_number()
                break
            except Exception as exc:
                delay = backoff + random.uniform(0, backoff * 0.1)
                log.warning(json.dumps({
                    "event": "rpc_reconnect_failed", "attempt": attempt,
                    "reason": reason, "retry_in": round(delay, 2), "err": str(exc),
                }))
                await self._sleep(delay)
                backoff = min(self.config.backoff_max_sec, backoff * 2)
        else:
            return

        self.error_streak = 0
        self._last_progress = self._clock()
        self.reconnects += 1
        if self.metrics:
            self.metrics.reconnects.inc()
        log.warning(json.dumps({"event": "rpc_resubscribed", "reason": reason, "attempts": attempt}))
        if self._on_reconnect:
            await self._on_reconnect()


class IntervalTrigger:
    """Fires every interval_sec with an increasing counter as the marker."""

    def __init__(
        self,
        on_tick: TriggerCallback,
        interval_sec: float = 300.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.interval_sec = interval_sec
        self._dispatcher = _Dispatcher(on_tick)
        self._sleep = sleep
        self._stopped = False
        self.ticks = 0

    def stop(self) -> None:
        self._stopped = True

    async def drain(self, timeout: float) -> bool:
        return await self._dispatcher.drain(timeout)

    async def run(self) -> None:
        log.info(json.dumps({"event": "interval_trigger_start", "interval_sec": self.interval_sec}))
        while not self._stopped:
            self.ticks += 1
            self._dispatcher.dispatch(self.ticks)
            await self._sleep(self.interval_sec)
