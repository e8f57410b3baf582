"""
Bounded retry and settlement timeouts for ledger calls.

with_retry is for reads and for writes that provably were not submitted.
with_timeout only stops *waiting*: the awaited work keeps running, so a
TxTimeout means "outcome unknown", never "reverted".
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Tuple, Type, TypeVar

from lpkeeper.errors import TxTimeout
from lpkeeper.infra.logging_cfg import log_event

log = logging.getLogger("lpkeeper")

T = TypeVar("T")


async def with_retry(
    op: Callable[[], Awaitable[T]],
    retries: int = 3,
    base_delay: float = 1.0,
    label: str = "op",
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> T:
    """
    Call op() up to retries + 1 times.

    The wait before retry n (1-based) is base_delay * n. The last error is
    re-raised unchanged.
    """
    for attempt in range(retries + 1):
        try:
            return await op()
        except retry_on as exc:
            if attempt >= retries:
                raise
            delay = base_delay * (attempt + 1)
            log_event(
                log, "rpc_retry", level=logging.WARNING,
                label=label, attempt=attempt + 1, retries=retries,
                delay_sec=delay, err=str(exc),
            )
            await sleep(delay)
    raise AssertionError("unreachable")


async def with_timeout(
    pending: Awaitable[T],
    timeout_sec: float,
    label: str = "tx",
    tx_hash: Optional[str] = None,
) -> T:
    """
    Await pending for at most timeout_sec.

    On expiry raises TxTimeout and leaves the underlying task running.
    """
    task = asyncio.ensure_future(pending)
    done, _ = await asyncio.wait({task}, timeout=timeout_sec)
    if task in done:
        return task.result()
    log_event(
        log, "tx_timeout", level=logging.ERROR,
        label=label, timeout_sec=timeout_sec, tx_hash=tx_hash,
    )
    task.add_done_callback(lambda t: _log_late_outcome(t, label, tx_hash))
    raise TxTimeout(label, timeout_sec, tx_hash)


def _log_late_outcome(task: "asyncio.Future[Any]", label: str, tx_hash: Optional[str]) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    log_event(
        log, "tx_late_outcome", level=logging.WARNING,
        label=label, tx_hash=tx_hash, ok=exc is None,
        err=str(exc) if exc else None,
    )
