"""
Run blocking web3 calls on a shared thread pool.

web3.py's HTTPProvider is synchronous; every contract read and transaction
send goes through AsyncLedger.call so the event loop stays responsive.
"""

from __future__ import annotations

import asyncio
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Optional


class AsyncLedger:
    def __init__(self, timeout: float = 15.0, max_workers: int = 4) -> None:
        self._timeout = timeout
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="lp-rpc")

    async def call(self, fn: Callable[[], Any], timeout: Optional[float] = None) -> Any:
        """Run fn in the pool, bounded by the read timeout."""
        loop = asyncio.get_running_loop()
        return await asyncio.wait_for(
            loop.run_in_executor(self._executor, fn),
            timeout=timeout if timeout is not None else self._timeout,
        )

    async def submit(self, fn: Callable[[], Any]) -> Any:
        """Run fn in the pool without a timeout (settlement waits are bounded by the caller)."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, fn)

    async def close(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
