"""
Async wrapper around StateStore.

File IO runs in the default executor; an asyncio.Lock keeps a load from
interleaving with a save.
"""

from __future__ import annotations

import asyncio

from lpkeeper.state.state import PositionRecord, StateStore


class AtomicStateStore:
    def __init__(self, account: str, state_dir: str) -> None:
        self._store = StateStore(account, state_dir)
        self._lock = asyncio.Lock()

    @property
    def path(self):
        return self._store.path

    async def load(self) -> PositionRecord:
        async with self._lock:
            loop = asyncio.get_running_loop()
            return await loop.run_in_executor(None, self._store.load)

    async def save(self, position_id: str) -> PositionRecord:
        async with self._lock:
            loop = asyncio.get_running_loop()
            return await loop.run_in_executor(None, lambda: self._store.save(position_id))
