"""
Trigger transport: block polling with reconnects, or a fixed interval.
"""

from lpkeeper.transport.block_watcher import BlockWatcher, IntervalTrigger, WatcherConfig

__all__ = [
    "BlockWatcher",
    "IntervalTrigger",
    "WatcherConfig",
]
