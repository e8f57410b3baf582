"""
Infrastructure package.

This package contains the executor bridge for blocking web3 calls,
retry/timeout helpers, and logging configuration.
"""

from lpkeeper.infra.async_ledger import AsyncLedger
from lpkeeper.infra.logging_cfg import build_logger, log_event
from lpkeeper.infra.retry import with_retry, with_timeout

__all__ = [
    "AsyncLedger",
    "build_logger",
    "log_event",
    "with_retry",
    "with_timeout",
]
