"""
Error taxonomy for the position keeper.

Every failure that crosses a component boundary is one of these. The
scheduler catches them per evaluation; only RiskPanic changes the mode.
"""

from __future__ import annotations

from typing import Optional, Sequence


class LpKeeperError(Exception):
    """Base class for all keeper errors."""


class ConfigError(LpKeeperError, ValueError):
    """Invalid or missing configuration. Fatal at startup."""


class TransientLedgerError(LpKeeperError):
    """RPC or network failure. Safe to retry for reads."""


class TxTimeout(LpKeeperError):
    """
    Settlement was not observed within the limit.

    The outcome is unknown: the transaction may still be mined later.
    Never treat this as a revert.
    """

    def __init__(self, label: str, timeout_sec: float, tx_hash: Optional[str] = None) -> None:
        self.label = label
        self.timeout_sec = timeout_sec
        self.tx_hash = tx_hash
        suffix = f" tx={tx_hash}" if tx_hash else ""
        super().__init__(f"{label} not settled after {timeout_sec:.0f}s{suffix}")


class TxReverted(LpKeeperError):
    """Transaction was mined with status 0."""

    def __init__(self, label: str, tx_hash: str) -> None:
        self.label = label
        self.tx_hash = tx_hash
        super().__init__(f"{label} reverted: {tx_hash}")


class ExitIncomplete(LpKeeperError):
    """A sequential exit stopped partway. Completed steps are not rolled back."""

    def __init__(self, position_id: str, completed: Sequence[str], cause: BaseException) -> None:
        self.position_id = position_id
        self.completed = list(completed)
        self.cause = cause
        super().__init__(
            f"exit of {position_id} stopped after {self.completed or 'no steps'}: {cause}"
        )


class ProtocolInvariantViolation(LpKeeperError):
    """
    The ledger accepted a write but its result is not what we can account for.

    Capital may be unmanaged. Requires an operator; never retried.
    """


class RiskPanic(LpKeeperError):
    """The hedge collaborator reported an unhealthy account."""
