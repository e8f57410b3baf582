"""
Orchestration package: the single-flight position scheduler and its mode machine.
"""

from lpkeeper.orchestrator.scheduler import (
    EvaluationResult,
    InvalidTransition,
    PositionScheduler,
    SchedulerConfig,
    SystemMode,
    TriggerOutcome,
    VALID_TRANSITIONS,
)

__all__ = [
    "EvaluationResult",
    "InvalidTransition",
    "PositionScheduler",
    "SchedulerConfig",
    "SystemMode",
    "TriggerOutcome",
    "VALID_TRANSITIONS",
]
