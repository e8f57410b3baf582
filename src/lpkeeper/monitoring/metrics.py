"""
Prometheus metrics for the keeper.
"""

from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, start_http_server

MODE_VALUES = {"SCANNING": 0, "ACTIVE": 1, "SAFE_MODE": 2}


class KeeperMetrics:
    """Evaluation, rebalance and transport metrics."""

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry or CollectorRegistry()
        reg = self.registry

        self.triggers = Counter(
            'lp_triggers_total',
            'Triggers received by outcome',
            labelnames=['outcome'],
            registry=reg
        )
        self.evaluation_ms = Histogram(
            'lp_evaluation_ms',
            'Full evaluation duration (milliseconds)',
            buckets=[50, 100, 250, 500, 1000, 5000, 30000, 120000],
            registry=reg
        )
        self.rebalances = Counter(
            'lp_rebalances_total',
            'Rebalance engine runs by result',
            labelnames=['result'],
            registry=reg
        )
        self.errors = Counter(
            'lp_evaluation_errors_total',
            'Evaluation failures by error type',
            labelnames=['error'],
            registry=reg
        )
        self.mode = Gauge(
            'lp_mode',
            'System mode (0=SCANNING 1=ACTIVE 2=SAFE_MODE)',
            registry=reg
        )
        self.tracked_position = Gauge(
            'lp_tracked_position_id',
            'Tracked position id (0 when none)',
            registry=reg
        )
        self.reconnects = Counter(
            'lp_rpc_reconnects_total',
            'Provider rebuilds by the block watcher',
            registry=reg
        )
        self.last_block = Gauge(
            'lp_last_block',
            'Latest block number seen',
            registry=reg
        )

    def set_mode(self, mode_name: str) -> None:
        self.mode.set(MODE_VALUES.get(mode_name, -1))

    def set_position(self, position_id: str) -> None:
        self.tracked_position.set(int(position_id) if position_id.isdigit() else 0)


def start_metrics_server(metrics: KeeperMetrics, port: int) -> bool:
    """Expose metrics over HTTP when port > 0."""
    if port <= 0:
        return False
    start_http_server(port, registry=metrics.registry)
    return True
