"""
Monitoring package: webhook alerts and Prometheus metrics.
"""

from lpkeeper.monitoring.alerting import Alert, AlertConfig, AlertManager, AlertSeverity, AlertType
from lpkeeper.monitoring.metrics import KeeperMetrics, start_metrics_server

__all__ = [
    "Alert",
    "AlertConfig",
    "AlertManager",
    "AlertSeverity",
    "AlertType",
    "KeeperMetrics",
    "start_metrics_server",
]
