"""
Webhook alerting for operator-facing events.

- Generic JSON, Slack and Discord payloads
- Per-alert rate limiting so a failing trigger cannot flood the channel
- Alerts inside a short window are delivered as one batch
- Delivery is best effort: notify() never raises into the caller
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Dict, List, Optional, Tuple

import aiohttp

logger = logging.getLogger("lpkeeper")


class AlertSeverity(Enum):
    """Alert severity levels."""
    CRITICAL = auto()  # Immediate attention required
    WARNING = auto()   # Potential issue
    INFO = auto()      # Informational


class AlertType(Enum):
    SAFE_MODE = auto()
    POSITION_CLOSED = auto()
    PROTOCOL_INVARIANT = auto()
    ORPHAN_MULTIPLE = auto()
    REBALANCED = auto()
    REBALANCE_FAILED = auto()
    STARTUP = auto()
    SHUTDOWN = auto()
    CUSTOM = auto()


@dataclass
class Alert:
    """An alert to be sent."""
    alert_type: AlertType
    severity: AlertSeverity
    title: str
    message: str
    timestamp_ms: int = field(default_factory=lambda: int(time.time() * 1000))
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.alert_type.name,
            "severity": self.severity.name,
            "title": self.title,
            "message": self.message,
            "timestamp_ms": self.timestamp_ms,
            "timestamp_iso": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(self.timestamp_ms / 1000)),
            "details": self.details,
        }


@dataclass
class AlertConfig:
    """Configuration for alerting."""
    webhook_url: Optional[str] = None
    webhook_type: str = "generic"  # generic, slack, discord
    min_severity: AlertSeverity = AlertSeverity.INFO
    rate_limit_seconds: int = 60  # min seconds between identical alerts
    batch_window_ms: int = 2000
    enabled: bool = True
    include_details: bool = True
    bot_name: str = "lpkeeper"


_COLORS = {
    AlertSeverity.CRITICAL: 0xFF0000,
    AlertSeverity.WARNING: 0xFFA500,
    AlertSeverity.INFO: 0x0000FF,
}


class WebhookFormatter:
    """Formats alerts for different webhook types."""

    @staticmethod
    def format_generic(alert: Alert, config: AlertConfig) -> Dict[str, Any]:
        return alert.to_dict()

    @staticmethod
    def format_slack(alert: Alert, config: AlertConfig) -> Dict[str, Any]:
        fields = [{"title": "Type", "value": alert.alert_type.name, "short": True}]
        if config.include_details and alert.details:
            for key, value in list(alert.details.items())[:5]:
                fields.append({"title": key, "value": str(value), "short": True})
        return {
            "username": config.bot_name,
            "attachments": [{
                "color": "#%06X" % _COLORS.get(alert.severity, 0x808080),
                "title": alert.title,
                "text": alert.message,
                "fields": fields,
                "footer": f"{config.bot_name} | {alert.severity.name}",
                "ts": alert.timestamp_ms // 1000,
            }]
        }

    @staticmethod
    def format_discord(alert: Alert, config: AlertConfig) -> Dict[str, Any]:
        fields = [{"name": "Type", "value": alert.alert_type.name, "inline": True}]
        if config.include_details and alert.details:
            for key, value in list(alert.details.items())[:5]:
                fields.append({"name": key, "value": str(value), "inline": True})
        return {
            "username": config.bot_name,
            "embeds": [{
                "title": alert.title,
                "description": alert.message,
                "color": _COLORS.get(alert.severity, 0x808080),
                "fields": fields,
                "footer": {"text": f"{config.bot_name} | {alert.severity.name}"},
                "timestamp": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(alert.timestamp_ms / 1000)),
            }]
        }


class AlertManager:
    """
    Alert delivery with rate limiting and batching.

    Usage:
        alerts = AlertManager(AlertConfig(webhook_url=url, webhook_type="slack"))
        await alerts.notify("Safe mode", "health factor below 1.5", severity=AlertSeverity.CRITICAL)
        ...
        await alerts.close()
    """

    def __init__(self, config: Optional[AlertConfig] = None) -> None:
        self.config = config or AlertConfig()
        self._last_alert_times: Dict[Tuple[AlertType, str], int] = {}
        self._pending_alerts: List[Alert] = []
        self._batch_task: Optional[asyncio.Task] = None
        self._lock = asyncio.Lock()

    async def notify(
        self,
        subject: str,
        body: str,
        severity: AlertSeverity = AlertSeverity.WARNING,
        kind: str = "CUSTOM",
        details: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """Queue an alert. Returns False when skipped or on any delivery-side error."""
        try:
            alert_type = AlertType[kind] if kind in AlertType.__members__ else AlertType.CUSTOM
            return await self.send_alert(Alert(
                alert_type=alert_type,
                severity=severity,
                title=subject,
                message=body,
                details=details or {},
            ))
        except Exception as exc:
            logger.warning(f"Alert notify failed: {exc}")
            return False

    async def send_alert(self, alert: Alert) -> bool:
        """
        Queue an alert for delivery.

        Returns:
            True if queued, False if disabled, below severity or rate limited
        """
        if not self.config.enabled:
            return False
        if not self.config.webhook_url:
            logger.debug(f"Alert not sent (no webhook): {alert.title}")
            return False
        if alert.severity.value > self.config.min_severity.value:
            return False

        key = (alert.alert_type, alert.title)
        now_ms = int(time.time() * 1000)
        if now_ms - self._last_alert_times.get(key, 0) < self.config.rate_limit_seconds * 1000:
            logger.debug(f"Alert rate limited: {alert.alert_type.name}")
            return False

        async with self._lock:
            self._pending_alerts.append(alert)
            self._last_alert_times[key] = now_ms
            if self._batch_task is None or self._batch_task.done():
                self._batch_task = asyncio.create_task(self._batch_deliver())
        return True

    async def _batch_deliver(self) -> None:
        await asyncio.sleep(self.config.batch_window_ms / 1000)

        async with self._lock:
            alerts = self._pending_alerts.copy()
            self._pending_alerts.clear()

        if not alerts:
            return
        if len(alerts) == 1:
            await self._http_post(self._format_alert(alerts[0]))
        else:
            await self._deliver_batch(alerts)

    async def _deliver_batch(self, alerts: List[Alert]) -> bool:
        if self.config.webhook_type == "slack":
            payload = self._format_alert(alerts[0])
            for alert in alerts[1:]:
                payload["attachments"].extend(self._format_alert(alert)["attachments"])
        elif self.config.webhook_type == "discord":
            payload = self._format_alert(alerts[0])
            for alert in alerts[1:]:
                payload["embeds"].extend(self._format_alert(alert)["embeds"])
        else:
            payload = {"alerts": [alert.to_dict() for alert in alerts]}
        return await self._http_post(payload)

    def _format_alert(self, alert: Alert) -> Dict[str, Any]:
        formatters = {
            "generic": WebhookFormatter.format_generic,
            "slack": WebhookFormatter.format_slack,
            "discord": WebhookFormatter.format_discord,
        }
        formatter = formatters.get(self.config.webhook_type, WebhookFormatter.format_generic)
        return formatter(alert, self.config)

    async def _http_post(self, payload: Dict[str, Any], retries: int = 2) -> bool:
        if not self.config.webhook_url:
            return False

        async with aiohttp.ClientSession() as session:
            for attempt in range(retries + 1):
                try:
                    async with session.post(
                        self.config.webhook_url,
                        json=payload,
                        timeout=aiohttp.ClientTimeout(total=10),
                    ) as resp:
                        if resp.status < 300:
                            logger.debug("Alert delivered successfully")
                            return True
                        logger.warning(f"Alert delivery failed: HTTP {resp.status}")
                except asyncio.TimeoutError:
                    logger.warning(f"Alert delivery timeout (attempt {attempt + 1})")
                except aiohttp.ClientError as e:
                    logger.warning(f"Alert delivery error: {e}")

                if attempt < retries:
                    await asyncio.sleep(1 * (attempt + 1))
        return False

    async def close(self, timeout: float = 5.0) -> None:
        """Flush a pending batch, waiting at most timeout seconds."""
        task = self._batch_task
        if task and not task.done():
            try:
                await asyncio.wait_for(task, timeout=timeout)
            except asyncio.TimeoutError:
                logger.warning("Alert flush timed out at shutdown")
