"""Webhook alert service for orchestration failures.

Reindex failures are reported here with the entry and language they concern.
Delivery is best effort: a failing webhook is logged and never raised back
into the indexing path.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

import httpx

logger = logging.getLogger(__name__)


@dataclass
class Alert:
    summary: str
    context: Dict[str, Any] = field(default_factory=dict)
    severity: str = "error"
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@runtime_checkable
class AlertSink(Protocol):
    async def send_alert(self, alert: Alert) -> bool:
        ...


def format_alert_message(alert: Alert) -> str:
    """Format an alert as Markdown with a fenced context block."""
    lines = [f"**[{alert.severity.upper()}]** {alert.summary}"]
    if alert.context:
        lines.append("```")
        for key, value in alert.context.items():
            lines.append(f"{key}: {value}")
        lines.append("```")
    lines.append(f"_{alert.created_at.strftime('%Y-%m-%d %H:%M:%S UTC')}_")
    return "\n".join(lines)


class WebhookAlertService:
    """Post alerts to a chat webhook (``{"content": ...}`` payloads)."""

    def __init__(
        self,
        webhook_url: str,
        timeout: float = 10.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.webhook_url = (webhook_url or "").strip()
        self.timeout = timeout
        self._http = http_client

    def is_configured(self) -> bool:
        return bool(self.webhook_url)

    async def send_alert(self, alert: Alert) -> bool:
        """Send an alert.

        Returns:
            True if the webhook accepted it, False otherwise
        """
        if not self.is_configured():
            logger.debug("Webhook alerting not configured, skipping alert")
            return False

        payload = {"content": format_alert_message(alert)}
        try:
            if self._http is not None:
                response = await self._http.post(self.webhook_url, json=payload, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(self.webhook_url, json=payload)
            response.raise_for_status()
            return True
        except httpx.HTTPError as e:
            logger.error(f"Failed to deliver alert '{alert.summary}': {e}")
            return False


class RecordingAlertSink:
    """In-memory sink; keeps every alert for inspection."""

    def __init__(self) -> None:
        self.alerts: List[Alert] = []

    async def send_alert(self, alert: Alert) -> bool:
        self.alerts.append(alert)
        logger.warning(f"Alert recorded: {alert.summary}")
        return True
