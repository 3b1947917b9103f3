"""Notification webhook client with exponential backoff retry logic"""

import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from sports_lending.config import settings
from sports_lending.infrastructure.observability.metrics import webhook_latency_histogram, webhook_failure_counter

logger = logging.getLogger(__name__)


class NotificationClient:
    """Client forwarding student events to the notification service"""

    def __init__(
        self,
        webhook_url: str | None = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.webhook_url = webhook_url if webhook_url is not None else settings.notification_webhook_url
        self.max_retries = settings.webhook_max_retries
        self.backoff_base = settings.webhook_backoff_base
        self.timeout = settings.http_timeout_seconds
        self.transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self.webhook_url)

    async def send_event(self, payload: Dict[str, Any]) -> None:
        """
        Deliver one student event to the notification webhook.

        Retry strategy:
        - Exponential backoff: 1s, 2s, 4s, 8s, 16s (base^attempt)
        - Retries on 5xx errors and network failures; 4xx is not retried
        - Tracks latency histogram and failure counter

        Args:
            payload: Event data (see StudentEvent.to_payload)
        """
        if not self.enabled:
            return

        attempt = 0
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            while attempt < self.max_retries:
                try:
                    with webhook_latency_histogram.time():
                        response = await client.post(self.webhook_url, json=payload)
                        response.raise_for_status()
                        return  # Success

                except httpx.HTTPStatusError as e:
                    attempt += 1
                    webhook_failure_counter.inc()

                    if e.response.status_code < 500 or attempt >= self.max_retries:
                        logger.error(
                            f"Notification delivery failed: {e.response.status_code}",
                            extra={"event": payload.get("event"), "attempts": attempt},
                        )
                        raise

                except httpx.RequestError as e:
                    attempt += 1
                    webhook_failure_counter.inc()

                    if attempt >= self.max_retries:
                        logger.error(
                            f"Notification delivery failed: {e}",
                            extra={"event": payload.get("event"), "attempts": attempt},
                        )
                        raise

                # Exponential backoff: 1s, 2s, 4s, 8s, 16s
                backoff = self.backoff_base * (2 ** (attempt - 1))
                await asyncio.sleep(backoff)
