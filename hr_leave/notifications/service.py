"""Notification dispatch — fire-and-forget delivery of leave events.

The lifecycle owns the state transition; delivery happens afterwards and a
failing sink is logged, never raised, so it cannot undo a transition.
Request-scoped services are deferred: events queue in an outbox that the
router flushes once the transaction has committed.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Protocol

import httpx

from hr_leave.common.constants import NotificationEvent
from hr_leave.config import settings

logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    async def notify(self, event: NotificationEvent, payload: dict[str, Any]) -> None:
        ...


class LoggingSink:
    """Default sink when no webhook is configured."""

    async def notify(self, event: NotificationEvent, payload: dict[str, Any]) -> None:
        logger.info("Notification %s: %s", event.value, payload)


class WebhookSink:
    """POSTs ``{"event": ..., "payload": ...}`` to a configured URL."""

    def __init__(
        self,
        url: str,
        *,
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.url = url
        self.timeout = timeout
        self._transport = transport

    async def notify(self, event: NotificationEvent, payload: dict[str, Any]) -> None:
        async with httpx.AsyncClient(
            timeout=self.timeout, transport=self._transport,
        ) as client:
            resp = await client.post(
                self.url, json={"event": event.value, "payload": payload},
            )
            resp.raise_for_status()


class NotificationService:
    """Wraps a sink and guarantees delivery errors stay contained."""

    def __init__(
        self,
        sink: Optional[NotificationSink] = None,
        *,
        deferred: bool = False,
    ) -> None:
        self.sink = sink or LoggingSink()
        self.deferred = deferred
        self._outbox: list[tuple[NotificationEvent, dict[str, Any]]] = []

    @property
    def pending(self) -> int:
        return len(self._outbox)

    async def notify(self, event: NotificationEvent, payload: dict[str, Any]) -> bool:
        """Deliver *event*, or queue it when deferred. Returns False (and
        logs) when delivery failed."""
        if self.deferred:
            self._outbox.append((event, payload))
            return True
        return await self._deliver(event, payload)

    async def flush(self) -> int:
        """Deliver queued events in order; returns how many succeeded."""
        outbox, self._outbox = self._outbox, []
        delivered = 0
        for event, payload in outbox:
            if await self._deliver(event, payload):
                delivered += 1
        return delivered

    async def _deliver(self, event: NotificationEvent, payload: dict[str, Any]) -> bool:
        try:
            await self.sink.notify(event, payload)
        except Exception:
            logger.exception(
                "Notification %s failed for %s", event.value, payload.get("request_id"),
            )
            return False
        return True


def get_notification_service() -> NotificationService:
    """FastAPI dependency: a deferred service, sink chosen from settings."""
    if settings.NOTIFICATION_WEBHOOK_URL:
        return NotificationService(
            WebhookSink(
                settings.NOTIFICATION_WEBHOOK_URL,
                timeout=settings.NOTIFICATION_TIMEOUT,
            ),
            deferred=True,
        )
    return NotificationService(deferred=True)
