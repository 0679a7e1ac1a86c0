"""Approval event sinks: log-only (default), HTTP webhook and the per-request buffer."""

from __future__ import annotations

import hashlib
import hmac
import json
import logging

import httpx

from hrflow.application.interfaces.services import IApprovalEventSink
from hrflow.core.config import Settings
from hrflow.domain.entities import ApprovalEvent
from hrflow.shared.telemetry.logging import get_logger

logger = get_logger(__name__)

SIGNATURE_HEADER = "X-Signature-256"


class LogOnlyApprovalEventSink:
    """IApprovalEventSink that logs instead of notifying anyone.

    Use when no webhook is configured. Production can swap in a webhook or
    queue-based implementation.
    """

    async def publish(self, event: ApprovalEvent) -> None:
        logger.info(
            "Approval event %s: instance=%s step=%s recipients=%d reason=%s",
            event.event_type.value,
            event.instance_id,
            event.step_index,
            len(event.recipients),
            event.reason,
        )
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("Approval event recipients: %s", list(event.recipients))


def sign_body(secret: str, body: bytes) -> str:
    """Return 'sha256=<hex>' HMAC signature for body."""
    digest = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    return f"sha256={digest}"


class WebhookApprovalEventSink:
    """POST each event as JSON to a configured URL.

    Non-2xx responses raise httpx.HTTPStatusError; the engine logs sink
    failures without undoing the transition.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        url: str,
        secret: str | None = None,
    ) -> None:
        self.client = client
        self.url = url
        self.secret = secret

    async def publish(self, event: ApprovalEvent) -> None:
        body = json.dumps(event.to_dict(), separators=(",", ":"), sort_keys=True).encode()
        headers = {"Content-Type": "application/json"}
        if self.secret:
            headers[SIGNATURE_HEADER] = sign_body(self.secret, body)
        response = await self.client.post(self.url, content=body, headers=headers)
        response.raise_for_status()
        logger.debug(
            "Delivered %s for instance %s to webhook (%d)",
            event.event_type.value,
            event.instance_id,
            response.status_code,
        )


def build_event_sink(
    settings: Settings, client: httpx.AsyncClient | None
) -> IApprovalEventSink:
    """Webhook sink when APPROVAL_WEBHOOK_URL is set (and a client is given), else log-only."""
    if settings.approval_webhook_url and client is not None:
        secret = (
            settings.approval_webhook_secret.get_secret_value()
            if settings.approval_webhook_secret
            else None
        )
        return WebhookApprovalEventSink(client, settings.approval_webhook_url, secret)
    return LogOnlyApprovalEventSink()


class BufferedApprovalEventSink:
    """Collect events during a request; drain them once the transaction commits.

    Events from a rolled-back request are never drained.
    """

    def __init__(self) -> None:
        self.events: list[ApprovalEvent] = []

    async def publish(self, event: ApprovalEvent) -> None:
        self.events.append(event)

    async def drain(self, target: IApprovalEventSink) -> int:
        """Publish buffered events to target in order; return how many were delivered."""
        pending, self.events = self.events, []
        delivered = 0
        for event in pending:
            try:
                await target.publish(event)
            except Exception:
                logger.warning(
                    "Event sink failed for %s on instance %s",
                    event.event_type.value,
                    event.instance_id,
                    exc_info=True,
                )
                continue
            delivered += 1
        return delivered
