"""Tests for approval event sinks (webhook signing, buffering, sink selection)."""

import json

import httpx
import pytest

from hrflow.core.config import Settings
from hrflow.domain.entities import ApprovalEvent
from hrflow.domain.enums import ApprovalEventType
from hrflow.infrastructure.services.event_sinks import (
    SIGNATURE_HEADER,
    BufferedApprovalEventSink,
    LogOnlyApprovalEventSink,
    WebhookApprovalEventSink,
    build_event_sink,
    sign_body,
)
from tests.fakes import T0, RecordingEventSink


def _event(instance_id: str = "i1", event_type=ApprovalEventType.STEP_ACTIVATED) -> ApprovalEvent:
    return ApprovalEvent(
        event_type=event_type,
        tenant_id="acme",
        instance_id=instance_id,
        document_type="leave_request",
        document_id="doc-1",
        at=T0,
        step_index=0,
        recipients=("lead",),
    )


def _settings(**overrides) -> Settings:
    return Settings(_env_file=None, **overrides)


async def test_webhook_posts_signed_json() -> None:
    captured: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(204)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        sink = WebhookApprovalEventSink(client, "https://hooks.example.com/approvals", "s3cret")
        await sink.publish(_event())

    assert len(captured) == 1
    request = captured[0]
    body = request.content
    assert json.loads(body)["event_type"] == "step_activated"
    assert request.headers[SIGNATURE_HEADER] == sign_body("s3cret", body)
    assert request.headers[SIGNATURE_HEADER].startswith("sha256=")


async def test_webhook_without_secret_sends_no_signature() -> None:
    captured: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(200)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        await WebhookApprovalEventSink(client, "https://hooks.example.com/a").publish(_event())

    assert SIGNATURE_HEADER not in captured[0].headers


async def test_webhook_raises_on_server_error() -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(500))
    async with httpx.AsyncClient(transport=transport) as client:
        sink = WebhookApprovalEventSink(client, "https://hooks.example.com/a")
        with pytest.raises(httpx.HTTPStatusError):
            await sink.publish(_event())


async def test_buffer_drains_in_order_and_empties() -> None:
    buffer = BufferedApprovalEventSink()
    await buffer.publish(_event("i1"))
    await buffer.publish(_event("i2", ApprovalEventType.INSTANCE_APPROVED))
    target = RecordingEventSink()

    delivered = await buffer.drain(target)

    assert delivered == 2
    assert [e.instance_id for e in target.events] == ["i1", "i2"]
    assert buffer.events == []
    assert await buffer.drain(target) == 0


async def test_buffer_counts_failed_deliveries() -> None:
    buffer = BufferedApprovalEventSink()
    await buffer.publish(_event("i1"))
    await buffer.publish(_event("i2"))

    delivered = await buffer.drain(RecordingEventSink(fail=True))

    assert delivered == 0
    assert buffer.events == []


def test_build_event_sink_defaults_to_log_only() -> None:
    assert isinstance(build_event_sink(_settings(), None), LogOnlyApprovalEventSink)


async def test_build_event_sink_uses_webhook_when_configured() -> None:
    settings = _settings(
        approval_webhook_url="https://hooks.example.com/a", approval_webhook_secret="k"
    )
    async with httpx.AsyncClient() as client:
        sink = build_event_sink(settings, client)
    assert isinstance(sink, WebhookApprovalEventSink)
    assert sink.secret == "k"
    # without a client there is nothing to post with
    assert isinstance(build_event_sink(settings, None), LogOnlyApprovalEventSink)
