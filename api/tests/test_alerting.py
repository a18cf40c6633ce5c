"""Tests for webhook alert delivery."""

import json
from datetime import datetime, timezone

import httpx
import pytest
from lingua_kb.services.alerting.webhook_alert_service import (
    Alert,
    WebhookAlertService,
    format_alert_message,
)


def make_alert() -> Alert:
    return Alert(
        summary="Failed to upsert entry t1 in fr",
        context={"entry_id": "t1", "language": "fr"},
        created_at=datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc),
    )


class TestFormatAlertMessage:
    def test_markdown_layout(self):
        message = format_alert_message(make_alert())

        assert message.split("\n") == [
            "**[ERROR]** Failed to upsert entry t1 in fr",
            "```",
            "entry_id: t1",
            "language: fr",
            "```",
            "_2024-05-01 12:30:00 UTC_",
        ]


class TestWebhookAlertService:
    @pytest.mark.asyncio
    async def test_unconfigured_service_skips(self):
        service = WebhookAlertService("")

        assert not service.is_configured()
        assert await service.send_alert(make_alert()) is False

    @pytest.mark.asyncio
    async def test_posts_content_payload(self):
        received = []

        def handler(request: httpx.Request) -> httpx.Response:
            received.append(json.loads(request.content))
            return httpx.Response(204)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            service = WebhookAlertService("https://hooks.example.com/x", http_client=client)

            assert await service.send_alert(make_alert()) is True

        assert received[0]["content"].startswith("**[ERROR]**")

    @pytest.mark.asyncio
    async def test_delivery_failure_returns_false(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            service = WebhookAlertService("https://hooks.example.com/x", http_client=client)

            assert await service.send_alert(make_alert()) is False
