"""Chat Gateway – Gateway Tests.

Tests: Health endpoint, metrics, and the external message bridge wired into
the real application with live sessions.
"""

import json

import pytest
from httpx import AsyncClient

from app.gateway.dependencies import account_registry

PATH = "/api/telegram/external-messages"
AUTH = {"Authorization": "Bearer observer-secret"}


def _config(**telegram) -> dict:
    telegram.setdefault("external_messages", {"secret": "observer-secret", "history_limit": 5})
    return {"channels": {"telegram": telegram}, "agents": {"defaults": {"envelope_timezone": "utc"}}}


# ──────────────────────────────────────────
# Health / Metrics
# ──────────────────────────────────────────


class TestHealthEndpoint:

    @pytest.mark.anyio
    async def test_health_returns_200(self, client: AsyncClient) -> None:
        response = await client.get("/health")
        assert response.status_code == 200

    @pytest.mark.anyio
    async def test_health_contains_required_fields(self, client: AsyncClient) -> None:
        data = (await client.get("/health")).json()
        assert data["service"] == "chat-gateway"
        assert data["version"] == "1.0.0"
        assert "timestamp" in data
        assert data["status"] in ("ok", "degraded")

    @pytest.mark.anyio
    async def test_health_degraded_without_redis(self, client: AsyncClient, mock_redis_bus) -> None:
        mock_redis_bus.health_check.return_value = False
        data = (await client.get("/health")).json()
        assert data["status"] == "degraded"

    @pytest.mark.anyio
    async def test_health_lists_sessions(self, client: AsyncClient, gateway_sessions) -> None:
        await gateway_sessions.start_account("default", _config())
        data = (await client.get("/health")).json()
        assert data["sessions"] == ["default"]


class TestMetricsEndpoint:

    @pytest.mark.anyio
    async def test_metrics_exposes_bridge_counter(self, client: AsyncClient) -> None:
        await client.post(PATH, json={})
        response = await client.get("/metrics")
        assert response.status_code == 200
        assert "gateway_external_injections_total" in response.text
        assert "gateway_http_requests_total" in response.text


# ──────────────────────────────────────────
# External message bridge (end to end)
# ──────────────────────────────────────────


class TestExternalMessagesEndToEnd:

    PAYLOAD = {
        "chatId": -5001,
        "messageId": 42,
        "senderName": "Ana",
        "senderUsername": "ana_x",
        "senderId": 555,
        "text": "hi",
        "timestamp": 1700000000,
    }

    @pytest.mark.anyio
    async def test_injected_message_reaches_the_bus(self, client, gateway_sessions, mock_redis_bus) -> None:
        await gateway_sessions.start_account("default", _config())

        response = await client.post(PATH, json=self.PAYLOAD, headers=AUTH)

        assert response.status_code == 200
        body = response.json()
        assert body["ok"] is True
        assert body["messageId"] == 42
        assert body["chatId"] == -5001
        assert body["updateId"] < 0

        mock_redis_bus.publish.assert_awaited_once()
        channel, raw = mock_redis_bus.publish.call_args[0]
        assert channel == "gateway:inbound:default"
        published = json.loads(raw)
        assert published["synthetic"] is True
        assert published["content"] == "hi"
        assert published["user_id"] == "555"
        assert published["metadata"]["update_id"] == body["updateId"]
        assert published["metadata"]["envelope"].startswith("[Telegram Ana (@ana_x)")

    @pytest.mark.anyio
    async def test_native_and_injected_share_group_history(self, client, gateway_sessions, mock_redis_bus) -> None:
        await gateway_sessions.start_account("default", _config())
        native = {
            "update_id": 10,
            "message": {
                "message_id": 41,
                "from": {"id": 7, "is_bot": False, "first_name": "Bo"},
                "chat": {"id": -5001, "type": "supergroup", "title": "Lifters"},
                "date": 1699999990,
                "text": "yo",
            },
        }
        assert (await client.post("/webhook/telegram/default", json=native)).status_code == 200
        assert (await client.post(PATH, json=self.PAYLOAD, headers=AUTH)).status_code == 200

        raw = mock_redis_bus.publish.call_args[0][1]
        history = json.loads(raw)["metadata"]["group_history"]
        assert [entry["message_id"] for entry in history] == ["41"]

    @pytest.mark.anyio
    async def test_account_without_secret_is_unavailable(self, client, gateway_sessions) -> None:
        await gateway_sessions.start_account("default", {"channels": {"telegram": {}}})
        assert "default" not in account_registry

        response = await client.post(PATH, json=self.PAYLOAD, headers=AUTH)

        assert response.status_code == 503

    @pytest.mark.anyio
    async def test_stopped_session_is_unavailable(self, client, gateway_sessions, mock_redis_bus) -> None:
        await gateway_sessions.start_account("default", _config())
        await gateway_sessions.stop_account("default")

        response = await client.post(PATH, json=self.PAYLOAD, headers=AUTH)

        assert response.status_code == 503
        mock_redis_bus.publish.assert_not_awaited()

    @pytest.mark.anyio
    async def test_publish_failure_is_500(self, client, gateway_sessions, mock_redis_bus) -> None:
        await gateway_sessions.start_account("default", _config())
        mock_redis_bus.publish.side_effect = RuntimeError("Redis not connected. Call connect() first.")

        response = await client.post(PATH, json=self.PAYLOAD, headers=AUTH)

        assert response.status_code == 500
        assert response.json()["error"].startswith("Processing failed: Redis not connected")
        assert mock_redis_bus.publish.await_count == 1

    @pytest.mark.anyio
    async def test_unknown_channel_is_404(self, client) -> None:
        response = await client.post("/api/signal/external-messages", json=self.PAYLOAD, headers=AUTH)
        assert response.status_code == 404

    @pytest.mark.anyio
    async def test_get_is_405(self, client) -> None:
        response = await client.get(PATH)
        assert response.status_code == 405
        assert response.headers["allow"] == "POST"
