"""Chat Gateway – Pytest Configuration.

Shared fixtures for all tests.
"""

import os

os.environ["ENVIRONMENT"] = "testing"
os.environ["REDIS_URL"] = "redis://localhost:6379/0"

from typing import Any
from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient

from app.bridge.config_resolver import BridgeConfig
from app.bridge.registry import AccountRegistry
from app.gateway.main import app


@pytest.fixture(autouse=True)
def mock_redis_bus():
    """Mock the gateway RedisBus for all tests."""
    from app.gateway.dependencies import redis_bus

    redis_bus.connect = AsyncMock()
    redis_bus.disconnect = AsyncMock()
    redis_bus.publish = AsyncMock(return_value=1)
    redis_bus.health_check = AsyncMock(return_value=True)
    return redis_bus


@pytest.fixture
async def gateway_sessions():
    """The gateway's SessionManager, emptied again after the test."""
    from app.gateway.dependencies import session_manager

    yield session_manager
    await session_manager.stop_all()


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
async def client():
    """Async test client for the FastAPI gateway."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


class RecordingSession:
    """Stand-in session that records every dispatched update."""

    def __init__(self, error: Exception | None = None) -> None:
        self.updates: list[dict[str, Any]] = []
        self.error = error

    async def handle_update(self, update: dict[str, Any]) -> None:
        self.updates.append(update)
        if self.error is not None:
            raise self.error


@pytest.fixture
def recording_session() -> RecordingSession:
    return RecordingSession()


@pytest.fixture
def registry() -> AccountRegistry:
    return AccountRegistry()


@pytest.fixture
def bridge_config() -> BridgeConfig:
    return BridgeConfig(secret="s3cret", history_limit=20)


@pytest.fixture
def valid_payload() -> dict[str, Any]:
    return {
        "chatId": -5001,
        "messageId": 42,
        "senderName": "Ana",
        "senderUsername": "ana_x",
        "senderId": 555,
        "text": "hi",
        "timestamp": 1700000000,
    }


@pytest.fixture
def make_session():
    """Factory for additional recording sessions."""
    return RecordingSession
