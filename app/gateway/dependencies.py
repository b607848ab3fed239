"""Shared dependencies for the Gateway.

Centralizes the process-wide objects so routes and the lifespan hook use the
same instances. Tests build their own registries and handlers instead.
"""

import structlog

from app.bridge.handler import ExternalMessagesHandler
from app.bridge.ids import NegativeCounterAllocator
from app.bridge.registry import AccountRegistry
from app.gateway.redis_bus import RedisBus
from app.gateway.sessions import SessionManager
from config.settings import get_settings

logger = structlog.get_logger()
settings = get_settings()

redis_bus = RedisBus(redis_url=settings.redis_url)

# One registry and one id space for the whole process.
account_registry = AccountRegistry()
synthetic_ids = NegativeCounterAllocator()
session_manager = SessionManager(registry=account_registry, bus=redis_bus)

# Tried in order by the /api/{channel}/external-messages route.
external_message_handlers: list[ExternalMessagesHandler] = [
    ExternalMessagesHandler(
        registry=account_registry,
        allocator=synthetic_ids,
        channel="telegram",
        max_body_bytes=settings.external_messages_max_body_bytes,
    ),
]


def get_redis_bus() -> RedisBus:
    return redis_bus


def get_session_manager() -> SessionManager:
    return session_manager
