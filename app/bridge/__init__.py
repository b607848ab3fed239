"""External message bridge: injects observer-reported messages into live sessions."""

from app.bridge.config_resolver import BridgeConfig, resolve_bridge_config
from app.bridge.errors import (
    AuthError,
    BridgeError,
    DispatchError,
    SyntheticEventError,
    TransportError,
    UnavailableError,
    ValidationError,
)
from app.bridge.events import build_synthetic_update
from app.bridge.handler import ExternalMessagesHandler
from app.bridge.ids import IdentifierAllocator, NegativeCounterAllocator
from app.bridge.payload import (
    ExternalMessagePayload,
    PayloadAccepted,
    PayloadRejected,
    validate_payload,
)
from app.bridge.registry import AccountRegistry, AccountRegistryEntry, UpdateDispatcher

__all__ = [
    "AccountRegistry",
    "AccountRegistryEntry",
    "AuthError",
    "BridgeConfig",
    "BridgeError",
    "DispatchError",
    "ExternalMessagePayload",
    "ExternalMessagesHandler",
    "IdentifierAllocator",
    "NegativeCounterAllocator",
    "PayloadAccepted",
    "PayloadRejected",
    "SyntheticEventError",
    "TransportError",
    "UnavailableError",
    "UpdateDispatcher",
    "ValidationError",
    "build_synthetic_update",
    "resolve_bridge_config",
    "validate_payload",
]
