"""Account registry for the external message bridge.

Maps an account id to the live session that should receive injected updates
and the bridge config it was started with. Sessions register on start and
unregister on stop; request handling only reads.
"""

from dataclasses import dataclass
from typing import Any, Awaitable, Protocol, runtime_checkable

import structlog

from app.bridge.config_resolver import BridgeConfig

logger = structlog.get_logger()


@runtime_checkable
class UpdateDispatcher(Protocol):
    """The "process one update" entry point of a live chat session."""

    def handle_update(self, update: dict[str, Any]) -> Awaitable[Any]:
        ...


@dataclass(frozen=True)
class AccountRegistryEntry:
    session: UpdateDispatcher  # not owned; lifetime follows the channel session
    config: BridgeConfig


class AccountRegistry:
    """In-memory account → (session, config) map.

    Each mutation is a single dict assignment or removal of an immutable
    entry, so readers see either the old entry or the new one.
    """

    def __init__(self) -> None:
        self._entries: dict[str, AccountRegistryEntry] = {}

    def register(self, account_id: str, session: UpdateDispatcher, config: BridgeConfig) -> None:
        """Insert or replace the entry for ``account_id`` (last write wins)."""
        self._entries[account_id] = AccountRegistryEntry(session=session, config=config)
        logger.info("bridge.account_registered", account_id=account_id)

    def unregister(self, account_id: str) -> None:
        if self._entries.pop(account_id, None) is not None:
            logger.info("bridge.account_unregistered", account_id=account_id)

    def lookup(self, account_id: str) -> AccountRegistryEntry | None:
        return self._entries.get(account_id)

    def account_ids(self) -> list[str]:
        return sorted(self._entries)

    def __contains__(self, account_id: object) -> bool:
        return account_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)
