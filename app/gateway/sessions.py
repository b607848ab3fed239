"""Channel session lifecycle.

Starts one :class:`TelegramSession` per configured account and registers it
with the bridge's account registry when the account has a bridge config.
Stopping always deregisters first, so the bridge never dispatches to a
session that is shutting down.
"""

from typing import Any

import structlog

from app.bridge.config_resolver import DEFAULT_HISTORY_LIMIT, positive_int, resolve_bridge_config
from app.bridge.registry import AccountRegistry
from app.core.gateway_config import section
from app.gateway.envelope import resolve_envelope_format_options
from app.gateway.redis_bus import RedisBus
from app.integrations.telegram import TelegramSession

logger = structlog.get_logger()


def configured_accounts(config: dict[str, Any]) -> list[str]:
    """Enabled Telegram account ids, ``default`` when none are listed."""
    telegram = section(config, "channels", "telegram")
    if not telegram or telegram.get("enabled") is False:
        return []
    accounts = section(telegram, "accounts")
    if not accounts:
        return ["default"]
    return [
        str(account_id)
        for account_id, account in accounts.items()
        if not (isinstance(account, dict) and account.get("enabled") is False)
    ]


class SessionManager:
    """Owns the live sessions of the gateway process."""

    def __init__(self, registry: AccountRegistry, bus: RedisBus) -> None:
        self._registry = registry
        self._bus = bus
        self._sessions: dict[str, TelegramSession] = {}

    def get(self, account_id: str) -> TelegramSession | None:
        return self._sessions.get(account_id)

    def account_ids(self) -> list[str]:
        return sorted(self._sessions)

    async def start_all(self, config: dict[str, Any]) -> None:
        for account_id in configured_accounts(config):
            await self.start_account(account_id, config)

    async def start_account(self, account_id: str, config: dict[str, Any]) -> TelegramSession:
        """(Re)start the session for ``account_id`` and register it for bridging."""
        if account_id in self._sessions:
            await self.stop_account(account_id)

        telegram = section(config, "channels", "telegram")
        account = section(telegram, "accounts", account_id)
        bridge_config = resolve_bridge_config(account_id, config)
        if bridge_config is not None:
            history_limit = bridge_config.history_limit
            envelope = bridge_config.envelope
        else:
            history_limit = positive_int(telegram.get("history_limit")) or DEFAULT_HISTORY_LIMIT
            envelope = resolve_envelope_format_options(config)

        session = TelegramSession(
            account_id=account_id,
            bus=self._bus,
            history_limit=history_limit,
            envelope=envelope,
            webhook_secret=str(account.get("webhook_secret") or "").strip(),
        )
        await session.start()
        self._sessions[account_id] = session

        if bridge_config is None:
            logger.info("bridge.disabled", account_id=account_id, reason="no_secret")
        else:
            self._registry.register(account_id, session, bridge_config)
        return session

    async def stop_account(self, account_id: str) -> None:
        self._registry.unregister(account_id)
        session = self._sessions.pop(account_id, None)
        if session is not None:
            await session.stop()

    async def stop_all(self) -> None:
        for account_id in list(self._sessions):
            await self.stop_account(account_id)
