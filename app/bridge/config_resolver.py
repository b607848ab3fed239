"""Per-account bridge configuration.

Resolution order for ``channels.telegram``:

- ``accounts.<id>.external_messages`` if present, else the channel-level
  ``external_messages`` block;
- history limit: block value, else ``channels.telegram.history_limit``,
  else ``messages.group_chat.history_limit``, else 50.

Without a non-blank secret the bridge stays disabled for the account.
"""

from dataclasses import dataclass, field
from typing import Any

from app.core.gateway_config import load_gateway_config, section
from app.gateway.envelope import EnvelopeFormatOptions, resolve_envelope_format_options

DEFAULT_HISTORY_LIMIT = 50


@dataclass(frozen=True)
class BridgeConfig:
    secret: str
    history_limit: int = DEFAULT_HISTORY_LIMIT
    envelope: EnvelopeFormatOptions = field(default_factory=EnvelopeFormatOptions)


def positive_int(value: Any) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value if value > 0 else None


def resolve_bridge_config(
    account_id: str,
    config: dict[str, Any] | None = None,
) -> BridgeConfig | None:
    """Return the account's bridge config, or ``None`` if it is disabled.

    ``config`` defaults to a fresh load of the gateway YAML.
    """
    cfg = load_gateway_config() if config is None else config
    telegram = section(cfg, "channels", "telegram")
    if not telegram:
        return None

    account = section(telegram, "accounts", account_id)
    external = account.get("external_messages")
    if not isinstance(external, dict):
        external = telegram.get("external_messages")
    if not isinstance(external, dict):
        return None

    secret = external.get("secret")
    if not isinstance(secret, str) or not secret.strip():
        return None

    history_limit = (
        positive_int(external.get("history_limit"))
        or positive_int(telegram.get("history_limit"))
        or positive_int(section(cfg, "messages", "group_chat").get("history_limit"))
        or DEFAULT_HISTORY_LIMIT
    )
    return BridgeConfig(
        secret=secret.strip(),
        history_limit=history_limit,
        envelope=resolve_envelope_format_options(cfg),
    )
