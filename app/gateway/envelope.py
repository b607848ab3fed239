"""Inbound message envelope formatting.

The agent layer sees each inbound message prefixed with a compact header:

    [Telegram Ana (@ana_x) +5m 2023-11-14 22:13 UTC] hi

Which parts appear is controlled by :class:`EnvelopeFormatOptions`, resolved
from ``agents.defaults`` in the gateway config.
"""

from dataclasses import dataclass
from datetime import datetime, timezone, tzinfo
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import structlog

from app.core.gateway_config import section

logger = structlog.get_logger()


@dataclass(frozen=True)
class EnvelopeFormatOptions:
    timezone: str = "local"  # "local" | "utc" | "user" | IANA name
    include_timestamp: bool = True
    include_elapsed: bool = True
    user_timezone: str | None = None


def _flag(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() not in {"0", "false", "no", "off"}


def resolve_envelope_format_options(config: dict[str, Any] | None) -> EnvelopeFormatOptions:
    defaults = section(config, "agents", "defaults")
    user_tz = defaults.get("user_timezone")
    return EnvelopeFormatOptions(
        timezone=str(defaults.get("envelope_timezone") or "local").strip(),
        include_timestamp=_flag(defaults.get("envelope_timestamp"), True),
        include_elapsed=_flag(defaults.get("envelope_elapsed"), True),
        user_timezone=str(user_tz).strip() if user_tz else None,
    )


def _zone(options: EnvelopeFormatOptions) -> tzinfo | None:
    name = options.timezone.lower()
    if name == "utc":
        return timezone.utc
    if name == "local":
        return None
    if name == "user":
        if not options.user_timezone:
            return None
        name = options.user_timezone
    else:
        name = options.timezone
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("envelope.unknown_timezone", timezone=name)
        return timezone.utc


def format_elapsed(seconds: float) -> str:
    seconds = max(0, int(seconds))
    if seconds < 60:
        return f"+{seconds}s"
    if seconds < 3600:
        return f"+{seconds // 60}m"
    if seconds < 86400:
        return f"+{seconds // 3600}h"
    return f"+{seconds // 86400}d"


def format_timestamp(ts: int, options: EnvelopeFormatOptions) -> str:
    zone = _zone(options)
    moment = datetime.fromtimestamp(ts, tz=timezone.utc).astimezone(zone)
    return moment.strftime("%Y-%m-%d %H:%M %Z").strip()


def format_envelope(
    channel: str,
    sender: str,
    body: str,
    timestamp: int | None,
    options: EnvelopeFormatOptions,
    previous_timestamp: int | None = None,
) -> str:
    parts = [channel, sender]
    if options.include_elapsed and timestamp is not None and previous_timestamp is not None:
        parts.append(format_elapsed(timestamp - previous_timestamp))
    if options.include_timestamp and timestamp is not None:
        parts.append(format_timestamp(timestamp, options))
    header = " ".join(p for p in parts if p)
    return f"[{header}] {body}"
