"""Chat Gateway – Telegram Session.

One live session per configured Telegram account. ``handle_update`` is the
single entry point for updates: the native webhook route calls it, and so
does the external message bridge with synthetic updates. Each update is
validated, normalized, enriched with the group history and an envelope
header, and published to the Redis Bus.
"""

from collections import deque
from datetime import datetime, timezone
from typing import Any

import structlog

from app.core.instrumentation import INBOUND_UPDATE_COUNT
from app.gateway.envelope import EnvelopeFormatOptions, format_envelope
from app.gateway.redis_bus import RedisBus
from app.gateway.schemas import InboundMessage, Platform
from app.integrations.telegram_schema import TelegramMessage, TelegramUpdate

logger = structlog.get_logger()

DEFAULT_HISTORY_LIMIT = 50


class SessionNotRunningError(RuntimeError):
    pass


def sender_label(first_name: str | None, username: str | None) -> str:
    if first_name and username:
        return f"{first_name} (@{username})"
    if first_name:
        return first_name
    if username:
        return f"@{username}"
    return "Unknown"


class TelegramSession:
    """Live Telegram account session.

    Features:
    - Update validation against the Bot API schema
    - Per-chat group history bounded by ``history_limit``
    - Envelope header formatting for the agent layer
    - Publishing to ``gateway:inbound:<account>``
    """

    def __init__(
        self,
        account_id: str,
        bus: RedisBus,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
        envelope: EnvelopeFormatOptions | None = None,
        webhook_secret: str = "",
    ) -> None:
        self.account_id = account_id
        self.webhook_secret = webhook_secret
        self._bus = bus
        self._history_limit = max(1, history_limit)
        self._envelope = envelope or EnvelopeFormatOptions()
        self._group_histories: dict[int, deque[dict[str, Any]]] = {}
        self._last_timestamps: dict[int, int] = {}
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    @property
    def history_limit(self) -> int:
        return self._history_limit

    async def start(self) -> None:
        self._running = True
        logger.info("telegram.session_started", account_id=self.account_id, history_limit=self._history_limit)

    async def stop(self) -> None:
        self._running = False
        self._group_histories.clear()
        self._last_timestamps.clear()
        logger.info("telegram.session_stopped", account_id=self.account_id)

    def group_history(self, chat_id: int) -> list[dict[str, Any]]:
        return list(self._group_histories.get(chat_id, ()))

    @staticmethod
    def normalize_message(message: TelegramMessage) -> dict[str, Any] | None:
        """Extract the content of a message, or None for unsupported kinds."""
        extra = message.model_extra or {}
        metadata: dict[str, Any] = {}
        content_type = "text"

        if message.text is not None:
            content = message.text
        elif isinstance(extra.get("voice"), dict):
            voice = extra["voice"]
            content = voice.get("file_id", "")
            content_type = "voice"
            metadata = {
                "mime_type": voice.get("mime_type"),
                "duration": voice.get("duration"),
                "file_size": voice.get("file_size"),
            }
        elif isinstance(extra.get("contact"), dict):
            contact = extra["contact"]
            content = f"[Contact] {contact.get('phone_number')}"
            content_type = "contact"
            metadata = {
                "phone_number": contact.get("phone_number"),
                "first_name": contact.get("first_name"),
                "user_id": str(contact.get("user_id")),
            }
        else:
            return None

        sender = message.from_user
        return {
            "content": content,
            "content_type": content_type,
            "metadata": metadata,
            "user_id": str(sender.id) if sender else "0",
            "first_name": sender.first_name if sender else None,
            "username": sender.username if sender else None,
        }

    async def handle_update(self, update: dict[str, Any]) -> InboundMessage | None:
        """Process one update through the full inbound pipeline.

        Returns the published message, or None when the update carries
        nothing the gateway handles.
        Raises:
            SessionNotRunningError: the session was stopped.
            pydantic.ValidationError: the update does not match the schema.
        """
        if not self._running:
            raise SessionNotRunningError(f"Telegram session {self.account_id!r} is not running")

        parsed = TelegramUpdate.model_validate(update)
        message = parsed.message
        if message is None:
            logger.debug("telegram.update_ignored", account_id=self.account_id, update_id=parsed.update_id)
            return None
        norm = self.normalize_message(message)
        if norm is None:
            return None

        chat = message.chat
        label = sender_label(norm["first_name"], norm["username"])
        previous_ts = self._last_timestamps.get(chat.id)
        envelope = format_envelope(
            "Telegram",
            label,
            norm["content"],
            message.date,
            self._envelope,
            previous_timestamp=previous_ts,
        )
        self._last_timestamps[chat.id] = message.date

        metadata = dict(norm["metadata"])
        metadata.update(
            {
                "update_id": parsed.update_id,
                "chat_type": chat.type,
                "username": norm["username"],
                "first_name": norm["first_name"],
                "envelope": envelope,
            }
        )
        if message.reply_to_message is not None:
            metadata["reply_to_message_id"] = str(message.reply_to_message.message_id)
        if message.message_thread_id is not None:
            metadata["message_thread_id"] = message.message_thread_id
        if chat.is_group:
            metadata["group_history"] = self.group_history(chat.id)
            self._record_history(chat.id, label, norm["content"], message)

        inbound = InboundMessage(
            message_id=str(message.message_id),
            platform=Platform.TELEGRAM,
            account_id=self.account_id,
            chat_id=str(chat.id),
            user_id=norm["user_id"],
            content=norm["content"],
            content_type=norm["content_type"],
            synthetic=parsed.is_synthetic,
            timestamp=datetime.fromtimestamp(message.date, tz=timezone.utc),
            metadata=metadata,
        )

        channel = RedisBus.account_channel(RedisBus.CHANNEL_INBOUND, self.account_id)
        await self._bus.publish(channel, inbound.model_dump_json())
        INBOUND_UPDATE_COUNT.labels(
            channel="telegram",
            account_id=self.account_id,
            source="synthetic" if inbound.synthetic else "native",
        ).inc()
        logger.info(
            "telegram.message_received",
            account_id=self.account_id,
            message_id=inbound.message_id,
            chat_id=inbound.chat_id,
            synthetic=inbound.synthetic,
        )
        return inbound

    def _record_history(self, chat_id: int, sender: str, body: str, message: TelegramMessage) -> None:
        history = self._group_histories.get(chat_id)
        if history is None:
            history = deque(maxlen=self._history_limit)
            self._group_histories[chat_id] = history
        history.append(
            {
                "sender": sender,
                "body": body,
                "timestamp": message.date,
                "message_id": str(message.message_id),
            }
        )
