"""Synthetic Telegram update builder.

Turns a validated :class:`ExternalMessagePayload` into an update shaped
exactly like one the Bot API would deliver, so the session's normal
``handle_update`` path processes it like any native message.
"""

from typing import Any

from app.bridge.errors import SyntheticEventError
from app.bridge.ids import IdentifierAllocator
from app.bridge.payload import ExternalMessagePayload
from app.integrations.telegram_schema import TelegramUpdate


def _as_int(value: Any, field_name: str) -> int:
    """Whole-number coercion of an identifier (int, integral float or numeric string)."""
    if isinstance(value, float):
        if not value.is_integer():
            raise SyntheticEventError(f"Invalid payload: {field_name} must be a whole number")
        return int(value)
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise SyntheticEventError(f"Invalid payload: {field_name} must be numeric") from exc


def build_chat(chat_id: int, sender_name: str) -> dict[str, Any]:
    """Chat kind follows the id sign, as on the platform itself."""
    if chat_id < 0:
        return {"id": chat_id, "type": "supergroup", "title": f"Chat {chat_id}"}
    return {"id": chat_id, "type": "private", "first_name": sender_name}


def build_synthetic_update(
    payload: ExternalMessagePayload,
    allocator: IdentifierAllocator,
) -> dict[str, Any]:
    """Build the update dict handed to the session.

    The reply target is a minimal stand-in (id, date, chat); it is not looked
    up on the platform. Sender id 0 stands for an unknown external sender.
    Raises:
        SyntheticEventError: an identifier is not numeric.
    """
    chat_id = _as_int(payload.chat_id, "chatId")
    message_id = _as_int(payload.message_id, "messageId")
    sender_id = _as_int(payload.sender_id, "senderId") if payload.sender_id else 0
    first_name = payload.sender_name.strip()
    date = int(payload.timestamp)

    sender: dict[str, Any] = {"id": sender_id, "is_bot": False, "first_name": first_name}
    if payload.sender_username:
        sender["username"] = payload.sender_username

    chat = build_chat(chat_id, first_name)
    message: dict[str, Any] = {
        "message_id": message_id,
        "date": date,
        "chat": chat,
        "from": sender,
        "text": payload.text,
    }
    if payload.reply_to_message_id:
        message["reply_to_message"] = {
            "message_id": _as_int(payload.reply_to_message_id, "replyToMessageId"),
            "date": date,
            "chat": chat,
        }
    if payload.topic_id:
        message["message_thread_id"] = _as_int(payload.topic_id, "topicId")

    update = {"update_id": allocator.next_id(), "message": message}
    # Same schema the native webhook path enforces.
    TelegramUpdate.model_validate(update)
    return update
