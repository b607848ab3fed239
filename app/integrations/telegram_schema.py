"""Telegram Bot API update schema.

The subset of the Bot API ``Update`` object the gateway session consumes.
Native webhook updates and bridge-built synthetic updates are both checked
against these models before they enter the pipeline. Unknown fields
(voice, contact, entities, ...) are preserved.
"""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

ChatType = Literal["private", "group", "supergroup", "channel"]


class TelegramUser(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: int
    is_bot: bool = False
    first_name: str
    username: Optional[str] = None


class TelegramChat(BaseModel):
    """A chat descriptor. Private chats carry a first name, the others a title."""

    model_config = ConfigDict(extra="allow")

    id: int
    type: ChatType
    title: Optional[str] = None
    first_name: Optional[str] = None

    @model_validator(mode="after")
    def _descriptor_matches_type(self) -> "TelegramChat":
        if self.type == "private":
            if self.title is not None:
                raise ValueError("private chats have no title")
        elif self.first_name is not None:
            raise ValueError(f"{self.type} chats have no first_name")
        return self

    @property
    def is_group(self) -> bool:
        return self.type != "private"


class TelegramMessage(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    message_id: int
    date: int
    chat: TelegramChat
    from_user: Optional[TelegramUser] = Field(default=None, alias="from")
    text: Optional[str] = None
    reply_to_message: Optional["TelegramMessage"] = None
    message_thread_id: Optional[int] = None


TelegramMessage.model_rebuild()


class TelegramUpdate(BaseModel):
    model_config = ConfigDict(extra="allow")

    update_id: int
    message: Optional[TelegramMessage] = None

    @property
    def is_synthetic(self) -> bool:
        """Bridge-injected updates live in the negative id space."""
        return self.update_id < 0
