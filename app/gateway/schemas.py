"""Chat Gateway – Message Schemas.

Defines the normalized message that every channel session publishes to the
Redis Bus, whatever the source platform.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class Platform(str, Enum):
    """Supported messaging platforms."""

    TELEGRAM = "telegram"


class InboundMessage(BaseModel):
    """Message arriving at the Gateway from any platform.

    Native and bridge-injected messages are normalized into this schema
    before being published to the Redis Bus.
    """

    message_id: str = Field(..., description="Platform message identifier")
    platform: Platform = Field(..., description="Source platform")
    account_id: str = Field(..., description="Gateway account whose session received the message")
    chat_id: str = Field(..., description="Platform chat identifier")
    user_id: str = Field(..., description="Platform-specific user ID (0 = unknown external sender)")
    content: str = Field(..., description="Message text content")
    content_type: str = Field(default="text", description="text|voice|contact")
    synthetic: bool = Field(default=False, description="Injected by the external message bridge")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Message timestamp (UTC)",
    )
    metadata: dict[str, Any] = Field(default_factory=dict, description="Platform-specific metadata")
