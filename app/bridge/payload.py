"""External message payload schema and validation.

The observer process is untrusted. Its body is parsed into
:class:`ExternalMessagePayload` and the outcome is returned as a
``PayloadAccepted | PayloadRejected`` result rather than raised.
Identifiers are kept as received (number or string); the synthetic
event builder does the numeric coercion.
"""

from dataclasses import dataclass, field
from typing import Annotated, Any, Literal

import pydantic
from pydantic import AllowInfNan, BaseModel, ConfigDict, Field, Strict, StrictInt, StrictStr, field_validator

DEFAULT_ACCOUNT_ID = "default"
REQUIRED_FIELDS = ("chatId", "messageId", "senderName", "text", "timestamp")
INVALID_PAYLOAD_ERROR = "Invalid payload: required fields are " + ", ".join(REQUIRED_FIELDS)

# JSON numbers only (no bools, no NaN or Infinity).
FiniteNumber = Annotated[float, Strict(), AllowInfNan(False)]
# Any JSON number or string; the event builder coerces to int.
Identifier = StrictInt | FiniteNumber | StrictStr


class ExternalMessagePayload(BaseModel):
    """A message witnessed by the observer, as sent over the wire."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    chat_id: Identifier = Field(..., alias="chatId", description="Negative for groups")
    message_id: Identifier = Field(..., alias="messageId")
    sender_name: StrictStr = Field(..., alias="senderName", description="Display name of the sender")
    sender_username: StrictStr | None = Field(default=None, alias="senderUsername", description="Without @")
    sender_id: Identifier | None = Field(default=None, alias="senderId")
    text: StrictStr = Field(..., description="Message text, may be empty")
    timestamp: StrictInt | FiniteNumber = Field(..., description="Unix timestamp in seconds")
    reply_to_message_id: Identifier | None = Field(default=None, alias="replyToMessageId")
    topic_id: Identifier | None = Field(default=None, alias="topicId", description="Forum topic id")
    account_id: StrictStr | None = Field(default=None, alias="accountId")

    @field_validator("sender_name")
    @classmethod
    def _sender_name_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("senderName must not be blank")
        return value

    @property
    def resolved_account_id(self) -> str:
        return (self.account_id or "").strip() or DEFAULT_ACCOUNT_ID


@dataclass(frozen=True)
class PayloadAccepted:
    payload: ExternalMessagePayload
    ok: Literal[True] = True


@dataclass(frozen=True)
class PayloadRejected:
    error: str = INVALID_PAYLOAD_ERROR
    details: list[str] = field(default_factory=list)
    ok: Literal[False] = False


PayloadResult = PayloadAccepted | PayloadRejected


def validate_payload(raw: Any) -> PayloadResult:
    """Check the decoded request body.

    Any violation collapses into one :class:`PayloadRejected` naming the
    required field set; ``details`` keeps the individual reasons for logging.
    """
    if not isinstance(raw, dict):
        return PayloadRejected(details=["payload must be a JSON object"])
    try:
        payload = ExternalMessagePayload.model_validate(raw)
    except pydantic.ValidationError as exc:
        details = [
            f"{'.'.join(str(part) for part in err['loc']) or 'payload'}: {err['msg']}"
            for err in exc.errors()
        ]
        return PayloadRejected(details=details)
    return PayloadAccepted(payload=payload)
