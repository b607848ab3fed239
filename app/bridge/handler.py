"""External message ingestion endpoint.

POST /api/<channel>/external-messages

Receives messages witnessed by an external observer bot, builds a synthetic
Telegram update and feeds it through the live session's ``handle_update``,
so the message takes the same envelope → history → pipeline path as a native
one. Authentication is a per-account bearer secret.

Each request resolves at the first matching branch:

    wrong path → declined (None)      bad JSON / too large → 400
    non-POST → 405                    invalid payload → 400
    token in query → 400              no live session → 503
    no token → 401                    wrong token → 401
    dispatch raised → 500 (no retry)  ok → 200
"""

import hmac
import json
from typing import Any

import structlog
from fastapi import Request, Response
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.requests import ClientDisconnect

from app.bridge.errors import (
    AuthError,
    BridgeError,
    DispatchError,
    TransportError,
    UnavailableError,
    ValidationError,
)
from app.bridge.events import build_synthetic_update
from app.bridge.ids import IdentifierAllocator, NegativeCounterAllocator
from app.bridge.payload import PayloadRejected, validate_payload
from app.bridge.registry import AccountRegistry
from app.core.instrumentation import EXTERNAL_INJECTION_COUNT

logger = structlog.get_logger()

MAX_BODY_BYTES = 1024 * 1024
TOKEN_HEADER = "x-gateway-token"
QUERY_CREDENTIAL_PARAMS = ("token", "secret")


class PayloadTooLargeError(ValidationError):
    """Body exceeded the ceiling; the rest of it is not read."""


def extract_token(request: Request) -> str | None:
    """Bearer token from ``Authorization``, else the ``X-Gateway-Token`` header."""
    auth_header = request.headers.get("authorization") or ""
    if auth_header.startswith("Bearer "):
        return auth_header[len("Bearer "):].strip() or None
    token = request.headers.get(TOKEN_HEADER)
    if token is not None:
        return token.strip() or None
    return None


def _reject_constant(name: str) -> Any:
    raise ValueError(f"{name} is not valid JSON")


def tokens_match(presented: str, expected: str) -> bool:
    return hmac.compare_digest(presented.encode("utf-8"), expected.encode("utf-8"))


async def read_json_body(request: Request, max_bytes: int = MAX_BODY_BYTES) -> Any:
    """Read and decode the JSON body, stopping as soon as it passes ``max_bytes``.

    Raises:
        PayloadTooLargeError: declared or streamed size over the ceiling.
        ValidationError: the body is not valid UTF-8 JSON.
        ClientDisconnect: the client went away mid-body.
    """
    declared = request.headers.get("content-length")
    if declared is not None and declared.isdigit() and int(declared) > max_bytes:
        raise PayloadTooLargeError("Payload too large")

    chunks: list[bytes] = []
    total = 0
    async for chunk in request.stream():
        total += len(chunk)
        if total > max_bytes:
            raise PayloadTooLargeError("Payload too large")
        chunks.append(chunk)

    try:
        return json.loads(b"".join(chunks).decode("utf-8"), parse_constant=_reject_constant)
    except ValueError as exc:
        raise ValidationError(f"Invalid JSON: {exc}") from exc


class ExternalMessagesHandler:
    """Authenticated injection of external messages for one channel.

    The registry and the id allocator are owned by the caller, so tests and
    the gateway each build their own.
    """

    def __init__(
        self,
        registry: AccountRegistry,
        allocator: IdentifierAllocator | None = None,
        channel: str = "telegram",
        max_body_bytes: int = MAX_BODY_BYTES,
    ) -> None:
        self.registry = registry
        self.allocator = allocator or NegativeCounterAllocator()
        self.channel = channel
        self.max_body_bytes = max_body_bytes

    @property
    def path(self) -> str:
        return f"/api/{self.channel}/external-messages"

    async def handle(self, request: Request) -> Response | None:
        """Answer the request, or return ``None`` if the path is not ours."""
        if request.url.path != self.path:
            return None
        try:
            return await self._process(request)
        except TransportError:
            return PlainTextResponse(
                "Method Not Allowed", status_code=405, headers={"Allow": "POST"}
            )
        except PayloadTooLargeError as exc:
            logger.warning("bridge.payload_too_large", limit=self.max_body_bytes)
            self._count("unknown", "rejected")
            return self._error(exc, headers={"Connection": "close"})
        except BridgeError as exc:
            return self._error(exc)
        except ClientDisconnect:
            logger.warning("bridge.client_disconnected")
            self._count("unknown", "disconnected")
            return self._error(ValidationError("Client disconnected"))
        except Exception as exc:
            logger.error("bridge.unexpected_error", error=str(exc), exc_info=True)
            return self._error(BridgeError(f"Internal error: {exc}"))

    async def _process(self, request: Request) -> Response:
        if request.method != "POST":
            raise TransportError("Method Not Allowed")

        if any(name in request.query_params for name in QUERY_CREDENTIAL_PARAMS):
            logger.warning("bridge.token_in_query_rejected")
            self._count("unknown", "rejected")
            raise AuthError(
                "Token must be provided via Authorization: Bearer <token> or "
                "X-Gateway-Token header (query parameters are not allowed)",
                status_code=400,
            )

        token = extract_token(request)
        if not token:
            self._count("unknown", "unauthorized")
            raise AuthError("Missing authentication token")

        raw = await read_json_body(request, self.max_body_bytes)

        result = validate_payload(raw)
        if isinstance(result, PayloadRejected):
            logger.info("bridge.payload_rejected", details=result.details)
            self._count("unknown", "rejected")
            raise ValidationError(result.error)
        payload = result.payload

        account_id = payload.resolved_account_id
        entry = self.registry.lookup(account_id)
        if entry is None:
            self._count("unknown", "unavailable")
            raise UnavailableError(f'No {self.channel.capitalize()} bot running for account "{account_id}"')

        if not tokens_match(token, entry.config.secret):
            logger.warning("bridge.invalid_token", account_id=account_id)
            self._count(account_id, "unauthorized")
            raise AuthError("Invalid authentication token")

        update = build_synthetic_update(payload, self.allocator)
        logger.info(
            "bridge.injecting",
            account_id=account_id,
            update_id=update["update_id"],
            chat_id=payload.chat_id,
            sender=payload.sender_name,
            text_preview=payload.text[:50],
        )

        # At most once: a retry could duplicate a visible reply.
        try:
            await entry.session.handle_update(update)
        except Exception as exc:
            logger.error("bridge.dispatch_failed", account_id=account_id, error=str(exc))
            self._count(account_id, "failed")
            raise DispatchError(f"Processing failed: {exc}") from exc

        self._count(account_id, "dispatched")
        return JSONResponse(
            {
                "ok": True,
                "updateId": update["update_id"],
                "messageId": payload.message_id,
                "chatId": payload.chat_id,
            }
        )

    def _count(self, account_id: str, outcome: str) -> None:
        EXTERNAL_INJECTION_COUNT.labels(
            channel=self.channel, account_id=account_id, outcome=outcome
        ).inc()

    @staticmethod
    def _error(exc: BridgeError, headers: dict[str, str] | None = None) -> JSONResponse:
        return JSONResponse(
            {"ok": False, "error": exc.message},
            status_code=exc.status_code,
            headers=headers,
        )
