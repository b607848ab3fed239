"""Chat Gateway – FastAPI application.

Health, metrics, native Telegram webhook ingress and the external message
bridge endpoint. Channel sessions are started in the lifespan hook from the
gateway YAML and registered with the bridge.
"""

import hmac
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

import pydantic
import structlog
from fastapi import Depends, FastAPI, Header, HTTPException, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from app.core.gateway_config import load_gateway_config
from app.core.instrumentation import router as metrics_router
from app.core.instrumentation import setup_instrumentation
from app.gateway.dependencies import (
    external_message_handlers,
    get_redis_bus,
    get_session_manager,
    redis_bus,
    session_manager,
)
from app.gateway.redis_bus import RedisBus
from app.gateway.sessions import SessionManager
from config.settings import Settings, get_settings

logger = structlog.get_logger()

VERSION = "1.0.0"
EXTERNAL_MESSAGES_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]

settings: Settings = get_settings()


def _parse_cors_origins(raw: str) -> list[str]:
    origins = [item.strip() for item in (raw or "").split(",") if item.strip()]
    return origins or ["http://localhost:3000"]


@asynccontextmanager
async def lifespan(app: FastAPI):  # type: ignore[type-arg]
    """Connect Redis and start channel sessions; tear down in reverse."""
    logger.info("gateway.startup", version=VERSION, env=settings.environment)
    try:
        await redis_bus.connect()
    except Exception as e:
        logger.warning("gateway.redis_unavailable", error=str(e))

    await session_manager.start_all(load_gateway_config())
    logger.info("gateway.sessions_started", accounts=session_manager.account_ids())

    yield

    await session_manager.stop_all()
    await redis_bus.disconnect()
    logger.info("gateway.shutdown")


app = FastAPI(
    title="Chat Gateway",
    description="Multi-channel AI chat gateway – FastAPI + Redis Pub/Sub + external message bridge",
    version=VERSION,
    lifespan=lifespan,
)

setup_instrumentation(app, settings.log_level)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_parse_cors_origins(settings.cors_allowed_origins),
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(metrics_router)


@app.get("/health")
async def health(bus: RedisBus = Depends(get_redis_bus)) -> dict[str, Any]:
    """Liveness plus Redis and session status."""
    redis_ok = await bus.health_check()
    return {
        "status": "ok" if redis_ok else "degraded",
        "service": "chat-gateway",
        "version": VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "sessions": session_manager.account_ids(),
    }


@app.post("/webhook/telegram/{account_id}")
async def webhook_telegram(
    account_id: str,
    payload: dict[str, Any],
    x_telegram_bot_api_secret_token: str | None = Header(default=None, alias="x-telegram-bot-api-secret-token"),
    sessions: SessionManager = Depends(get_session_manager),
) -> dict[str, str]:
    """Native Telegram Webhook Ingress for one account.

    Register this URL with Telegram: https://<host>/webhook/telegram/{account_id}
    """
    session = sessions.get(account_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Unknown account")

    if session.webhook_secret:
        presented = (x_telegram_bot_api_secret_token or "").strip()
        if not hmac.compare_digest(session.webhook_secret.encode("utf-8"), presented.encode("utf-8")):
            logger.warning("webhook.telegram_forbidden", account_id=account_id, reason="invalid_secret")
            raise HTTPException(status_code=403, detail="Invalid webhook secret")
    elif settings.is_production:
        logger.error("webhook.telegram_unconfigured", account_id=account_id, reason="missing_secret")
        raise HTTPException(status_code=503, detail="Telegram webhook secret not configured")

    try:
        inbound = await session.handle_update(payload)
    except pydantic.ValidationError as e:
        logger.warning("webhook.telegram_invalid_update", account_id=account_id, error=str(e))
        raise HTTPException(status_code=400, detail="Invalid Telegram update")
    if inbound is None:
        return {"status": "ignored"}
    return {"status": "ok"}


@app.api_route(
    "/api/{channel}/external-messages",
    methods=EXTERNAL_MESSAGES_METHODS,
    include_in_schema=False,
)
async def external_messages(channel: str, request: Request) -> Response:
    """External message bridge; the first handler owning the path answers."""
    for handler in external_message_handlers:
        response = await handler.handle(request)
        if response is not None:
            return response
    raise HTTPException(status_code=404, detail=f"Unknown channel: {channel}")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.gateway_host, port=settings.gateway_port, log_level=settings.log_level)
