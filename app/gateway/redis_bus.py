"""Chat Gateway – Redis Bus Connector.

Every normalized inbound message, native or bridge-injected, is published
here for the agent layer to pick up.
"""

import redis.asyncio as redis
import structlog

logger = structlog.get_logger()


class RedisBus:
    """Async Redis Pub/Sub message bus.

    Channels:
        - `gateway:inbound:<account>` – Normalized messages per channel account
    """

    CHANNEL_INBOUND = "gateway:inbound"

    def __init__(self, redis_url: str = "redis://127.0.0.1:6379/0") -> None:
        self._redis_url = redis_url
        self._client: redis.Redis | None = None

    async def connect(self) -> None:
        """Establish connection to Redis."""
        self._client = redis.from_url(
            self._redis_url,
            decode_responses=True,
            retry_on_timeout=True,
        )
        await self._client.ping()
        logger.info("redis.connected", url=self._redis_url)

    async def disconnect(self) -> None:
        """Gracefully close Redis connection."""
        if self._client:
            await self._client.aclose()
            self._client = None
        logger.info("redis.disconnected")

    async def health_check(self) -> bool:
        """Check Redis connectivity."""
        if not self._client:
            return False
        try:
            return await self._client.ping()
        except (redis.ConnectionError, redis.TimeoutError):
            logger.error("redis.health_check_failed")
            return False

    async def publish(self, channel: str, message: str) -> int:
        """Publish a message to a Redis channel.

        Args:
            channel: Target channel name.
            message: JSON-serialized message string.

        Returns:
            Number of subscribers that received the message.
        """
        if not self._client:
            raise RuntimeError("Redis not connected. Call connect() first.")
        count = await self._client.publish(channel, message)
        logger.debug("redis.published", channel=channel, subscribers=count)
        return count

    @staticmethod
    def account_channel(channel: str, account_id: str) -> str:
        """Per-account sub-channel, e.g. ``gateway:inbound:default``."""
        return f"{channel}:{account_id}"
