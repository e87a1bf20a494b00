"""Best-effort suppression of gateway redeliveries, keyed by message id.

Disabled by default; when Redis is unreachable every event is processed.
"""

from typing import Optional

import redis.asyncio as redis_async

from deskbridge.config import settings
from deskbridge.logging_config import get_logger

logger = get_logger("dedup_service")

_dedup_redis_client = None
_dedup_redis_url = None


def _get_dedup_redis(redis_url: str, socket_timeout_seconds: float):
    global _dedup_redis_client, _dedup_redis_url

    if _dedup_redis_client is None or _dedup_redis_url != redis_url:
        _dedup_redis_url = redis_url
        _dedup_redis_client = redis_async.from_url(
            redis_url,
            decode_responses=True,
            socket_connect_timeout=socket_timeout_seconds,
            socket_timeout=socket_timeout_seconds,
        )

    return _dedup_redis_client


async def is_duplicate_event(
    *,
    session_owner: str,
    message_id: Optional[str],
    redis_client=None,
    enabled: Optional[bool] = None,
) -> bool:
    if not (settings.dedup_enabled if enabled is None else enabled):
        return False
    if not message_id:
        return False

    key = f"deskbridge:dedup:{session_owner}:{message_id}"
    redis_client = redis_client or _get_dedup_redis(settings.redis_url, settings.dedup_socket_timeout_seconds)
    try:
        was_set = await redis_client.set(key, "1", ex=settings.dedup_ttl_seconds, nx=True)
    except Exception as e:
        logger.warning(f"Dedup unavailable, processing event: {e}")
        return False
    if not was_set:
        logger.info("Duplicate chat event", extra={"context": {"message_id": message_id}})
        return True
    return False
