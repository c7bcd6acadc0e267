"""
Live delivery of notifications to connected sessions.

Each recipient has a channel (`user-<id>`); whatever session layer keeps
clients connected subscribes to it. Publishing is best-effort and
at-most-once: a subscriber that is not connected simply misses the push and
reads the persisted notification later.
"""

import json
from abc import ABC, abstractmethod

from tripshare.core.config import get_settings
from tripshare.infrastructure.redis_client import get_redis

settings = get_settings()

NOTIFICATION_EVENT = "notification"


def channel_for(recipient_id: str) -> str:
    return f"{settings.NOTIFICATION_CHANNEL_PREFIX}{recipient_id}"


class NotificationTransport(ABC):
    """Pushes a serialized notification to a recipient's live channel."""

    @abstractmethod
    async def publish(self, recipient_id: str, payload: dict) -> bool:
        """
        Returns True if the message was handed to the transport, False if the
        transport is not available. Raises on transport errors.
        """


class RedisNotificationTransport(NotificationTransport):
    async def publish(self, recipient_id: str, payload: dict) -> bool:
        client = await get_redis()
        if client is None:
            return False

        message = json.dumps(
            {"event": NOTIFICATION_EVENT, "data": payload},
            default=str,
            ensure_ascii=False,
        )
        await client.publish(channel_for(recipient_id), message)
        return True


_transport: NotificationTransport | None = None


def get_transport() -> NotificationTransport:
    global _transport
    if _transport is None:
        _transport = RedisNotificationTransport()
    return _transport


def set_transport(transport: NotificationTransport | None) -> None:
    """Swap the transport (tests, alternative push providers)."""
    global _transport
    _transport = transport
