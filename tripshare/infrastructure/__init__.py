"""
Infrastructure layer - external system integrations.
Keeps business logic clean from implementation details.
"""

from .redis_client import get_redis, close_redis
from .notification_transport import NotificationTransport, get_transport, set_transport

__all__ = ['get_redis', 'close_redis', 'NotificationTransport', 'get_transport', 'set_transport']
