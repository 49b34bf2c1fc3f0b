"""
Infrastructure layer - external system integrations.
Keeps the admission logic clean from Redis details.
"""

from .redis_client import get_redis, close_redis, mark_redis_unavailable, RedisClient
from .redis_notifier import RedisNotifier

__all__ = ['get_redis', 'close_redis', 'mark_redis_unavailable', 'RedisClient', 'RedisNotifier']
