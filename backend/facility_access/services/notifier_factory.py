"""
Notifier factory.
Configures which notification transport the engine uses.
"""

from facility_access.core.config import get_settings
from facility_access.infrastructure.redis_notifier import RedisNotifier
from facility_access.services.interfaces.notifier import Notifier
from facility_access.services.interfaces.null_notifier import NullNotifier


def build_notifier() -> Notifier:
    """
    Select the notifier from settings:
    - REDIS_ENABLED: RedisNotifier (pub/sub per facility)
    - otherwise: NullNotifier
    """
    if get_settings().REDIS_ENABLED:
        return RedisNotifier()
    return NullNotifier()


# Singleton instance
_notifier: Notifier = None


def get_notifier() -> Notifier:
    """Get notifier singleton."""
    global _notifier
    if _notifier is None:
        _notifier = build_notifier()
    return _notifier
