"""
Notifier that drops every event.
"""

from facility_access.core.metrics import record_notification
from facility_access.services.interfaces.notifier import FacilityEvent, Notifier


class NullNotifier(Notifier):
    """
    No broadcast side configured.

    Use when:
    - Redis is disabled
    - Running unit tests of the admission path
    """

    async def publish(self, event: FacilityEvent) -> bool:
        record_notification("skipped")
        return False
