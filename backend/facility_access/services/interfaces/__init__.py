"""
Service interfaces for dependency inversion.
Allows swapping collaborator implementations without changing business logic.
"""

from .notifier import FacilityEvent, Notifier
from .null_notifier import NullNotifier

__all__ = ['FacilityEvent', 'Notifier', 'NullNotifier']
