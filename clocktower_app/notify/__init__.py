"""
Outbound notifications.

Channels (email, stdout) share a rate-limit gate owned by the
NotificationService; every send is best-effort.
"""

from .base import DeliveryResult, DeliveryStatus, Notification, NotificationKind
from .service import NotificationService

__all__ = [
    "DeliveryResult",
    "DeliveryStatus",
    "Notification",
    "NotificationKind",
    "NotificationService",
]
