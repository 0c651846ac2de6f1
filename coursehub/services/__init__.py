"""Application services for coursehub."""

from coursehub.services.enrollment import EnrollmentService, RosterEntry
from coursehub.services.notifications import DeliveryStatus, NotificationService

__all__ = [
    "EnrollmentService",
    "RosterEntry",
    "NotificationService",
    "DeliveryStatus",
]
