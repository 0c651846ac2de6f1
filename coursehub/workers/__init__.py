"""Celery workers for coursehub."""

from coursehub.workers.notification_tasks import (
    celery_app,
    send_enrollment_email,
    CeleryEmailDispatcher,
    configure_directory,
)

__all__ = [
    "celery_app",
    "send_enrollment_email",
    "CeleryEmailDispatcher",
    "configure_directory",
]
