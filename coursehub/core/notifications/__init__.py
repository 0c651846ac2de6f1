"""Notification idempotency tracking for enrollment e-mails."""

from .tracker import (
    NotificationKind,
    NotificationFlags,
    kinds_for_status,
    needs_send,
    mark_sent,
)

__all__ = [
    "NotificationKind",
    "NotificationFlags",
    "kinds_for_status",
    "needs_send",
    "mark_sent",
]
