"""Per-enrollment bookkeeping for automatic lifecycle e-mails.

Each enrollment carries one (sent flag, timestamp) pair per e-mail kind. The
flag answers "did at least one automatic send succeed", not "did the latest
send succeed": manual resends never touch it and approval transitions never
clear it. Marking a kind as sent is additive and happens in its own
transaction, after delivery, so a failed send cannot roll back approval
state.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict

logger = logging.getLogger(__name__)


class NotificationKind(str, Enum):
    """Lifecycle e-mails sent for an enrollment."""

    CONFIRMATION = "confirmation"        # Enrollment received
    FINAL_APPROVAL = "final_approval"    # Enrollment approved
    STATUS = "status"                    # Enrollment rejected or excused


@dataclass
class NotificationFlags:
    confirmation_sent: bool = False
    confirmation_sent_at: Optional[datetime] = None
    final_approval_sent: bool = False
    final_approval_sent_at: Optional[datetime] = None
    status_sent: bool = False
    status_sent_at: Optional[datetime] = None

    def is_sent(self, kind: NotificationKind) -> bool:
        return getattr(self, f"{NotificationKind(kind).value}_sent")

    def sent_at(self, kind: NotificationKind) -> Optional[datetime]:
        return getattr(self, f"{NotificationKind(kind).value}_sent_at")

    def as_dict(self) -> Dict[str, Optional[str]]:
        result = {}
        for kind in NotificationKind:
            at = self.sent_at(kind)
            result[kind.value] = at.isoformat() if at else None
        return result


# Automatic e-mail that follows each enrollment status
_KIND_FOR_STATUS = {
    "pending": NotificationKind.CONFIRMATION,
    "approve": NotificationKind.FINAL_APPROVAL,
    "reject": NotificationKind.STATUS,
    "excuse": NotificationKind.STATUS,
}


def kinds_for_status(status) -> List[NotificationKind]:
    """Return the automatic e-mails owed once an enrollment reaches ``status``."""
    value = getattr(status, "value", status)
    kind = _KIND_FOR_STATUS.get(value)
    return [kind] if kind else []


def needs_send(enrollment, kind: NotificationKind) -> bool:
    """True while no automatic send of ``kind`` has succeeded."""
    return not enrollment.notifications.is_sent(kind)


def mark_sent(enrollment, kind: NotificationKind, at: Optional[datetime] = None) -> bool:
    """
    Record a successful automatic send.

    Args:
        enrollment: Enrollment whose flags are updated
        kind: E-mail kind that was delivered
        at: Delivery time (defaults to now)

    Returns:
        True if the flag was newly set, False if it was already set. An
        already-set flag keeps its original timestamp.
    """
    kind = NotificationKind(kind)
    flags = enrollment.notifications
    if flags.is_sent(kind):
        logger.debug("Enrollment %s: %s e-mail already marked sent", enrollment.id, kind.value)
        return False

    setattr(flags, f"{kind.value}_sent", True)
    setattr(flags, f"{kind.value}_sent_at", at or datetime.utcnow())
    logger.info("Enrollment %s: %s e-mail marked sent", enrollment.id, kind.value)
    return True
