"""Enrollment statuses and transitions.

State Machine Diagram:

    ┌──────────┐
    │ PENDING  │ ← Initial state (enrollment created, chain unresolved)
    └────┬─────┘
         │
         ├──────────────────┬──────────────────┐
         │ final step       │ any step         │ enrollee
         │ approved         │ rejected         │ (inside window)
    ┌────▼─────┐      ┌─────▼────┐       ┌─────▼────┐
    │ APPROVE  │      │  REJECT  │       │  EXCUSE  │
    └──────────┘      └──────────┘       └──────────┘

Every state other than PENDING is terminal. Leaving PENDING always sets the
enrollment's final-approval flag.
"""

from enum import Enum
from typing import Set, Dict, Optional, NamedTuple


class EnrollmentStatus(str, Enum):
    """Overall status of a course enrollment."""

    PENDING = "pending"     # Approval chain in progress
    APPROVE = "approve"     # Final step approved
    REJECT = "reject"       # Rejected at some step
    EXCUSE = "excuse"       # Enrollee withdrew before the course


class EnrollmentAction(str, Enum):
    """Actions that trigger status transitions."""

    APPROVE = "approve"     # PENDING → APPROVE (final step approved)
    REJECT = "reject"       # PENDING → REJECT
    EXCUSE = "excuse"       # PENDING → EXCUSE (self-service)


class CourseStatus(str, Enum):
    """Publication status of a course."""

    DRAFT = "draft"
    PUBLISHED = "published"
    REGISTRATION_CLOSED = "registration_closed"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELED = "canceled"
    ARCHIVED = "archived"


class TransitionRule(NamedTuple):
    """Defines a valid status transition."""
    from_status: EnrollmentStatus
    to_status: EnrollmentStatus
    action: EnrollmentAction


TRANSITION_RULES: list[TransitionRule] = [
    # Approval chain (workflow engine)
    TransitionRule(EnrollmentStatus.PENDING, EnrollmentStatus.APPROVE, EnrollmentAction.APPROVE),
    TransitionRule(EnrollmentStatus.PENDING, EnrollmentStatus.REJECT, EnrollmentAction.REJECT),

    # Enrollee
    TransitionRule(EnrollmentStatus.PENDING, EnrollmentStatus.EXCUSE, EnrollmentAction.EXCUSE),
]

TRANSITION_TARGETS: Dict[tuple[EnrollmentStatus, EnrollmentAction], TransitionRule] = {}

for rule in TRANSITION_RULES:
    TRANSITION_TARGETS[(rule.from_status, rule.action)] = rule


TERMINAL_STATUSES: Set[EnrollmentStatus] = {
    EnrollmentStatus.APPROVE,
    EnrollmentStatus.REJECT,
    EnrollmentStatus.EXCUSE,
}

# Statuses that hold one of the course seats
SEAT_HOLDING_STATUSES: Set[EnrollmentStatus] = {
    EnrollmentStatus.PENDING,
    EnrollmentStatus.APPROVE,
}


def get_transition_rule(from_status: EnrollmentStatus, action: EnrollmentAction) -> Optional[TransitionRule]:
    """Rule for ``action`` taken from ``from_status``, or None if the action is invalid."""
    return TRANSITION_TARGETS.get((from_status, action))
