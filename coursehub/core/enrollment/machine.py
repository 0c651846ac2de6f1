"""Enrollment status state machine.

Applies status transitions to an enrollment with validation.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID

from .models import Enrollment
from .states import (
    EnrollmentStatus,
    EnrollmentAction,
    get_transition_rule,
    TERMINAL_STATUSES,
)
from coursehub.core.errors import EnrollmentFinalized, InvalidTransition, ExcuseWindowClosed

logger = logging.getLogger(__name__)


def excuse_deadline(course_start: datetime, excuse_window_hours: int) -> datetime:
    """Latest moment an enrollee may still excuse themselves."""
    return course_start - timedelta(hours=excuse_window_hours)


class EnrollmentStateMachine:
    """
    State machine for a single enrollment.

    Manages:
    - Validation of transitions against the rule table
    - The final-approval flag (set on every exit from Pending)
    - The excuse time window
    """

    def __init__(self, enrollment: Enrollment):
        self.enrollment = enrollment

    @property
    def status(self) -> EnrollmentStatus:
        return self.enrollment.status

    @property
    def is_terminal(self) -> bool:
        """Check if no further transition is possible."""
        return self.enrollment.final_approval or self.enrollment.status in TERMINAL_STATUSES

    def transition(
        self,
        action: EnrollmentAction,
        *,
        actor_id: Optional[UUID] = None,
        at: Optional[datetime] = None,
    ) -> EnrollmentStatus:
        """
        Perform a status transition.

        Args:
            action: The action to perform
            actor_id: ID of the user performing the transition
            at: Transition time (defaults to now)

        Returns:
            The new status

        Raises:
            EnrollmentFinalized: If the enrollment already left Pending
            InvalidTransition: If no rule allows the action
        """
        enrollment = self.enrollment
        if self.is_terminal:
            raise EnrollmentFinalized(enrollment.id, enrollment.status.value)

        rule = get_transition_rule(enrollment.status, action)
        if rule is None:
            raise InvalidTransition(enrollment.status.value, action.value)

        at = at or datetime.utcnow()
        from_status = enrollment.status

        enrollment.status = rule.to_status
        if rule.to_status in TERMINAL_STATUSES:
            enrollment.final_approval = True
        enrollment.updated_at = at

        logger.info(
            "Enrollment %s: %s -> %s (%s by %s)",
            enrollment.id, from_status.value, rule.to_status.value, action.value, actor_id,
        )
        return enrollment.status

    def excuse(
        self,
        now: datetime,
        course_start: Optional[datetime],
        excuse_window_hours: Optional[int],
        *,
        actor_id: Optional[UUID] = None,
    ) -> EnrollmentStatus:
        """
        Withdraw a pending enrollment on behalf of the enrollee.

        Unresolved approval steps are left as they are.

        Raises:
            ExcuseWindowClosed: If the enrollment is not pending, is already
                final, or the deadline ``course_start - excuse_window_hours``
                has passed
        """
        enrollment = self.enrollment
        if enrollment.status != EnrollmentStatus.PENDING or enrollment.final_approval:
            raise ExcuseWindowClosed(
                f"Only pending enrollments can be excused (status: {enrollment.status.value})",
                enrollment_id=enrollment.id,
            )

        if excuse_window_hours is not None:
            if course_start is None:
                raise ExcuseWindowClosed(
                    "Course start date is not set; the excuse window cannot be evaluated",
                    enrollment_id=enrollment.id,
                )
            deadline = excuse_deadline(course_start, excuse_window_hours)
            if now > deadline:
                raise ExcuseWindowClosed(
                    f"Enrollments can only be excused at least {excuse_window_hours} hours "
                    f"before the course starts (deadline {deadline.isoformat()})",
                    enrollment_id=enrollment.id,
                )

        return self.transition(EnrollmentAction.EXCUSE, actor_id=actor_id or enrollment.user_id, at=now)


def excuse(
    enrollment: Enrollment,
    now: datetime,
    course_start: Optional[datetime],
    excuse_window_hours: Optional[int],
) -> EnrollmentStatus:
    """Excuse ``enrollment``; see :meth:`EnrollmentStateMachine.excuse`."""
    return EnrollmentStateMachine(enrollment).excuse(now, course_start, excuse_window_hours)
