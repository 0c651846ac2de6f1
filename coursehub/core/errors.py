"""Errors raised by the enrollment workflow.

Every error is local to the operation that raised it and is surfaced to the
caller unchanged. The engine never retries on its own: callers re-read the
enrollment and decide whether to try again.
"""

from typing import Optional, Any
from uuid import UUID


class WorkflowError(Exception):
    """Base class for all enrollment workflow errors."""

    code = "workflow_error"
    recoverable = True

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "message": self.message,
            "context": {k: str(v) if isinstance(v, UUID) else v for k, v in self.context.items()},
        }


class ChainMisconfigured(WorkflowError):
    """The approval chain of a category is invalid.

    Fatal for every enrollment in that category until the chain is fixed.
    """

    code = "chain_misconfigured"
    recoverable = False

    def __init__(self, message: str, category_id: Optional[UUID] = None):
        super().__init__(message, category_id=category_id)
        self.category_id = category_id


class NotCurrentStep(WorkflowError):
    """A step was actioned while an earlier step is still unresolved."""

    code = "not_current_step"

    def __init__(self, step_id: UUID, current_step_id: Optional[UUID]):
        super().__init__(
            f"Step {step_id} is not the current approval step (current: {current_step_id})",
            step_id=step_id,
            current_step_id=current_step_id,
        )
        self.step_id = step_id
        self.current_step_id = current_step_id


class Unauthorized(WorkflowError):
    """The actor may not resolve this step."""

    code = "unauthorized"

    def __init__(self, actor_id: Optional[UUID], step_id: UUID, reason: str = ""):
        message = f"Actor {actor_id} is not allowed to resolve step {step_id}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, actor_id=actor_id, step_id=step_id)
        self.actor_id = actor_id
        self.step_id = step_id


class AlreadyResolved(WorkflowError):
    """The step already carries an approve/reject result."""

    code = "already_resolved"

    def __init__(self, message: str, **context: Any):
        super().__init__(message, **context)


class EnrollmentFinalized(AlreadyResolved):
    """The enrollment left Pending; no approval operation may touch it."""

    code = "enrollment_finalized"

    def __init__(self, enrollment_id: UUID, status: str):
        super().__init__(
            f"Enrollment {enrollment_id} is already finalized ({status})",
            enrollment_id=enrollment_id,
            status=status,
        )
        self.enrollment_id = enrollment_id
        self.status = status


class InvalidTransition(WorkflowError):
    """No rule allows this status transition."""

    code = "invalid_transition"

    def __init__(self, from_status: str, action: str):
        super().__init__(
            f"Cannot perform {action} from status {from_status}",
            from_status=from_status,
            action=action,
        )
        self.from_status = from_status
        self.action = action


class ExcuseWindowClosed(WorkflowError):
    """The enrollee can no longer excuse themselves."""

    code = "excuse_window_closed"

    def __init__(self, message: str, enrollment_id: Optional[UUID] = None):
        super().__init__(message, enrollment_id=enrollment_id)
        self.enrollment_id = enrollment_id


class OptimisticConflict(WorkflowError):
    """Another writer changed the enrollment concurrently."""

    code = "optimistic_conflict"

    def __init__(self, enrollment_id: Optional[UUID], expected_version: Optional[int] = None):
        super().__init__(
            f"Enrollment {enrollment_id} was modified concurrently",
            enrollment_id=enrollment_id,
            expected_version=expected_version,
        )
        self.enrollment_id = enrollment_id
        self.expected_version = expected_version


class EnrollmentNotFound(WorkflowError):
    code = "enrollment_not_found"

    def __init__(self, enrollment_id: Any):
        super().__init__(f"Enrollment {enrollment_id} not found", enrollment_id=enrollment_id)
        self.enrollment_id = enrollment_id


# Enrollment admission

class EnrollmentClosed(WorkflowError):
    """The course does not accept enrollments."""

    code = "enrollment_closed"


class DuplicateEnrollment(WorkflowError):
    code = "duplicate_enrollment"


class CourseFull(WorkflowError):
    code = "course_full"


# Attendance

class NotApproved(WorkflowError):
    """Attendance requested for an enrollment that has not cleared the chain."""

    code = "not_approved"

    def __init__(self, enrollment_id: UUID, status: str):
        super().__init__(
            f"Enrollment {enrollment_id} is not approved ({status})",
            enrollment_id=enrollment_id,
            status=status,
        )
        self.enrollment_id = enrollment_id
        self.status = status


class AttendanceError(WorkflowError):
    code = "attendance_error"


class AlreadyCheckedIn(AttendanceError):
    code = "already_checked_in"


class AlreadyCheckedOut(AttendanceError):
    code = "already_checked_out"


class InvalidCheckOut(AttendanceError):
    code = "invalid_check_out"


class CourseNotActive(AttendanceError):
    code = "course_not_active"


class InvalidBadge(AttendanceError):
    code = "invalid_badge"


class AttendanceNotFound(AttendanceError):
    code = "attendance_not_found"
