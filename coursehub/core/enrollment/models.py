"""Domain records for the enrollment aggregate.

An enrollment owns its ordered approval steps. Steps refer back to their
enrollment only by identifier; courses, users, roles and organizations are
likewise referenced by id and resolved through the persistence and
directory collaborators.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional, List
from uuid import UUID

from coursehub.core.enrollment.states import EnrollmentStatus, CourseStatus, TERMINAL_STATUSES
from coursehub.core.errors import AlreadyResolved
from coursehub.core.notifications.tracker import NotificationFlags


@dataclass
class ApprovalStep:
    """
    One link of an enrollment's frozen approval chain.

    ``approved_by`` / ``approved_at`` record the actor who resolved the step
    and when, whether the result was an approval or a rejection.
    """

    id: UUID
    enrollment_id: UUID
    template_step_id: Optional[UUID]
    order: int
    is_head_approval: bool = False
    is_final: bool = False
    role_id: Optional[UUID] = None
    is_implicit: bool = False

    approved_by: Optional[UUID] = None
    approved_at: Optional[datetime] = None
    is_approved: bool = False
    is_rejected: bool = False
    comment: Optional[str] = None

    @property
    def is_resolved(self) -> bool:
        return self.is_approved or self.is_rejected

    def resolve(
        self,
        approved: bool,
        actor_id: Optional[UUID],
        at: datetime,
        comment: Optional[str] = None,
    ) -> None:
        """Record the step's result. A resolved step is never written again."""
        if self.is_resolved:
            raise AlreadyResolved(
                f"Approval step {self.id} is already {'approved' if self.is_approved else 'rejected'}",
                step_id=self.id,
            )
        self.is_approved = approved
        self.is_rejected = not approved
        self.approved_by = actor_id
        self.approved_at = at
        self.comment = comment


@dataclass
class Enrollment:
    id: UUID
    course_id: UUID
    user_id: UUID
    organization_id: Optional[UUID] = None
    status: EnrollmentStatus = EnrollmentStatus.PENDING
    final_approval: bool = False
    notifications: NotificationFlags = field(default_factory=NotificationFlags)
    steps: List[ApprovalStep] = field(default_factory=list)
    enrolled_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = None
    version: int = 0

    @property
    def is_pending(self) -> bool:
        return self.status == EnrollmentStatus.PENDING

    @property
    def is_finalized(self) -> bool:
        """True once the enrollment left Pending for any reason."""
        return self.final_approval or self.status in TERMINAL_STATUSES

    def ordered_steps(self) -> List[ApprovalStep]:
        return sorted(self.steps, key=lambda s: s.order)

    def get_step(self, step_id: UUID) -> Optional[ApprovalStep]:
        for step in self.steps:
            if step.id == step_id:
                return step
        return None

    def __repr__(self) -> str:
        return f"<Enrollment {self.id} [{self.status.value}]>"


@dataclass
class CourseInfo:
    """The parts of a course the workflow reads."""

    id: UUID
    category_id: UUID
    organization_id: Optional[UUID] = None
    status: CourseStatus = CourseStatus.DRAFT
    start_at: Optional[datetime] = None
    end_at: Optional[datetime] = None
    available_seats: int = 0
    excuse_window_hours: Optional[int] = None
    name: str = ""


@dataclass
class AttendanceRecord:
    """A single check-in/check-out pair. Duration is derived, never stored."""

    id: UUID
    enrollment_id: UUID
    checked_in_at: datetime
    checked_out_at: Optional[datetime] = None

    @property
    def is_open(self) -> bool:
        return self.checked_out_at is None

    @property
    def duration(self) -> Optional[timedelta]:
        if self.checked_out_at is None:
            return None
        return self.checked_out_at - self.checked_in_at

    @property
    def duration_minutes(self) -> Optional[float]:
        duration = self.duration
        return duration.total_seconds() / 60 if duration is not None else None
