"""Enrollment and per-enrollment approval step models.

Approval steps reference their enrollment by id only; the repository loads
them explicitly, ordered by ``approval_order``.
"""

import uuid
from datetime import datetime
from sqlalchemy import (
    Column, String, DateTime, Boolean, Integer, ForeignKey, Text, Uuid, UniqueConstraint,
)

from coursehub.db.base import Base


class CourseEnrollment(Base):
    """
    A user's enrollment in a course.

    ``version`` is bumped on every update; a writer holding a stale
    version fails instead of overwriting a concurrent change.
    """
    __tablename__ = "course_enrollments"
    __table_args__ = (
        UniqueConstraint("course_id", "user_id", name="uq_course_enrollments_course_user"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    course_id = Column(Uuid(as_uuid=True), ForeignKey("courses.id"), nullable=False, index=True)
    user_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    organization_id = Column(Uuid(as_uuid=True), nullable=True)

    # Workflow state
    status = Column(String(20), nullable=False, default="pending", index=True)
    final_approval = Column(Boolean, nullable=False, default=False)

    # Automatic e-mail bookkeeping
    confirmation_sent = Column(Boolean, nullable=False, default=False)
    confirmation_sent_at = Column(DateTime, nullable=True)
    final_approval_sent = Column(Boolean, nullable=False, default=False)
    final_approval_sent_at = Column(DateTime, nullable=True)
    status_sent = Column(Boolean, nullable=False, default=False)
    status_sent_at = Column(DateTime, nullable=True)

    enrolled_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, nullable=True)
    version = Column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<CourseEnrollment {self.id} [{self.status}]>"


class CourseEnrollmentApproval(Base):
    """
    Frozen copy of one approval chain step for one enrollment.

    Once approved or rejected the row is never modified again.
    """
    __tablename__ = "course_enrollment_approvals"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    enrollment_id = Column(
        Uuid(as_uuid=True), ForeignKey("course_enrollments.id", ondelete="CASCADE"), nullable=False, index=True
    )
    chain_step_id = Column(
        Uuid(as_uuid=True), ForeignKey("approval_chain_steps.id", ondelete="SET NULL"), nullable=True
    )

    # Snapshot of the chain step
    approval_order = Column(Integer, nullable=False)
    is_head_approval = Column(Boolean, nullable=False, default=False)
    is_final = Column(Boolean, nullable=False, default=False)
    role_id = Column(Uuid(as_uuid=True), nullable=True)
    is_implicit = Column(Boolean, nullable=False, default=False)

    # Result
    approved_by = Column(Uuid(as_uuid=True), nullable=True)
    approved_at = Column(DateTime, nullable=True)
    is_approved = Column(Boolean, nullable=False, default=False)
    is_rejected = Column(Boolean, nullable=False, default=False)
    comment = Column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<CourseEnrollmentApproval {self.enrollment_id}#{self.approval_order}>"
