"""SQLAlchemy implementation of the enrollment persistence collaborator."""

import logging
from contextlib import contextmanager
from typing import Iterable, Iterator, List, Optional, Set
from uuid import UUID

from sqlalchemy import and_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified
from sqlalchemy.orm.exc import StaleDataError

from coursehub.core.approval.chain import ChainStep
from coursehub.core.enrollment.models import (
    ApprovalStep,
    AttendanceRecord,
    CourseInfo,
    Enrollment,
)
from coursehub.core.enrollment.states import SEAT_HOLDING_STATUSES, CourseStatus, EnrollmentStatus
from coursehub.core.errors import (
    AttendanceNotFound,
    DuplicateEnrollment,
    EnrollmentNotFound,
    OptimisticConflict,
    WorkflowError,
)
from coursehub.core.notifications.tracker import NotificationFlags
from coursehub.core.ports import EnrollmentRepository
from coursehub.db.models import (
    ApprovalChainStep,
    Course,
    CourseAttendance,
    CourseCategory,
    CourseEnrollment,
    CourseEnrollmentApproval,
    Role,
)

logger = logging.getLogger(__name__)


class SqlAlchemyEnrollmentRepository(EnrollmentRepository):
    """
    Enrollment repository backed by a SQLAlchemy session.

    ``locked`` takes a ``SELECT ... FOR UPDATE`` row lock on the enrollment
    and ``locked_course`` one on the course row; both commit the session when
    the block exits, and any error rolls the whole transaction back.
    """

    def __init__(self, db: Session):
        self.db = db
        self._depth = 0

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    @contextmanager
    def transaction(self, enrollment_id: Optional[UUID] = None) -> Iterator[None]:
        if self._depth:
            self._depth += 1
            try:
                yield
            finally:
                self._depth -= 1
            return

        self._depth = 1
        try:
            yield
            self.db.commit()
        except StaleDataError as exc:
            self.db.rollback()
            raise OptimisticConflict(enrollment_id) from exc
        except Exception:
            self.db.rollback()
            raise
        finally:
            self._depth = 0

    @contextmanager
    def locked(self, enrollment_id: UUID) -> Iterator[None]:
        with self.transaction(enrollment_id):
            row = (
                self.db.query(CourseEnrollment)
                .filter(CourseEnrollment.id == enrollment_id)
                .with_for_update()
                .populate_existing()
                .first()
            )
            if row is None:
                raise EnrollmentNotFound(enrollment_id)
            yield

    @contextmanager
    def locked_course(self, course_id: UUID) -> Iterator[None]:
        with self.transaction():
            row = (
                self.db.query(Course)
                .filter(Course.id == course_id)
                .with_for_update()
                .first()
            )
            if row is None:
                raise WorkflowError(f"Course {course_id} not found", course_id=course_id)
            yield

    # ------------------------------------------------------------------
    # Enrollments
    # ------------------------------------------------------------------

    def load_enrollment(self, enrollment_id: UUID) -> Enrollment:
        row = self.db.query(CourseEnrollment).filter(CourseEnrollment.id == enrollment_id).first()
        if row is None:
            raise EnrollmentNotFound(enrollment_id)
        return self._enrollment_to_domain(row)

    def find_enrollment(self, course_id: UUID, user_id: UUID) -> Optional[Enrollment]:
        row = self.db.query(CourseEnrollment).filter(
            and_(
                CourseEnrollment.course_id == course_id,
                CourseEnrollment.user_id == user_id,
            )
        ).first()
        return self._enrollment_to_domain(row) if row else None

    def list_pending_enrollments(self, course_id: Optional[UUID] = None) -> List[Enrollment]:
        query = self.db.query(CourseEnrollment).filter(
            CourseEnrollment.status == EnrollmentStatus.PENDING.value
        )
        if course_id:
            query = query.filter(CourseEnrollment.course_id == course_id)
        query = query.order_by(CourseEnrollment.enrolled_at.asc())
        return [self._enrollment_to_domain(row) for row in query.all()]

    def list_enrollments(self, course_id: UUID) -> List[Enrollment]:
        rows = (
            self.db.query(CourseEnrollment)
            .filter(CourseEnrollment.course_id == course_id)
            .order_by(CourseEnrollment.enrolled_at.asc())
            .all()
        )
        return [self._enrollment_to_domain(row) for row in rows]

    def count_active_enrollments(self, course_id: UUID) -> int:
        return self.db.query(CourseEnrollment).filter(
            and_(
                CourseEnrollment.course_id == course_id,
                CourseEnrollment.status.in_([status.value for status in SEAT_HOLDING_STATUSES]),
            )
        ).count()

    def add_enrollment(self, enrollment: Enrollment) -> None:
        row = CourseEnrollment(
            id=enrollment.id,
            course_id=enrollment.course_id,
            user_id=enrollment.user_id,
            organization_id=enrollment.organization_id,
            enrolled_at=enrollment.enrolled_at,
        )
        self._apply_enrollment(row, enrollment)
        self.db.add(row)
        for step in enrollment.steps:
            self.db.add(self._new_step_row(step))
        try:
            self.db.flush()
        except IntegrityError as exc:
            # uq_course_enrollments_course_user
            raise DuplicateEnrollment(
                f"User {enrollment.user_id} is already enrolled in course {enrollment.course_id}",
                course_id=enrollment.course_id,
                user_id=enrollment.user_id,
            ) from exc
        enrollment.version = row.version

    def save_enrollment(self, enrollment: Enrollment, steps: Iterable[ApprovalStep]) -> None:
        row = self.db.get(CourseEnrollment, enrollment.id)
        if row is None:
            raise EnrollmentNotFound(enrollment.id)
        if row.version != enrollment.version:
            raise OptimisticConflict(enrollment.id, enrollment.version)

        self._apply_enrollment(row, enrollment)
        # Bump the version even when only step rows changed
        flag_modified(row, "updated_at")

        for step in steps:
            step_row = self.db.get(CourseEnrollmentApproval, step.id)
            if step_row is None:
                self.db.add(self._new_step_row(step))
                continue
            if step_row.is_approved or step_row.is_rejected:
                if (step_row.is_approved, step_row.is_rejected) != (step.is_approved, step.is_rejected):
                    raise OptimisticConflict(enrollment.id, enrollment.version)
                continue
            step_row.approved_by = step.approved_by
            step_row.approved_at = step.approved_at
            step_row.is_approved = step.is_approved
            step_row.is_rejected = step.is_rejected
            step_row.comment = step.comment

        try:
            self.db.flush()
        except StaleDataError as exc:
            raise OptimisticConflict(enrollment.id, enrollment.version) from exc
        enrollment.version = row.version

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------

    def load_chain(self, category_id: UUID) -> List[ChainStep]:
        rows = (
            self.db.query(ApprovalChainStep)
            .filter(ApprovalChainStep.category_id == category_id)
            .order_by(ApprovalChainStep.approval_order.asc())
            .all()
        )
        return [
            ChainStep(
                id=row.id,
                category_id=row.category_id,
                order=row.approval_order,
                is_head_approval=row.is_head_approval,
                is_final=row.is_final,
                role_id=row.role_id,
            )
            for row in rows
        ]

    def known_role_ids(self) -> Set[UUID]:
        return {role_id for (role_id,) in self.db.query(Role.id).all()}

    def load_course(self, course_id: UUID) -> CourseInfo:
        result = (
            self.db.query(Course, CourseCategory)
            .join(CourseCategory, Course.category_id == CourseCategory.id)
            .filter(Course.id == course_id)
            .first()
        )
        if result is None:
            raise WorkflowError(f"Course {course_id} not found", course_id=course_id)
        course, category = result
        return CourseInfo(
            id=course.id,
            category_id=course.category_id,
            organization_id=course.organization_id,
            status=CourseStatus(course.status),
            start_at=course.start_at,
            end_at=course.end_at,
            available_seats=course.available_seats,
            excuse_window_hours=category.excuse_window_hours,
            name=course.name,
        )

    # ------------------------------------------------------------------
    # Attendance
    # ------------------------------------------------------------------

    def open_attendance(self, enrollment_id: UUID) -> List[AttendanceRecord]:
        rows = self.db.query(CourseAttendance).filter(
            and_(
                CourseAttendance.enrollment_id == enrollment_id,
                CourseAttendance.checked_out_at.is_(None),
            )
        ).order_by(CourseAttendance.checked_in_at.desc()).all()
        return [self._attendance_to_domain(row) for row in rows]

    def list_attendance(self, enrollment_id: UUID) -> List[AttendanceRecord]:
        rows = (
            self.db.query(CourseAttendance)
            .filter(CourseAttendance.enrollment_id == enrollment_id)
            .order_by(CourseAttendance.checked_in_at.asc())
            .all()
        )
        return [self._attendance_to_domain(row) for row in rows]

    def load_attendance(self, attendance_id: UUID) -> AttendanceRecord:
        row = self.db.get(CourseAttendance, attendance_id)
        if row is None:
            raise AttendanceNotFound(f"Attendance {attendance_id} not found", attendance_id=attendance_id)
        return self._attendance_to_domain(row)

    def save_attendance(self, record: AttendanceRecord) -> None:
        row = self.db.get(CourseAttendance, record.id)
        if row is None:
            row = CourseAttendance(id=record.id, enrollment_id=record.enrollment_id)
            self.db.add(row)
        row.checked_in_at = record.checked_in_at
        row.checked_out_at = record.checked_out_at
        self.db.flush()

    # ------------------------------------------------------------------
    # Mapping
    # ------------------------------------------------------------------

    def _enrollment_to_domain(self, row: CourseEnrollment) -> Enrollment:
        step_rows = (
            self.db.query(CourseEnrollmentApproval)
            .filter(CourseEnrollmentApproval.enrollment_id == row.id)
            .order_by(CourseEnrollmentApproval.approval_order.asc())
            .all()
        )
        return Enrollment(
            id=row.id,
            course_id=row.course_id,
            user_id=row.user_id,
            organization_id=row.organization_id,
            status=EnrollmentStatus(row.status),
            final_approval=row.final_approval,
            notifications=NotificationFlags(
                confirmation_sent=row.confirmation_sent,
                confirmation_sent_at=row.confirmation_sent_at,
                final_approval_sent=row.final_approval_sent,
                final_approval_sent_at=row.final_approval_sent_at,
                status_sent=row.status_sent,
                status_sent_at=row.status_sent_at,
            ),
            steps=[self._step_to_domain(s) for s in step_rows],
            enrolled_at=row.enrolled_at,
            updated_at=row.updated_at,
            version=row.version,
        )

    @staticmethod
    def _step_to_domain(row: CourseEnrollmentApproval) -> ApprovalStep:
        return ApprovalStep(
            id=row.id,
            enrollment_id=row.enrollment_id,
            template_step_id=row.chain_step_id,
            order=row.approval_order,
            is_head_approval=row.is_head_approval,
            is_final=row.is_final,
            role_id=row.role_id,
            is_implicit=row.is_implicit,
            approved_by=row.approved_by,
            approved_at=row.approved_at,
            is_approved=row.is_approved,
            is_rejected=row.is_rejected,
            comment=row.comment,
        )

    @staticmethod
    def _new_step_row(step: ApprovalStep) -> CourseEnrollmentApproval:
        return CourseEnrollmentApproval(
            id=step.id,
            enrollment_id=step.enrollment_id,
            chain_step_id=step.template_step_id,
            approval_order=step.order,
            is_head_approval=step.is_head_approval,
            is_final=step.is_final,
            role_id=step.role_id,
            is_implicit=step.is_implicit,
            approved_by=step.approved_by,
            approved_at=step.approved_at,
            is_approved=step.is_approved,
            is_rejected=step.is_rejected,
            comment=step.comment,
        )

    @staticmethod
    def _apply_enrollment(row: CourseEnrollment, enrollment: Enrollment) -> None:
        flags = enrollment.notifications
        row.status = enrollment.status.value
        row.final_approval = enrollment.final_approval
        row.confirmation_sent = flags.confirmation_sent
        row.confirmation_sent_at = flags.confirmation_sent_at
        row.final_approval_sent = flags.final_approval_sent
        row.final_approval_sent_at = flags.final_approval_sent_at
        row.status_sent = flags.status_sent
        row.status_sent_at = flags.status_sent_at
        row.updated_at = enrollment.updated_at

    @staticmethod
    def _attendance_to_domain(row: CourseAttendance) -> AttendanceRecord:
        return AttendanceRecord(
            id=row.id,
            enrollment_id=row.enrollment_id,
            checked_in_at=row.checked_in_at,
            checked_out_at=row.checked_out_at,
        )
