"""Enrollment service.

Provides the application-level API around the workflow engine: enrollment
admission, step approval/rejection, excuses and attendance, with
persistence, locking and notification dispatch.

Every write runs inside the repository's ``locked``/``locked_course`` block.
E-mails owed by a write are collected while it runs and handed to the
dispatcher only after the block committed.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional, Sequence
from uuid import UUID

from coursehub.core.approval import Actor, StepOutcome, WorkflowEngine
from coursehub.core.approval.authority import RoleGrant
from coursehub.core.approval.chain import get_chain, validate_chain
from coursehub.core.attendance import AttendanceRecorder, AttendanceSummary, badge_for, parse_badge, summarize
from coursehub.core.config import Settings, get_settings
from coursehub.core.enrollment import EnrollmentStateMachine
from coursehub.core.enrollment.models import ApprovalStep, AttendanceRecord, Enrollment
from coursehub.core.enrollment.states import CourseStatus, EnrollmentStatus
from coursehub.core.errors import (
    AttendanceNotFound,
    CourseFull,
    DuplicateEnrollment,
    EnrollmentClosed,
    EnrollmentNotFound,
    InvalidBadge,
)
from coursehub.core.notifications import NotificationKind, kinds_for_status, mark_sent, needs_send
from coursehub.core.ports import Directory, EmailDispatcher, EnrollmentRepository, IdentityProvider

logger = logging.getLogger(__name__)


@dataclass
class RosterEntry:
    """Attendance overview of one approved enrollment."""

    enrollment_id: UUID
    user_id: UUID
    badge: str
    summary: AttendanceSummary


class EnrollmentService:
    """
    High-level service for course enrollments.

    Handles:
    - Admitting enrollments and freezing their approval chain
    - Approving and rejecting steps on behalf of an actor
    - Self-service excuses
    - Check-in/check-out, also by badge barcode
    - Queuing lifecycle e-mails after commit
    """

    def __init__(
        self,
        repository: EnrollmentRepository,
        *,
        identity: IdentityProvider,
        directory: Directory,
        dispatcher: Optional[EmailDispatcher] = None,
        engine: Optional[WorkflowEngine] = None,
        recorder: Optional[AttendanceRecorder] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        """
        Initialize the enrollment service.

        Args:
            repository: Persistence collaborator
            identity: Source of actors' role grants
            directory: Organization directory (headship, organizations)
            dispatcher: Queues automatic e-mails; none are sent when omitted
            engine: Workflow engine (a default one is built from ``clock``)
            recorder: Attendance recorder (built from settings when omitted)
            settings: Application settings
            clock: Source of the current time
        """
        self.repository = repository
        self.identity = identity
        self.directory = directory
        self.dispatcher = dispatcher
        self.settings = settings or get_settings()
        self.clock = clock
        self.engine = engine or WorkflowEngine(clock=clock)
        self.recorder = recorder or AttendanceRecorder(
            require_active_course=self.settings.attendance_requires_active_course,
        )

    # ------------------------------------------------------------------
    # Actors
    # ------------------------------------------------------------------

    def build_actor(
        self,
        user_id: UUID,
        enrollment: Enrollment,
        grants: Optional[Sequence[RoleGrant]] = None,
    ) -> Actor:
        """Resolve ``user_id`` into an actor for ``enrollment``."""
        if grants is None:
            grants = self.identity.role_grants(user_id)
        return Actor(
            user_id=user_id,
            roles=tuple(grants),
            is_head_of_enrollee=self.directory.is_head_of(user_id, enrollment.user_id),
        )

    # ------------------------------------------------------------------
    # Admission
    # ------------------------------------------------------------------

    def enroll(self, course_id: UUID, user_id: UUID, *, now: Optional[datetime] = None) -> Enrollment:
        """
        Enroll a user in a course.

        The category's approval chain is frozen into the new enrollment.
        Categories without steps approve the enrollment immediately.

        Raises:
            EnrollmentClosed: If the course is not published
            DuplicateEnrollment: If the user is already enrolled
            CourseFull: If every seat is taken
            ChainMisconfigured: If the category's chain is invalid
        """
        now = now or self.clock()
        course = self.repository.load_course(course_id)

        if course.status != CourseStatus.PUBLISHED:
            logger.warning("Enrollment of %s in %s refused: course is %s", user_id, course_id, course.status.value)
            raise EnrollmentClosed(
                f"Course {course_id} is not open for enrollment ({course.status.value})",
                course_id=course_id,
            )

        outbox: List[NotificationKind] = []
        with self.repository.locked_course(course_id):
            if self.repository.find_enrollment(course_id, user_id) is not None:
                raise DuplicateEnrollment(
                    f"User {user_id} is already enrolled in course {course_id}",
                    course_id=course_id,
                    user_id=user_id,
                )

            taken = self.repository.count_active_enrollments(course_id)
            if taken >= course.available_seats:
                raise CourseFull(
                    f"Course {course_id} has no seats left ({taken}/{course.available_seats})",
                    course_id=course_id,
                )

            chain = get_chain(course.category_id, self.repository.load_chain)
            validate_chain(
                chain,
                known_role_ids=self.repository.known_role_ids(),
                category_id=course.category_id,
            )

            enrollment = Enrollment(
                id=uuid.uuid4(),
                course_id=course_id,
                user_id=user_id,
                organization_id=self.directory.organization_of(user_id),
                enrolled_at=now,
                updated_at=now,
            )
            self.engine.create_enrollment_snapshot(enrollment, chain)
            outbox.append(NotificationKind.CONFIRMATION)

            outcome = self.engine.auto_approve(enrollment, now=now)
            if outcome is not None and outcome.completed:
                outbox.extend(kinds_for_status(enrollment.status))

            self.repository.add_enrollment(enrollment)

        logger.info("User %s enrolled in course %s (enrollment %s)", user_id, course_id, enrollment.id)
        self._flush_outbox(enrollment, outbox)
        return enrollment

    # ------------------------------------------------------------------
    # Approval workflow
    # ------------------------------------------------------------------

    def current_step(self, enrollment_id: UUID) -> Optional[ApprovalStep]:
        return self.engine.current_step(self.repository.load_enrollment(enrollment_id))

    def approve_step(
        self,
        enrollment_id: UUID,
        step_id: UUID,
        actor_id: UUID,
        comment: Optional[str] = None,
        *,
        now: Optional[datetime] = None,
    ) -> StepOutcome:
        """Approve the current step of an enrollment as ``actor_id``."""
        return self._resolve_step(enrollment_id, step_id, actor_id, comment, approved=True, now=now)

    def reject_step(
        self,
        enrollment_id: UUID,
        step_id: UUID,
        actor_id: UUID,
        comment: Optional[str] = None,
        *,
        now: Optional[datetime] = None,
    ) -> StepOutcome:
        """Reject the current step of an enrollment as ``actor_id``."""
        return self._resolve_step(enrollment_id, step_id, actor_id, comment, approved=False, now=now)

    def _resolve_step(
        self,
        enrollment_id: UUID,
        step_id: UUID,
        actor_id: UUID,
        comment: Optional[str],
        *,
        approved: bool,
        now: Optional[datetime],
    ) -> StepOutcome:
        outbox: List[NotificationKind] = []
        with self.repository.locked(enrollment_id):
            enrollment = self.repository.load_enrollment(enrollment_id)
            actor = self.build_actor(actor_id, enrollment)

            resolve = self.engine.approve_step if approved else self.engine.reject_step
            outcome = resolve(enrollment, step_id, actor, comment, now=now)

            self.repository.save_enrollment(enrollment, enrollment.steps)
            if outcome.completed:
                outbox.extend(kinds_for_status(enrollment.status))

        self._flush_outbox(enrollment, outbox)
        return outcome

    def excuse(
        self,
        enrollment_id: UUID,
        *,
        actor_id: Optional[UUID] = None,
        now: Optional[datetime] = None,
    ) -> Enrollment:
        """
        Withdraw a pending enrollment.

        The category's excuse window applies, falling back to
        ``default_excuse_window_hours`` when the category sets none.

        Raises:
            ExcuseWindowClosed: If the enrollment can no longer be excused
        """
        now = now or self.clock()
        outbox: List[NotificationKind] = []
        with self.repository.locked(enrollment_id):
            enrollment = self.repository.load_enrollment(enrollment_id)
            course = self.repository.load_course(enrollment.course_id)

            window = course.excuse_window_hours
            if window is None:
                window = self.settings.default_excuse_window_hours

            EnrollmentStateMachine(enrollment).excuse(now, course.start_at, window, actor_id=actor_id)
            self.repository.save_enrollment(enrollment, enrollment.steps)
            outbox.extend(kinds_for_status(enrollment.status))

        self._flush_outbox(enrollment, outbox)
        return enrollment

    def pending_for_actor(self, actor_id: UUID, course_id: Optional[UUID] = None) -> List[Enrollment]:
        """Pending enrollments whose current step ``actor_id`` may resolve."""
        grants = self.identity.role_grants(actor_id)
        result = []
        for enrollment in self.repository.list_pending_enrollments(course_id):
            step = self.engine.current_step(enrollment)
            if step is None or step.is_implicit:
                continue
            actor = self.build_actor(actor_id, enrollment, grants)
            if self.engine.check_authority(step, actor, enrollment):
                result.append(enrollment)
        return result

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def mark_sent(self, enrollment_id: UUID, kind: NotificationKind, *, at: Optional[datetime] = None) -> bool:
        """Record a successful automatic send in its own transaction."""
        with self.repository.locked(enrollment_id):
            enrollment = self.repository.load_enrollment(enrollment_id)
            changed = mark_sent(enrollment, kind, at or self.clock())
            if changed:
                self.repository.save_enrollment(enrollment, enrollment.steps)
        return changed

    def _flush_outbox(self, enrollment: Enrollment, kinds: List[NotificationKind]) -> None:
        if self.dispatcher is None:
            return
        for kind in kinds:
            if not needs_send(enrollment, kind):
                continue
            try:
                self.dispatcher.dispatch(enrollment.id, kind)
            except Exception:
                # Committed state stands; the e-mail can be resent manually
                logger.exception("Enrollment %s: failed to queue %s e-mail", enrollment.id, kind.value)

    # ------------------------------------------------------------------
    # Attendance
    # ------------------------------------------------------------------

    def check_in(self, enrollment_id: UUID, *, now: Optional[datetime] = None) -> AttendanceRecord:
        """
        Check an approved enrollee in.

        Raises:
            NotApproved: If the enrollment has not cleared its chain
            CourseNotActive: If the course is not running
            AlreadyCheckedIn: If the enrollee is still checked in
        """
        now = now or self.clock()
        with self.repository.locked(enrollment_id):
            enrollment = self.repository.load_enrollment(enrollment_id)
            course = self.repository.load_course(enrollment.course_id)
            record = self.recorder.check_in(
                enrollment,
                self.repository.open_attendance(enrollment_id),
                now,
                course=course,
            )
            self.repository.save_attendance(record)
        return record

    def check_out(self, enrollment_id: UUID, *, now: Optional[datetime] = None) -> AttendanceRecord:
        """
        Close the enrollee's open attendance record.

        Raises:
            AttendanceNotFound: If the enrollee is not checked in
            InvalidCheckOut: If ``now`` precedes the check-in
        """
        now = now or self.clock()
        with self.repository.locked(enrollment_id):
            open_records = sorted(
                self.repository.open_attendance(enrollment_id),
                key=lambda r: r.checked_in_at,
            )
            if not open_records:
                raise AttendanceNotFound(
                    f"Enrollment {enrollment_id} is not checked in",
                    enrollment_id=enrollment_id,
                )
            record = self.recorder.check_out(open_records[-1], now)
            self.repository.save_attendance(record)
        return record

    def check_out_attendance(self, attendance_id: UUID, *, now: Optional[datetime] = None) -> AttendanceRecord:
        """
        Close one attendance record by its id.

        Raises:
            AttendanceNotFound: If no such record exists
            AlreadyCheckedOut: If the record is already closed
            InvalidCheckOut: If ``now`` precedes the check-in
        """
        now = now or self.clock()
        enrollment_id = self.repository.load_attendance(attendance_id).enrollment_id
        with self.repository.locked(enrollment_id):
            record = self.recorder.check_out(self.repository.load_attendance(attendance_id), now)
            self.repository.save_attendance(record)
        return record

    def check_in_by_badge(self, code: str, *, now: Optional[datetime] = None) -> AttendanceRecord:
        return self.check_in(self._enrollment_for_badge(code).id, now=now)

    def check_out_by_badge(self, code: str, *, now: Optional[datetime] = None) -> AttendanceRecord:
        return self.check_out(self._enrollment_for_badge(code).id, now=now)

    def _enrollment_for_badge(self, code: str) -> Enrollment:
        course_part, user_part = parse_badge(code)
        try:
            course_id, user_id = UUID(course_part), UUID(user_part)
        except ValueError:
            raise InvalidBadge(f"Badge {code!r} does not contain valid identifiers", code=code)

        enrollment = self.repository.find_enrollment(course_id, user_id)
        if enrollment is None:
            logger.warning("Badge %s matches no enrollment", code)
            raise EnrollmentNotFound(code)
        return enrollment

    def attendance_roster(self, course_id: UUID) -> List[RosterEntry]:
        """Attendance summaries of every approved enrollment in a course."""
        roster = []
        for enrollment in self.repository.list_enrollments(course_id):
            if enrollment.status != EnrollmentStatus.APPROVE:
                continue
            roster.append(
                RosterEntry(
                    enrollment_id=enrollment.id,
                    user_id=enrollment.user_id,
                    badge=badge_for(enrollment),
                    summary=summarize(self.repository.list_attendance(enrollment.id)),
                )
            )
        return roster
