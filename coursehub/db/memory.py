"""In-process enrollment repository.

Keeps deep copies of every record so callers never share mutable state with
the store. Writes made inside ``transaction``/``locked`` are staged per
thread and applied only when the block exits without an error.
"""

import copy
import threading
from collections import defaultdict
from contextlib import contextmanager
from typing import Dict, Iterable, Iterator, List, Optional, Set
from uuid import UUID

from coursehub.core.approval.chain import ChainStep
from coursehub.core.enrollment.models import (
    ApprovalStep,
    AttendanceRecord,
    CourseInfo,
    Enrollment,
)
from coursehub.core.enrollment.states import SEAT_HOLDING_STATUSES, EnrollmentStatus
from coursehub.core.errors import (
    AttendanceNotFound,
    DuplicateEnrollment,
    EnrollmentNotFound,
    OptimisticConflict,
    WorkflowError,
)
from coursehub.core.ports import EnrollmentRepository


class InMemoryEnrollmentRepository(EnrollmentRepository):
    """Thread-safe repository holding everything in dictionaries."""

    def __init__(self):
        self._enrollments: Dict[UUID, Enrollment] = {}
        self._attendance: Dict[UUID, AttendanceRecord] = {}
        self._courses: Dict[UUID, CourseInfo] = {}
        self._chains: Dict[UUID, List[ChainStep]] = defaultdict(list)
        self._roles: Set[UUID] = set()

        self._guard = threading.RLock()
        self._locks: Dict[UUID, threading.Lock] = {}
        self._course_locks: Dict[UUID, threading.Lock] = {}
        self._local = threading.local()

    # ------------------------------------------------------------------
    # Catalog setup
    # ------------------------------------------------------------------

    def add_role(self, role_id: UUID) -> None:
        self._roles.add(role_id)

    def add_chain_step(self, step: ChainStep) -> None:
        self._chains[step.category_id].append(step)

    def add_course(self, course: CourseInfo) -> None:
        self._courses[course.id] = copy.deepcopy(course)

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def _lock_for(self, enrollment_id: UUID) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault(enrollment_id, threading.Lock())

    def _course_lock_for(self, course_id: UUID) -> threading.Lock:
        with self._guard:
            return self._course_locks.setdefault(course_id, threading.Lock())

    @property
    def _staged(self) -> Optional[dict]:
        return getattr(self._local, "staged", None)

    @contextmanager
    def transaction(self) -> Iterator[None]:
        if self._staged is not None:
            yield
            return

        self._local.staged = {"enrollments": {}, "attendance": {}}
        try:
            yield
            staged = self._staged
        finally:
            self._local.staged = None

        with self._guard:
            for enrollment_id, (expected, enrollment) in staged["enrollments"].items():
                current = self._enrollments.get(enrollment_id)
                if current is not None and expected is not None and current.version != expected:
                    raise OptimisticConflict(enrollment_id, expected)
                if current is None:
                    self._check_unique(enrollment)
            for enrollment_id, (_, enrollment) in staged["enrollments"].items():
                self._enrollments[enrollment_id] = enrollment
            self._attendance.update(staged["attendance"])

    @contextmanager
    def locked(self, enrollment_id: UUID) -> Iterator[None]:
        with self._lock_for(enrollment_id):
            with self.transaction():
                if self._get_enrollment(enrollment_id) is None:
                    raise EnrollmentNotFound(enrollment_id)
                yield

    @contextmanager
    def locked_course(self, course_id: UUID) -> Iterator[None]:
        if course_id not in self._courses:
            raise WorkflowError(f"Course {course_id} not found", course_id=course_id)
        with self._course_lock_for(course_id):
            with self.transaction():
                yield

    def _check_unique(self, enrollment: Enrollment) -> None:
        for other in self._enrollments.values():
            if other.course_id == enrollment.course_id and other.user_id == enrollment.user_id:
                raise DuplicateEnrollment(
                    f"User {enrollment.user_id} is already enrolled in course {enrollment.course_id}",
                    course_id=enrollment.course_id,
                    user_id=enrollment.user_id,
                )

    # ------------------------------------------------------------------
    # Enrollments
    # ------------------------------------------------------------------

    def _get_enrollment(self, enrollment_id: UUID) -> Optional[Enrollment]:
        staged = self._staged
        if staged is not None and enrollment_id in staged["enrollments"]:
            return staged["enrollments"][enrollment_id][1]
        with self._guard:
            return self._enrollments.get(enrollment_id)

    def _all_enrollments(self) -> List[Enrollment]:
        with self._guard:
            merged = dict(self._enrollments)
        staged = self._staged
        if staged is not None:
            merged.update({k: v for k, (_, v) in staged["enrollments"].items()})
        return list(merged.values())

    def _put_enrollment(self, enrollment: Enrollment, expected_version: Optional[int]) -> None:
        stored = copy.deepcopy(enrollment)
        staged = self._staged
        if staged is None:
            with self._guard:
                current = self._enrollments.get(enrollment.id)
                if current is not None and expected_version is not None and current.version != expected_version:
                    raise OptimisticConflict(enrollment.id, expected_version)
                if current is None:
                    self._check_unique(stored)
                self._enrollments[enrollment.id] = stored
            return
        previous = staged["enrollments"].get(enrollment.id)
        # Keep the version observed before the first staged write
        original = previous[0] if previous else expected_version
        staged["enrollments"][enrollment.id] = (original, stored)

    def load_enrollment(self, enrollment_id: UUID) -> Enrollment:
        enrollment = self._get_enrollment(enrollment_id)
        if enrollment is None:
            raise EnrollmentNotFound(enrollment_id)
        return copy.deepcopy(enrollment)

    def find_enrollment(self, course_id: UUID, user_id: UUID) -> Optional[Enrollment]:
        for enrollment in self._all_enrollments():
            if enrollment.course_id == course_id and enrollment.user_id == user_id:
                return copy.deepcopy(enrollment)
        return None

    def list_pending_enrollments(self, course_id: Optional[UUID] = None) -> List[Enrollment]:
        result = [
            copy.deepcopy(e) for e in self._all_enrollments()
            if e.status == EnrollmentStatus.PENDING and (course_id is None or e.course_id == course_id)
        ]
        return sorted(result, key=lambda e: e.enrolled_at)

    def list_enrollments(self, course_id: UUID) -> List[Enrollment]:
        result = [copy.deepcopy(e) for e in self._all_enrollments() if e.course_id == course_id]
        return sorted(result, key=lambda e: e.enrolled_at)

    def count_active_enrollments(self, course_id: UUID) -> int:
        return sum(
            1 for e in self._all_enrollments()
            if e.course_id == course_id and e.status in SEAT_HOLDING_STATUSES
        )

    def add_enrollment(self, enrollment: Enrollment) -> None:
        if self._get_enrollment(enrollment.id) is not None:
            raise WorkflowError(f"Enrollment {enrollment.id} already exists", enrollment_id=enrollment.id)
        enrollment.version = 1
        self._put_enrollment(enrollment, None)

    def save_enrollment(self, enrollment: Enrollment, steps: Iterable[ApprovalStep]) -> None:
        current = self._get_enrollment(enrollment.id)
        if current is None:
            raise EnrollmentNotFound(enrollment.id)
        if current.version != enrollment.version:
            raise OptimisticConflict(enrollment.id, enrollment.version)

        stored_steps = {step.id: step for step in current.steps}
        for step in steps:
            before = stored_steps.get(step.id)
            if before is not None and before.is_resolved and (
                (before.is_approved, before.is_rejected) != (step.is_approved, step.is_rejected)
            ):
                raise OptimisticConflict(enrollment.id, enrollment.version)

        expected = enrollment.version
        enrollment.steps = list(steps)
        enrollment.version = expected + 1
        self._put_enrollment(enrollment, expected)

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------

    def load_chain(self, category_id: UUID) -> List[ChainStep]:
        return sorted(self._chains.get(category_id, []), key=lambda s: s.order)

    def known_role_ids(self) -> Set[UUID]:
        return set(self._roles)

    def load_course(self, course_id: UUID) -> CourseInfo:
        course = self._courses.get(course_id)
        if course is None:
            raise WorkflowError(f"Course {course_id} not found", course_id=course_id)
        return copy.deepcopy(course)

    # ------------------------------------------------------------------
    # Attendance
    # ------------------------------------------------------------------

    def _all_attendance(self) -> List[AttendanceRecord]:
        with self._guard:
            merged = dict(self._attendance)
        staged = self._staged
        if staged is not None:
            merged.update(staged["attendance"])
        return list(merged.values())

    def open_attendance(self, enrollment_id: UUID) -> List[AttendanceRecord]:
        return [
            copy.deepcopy(r) for r in self._all_attendance()
            if r.enrollment_id == enrollment_id and r.is_open
        ]

    def list_attendance(self, enrollment_id: UUID) -> List[AttendanceRecord]:
        records = [copy.deepcopy(r) for r in self._all_attendance() if r.enrollment_id == enrollment_id]
        return sorted(records, key=lambda r: r.checked_in_at)

    def load_attendance(self, attendance_id: UUID) -> AttendanceRecord:
        for record in self._all_attendance():
            if record.id == attendance_id:
                return copy.deepcopy(record)
        raise AttendanceNotFound(f"Attendance {attendance_id} not found", attendance_id=attendance_id)

    def save_attendance(self, record: AttendanceRecord) -> None:
        stored = copy.deepcopy(record)
        staged = self._staged
        if staged is not None:
            staged["attendance"][record.id] = stored
            return
        with self._guard:
            self._attendance[record.id] = stored
