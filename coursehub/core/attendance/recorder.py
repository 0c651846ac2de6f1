"""Course attendance.

Only enrollments that cleared their approval chain may check in. Each
check-in opens a fresh record; a user can re-enter after checking out.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, Optional, Tuple

from coursehub.core.enrollment.models import AttendanceRecord, CourseInfo, Enrollment
from coursehub.core.enrollment.states import CourseStatus, EnrollmentStatus
from coursehub.core.errors import (
    AlreadyCheckedIn,
    AlreadyCheckedOut,
    CourseNotActive,
    InvalidBadge,
    InvalidCheckOut,
    NotApproved,
)

logger = logging.getLogger(__name__)


def parse_badge(code: Optional[str]) -> Tuple[str, str]:
    """
    Parse a badge barcode of the form ``{course_id}_{user_id}``.

    Only the first underscore separates the parts.

    Raises:
        InvalidBadge: If the code is empty or either part is missing
    """
    if code is None or not code.strip():
        raise InvalidBadge("Badge code is empty")
    parts = code.strip().split("_", 1)
    if len(parts) != 2:
        raise InvalidBadge(f"Invalid badge format: {code!r}, expected {{course_id}}_{{user_id}}")
    course_part, user_part = parts[0].strip(), parts[1].strip()
    if not course_part or not user_part:
        raise InvalidBadge(f"Invalid badge format: {code!r}, expected {{course_id}}_{{user_id}}")
    return course_part, user_part


def badge_for(enrollment: Enrollment) -> str:
    return f"{enrollment.course_id}_{enrollment.user_id}"


@dataclass
class AttendanceSummary:
    check_ins: int
    total: timedelta
    is_checked_in: bool
    last_check_in: Optional[datetime] = None
    last_check_out: Optional[datetime] = None

    @property
    def total_minutes(self) -> float:
        return self.total.total_seconds() / 60


def summarize(records: Iterable[AttendanceRecord]) -> AttendanceSummary:
    """Total attended time over closed records and the latest state."""
    records = sorted(records, key=lambda r: r.checked_in_at)
    total = timedelta()
    for record in records:
        if record.duration is not None:
            total += record.duration
    last = records[-1] if records else None
    return AttendanceSummary(
        check_ins=len(records),
        total=total,
        is_checked_in=any(r.is_open for r in records),
        last_check_in=last.checked_in_at if last else None,
        last_check_out=last.checked_out_at if last else None,
    )


class AttendanceRecorder:
    """
    Records check-ins and check-outs for approved enrollments.

    Args:
        require_active_course: Refuse check-ins unless the course is active
    """

    def __init__(self, *, require_active_course: bool = True):
        self.require_active_course = require_active_course

    def check_in(
        self,
        enrollment: Enrollment,
        open_records: Iterable[AttendanceRecord],
        now: datetime,
        *,
        course: Optional[CourseInfo] = None,
    ) -> AttendanceRecord:
        """
        Open a new attendance record.

        Raises:
            NotApproved: If the enrollment is not approved
            CourseNotActive: If an active course is required and it is not
            AlreadyCheckedIn: If a previous record is still open
        """
        if enrollment.status != EnrollmentStatus.APPROVE or not enrollment.final_approval:
            logger.warning("Enrollment %s: check-in refused, status %s", enrollment.id, enrollment.status.value)
            raise NotApproved(enrollment.id, enrollment.status.value)

        if self.require_active_course and course is not None and course.status != CourseStatus.ACTIVE:
            raise CourseNotActive(
                f"Course {course.id} is not active ({course.status.value})",
                course_id=course.id,
            )

        if any(record.is_open for record in open_records):
            raise AlreadyCheckedIn(
                f"Enrollment {enrollment.id} is already checked in",
                enrollment_id=enrollment.id,
            )

        record = AttendanceRecord(
            id=uuid.uuid4(),
            enrollment_id=enrollment.id,
            checked_in_at=now,
        )
        logger.info("Enrollment %s: checked in at %s", enrollment.id, now.isoformat())
        return record

    def check_out(self, record: AttendanceRecord, now: datetime) -> AttendanceRecord:
        """
        Close an attendance record.

        Raises:
            AlreadyCheckedOut: If the record is already closed
            InvalidCheckOut: If ``now`` precedes the check-in time
        """
        if not record.is_open:
            raise AlreadyCheckedOut(
                f"Attendance {record.id} was already checked out",
                attendance_id=record.id,
            )
        if now < record.checked_in_at:
            raise InvalidCheckOut(
                f"Check-out time {now.isoformat()} precedes check-in {record.checked_in_at.isoformat()}",
                attendance_id=record.id,
            )
        record.checked_out_at = now
        logger.info("Enrollment %s: checked out after %.1f minutes", record.enrollment_id, record.duration_minutes)
        return record
