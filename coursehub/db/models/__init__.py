"""Database models for coursehub."""

from coursehub.db.models.catalog import Role, CourseCategory, ApprovalChainStep, Course
from coursehub.db.models.enrollment import CourseEnrollment, CourseEnrollmentApproval
from coursehub.db.models.attendance import CourseAttendance
from coursehub.db.models.notification import EnrollmentEmailHistory

__all__ = [
    "Role",
    "CourseCategory",
    "ApprovalChainStep",
    "Course",
    "CourseEnrollment",
    "CourseEnrollmentApproval",
    "CourseAttendance",
    "EnrollmentEmailHistory",
]
