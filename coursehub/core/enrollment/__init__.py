"""Enrollment status model.

Implements the enrollment state machine and the domain records it acts on.
"""

from .states import (
    EnrollmentStatus,
    EnrollmentAction,
    CourseStatus,
    SEAT_HOLDING_STATUSES,
    TERMINAL_STATUSES,
)
from .models import Enrollment, ApprovalStep, CourseInfo, AttendanceRecord
from .machine import EnrollmentStateMachine, excuse, excuse_deadline

__all__ = [
    "EnrollmentStatus",
    "EnrollmentAction",
    "CourseStatus",
    "SEAT_HOLDING_STATUSES",
    "TERMINAL_STATUSES",
    "Enrollment",
    "ApprovalStep",
    "CourseInfo",
    "AttendanceRecord",
    "EnrollmentStateMachine",
    "excuse",
    "excuse_deadline",
]
