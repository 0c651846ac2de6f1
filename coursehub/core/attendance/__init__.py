"""Attendance recording for approved enrollments."""

from .recorder import AttendanceRecorder, AttendanceSummary, parse_badge, badge_for, summarize

__all__ = [
    "AttendanceRecorder",
    "AttendanceSummary",
    "parse_badge",
    "badge_for",
    "summarize",
]
