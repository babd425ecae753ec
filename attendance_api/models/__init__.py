"""Database models package."""

from attendance_api.models.attendance import UNMARKED, AttendanceRecord, AttendanceStatus
from attendance_api.models.student import Sex, Student, YearLevel

__all__ = [
    # Student
    "Student",
    "Sex",
    "YearLevel",
    # Attendance
    "AttendanceRecord",
    "AttendanceStatus",
    "UNMARKED",
]
