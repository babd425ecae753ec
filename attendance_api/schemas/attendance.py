"""Attendance schemas."""

from datetime import date, datetime
from typing import Any, Literal

from pydantic import Field, field_validator

from attendance_api.core.dates import CalendarDay
from attendance_api.models.attendance import AttendanceStatus
from attendance_api.models.student import YearLevel
from attendance_api.schemas.common import BaseSchema


class AttendanceRecordCreate(BaseSchema):
    """Single attendance record, addressed by the student's external id."""

    student_external_id: str = Field(..., min_length=1)
    attendance_date: CalendarDay = Field(..., alias="date")
    status: AttendanceStatus
    reason: str | None = None
    notes: str | None = None

    @field_validator("status", mode="before")
    @classmethod
    def parse_status(cls, v):
        if isinstance(v, str):
            return AttendanceStatus.from_string(v)
        return v


class AttendanceRecordResponse(BaseSchema):
    """Attendance record response schema."""

    id: int
    external_id: str
    student_id: int = Field(..., alias="studentRef")
    student_name: str
    year: str | None
    attendance_date: date = Field(..., alias="date")
    status: AttendanceStatus
    reason: str | None
    notes: str | None
    created_at: datetime
    updated_at: datetime


class AttendanceFilter(BaseSchema):
    """Attendance filtering options."""

    student_id: int | None = None
    year: YearLevel | None = None
    status: AttendanceStatus | None = None
    name: str | None = None
    date_from: date | None = None
    date_to: date | None = None


# ==========================================
# Bulk Attendance Operations
# ==========================================

class BulkAttendanceEntry(BaseSchema):
    """One entry of a bulk write.

    Reference, date and status are validated per entry by the service so a
    bad entry is reported without rejecting the batch. Besides the four
    statuses, ``status`` accepts ``Unmarked``, which deletes the day's record.
    """

    student_ref: int | str
    attendance_date: Any = Field(..., alias="date")
    status: str
    reason: str | None = None
    notes: str | None = None


class BulkAttendanceCreate(BaseSchema):
    """Bulk attendance request."""

    records: list[BulkAttendanceEntry] = Field(..., min_length=1)


class BulkAttendanceOutcome(BaseSchema):
    """Successful outcome of one bulk entry."""

    student_ref: int
    attendance_date: date = Field(..., alias="date")
    action: Literal["created", "updated", "deleted"]
    record: AttendanceRecordResponse | None = None


class BulkAttendanceError(BaseSchema):
    """Failed bulk entry, echoing the reference as sent."""

    student_ref: int | str
    error: str


class BulkAttendanceResponse(BaseSchema):
    """Response for bulk attendance operations."""

    results: list[BulkAttendanceOutcome] = []
    errors: list[BulkAttendanceError] = []
    message: str


# ==========================================
# Statistics
# ==========================================

class AttendanceStats(BaseSchema):
    """Status counts over a date range."""

    present: int = 0
    late: int = 0
    excused: int = 0
    absent: int = 0
    total_records: int = 0
    school_days: int = 0


class YearAttendanceStat(BaseSchema):
    """Attendance for one year level on one day."""

    year: str
    total_students: int
    attending: int
    rate: float


class AttendanceByYearResponse(BaseSchema):
    """Per-year attendance for a single day."""

    attendance_date: date = Field(..., alias="date")
    years: list[YearAttendanceStat]


# ==========================================
# Monthly Report
# ==========================================

class MonthlyStudentRow(BaseSchema):
    """One student's month at a glance."""

    student_ref: int
    name: str
    external_id: str | None = Field(None, alias="studentId")
    year: str
    days: dict[int, AttendanceStatus] = {}
    present: int = 0
    late: int = 0
    excused: int = 0
    absent: int = 0
    unmarked: int = 0
    rate: float = 0.0


class MonthlyReportResponse(BaseSchema):
    """Monthly attendance report."""

    month: str
    date_from: date
    date_to: date
    days_in_month: int
    school_days: list[date]
    students: list[MonthlyStudentRow]
