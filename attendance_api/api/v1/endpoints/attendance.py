"""Attendance management endpoints."""

from datetime import date
from io import BytesIO
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Response, status
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from attendance_api.core.database import get_db
from attendance_api.models.student import YearLevel
from attendance_api.schemas.attendance import (
    AttendanceByYearResponse,
    AttendanceRecordCreate,
    AttendanceRecordResponse,
    AttendanceStats,
    BulkAttendanceCreate,
    BulkAttendanceResponse,
    MonthlyReportResponse,
)
from attendance_api.services.attendance import AttendanceService
from attendance_api.services.report import ReportService
from attendance_api.services.statistics import StatisticsService

router = APIRouter()


@router.post("", response_model=AttendanceRecordResponse)
def record_attendance(
    request: AttendanceRecordCreate,
    db: Annotated[Session, Depends(get_db)],
    response: Response,
):
    """
    Record one student's attendance for a day.
    Creates the record (201) or updates the day's existing record (200).
    """
    service = AttendanceService(db)
    record, created = service.record_single(request)
    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    return record


@router.post("/bulk", response_model=BulkAttendanceResponse, status_code=status.HTTP_201_CREATED)
def bulk_record_attendance(
    request: BulkAttendanceCreate,
    db: Annotated[Session, Depends(get_db)],
):
    """
    Record attendance for many students at once.
    Status "Unmarked" removes the day's record. Failed entries are listed
    in `errors` and do not stop the others.
    """
    service = AttendanceService(db)
    return service.record_bulk(request)


@router.get("/date/{attendance_date}", response_model=list[AttendanceRecordResponse])
def get_attendance_by_date(
    attendance_date: date,
    db: Annotated[Session, Depends(get_db)],
    year: YearLevel | None = None,
):
    """Get all attendance records for a day, optionally for one year level."""
    service = AttendanceService(db)
    return service.get_by_date(attendance_date, year=year)


@router.get("/student/{student_ref}", response_model=list[AttendanceRecordResponse])
def get_attendance_by_student(
    student_ref: int,
    db: Annotated[Session, Depends(get_db)],
    start_date: date | None = None,
    end_date: date | None = None,
):
    """Get a student's attendance records, newest first."""
    service = AttendanceService(db)
    return service.get_by_student(student_ref, date_from=start_date, date_to=end_date)


@router.get("/stats", response_model=AttendanceStats)
def get_attendance_stats(
    db: Annotated[Session, Depends(get_db)],
    start_date: date | None = None,
    end_date: date | None = None,
    year: YearLevel | None = None,
):
    """
    Get status counts and the number of school days.
    The year filter narrows the status counts only.
    """
    service = StatisticsService(db)
    return service.status_counts(date_from=start_date, date_to=end_date, year=year)


@router.get("/by-year", response_model=AttendanceByYearResponse)
def get_attendance_by_year(
    db: Annotated[Session, Depends(get_db)],
    attendance_date: date | None = Query(None, alias="date", description="Defaults to today"),
):
    """Get the share of present-or-late students per year level for a day."""
    service = StatisticsService(db)
    return service.attendance_by_year(attendance_date or date.today())


@router.get("/reports/monthly", response_model=MonthlyReportResponse)
def get_monthly_report(
    db: Annotated[Session, Depends(get_db)],
    month: str = Query(..., description="Month as YYYY-MM"),
    year: YearLevel | None = None,
):
    """Get every student's day-by-day attendance for a month."""
    service = ReportService(db)
    return service.monthly_report(month, year=year)


@router.get("/reports/monthly/export")
def export_monthly_report(
    db: Annotated[Session, Depends(get_db)],
    month: str = Query(..., description="Month as YYYY-MM"),
    year: YearLevel | None = None,
):
    """Download the monthly report as an Excel workbook."""
    service = ReportService(db)
    content = service.monthly_workbook(month, year=year)

    filename = f"attendance_{month}"
    if year:
        filename += f"_{year.value.replace(' ', '_')}"
    filename += ".xlsx"

    return StreamingResponse(
        BytesIO(content),
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )
