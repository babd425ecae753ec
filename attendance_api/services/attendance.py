"""Attendance service: single and bulk writes plus record lookups."""

import logging
from datetime import date

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from attendance_api.core.dates import normalize_day
from attendance_api.core.exceptions import NotFoundError
from attendance_api.models.attendance import UNMARKED, AttendanceRecord, AttendanceStatus
from attendance_api.models.base import utcnow
from attendance_api.models.student import Student, YearLevel
from attendance_api.schemas.attendance import (
    AttendanceFilter,
    AttendanceRecordCreate,
    AttendanceRecordResponse,
    BulkAttendanceCreate,
    BulkAttendanceError,
    BulkAttendanceOutcome,
    BulkAttendanceResponse,
)

logger = logging.getLogger(__name__)


class AttendanceService:
    """Attendance management service.

    Every write path keeps at most one record per (student, calendar day):
    a second mark for the same day updates the existing record.
    """

    def __init__(self, db: Session):
        self.db = db

    def to_response(self, record: AttendanceRecord) -> AttendanceRecordResponse:
        """Convert AttendanceRecord to response schema."""
        return AttendanceRecordResponse.model_validate({
            "id": record.id,
            "external_id": record.external_id,
            "student_id": record.student_id,
            "student_name": record.student_name,
            "year": record.year,
            "attendance_date": record.attendance_date,
            "status": record.status,
            "reason": record.reason,
            "notes": record.notes,
            "created_at": record.created_at,
            "updated_at": record.updated_at,
        })

    # ==========================================
    # Single Record
    # ==========================================

    def record_single(
        self,
        request: AttendanceRecordCreate,
    ) -> tuple[AttendanceRecordResponse, bool]:
        """Create or update one student's attendance for a day.

        Returns the record and whether it was newly created.
        """
        student = self._get_student_by_external_id(request.student_external_id)
        record, created = self._upsert(
            student,
            request.attendance_date,
            request.status,
            reason=request.reason,
            notes=request.notes,
        )
        return self.to_response(record), created

    def _get_student_by_external_id(self, external_id: str) -> Student:
        result = self.db.execute(
            select(Student).where(Student.external_id == external_id)
        )
        student = result.scalar_one_or_none()
        if not student:
            raise NotFoundError("Student", external_id)
        return student

    def _get_existing_record(
        self, student_id: int, attendance_date: date
    ) -> AttendanceRecord | None:
        """Check for existing attendance record."""
        result = self.db.execute(
            select(AttendanceRecord).where(
                AttendanceRecord.student_id == student_id,
                AttendanceRecord.attendance_date == attendance_date,
            )
        )
        return result.scalar_one_or_none()

    def _upsert(
        self,
        student: Student,
        attendance_date: date,
        status: AttendanceStatus,
        reason: str | None,
        notes: str | None,
    ) -> tuple[AttendanceRecord, bool]:
        external_id = student.external_id or ""
        record = self._get_existing_record(student.id, attendance_date)
        created = False

        if record is None:
            record = AttendanceRecord(
                external_id=external_id,
                student_id=student.id,
                attendance_date=attendance_date,
                status=status,
                reason=reason,
                notes=notes,
            )
            try:
                with self.db.begin_nested():
                    self.db.add(record)
                    self.db.flush()
                created = True
            except IntegrityError:
                # Another writer inserted the same (student, day) first
                logger.info(
                    f"Concurrent insert for student {student.id} on {attendance_date}, "
                    "retrying as update"
                )
                record = self._get_existing_record(student.id, attendance_date)
                if record is None:
                    raise

        if not created:
            record.external_id = external_id
            record.status = status
            record.reason = reason
            record.notes = notes
            # touched even when no other column changed
            record.updated_at = utcnow()
            self.db.flush()

        self.db.refresh(record)
        return record, created

    # ==========================================
    # Bulk Operations
    # ==========================================

    def record_bulk(self, request: BulkAttendanceCreate) -> BulkAttendanceResponse:
        """Apply a list of attendance changes, one entry at a time.

        A failing entry is reported in ``errors`` and never stops the rest;
        entries already applied are kept.
        """
        results: list[BulkAttendanceOutcome] = []
        errors: list[BulkAttendanceError] = []

        for entry in request.records:
            try:
                with self.db.begin_nested():
                    student_id = self._parse_student_ref(entry.student_ref)
                    student = self.db.get(Student, student_id) if student_id is not None else None
                    if not student:
                        errors.append(BulkAttendanceError(
                            student_ref=entry.student_ref,
                            error="Student not found",
                        ))
                        continue

                    attendance_date = normalize_day(entry.attendance_date)

                    if entry.status.strip().lower() == UNMARKED.lower():
                        self._delete_for_day(student.id, attendance_date)
                        results.append(BulkAttendanceOutcome(
                            student_ref=student.id,
                            attendance_date=attendance_date,
                            action="deleted",
                        ))
                        continue

                    status = AttendanceStatus.from_string(entry.status)
                    record, created = self._upsert(
                        student,
                        attendance_date,
                        status,
                        reason=entry.reason or "",
                        notes=entry.notes or "",
                    )
                    results.append(BulkAttendanceOutcome(
                        student_ref=student.id,
                        attendance_date=attendance_date,
                        action="created" if created else "updated",
                        record=self.to_response(record),
                    ))
            except Exception as e:
                logger.warning(f"Bulk attendance entry for student {entry.student_ref} failed: {e}")
                errors.append(BulkAttendanceError(
                    student_ref=entry.student_ref,
                    error=str(e),
                ))

        return BulkAttendanceResponse(
            results=results,
            errors=errors,
            message=f"{len(results)} attendance records processed",
        )

    @staticmethod
    def _parse_student_ref(value: int | str) -> int | None:
        """Storage id from a batch reference; None when it cannot be one."""
        if isinstance(value, int):
            return value
        text = value.strip()
        return int(text) if text.isdecimal() else None

    def _delete_for_day(self, student_id: int, attendance_date: date) -> None:
        self.db.execute(
            delete(AttendanceRecord).where(
                AttendanceRecord.student_id == student_id,
                AttendanceRecord.attendance_date == attendance_date,
            )
        )

    # ==========================================
    # Lookups
    # ==========================================

    def list_records(
        self,
        filters: AttendanceFilter | None = None,
        limit: int | None = None,
        newest_first: bool = True,
    ) -> list[AttendanceRecordResponse]:
        """List attendance records with filtering."""
        query = select(AttendanceRecord).join(
            Student, Student.id == AttendanceRecord.student_id
        )

        if filters:
            if filters.student_id:
                query = query.where(AttendanceRecord.student_id == filters.student_id)
            if filters.status:
                query = query.where(AttendanceRecord.status == filters.status)
            if filters.date_from:
                query = query.where(AttendanceRecord.attendance_date >= filters.date_from)
            if filters.date_to:
                query = query.where(AttendanceRecord.attendance_date <= filters.date_to)
            if filters.year:
                query = query.where(Student.year == filters.year)
            if filters.name:
                query = query.where(Student.name.ilike(f"%{filters.name}%"))

        if newest_first:
            query = query.order_by(AttendanceRecord.attendance_date.desc(), Student.name)
        else:
            query = query.order_by(Student.name, AttendanceRecord.id)
        if limit:
            query = query.limit(limit)

        result = self.db.execute(query)
        return [self.to_response(r) for r in result.scalars().all()]

    def get_by_date(
        self,
        attendance_date: date,
        year: YearLevel | None = None,
    ) -> list[AttendanceRecordResponse]:
        """All records for one day, optionally for one year level."""
        filters = AttendanceFilter(
            date_from=attendance_date,
            date_to=attendance_date,
            year=year,
        )
        return self.list_records(filters, newest_first=False)

    def get_by_student(
        self,
        student_id: int,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> list[AttendanceRecordResponse]:
        """A student's records, newest first."""
        if not self.db.get(Student, student_id):
            raise NotFoundError("Student", str(student_id))
        filters = AttendanceFilter(
            student_id=student_id,
            date_from=date_from,
            date_to=date_to,
        )
        return self.list_records(filters)
