"""Student management service."""

import logging
from typing import Any

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from attendance_api.core.exceptions import ConflictError, NotFoundError, ValidationError
from attendance_api.models.student import Student
from attendance_api.schemas.student import (
    StudentBulkImportResult,
    StudentCreate,
    StudentFilter,
    StudentResponse,
    StudentUpdate,
)

logger = logging.getLogger(__name__)


class StudentService:
    """Student management service."""

    def __init__(self, db: Session):
        self.db = db

    def create_student(self, request: StudentCreate) -> StudentResponse:
        """Create a new student."""
        if request.external_id:
            self._ensure_external_id_free(request.external_id)

        student = Student(**request.model_dump())
        self._flush_unique(student)
        self.db.refresh(student)
        return StudentResponse.model_validate(student)

    def get_student(self, student_id: int) -> Student:
        """Get student by ID."""
        student = self.db.get(Student, student_id)
        if not student:
            raise NotFoundError("Student", str(student_id))
        return student

    def update_student(
        self,
        student_id: int,
        request: StudentUpdate,
    ) -> StudentResponse:
        """Update a student."""
        student = self.get_student(student_id)
        update_data = request.model_dump(exclude_unset=True)

        for field in ("name", "sex", "year"):
            if field in update_data and update_data[field] is None:
                raise ValidationError(f"{field} cannot be empty", details={"field": field})

        new_external_id = update_data.get("external_id")
        if new_external_id and new_external_id != student.external_id:
            self._ensure_external_id_free(new_external_id)

        for field, value in update_data.items():
            setattr(student, field, value)
        self._flush_unique(student)
        self.db.refresh(student)
        return StudentResponse.model_validate(student)

    def delete_student(self, student_id: int) -> None:
        """Delete a student together with their attendance records."""
        student = self.get_student(student_id)
        self.db.delete(student)
        self.db.flush()

    def list_students(
        self,
        filters: StudentFilter | None = None,
        limit: int | None = None,
    ) -> list[StudentResponse]:
        """List students with filtering."""
        query = select(Student)

        if filters:
            if filters.name:
                search_term = f"%{filters.name}%"
                query = query.where(
                    or_(
                        Student.name.ilike(search_term),
                        Student.external_id.ilike(search_term),
                    )
                )
            if filters.year:
                query = query.where(Student.year == filters.year)
            if filters.sex:
                query = query.where(Student.sex == filters.sex)
            if filters.external_id:
                query = query.where(Student.external_id.ilike(f"%{filters.external_id}%"))

        query = query.order_by(Student.name, Student.id)
        if limit:
            query = query.limit(limit)

        result = self.db.execute(query)
        return [StudentResponse.model_validate(s) for s in result.scalars().all()]

    def bulk_import(self, rows: list[dict[str, Any]]) -> StudentBulkImportResult:
        """Import students, skipping rows that fail validation or collide.

        Raises ValidationError when no row is valid.
        """
        if not rows:
            raise ValidationError("Invalid students data. Expected a non-empty list of students.")

        validation_errors: list[str] = []
        valid: list[StudentCreate] = []
        for row_num, row in enumerate(rows, start=1):
            label = f"Student {row_num}"
            if isinstance(row, dict) and row.get("name"):
                label += f" ({row['name']})"
            try:
                valid.append(StudentCreate.model_validate(row))
            except PydanticValidationError as e:
                problems = "; ".join(
                    f"{'.'.join(str(p) for p in err['loc']) or 'row'}: {err['msg']}"
                    for err in e.errors()
                )
                validation_errors.append(f"{label}: {problems}")

        if not valid:
            raise ValidationError(
                "No valid students to import",
                details={"validation_errors": validation_errors},
            )

        duplicate_errors: list[str] = []
        seen: set[str] = set()
        inserted = 0
        for request in valid:
            external_id = request.external_id
            if external_id and (external_id in seen or self._external_id_taken(external_id)):
                duplicate_errors.append(f"{request.name} - Student ID already exists")
                continue
            try:
                with self.db.begin_nested():
                    self.db.add(Student(**request.model_dump()))
                    self.db.flush()
            except IntegrityError:
                duplicate_errors.append(f"{request.name} - Student ID already exists")
                continue
            if external_id:
                seen.add(external_id)
            inserted += 1

        failed = len(validation_errors) + len(duplicate_errors)
        message = f"Imported {inserted} student{'s' if inserted != 1 else ''}"
        if duplicate_errors:
            message += f". {len(duplicate_errors)} failed due to duplicates."
        logger.info(f"Bulk student import: {inserted} inserted, {failed} failed")

        return StudentBulkImportResult(
            inserted=inserted,
            failed=failed,
            validation_errors=validation_errors,
            duplicate_errors=duplicate_errors,
            message=message,
        )

    def _external_id_taken(self, external_id: str) -> bool:
        result = self.db.execute(
            select(Student.id).where(Student.external_id == external_id)
        )
        return result.first() is not None

    def _ensure_external_id_free(self, external_id: str) -> None:
        if self._external_id_taken(external_id):
            raise ConflictError(
                "Student ID already exists",
                details={"student_id": external_id},
            )

    def _flush_unique(self, student: Student) -> None:
        """Flush, turning a unique-index race into a ConflictError."""
        try:
            with self.db.begin_nested():
                self.db.add(student)
                self.db.flush()
        except IntegrityError:
            raise ConflictError(
                "Student ID already exists",
                details={"student_id": student.external_id},
            )
