"""Student management endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from attendance_api.core.database import get_db
from attendance_api.models.student import YearLevel
from attendance_api.schemas.common import MessageResponse
from attendance_api.schemas.student import (
    StudentBulkImport,
    StudentBulkImportResult,
    StudentCreate,
    StudentFilter,
    StudentResponse,
    StudentUpdate,
)
from attendance_api.services.student import StudentService

router = APIRouter()


@router.post("", response_model=StudentResponse, status_code=status.HTTP_201_CREATED)
def create_student(
    request: StudentCreate,
    db: Annotated[Session, Depends(get_db)],
):
    """Create a new student."""
    service = StudentService(db)
    return service.create_student(request)


@router.get("", response_model=list[StudentResponse])
def list_students(
    db: Annotated[Session, Depends(get_db)],
    name: str | None = None,
    year: YearLevel | None = None,
    student_id: str | None = None,
):
    """List students ordered by name.

    `name` matches the student's name or school ID, case-insensitively.
    """
    service = StudentService(db)
    filters = StudentFilter(name=name, year=year, external_id=student_id)
    return service.list_students(filters)


@router.post("/bulk-import", response_model=StudentBulkImportResult)
def bulk_import_students(
    request: StudentBulkImport,
    db: Annotated[Session, Depends(get_db)],
    response: Response,
):
    """
    Import many students at once.

    Partial success is allowed - invalid rows and duplicate IDs are skipped
    and reported. Responds 207 when any row was rejected as a duplicate.
    """
    service = StudentService(db)
    result = service.bulk_import(request.students)
    response.status_code = (
        status.HTTP_207_MULTI_STATUS if result.duplicate_errors else status.HTTP_201_CREATED
    )
    return result


@router.get("/{student_id}", response_model=StudentResponse)
def get_student(
    student_id: int,
    db: Annotated[Session, Depends(get_db)],
):
    """Get a student by ID."""
    service = StudentService(db)
    student = service.get_student(student_id)
    return StudentResponse.model_validate(student)


@router.put("/{student_id}", response_model=StudentResponse)
@router.patch("/{student_id}", response_model=StudentResponse)
def update_student(
    student_id: int,
    request: StudentUpdate,
    db: Annotated[Session, Depends(get_db)],
):
    """Update a student. Only the fields sent are changed."""
    service = StudentService(db)
    return service.update_student(student_id, request)


@router.delete("/{student_id}", response_model=MessageResponse)
def delete_student(
    student_id: int,
    db: Annotated[Session, Depends(get_db)],
):
    """Delete a student and their attendance records."""
    service = StudentService(db)
    service.delete_student(student_id)
    return MessageResponse(message="Student deleted successfully")
