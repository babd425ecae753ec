"""Student schemas."""

from datetime import date, datetime
from typing import Any

from pydantic import Field, field_validator

from attendance_api.models.student import Sex, YearLevel
from attendance_api.schemas.common import BaseSchema


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


class StudentBase(BaseSchema):
    """Base student schema."""

    name: str = Field(..., min_length=1, max_length=255)
    external_id: str | None = Field(None, max_length=64, alias="studentId")
    sex: Sex
    year: YearLevel
    date_of_birth: date | None = None
    email: str | None = Field(None, max_length=255)
    phone: str | None = Field(None, max_length=50)
    address: str | None = None

    @field_validator("external_id", "email", "phone", "address", "date_of_birth", mode="before")
    @classmethod
    def blank_optional_fields(cls, v: Any) -> Any:
        return _blank_to_none(v)

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v: str | None) -> str | None:
        return v.lower() if v else v

    @field_validator("year", mode="before")
    @classmethod
    def parse_year(cls, v: Any) -> Any:
        if isinstance(v, str):
            return YearLevel.from_string(v)
        return v


class StudentCreate(StudentBase):
    """Student creation schema."""

    pass


class StudentUpdate(BaseSchema):
    """Student update schema (partial patch)."""

    name: str | None = Field(None, min_length=1, max_length=255)
    external_id: str | None = Field(None, max_length=64, alias="studentId")
    sex: Sex | None = None
    year: YearLevel | None = None
    date_of_birth: date | None = None
    email: str | None = Field(None, max_length=255)
    phone: str | None = Field(None, max_length=50)
    address: str | None = None

    @field_validator("external_id", "email", "phone", "address", "date_of_birth", mode="before")
    @classmethod
    def blank_optional_fields(cls, v: Any) -> Any:
        return _blank_to_none(v)

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v: str | None) -> str | None:
        return v.lower() if v else v

    @field_validator("year", mode="before")
    @classmethod
    def parse_year(cls, v: Any) -> Any:
        if isinstance(v, str):
            return YearLevel.from_string(v)
        return v


class StudentResponse(BaseSchema):
    """Student response schema."""

    id: int
    name: str
    external_id: str | None = Field(None, alias="studentId")
    sex: Sex
    year: YearLevel
    date_of_birth: date | None
    email: str | None
    phone: str | None
    address: str | None
    created_at: datetime
    updated_at: datetime


class StudentFilter(BaseSchema):
    """Student filter options."""

    name: str | None = None  # Matches name or external id
    year: YearLevel | None = None
    sex: Sex | None = None
    external_id: str | None = None


class StudentBulkImport(BaseSchema):
    """Bulk student import payload.

    Rows are validated one by one by the service so that a bad row is
    reported instead of rejecting the whole import.
    """

    students: list[dict[str, Any]]


class StudentBulkImportResult(BaseSchema):
    """Result of bulk student import."""

    inserted: int
    failed: int
    validation_errors: list[str] = []
    duplicate_errors: list[str] = []
    message: str
