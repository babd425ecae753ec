"""Chat assistant schemas."""

import enum
from datetime import date, timedelta
from typing import Annotated, Any, Literal, Union

from pydantic import Field, TypeAdapter, field_validator

from attendance_api.core.dates import CalendarDay
from attendance_api.models.attendance import AttendanceStatus
from attendance_api.models.student import Sex, YearLevel
from attendance_api.schemas.common import BaseSchema


class ChatTurn(BaseSchema):
    """One prior message in the conversation."""

    role: Literal["user", "assistant"]
    content: str


class ChatRequest(BaseSchema):
    """Chat request."""

    message: str = Field(..., min_length=1)
    conversation_history: list[ChatTurn] = []


class ChatResponse(BaseSchema):
    """Chat reply plus the raw query result it was based on."""

    message: str
    data: Any = None


class QueryKind(str, enum.Enum):
    """Query shapes the assistant may ask for."""

    STUDENTS = "students"
    ATTENDANCE = "attendance"
    STATS = "stats"
    NONE = "none"


class ChatDecision(BaseSchema):
    """Structured reply of the first text-generation call."""

    needs_data: bool
    query_type: QueryKind = QueryKind.NONE
    filters: dict[str, Any] = {}
    response: str = ""

    @field_validator("filters", mode="before")
    @classmethod
    def null_filters(cls, v: Any) -> Any:
        return {} if v is None else v

    @field_validator("response", mode="before")
    @classmethod
    def null_response(cls, v: Any) -> Any:
        return "" if v is None else v


# ==========================================
# Query Filters
# ==========================================

class DateFilter(BaseSchema):
    """A single calendar day, by keyword or explicit date."""

    kind: Literal["date"] = "date"
    value: Literal["today", "yesterday"] | CalendarDay

    @field_validator("value", mode="before")
    @classmethod
    def lowercase_keyword(cls, v: Any) -> Any:
        if isinstance(v, str) and v.strip().lower() in ("today", "yesterday"):
            return v.strip().lower()
        return v

    def resolve(self, today: date) -> date:
        if self.value == "today":
            return today
        if self.value == "yesterday":
            return today - timedelta(days=1)
        return self.value


class StatusFilter(BaseSchema):
    kind: Literal["status"] = "status"
    value: AttendanceStatus

    @field_validator("value", mode="before")
    @classmethod
    def parse_status(cls, v: Any) -> Any:
        if isinstance(v, str):
            return AttendanceStatus.from_string(v)
        return v


class YearFilter(BaseSchema):
    kind: Literal["year"] = "year"
    value: YearLevel

    @field_validator("value", mode="before")
    @classmethod
    def parse_year(cls, v: Any) -> Any:
        if isinstance(v, str):
            return YearLevel.from_string(v)
        return v


class SexFilter(BaseSchema):
    kind: Literal["sex"] = "sex"
    value: Sex

    @field_validator("value", mode="before")
    @classmethod
    def capitalize(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().capitalize()
        return v


class NameFilter(BaseSchema):
    """Case-insensitive substring of the student's name."""

    kind: Literal["name"] = "name"
    value: str = Field(..., min_length=1)


class PeriodFilter(BaseSchema):
    """Statistics window; anything but today/week/month means year-to-date."""

    kind: Literal["period"] = "period"
    value: str

    @field_validator("value", mode="before")
    @classmethod
    def lowercase(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().lower()
        return v


QueryFilter = Annotated[
    Union[DateFilter, StatusFilter, YearFilter, SexFilter, NameFilter, PeriodFilter],
    Field(discriminator="kind"),
]

_query_filter_adapter = TypeAdapter(QueryFilter)

FILTER_KINDS = ("date", "status", "year", "sex", "name", "period")


def parse_filters(raw: dict[str, Any]) -> dict[str, QueryFilter]:
    """Validate a loose filter map into typed filters keyed by kind.

    Raises ValueError for unrecognized keys and pydantic's ValidationError
    for values outside a filter's vocabulary.
    """
    filters: dict[str, QueryFilter] = {}
    for key, value in raw.items():
        if key not in FILTER_KINDS:
            raise ValueError(f"Unrecognized filter '{key}'")
        if value is None or value == "":
            continue
        filters[key] = _query_filter_adapter.validate_python({"kind": key, "value": value})
    return filters


class ChatStatsResult(BaseSchema):
    """Statistics answer for the assistant."""

    period: str
    start_date: date
    end_date: date
    year: str | None = None
    present: int
    late: int
    excused: int
    absent: int
    total_records: int
    total_students: int
    school_days: int
    attendance_rate: float
