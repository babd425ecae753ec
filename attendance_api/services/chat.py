"""Chat assistant: turns questions into one of three fixed database queries.

Each turn makes two text-generation calls. The first decides whether data is
needed and which query to run; the second phrases the query result as the
final answer.
"""

import json
import logging
import re
from collections.abc import Callable
from datetime import date
from typing import Any

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from attendance_api.core.config import Settings, settings as default_settings
from attendance_api.core.dates import STATS_PERIODS, period_bounds
from attendance_api.core.exceptions import UpstreamServiceError
from attendance_api.models.attendance import AttendanceStatus
from attendance_api.models.student import Sex, YearLevel
from attendance_api.schemas.attendance import AttendanceFilter
from attendance_api.schemas.chat import (
    ChatDecision,
    ChatRequest,
    ChatResponse,
    ChatStatsResult,
    ChatTurn,
    QueryFilter,
    QueryKind,
    parse_filters,
)
from attendance_api.schemas.student import StudentFilter
from attendance_api.services.attendance import AttendanceService
from attendance_api.services.llm import CompletionClient
from attendance_api.services.statistics import StatisticsService, attendance_rate
from attendance_api.services.student import StudentService

logger = logging.getLogger(__name__)

FORMAT_FALLBACK = (
    "I found some data but had trouble formatting the response. "
    "Please try rephrasing your question."
)

_FENCED_JSON = re.compile(r"```(?:json)?\s*\n(.*?)\n\s*```", re.DOTALL)
_BARE_JSON = re.compile(r"\{.*\}", re.DOTALL)


def _quoted(values) -> str:
    return " | ".join(f"'{v}'" for v in values)


INSTRUCTIONS = f"""You are an AI assistant for a school attendance management system. You can query a database with the following data:

**Students:**
- name: string (student's full name) - ALWAYS search by name only
- sex: {_quoted(s.value for s in Sex)}
- year: {_quoted(y.value for y in YearLevel)}

**Attendance:**
- student: reference to a student
- date: calendar date
- status: {_quoted(s.value for s in AttendanceStatus)}
- reason: string (optional)
- notes: string (optional)

IMPORTANT RULES:
- NEVER use or mention student IDs
- ALWAYS search students by name only
- For date queries use "today", "yesterday" or a date formatted YYYY-MM-DD
- Only use these filters: name, year, sex, date, status, period
- period is one of "today", "week", "month" or "year" and only applies to stats

Respond with a single JSON object containing:
- "needsData": boolean (true if the database must be queried)
- "queryType": "students" | "attendance" | "stats" | "none"
- "filters": object with query parameters
- "response": your natural language response (empty when needsData is true)

Examples:
- "How many students are in Year 7?" -> {{"needsData": true, "queryType": "students", "filters": {{"year": "Year 7"}}, "response": ""}}
- "Who was absent today?" -> {{"needsData": true, "queryType": "attendance", "filters": {{"date": "today", "status": "Absent"}}, "response": ""}}
- "What's the attendance rate this month?" -> {{"needsData": true, "queryType": "stats", "filters": {{"period": "month"}}, "response": ""}}
- "How do I add a student?" -> {{"needsData": false, "queryType": "none", "filters": {{}}, "response": "Open Student Management and click 'Add Student'."}}

Be helpful, concise and accurate. If you don't have enough information, ask a clarifying question."""


def build_decision_prompt(message: str, history: list[ChatTurn]) -> str:
    lines = "\n".join(f"{turn.role}: {turn.content}" for turn in history)
    return (
        f"{INSTRUCTIONS}\n\n"
        f"Previous conversation:\n{lines}\n\n"
        f"User: {message}\n\n"
        "Analyze the user's question and respond with a JSON object in the format described above."
    )


def build_answer_prompt(question: str, query_kind: QueryKind, data: Any) -> str:
    return (
        f'User asked: "{question}"\n\n'
        f"I retrieved the following {query_kind.value} data from the database:\n"
        f"{json.dumps(data, indent=2, default=str)}\n\n"
        "Provide a clear, concise and helpful answer to the user's question based on this data. "
        "Use a friendly, conversational tone and present numbers and lists clearly."
    )


def parse_decision(text: str) -> ChatDecision:
    """Read the structured decision out of a model reply.

    A reply that is not the expected JSON object is taken as a plain answer.
    """
    fenced = _FENCED_JSON.search(text)
    if fenced:
        candidate = fenced.group(1)
    else:
        bare = _BARE_JSON.search(text)
        candidate = bare.group(0) if bare else text
    try:
        return ChatDecision.model_validate(json.loads(candidate))
    except (ValueError, PydanticValidationError):
        logger.info("Could not parse model reply as a decision, using it as the answer")
        return ChatDecision(needs_data=False, query_type=QueryKind.NONE, response=text)


def cap_results(data: Any, limit: int) -> Any:
    """Trim list results to ``limit`` items plus a note on what was left out."""
    if isinstance(data, list) and len(data) > limit:
        return [*data[:limit], {"note": f"... and {len(data) - limit} more records"}]
    return data


class ChatService:
    """Chat assistant service."""

    def __init__(
        self,
        db: Session,
        client: CompletionClient,
        settings: Settings = default_settings,
        today: Callable[[], date] = date.today,
    ):
        self.db = db
        self.client = client
        self.settings = settings
        self.today = today

    def process(self, request: ChatRequest) -> ChatResponse:
        """Answer one chat message.

        Raises UpstreamServiceError when the deciding call fails or asks for
        filters outside the supported vocabulary.
        """
        window = self.settings.CHAT_HISTORY_WINDOW
        history = request.conversation_history[-window:] if window > 0 else []
        logger.info(f"Chat request received (history: {len(request.conversation_history)} turns)")

        text = self.client.complete(build_decision_prompt(request.message, history))
        decision = parse_decision(text)

        if not decision.needs_data or decision.query_type == QueryKind.NONE:
            return ChatResponse(message=decision.response, data=None)

        try:
            filters = parse_filters(decision.filters)
        except (ValueError, PydanticValidationError) as e:
            raise UpstreamServiceError(reason=f"Rejected filters {decision.filters!r}: {e}") from e

        data = cap_results(
            self.run_query(decision.query_type, filters),
            self.settings.CHAT_CONTEXT_ITEM_LIMIT,
        )
        message = self._phrase_answer(request.message, decision.query_type, data)
        return ChatResponse(message=message, data=data)

    def run_query(self, kind: QueryKind, filters: dict[str, QueryFilter]) -> Any:
        """Execute one of the fixed query shapes; filters it does not use are ignored."""
        if kind == QueryKind.STUDENTS:
            return self._query_students(filters)
        if kind == QueryKind.ATTENDANCE:
            return self._query_attendance(filters)
        if kind == QueryKind.STATS:
            return self._query_stats(filters)
        return None

    def _query_students(self, filters: dict[str, QueryFilter]) -> list[dict]:
        student_filter = StudentFilter(
            name=filters["name"].value if "name" in filters else None,
            year=filters["year"].value if "year" in filters else None,
            sex=filters["sex"].value if "sex" in filters else None,
        )
        students = StudentService(self.db).list_students(
            student_filter,
            limit=self.settings.CHAT_QUERY_LIMIT,
        )
        return [s.model_dump(mode="json", by_alias=True) for s in students]

    def _query_attendance(self, filters: dict[str, QueryFilter]) -> list[dict]:
        day = filters["date"].resolve(self.today()) if "date" in filters else None
        attendance_filter = AttendanceFilter(
            date_from=day,
            date_to=day,
            status=filters["status"].value if "status" in filters else None,
            year=filters["year"].value if "year" in filters else None,
            name=filters["name"].value if "name" in filters else None,
        )
        records = AttendanceService(self.db).list_records(
            attendance_filter,
            limit=self.settings.CHAT_QUERY_LIMIT,
        )
        return [r.model_dump(mode="json", by_alias=True) for r in records]

    def _query_stats(self, filters: dict[str, QueryFilter]) -> dict:
        period = filters["period"].value if "period" in filters else "year"
        if period not in STATS_PERIODS:
            period = "year"
        year = filters["year"].value if "year" in filters else None
        start, end = period_bounds(period, self.today())

        stats_service = StatisticsService(self.db)
        counts = stats_service.status_counts(start, end, year)
        total_students = stats_service.count_students(year)

        result = ChatStatsResult(
            period=period,
            start_date=start,
            end_date=end,
            year=year.value if year else None,
            present=counts.present,
            late=counts.late,
            excused=counts.excused,
            absent=counts.absent,
            total_records=counts.total_records,
            total_students=total_students,
            school_days=counts.school_days,
            attendance_rate=attendance_rate(
                total_students, counts.school_days, counts.present, counts.late
            ),
        )
        return result.model_dump(mode="json", by_alias=True)

    def _phrase_answer(self, question: str, kind: QueryKind, data: Any) -> str:
        try:
            return self.client.complete(build_answer_prompt(question, kind, data))
        except UpstreamServiceError as e:
            logger.error(f"Could not phrase chat answer: {e.reason}")
            return FORMAT_FALLBACK
