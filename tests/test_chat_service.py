import json
from datetime import date

import pytest
import requests

from attendance_api.core.exceptions import UpstreamServiceError
from attendance_api.models.attendance import AttendanceStatus
from attendance_api.models.student import YearLevel
from attendance_api.schemas.chat import ChatRequest, parse_filters
from attendance_api.services import llm
from attendance_api.services.chat import (
    FORMAT_FALLBACK,
    ChatService,
    cap_results,
    parse_decision,
)
from attendance_api.services.llm import CompletionClient

from conftest import FakeCompletionClient, make_record, make_student

TODAY = date(2024, 3, 1)


def decision(query_type="none", filters=None, needs_data=True, response=""):
    return json.dumps({
        "needsData": needs_data,
        "queryType": query_type,
        "filters": filters or {},
        "response": response,
    })


def ask(message, history=None):
    return ChatRequest.model_validate(
        {"message": message, "conversationHistory": history or []}
    )


@pytest.fixture
def chat(db, test_settings):
    def build(*replies):
        client = FakeCompletionClient(replies)
        return ChatService(db, client, settings=test_settings, today=lambda: TODAY), client
    return build


# ==========================================
# Decision parsing
# ==========================================

def test_parse_decision_plain_json():
    result = parse_decision(decision("students", {"year": "Year 7"}))
    assert result.needs_data is True
    assert result.query_type.value == "students"
    assert result.filters == {"year": "Year 7"}


def test_parse_decision_fenced_json():
    text = "Here you go:\n```json\n" + decision("stats", {"period": "month"}) + "\n```"
    result = parse_decision(text)
    assert result.query_type.value == "stats"
    assert result.filters == {"period": "month"}


def test_parse_decision_prose_is_the_answer():
    result = parse_decision("Hello! Ask me about attendance.")
    assert result.needs_data is False
    assert result.response == "Hello! Ask me about attendance."


def test_parse_decision_bad_envelope_is_the_answer():
    text = '{"queryType": "students"}'
    result = parse_decision(text)
    assert result.needs_data is False
    assert result.response == text


def test_parse_filters_rejects_unknown_key():
    with pytest.raises(ValueError):
        parse_filters({"studentId": "S1"})


def test_parse_filters_rejects_bad_value():
    with pytest.raises(ValueError):
        parse_filters({"status": "Sleeping"})


def test_parse_filters_normalizes_values():
    filters = parse_filters({
        "status": "absent",
        "year": "ey",
        "sex": "female",
        "date": "Yesterday",
        "period": "WEEK",
        "name": None,
    })
    assert filters["status"].value == AttendanceStatus.ABSENT
    assert filters["year"].value == YearLevel.EY
    assert filters["sex"].value.value == "Female"
    assert filters["date"].resolve(TODAY) == date(2024, 2, 29)
    assert filters["period"].value == "week"
    assert "name" not in filters


def test_cap_results():
    assert cap_results(list(range(5)), 20) == list(range(5))
    capped = cap_results(list(range(25)), 20)
    assert len(capped) == 21
    assert capped[-1] == {"note": "... and 5 more records"}
    assert cap_results({"present": 1}, 20) == {"present": 1}


# ==========================================
# Conversation flow
# ==========================================

def test_who_was_absent_today(db, chat):
    ada = make_student(db, "Ada Lovelace", external_id="S1")
    bob = make_student(db, "Bob Byron")
    make_record(db, ada, TODAY, AttendanceStatus.ABSENT)
    make_record(db, bob, TODAY, AttendanceStatus.PRESENT)
    make_record(db, bob, date(2024, 2, 29), AttendanceStatus.ABSENT)

    service, client = chat(
        decision("attendance", {"date": "today", "status": "Absent"}),
        "Ada Lovelace was absent today.",
    )
    reply = service.process(ask("Who was absent today?"))

    assert reply.message == "Ada Lovelace was absent today."
    assert len(reply.data) == 1
    assert reply.data[0]["studentName"] == "Ada Lovelace"
    assert reply.data[0]["status"] == "Absent"
    assert reply.data[0]["date"] == "2024-03-01"
    assert len(client.prompts) == 2
    assert "Ada Lovelace" in client.prompts[1]
    assert "Who was absent today?" in client.prompts[1]


def test_answer_without_data(chat):
    service, client = chat(decision(needs_data=False, response="Click 'Add Student'."))
    reply = service.process(ask("How do I add a student?"))

    assert reply.message == "Click 'Add Student'."
    assert reply.data is None
    assert len(client.prompts) == 1


def test_prose_reply_is_returned_as_answer(chat):
    service, _ = chat("Hi there! How can I help?")
    reply = service.process(ask("hello"))
    assert reply.message == "Hi there! How can I help?"
    assert reply.data is None


def test_students_query_by_year(db, chat):
    make_student(db, "Ada Lovelace", year=YearLevel.YEAR_7)
    make_student(db, "Bob Byron", year=YearLevel.YEAR_8)

    service, _ = chat(decision("students", {"year": "Year 7"}), "One student in Year 7.")
    reply = service.process(ask("Who is in Year 7?"))

    assert [s["name"] for s in reply.data] == ["Ada Lovelace"]
    assert reply.data[0]["year"] == "Year 7"


def test_large_results_are_capped(db, chat):
    for i in range(25):
        make_student(db, f"Student {i:02d}")

    service, client = chat(decision("students"), "There are 25 students.")
    reply = service.process(ask("List all students"))

    assert len(reply.data) == 21
    assert reply.data[-1] == {"note": "... and 5 more records"}
    assert "5 more records" in client.prompts[1]


def test_stats_query(db, chat):
    ada = make_student(db, "Ada Lovelace")
    bob = make_student(db, "Bob Byron")
    make_record(db, ada, TODAY, AttendanceStatus.PRESENT)
    make_record(db, bob, TODAY, AttendanceStatus.LATE)
    make_record(db, bob, date(2024, 2, 1), AttendanceStatus.ABSENT)

    service, _ = chat(decision("stats", {"period": "today"}), "Everyone came today.")
    reply = service.process(ask("What's today's attendance rate?"))

    assert reply.data["period"] == "today"
    assert reply.data["startDate"] == "2024-03-01"
    assert reply.data["present"] == 1
    assert reply.data["late"] == 1
    assert reply.data["absent"] == 0
    assert reply.data["schoolDays"] == 1
    assert reply.data["totalStudents"] == 2
    assert reply.data["attendanceRate"] == 100.0


def test_stats_default_to_year_to_date(db, chat):
    ada = make_student(db, "Ada Lovelace")
    make_record(db, ada, date(2024, 2, 1), AttendanceStatus.ABSENT)
    make_record(db, ada, date(2023, 12, 1), AttendanceStatus.ABSENT)

    service, _ = chat(decision("stats"), "Rate is 0%.")
    reply = service.process(ask("Overall attendance?"))

    assert reply.data["period"] == "year"
    assert reply.data["startDate"] == "2024-01-01"
    assert reply.data["absent"] == 1
    assert reply.data["attendanceRate"] == 0.0


def test_unrecognized_period_is_reported_as_year(db, chat):
    make_student(db, "Ada Lovelace")

    service, client = chat(decision("stats", {"period": "fortnight"}), "Year to date.")
    reply = service.process(ask("Attendance this fortnight?"))

    assert reply.data["period"] == "year"
    assert reply.data["startDate"] == "2024-01-01"
    assert reply.data["endDate"] == "2024-03-01"
    assert '"period": "year"' in client.prompts[1]


def test_unknown_filter_is_upstream_error(db, chat):
    service, client = chat(decision("students", {"studentId": "S1"}))

    with pytest.raises(UpstreamServiceError) as exc_info:
        service.process(ask("Find S1"))

    assert exc_info.value.status_code == 502
    assert exc_info.value.message == UpstreamServiceError.GENERIC
    assert len(client.prompts) == 1


def test_history_is_trimmed_to_window(chat):
    history = [
        {"role": "user" if i % 2 == 0 else "assistant", "content": f"turn {i}"}
        for i in range(5)
    ]
    service, client = chat(decision(needs_data=False, response="ok"))
    service.process(ask("next", history))

    prompt = client.prompts[0]
    assert "turn 0" not in prompt
    assert "turn 1" not in prompt
    for i in (2, 3, 4):
        assert f"turn {i}" in prompt
    assert "User: next" in prompt


def test_phrasing_failure_keeps_data(db, chat):
    make_student(db, "Ada Lovelace")
    service, _ = chat(decision("students"), UpstreamServiceError(reason="timeout"))

    reply = service.process(ask("List students"))

    assert reply.message == FORMAT_FALLBACK
    assert reply.data[0]["name"] == "Ada Lovelace"


def test_deciding_call_failure_propagates(chat):
    service, _ = chat(UpstreamServiceError.auth_failed(reason="HTTP 401"))

    with pytest.raises(UpstreamServiceError) as exc_info:
        service.process(ask("hello"))
    assert exc_info.value.message == UpstreamServiceError.AUTH_FAILED


# ==========================================
# Completion client
# ==========================================

class FakeHTTPResponse:
    def __init__(self, status_code, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON body")
        return self._payload


@pytest.fixture
def http_calls(monkeypatch):
    calls = []
    responses = []

    def fake_post(url, json=None, headers=None, timeout=None):
        calls.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
        reply = responses.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply

    monkeypatch.setattr(llm.requests, "post", fake_post)
    return calls, responses


def make_client(api_key="secret"):
    return CompletionClient(api_key=api_key, url="http://llm.test/v1/chat", model="test-model")


def test_client_returns_reply_text(http_calls):
    calls, responses = http_calls
    responses.append(FakeHTTPResponse(200, {"choices": [{"message": {"content": "Hi!"}}]}))

    assert make_client().complete("hello") == "Hi!"
    assert calls[0]["headers"]["Authorization"] == "Bearer secret"
    assert calls[0]["json"]["model"] == "test-model"
    assert calls[0]["json"]["messages"] == [{"role": "user", "content": "hello"}]


def test_client_without_key_does_not_call_out(http_calls):
    calls, _ = http_calls

    with pytest.raises(UpstreamServiceError) as exc_info:
        make_client(api_key=None).complete("hello")

    assert exc_info.value.status_code == 503
    assert exc_info.value.message == UpstreamServiceError.NOT_CONFIGURED
    assert calls == []


def test_client_auth_failure(http_calls):
    _, responses = http_calls
    responses.append(FakeHTTPResponse(401, {"error": {"message": "Invalid API Key"}}))

    with pytest.raises(UpstreamServiceError) as exc_info:
        make_client().complete("hello")

    assert exc_info.value.message == UpstreamServiceError.AUTH_FAILED
    assert "Invalid API Key" in exc_info.value.reason


def test_client_server_error_is_generic(http_calls):
    _, responses = http_calls
    responses.append(FakeHTTPResponse(500, text="upstream exploded"))

    with pytest.raises(UpstreamServiceError) as exc_info:
        make_client().complete("hello")

    assert exc_info.value.status_code == 502
    assert exc_info.value.message == UpstreamServiceError.GENERIC
    assert "upstream exploded" in exc_info.value.reason


def test_client_transport_error_is_generic(http_calls):
    _, responses = http_calls
    responses.append(requests.ConnectionError("connection refused"))

    with pytest.raises(UpstreamServiceError) as exc_info:
        make_client().complete("hello")

    assert exc_info.value.message == UpstreamServiceError.GENERIC
    assert "connection refused" in exc_info.value.reason


def test_client_malformed_payload(http_calls):
    _, responses = http_calls
    responses.append(FakeHTTPResponse(200, {"choices": []}))

    with pytest.raises(UpstreamServiceError):
        make_client().complete("hello")
