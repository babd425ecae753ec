from datetime import date
from io import BytesIO

import pytest
from openpyxl import load_workbook

from attendance_api.core.exceptions import ValidationError
from attendance_api.models.attendance import AttendanceStatus
from attendance_api.models.student import YearLevel
from attendance_api.services.report import ReportService
from attendance_api.services.statistics import (
    StatisticsService,
    attendance_rate,
    percentage,
)

from conftest import make_record, make_student


@pytest.fixture
def school(db):
    """Three students over three school days in March 2024."""
    ada = make_student(db, "Ada Lovelace", external_id="S1", year=YearLevel.YEAR_7)
    bob = make_student(db, "Bob Byron", external_id="S2", year=YearLevel.YEAR_7)
    cy = make_student(db, "Cy Young", year=YearLevel.YEAR_8)

    marks = {
        date(2024, 3, 1): [(ada, "PRESENT"), (bob, "PRESENT"), (cy, "LATE")],
        date(2024, 3, 4): [(ada, "ABSENT"), (bob, "PRESENT"), (cy, "EXCUSED")],
        date(2024, 3, 5): [(ada, "PRESENT"), (cy, "PRESENT")],
    }
    for day, entries in marks.items():
        for student, status in entries:
            make_record(db, student, day, AttendanceStatus[status])
    return {"ada": ada, "bob": bob, "cy": cy}


def test_attendance_rate_formula():
    assert attendance_rate(10, 2, 15, 3) == 90.0
    assert attendance_rate(3, 1, 1, 0) == 33.3


def test_attendance_rate_without_slots_is_zero():
    assert attendance_rate(0, 5, 0, 0) == 0.0
    assert attendance_rate(5, 0, 0, 0) == 0.0


def test_percentage():
    assert percentage(1, 3) == 33.3
    assert percentage(0, 0) == 0.0


def test_status_counts_for_range(db, school):
    stats = StatisticsService(db).status_counts(date(2024, 3, 1), date(2024, 3, 31))

    assert stats.present == 5
    assert stats.late == 1
    assert stats.excused == 1
    assert stats.absent == 1
    assert stats.total_records == 8
    assert stats.school_days == 3


def test_status_counts_range_is_inclusive(db, school):
    stats = StatisticsService(db).status_counts(date(2024, 3, 4), date(2024, 3, 5))
    assert stats.total_records == 5
    assert stats.school_days == 2


def test_year_filter_narrows_counts_but_not_school_days(db, school):
    stats = StatisticsService(db).status_counts(
        date(2024, 3, 1), date(2024, 3, 31), year=YearLevel.YEAR_8
    )
    assert stats.present == 1
    assert stats.late == 1
    assert stats.excused == 1
    assert stats.absent == 0
    assert stats.total_records == 3
    assert stats.school_days == 3


def test_empty_range_is_all_zero(db, school):
    stats = StatisticsService(db).status_counts(date(2023, 1, 1), date(2023, 1, 31))
    assert stats.total_records == 0
    assert stats.school_days == 0


def test_count_students(db, school):
    service = StatisticsService(db)
    assert service.count_students() == 3
    assert service.count_students(YearLevel.YEAR_7) == 2
    assert service.count_students(YearLevel.YEAR_1) == 0


def test_school_day_dates(db, school):
    days = StatisticsService(db).school_day_dates(date(2024, 3, 2), date(2024, 3, 31))
    assert days == [date(2024, 3, 4), date(2024, 3, 5)]


def test_attendance_by_year(db, school):
    result = StatisticsService(db).attendance_by_year(date(2024, 3, 4))

    by_year = {y.year: y for y in result.years}
    assert set(by_year) == {"Year 7", "Year 8"}
    assert by_year["Year 7"].total_students == 2
    assert by_year["Year 7"].attending == 1
    assert by_year["Year 7"].rate == 50.0
    assert by_year["Year 8"].attending == 0
    assert by_year["Year 8"].rate == 0.0


# ==========================================
# Monthly report
# ==========================================

def test_monthly_report(db, school):
    report = ReportService(db).monthly_report("2024-03")

    assert report.date_from == date(2024, 3, 1)
    assert report.date_to == date(2024, 3, 31)
    assert report.days_in_month == 31
    assert report.school_days == [date(2024, 3, 1), date(2024, 3, 4), date(2024, 3, 5)]
    assert [row.name for row in report.students] == ["Ada Lovelace", "Bob Byron", "Cy Young"]

    bob = report.students[1]
    assert bob.days == {1: AttendanceStatus.PRESENT, 4: AttendanceStatus.PRESENT}
    assert bob.present == 2
    assert bob.unmarked == 1
    assert bob.rate == 66.7

    cy = report.students[2]
    assert cy.late == 1
    assert cy.excused == 1
    assert cy.rate == 66.7


def test_monthly_report_for_one_year(db, school):
    report = ReportService(db).monthly_report("2024-03", year=YearLevel.YEAR_8)
    assert [row.name for row in report.students] == ["Cy Young"]
    assert len(report.school_days) == 3


@pytest.mark.parametrize("month", ["2024-13", "March", "2024/03", ""])
def test_monthly_report_rejects_bad_month(db, month):
    with pytest.raises(ValidationError):
        ReportService(db).monthly_report(month)


def test_monthly_workbook(db, school):
    content = ReportService(db).monthly_workbook("2024-03")

    sheet = load_workbook(BytesIO(content)).active
    values = [[cell.value for cell in row] for row in sheet.iter_rows()]
    flat = [v for row in values for v in row if v is not None]
    assert "Ada Lovelace" in flat
    assert "Cy Young" in flat
