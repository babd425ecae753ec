"""Monthly attendance report and its Excel export."""

import calendar
from io import BytesIO

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from sqlalchemy import select
from sqlalchemy.orm import Session

from attendance_api.core.dates import parse_month
from attendance_api.core.exceptions import ValidationError
from attendance_api.models.attendance import AttendanceRecord, AttendanceStatus
from attendance_api.models.student import Student, YearLevel
from attendance_api.schemas.attendance import MonthlyReportResponse, MonthlyStudentRow
from attendance_api.services.statistics import StatisticsService, percentage

STATUS_FILLS = {
    AttendanceStatus.PRESENT: "C6EFCE",
    AttendanceStatus.LATE: "FFEB9C",
    AttendanceStatus.EXCUSED: "DDEBF7",
    AttendanceStatus.ABSENT: "FFC7CE",
}


class ReportService:
    """Attendance report generation."""

    def __init__(self, db: Session):
        self.db = db

    def monthly_report(
        self,
        month: str,
        year: YearLevel | None = None,
    ) -> MonthlyReportResponse:
        """Per-student day-by-day attendance for a calendar month.

        A student's rate is Present plus Late over the month's school days.
        """
        try:
            date_from, date_to = parse_month(month)
        except ValueError as e:
            raise ValidationError(str(e))

        school_days = StatisticsService(self.db).school_day_dates(date_from, date_to)

        query = select(Student).order_by(Student.name, Student.id)
        if year:
            query = query.where(Student.year == year)
        students = self.db.execute(query).scalars().all()

        records = self.db.execute(
            select(AttendanceRecord).where(
                AttendanceRecord.attendance_date >= date_from,
                AttendanceRecord.attendance_date <= date_to,
                AttendanceRecord.student_id.in_([s.id for s in students]),
            )
        ).scalars().all()
        by_student: dict[int, list[AttendanceRecord]] = {}
        for record in records:
            by_student.setdefault(record.student_id, []).append(record)

        rows = []
        for student in students:
            row = MonthlyStudentRow(
                student_ref=student.id,
                name=student.name,
                external_id=student.external_id,
                year=student.year.value,
            )
            for record in by_student.get(student.id, []):
                row.days[record.attendance_date.day] = record.status
                field = record.status.value.lower()
                setattr(row, field, getattr(row, field) + 1)
            marked = row.present + row.late + row.excused + row.absent
            row.unmarked = max(len(school_days) - marked, 0)
            row.rate = percentage(row.present + row.late, len(school_days))
            rows.append(row)

        return MonthlyReportResponse(
            month=f"{date_from.year:04d}-{date_from.month:02d}",
            date_from=date_from,
            date_to=date_to,
            days_in_month=date_to.day,
            school_days=school_days,
            students=rows,
        )

    def monthly_workbook(
        self,
        month: str,
        year: YearLevel | None = None,
    ) -> bytes:
        """Render the monthly report as an Excel workbook.

        Layout:
        Student Name | Year | 1 .. N (status initial) | P | L | E | A | Rate %
        """
        report = self.monthly_report(month, year)

        wb = Workbook()
        ws = wb.active
        ws.title = report.month

        # Styles
        header_font_white = Font(bold=True, color="FFFFFF")
        header_fill = PatternFill(start_color="4F81BD", end_color="4F81BD", fill_type="solid")
        thin_border = Border(
            left=Side(style='thin'),
            right=Side(style='thin'),
            top=Side(style='thin'),
            bottom=Side(style='thin')
        )
        center_align = Alignment(horizontal='center', vertical='center')

        school_days = {d.day for d in report.school_days}
        day_headers = []
        for day in range(1, report.days_in_month + 1):
            weekday = calendar.day_abbr[report.date_from.replace(day=day).weekday()][:2]
            day_headers.append(f"{day}\n{weekday}")
        headers = ["Student Name", "Year", *day_headers, "P", "L", "E", "A", "Rate %"]

        for col_idx, header in enumerate(headers, start=1):
            cell = ws.cell(row=1, column=col_idx, value=header)
            cell.font = header_font_white
            cell.fill = header_fill
            cell.border = thin_border
            cell.alignment = Alignment(horizontal='center', vertical='center', wrap_text=True)

        first_day_col = 3
        summary_col = first_day_col + report.days_in_month
        for row_idx, student in enumerate(report.students, start=2):
            ws.cell(row=row_idx, column=1, value=student.name).border = thin_border
            ws.cell(row=row_idx, column=2, value=student.year).border = thin_border

            for day in range(1, report.days_in_month + 1):
                status = student.days.get(day)
                cell = ws.cell(row=row_idx, column=first_day_col + day - 1)
                cell.border = thin_border
                cell.alignment = center_align
                if status:
                    cell.value = status.initial
                    color = STATUS_FILLS[status]
                    cell.fill = PatternFill(start_color=color, end_color=color, fill_type="solid")
                elif day not in school_days:
                    cell.fill = PatternFill(start_color="F2F2F2", end_color="F2F2F2", fill_type="solid")

            summary = [student.present, student.late, student.excused, student.absent, student.rate]
            for offset, value in enumerate(summary):
                cell = ws.cell(row=row_idx, column=summary_col + offset, value=value)
                cell.border = thin_border
                cell.alignment = center_align

        # Adjust column widths
        ws.column_dimensions['A'].width = 25  # Student Name
        ws.column_dimensions['B'].width = 10  # Year
        for col in range(first_day_col, summary_col):
            ws.column_dimensions[get_column_letter(col)].width = 5
        for col in range(summary_col, len(headers) + 1):
            ws.column_dimensions[get_column_letter(col)].width = 8
        ws.freeze_panes = ws.cell(row=2, column=first_day_col)

        output = BytesIO()
        wb.save(output)
        output.seek(0)
        return output.getvalue()
