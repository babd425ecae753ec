"""Attendance statistics: status counts, school days and rates."""

from datetime import date

from sqlalchemy import distinct, func, select
from sqlalchemy.orm import Session

from attendance_api.models.attendance import AttendanceRecord, AttendanceStatus
from attendance_api.models.student import Student, YearLevel
from attendance_api.schemas.attendance import (
    AttendanceByYearResponse,
    AttendanceStats,
    YearAttendanceStat,
)


def attendance_rate(
    total_students: int,
    school_days: int,
    present_count: int,
    late_count: int,
) -> float:
    """Percentage of attendance slots filled by a Present or Late mark.

    One slot exists per student per school day, so unmarked days lower the
    rate. Returns 0.0 when there are no slots.
    """
    if total_students == 0 or school_days == 0:
        return 0.0
    slots = total_students * school_days
    return round((present_count + late_count) / slots * 100, 1)


def percentage(part: int, whole: int) -> float:
    if whole == 0:
        return 0.0
    return round(part / whole * 100, 1)


class StatisticsService:
    """Attendance aggregation service."""

    def __init__(self, db: Session):
        self.db = db

    def status_counts(
        self,
        date_from: date | None = None,
        date_to: date | None = None,
        year: YearLevel | None = None,
    ) -> AttendanceStats:
        """Count records per status over an inclusive date range.

        The year filter applies to the status counts only; ``school_days``
        counts every distinct recorded date in the range.
        """
        query = (
            select(AttendanceRecord.status, func.count().label("count"))
            .join(Student, Student.id == AttendanceRecord.student_id)
            .group_by(AttendanceRecord.status)
        )
        query = self._apply_date_range(query, date_from, date_to)
        if year:
            query = query.where(Student.year == year)

        counts = {status: 0 for status in AttendanceStatus}
        for status, count in self.db.execute(query).all():
            counts[status] = count

        return AttendanceStats(
            present=counts[AttendanceStatus.PRESENT],
            late=counts[AttendanceStatus.LATE],
            excused=counts[AttendanceStatus.EXCUSED],
            absent=counts[AttendanceStatus.ABSENT],
            total_records=sum(counts.values()),
            school_days=self.school_days(date_from, date_to),
        )

    def school_days(
        self,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> int:
        """Number of distinct dates on which attendance was taken."""
        query = select(func.count(distinct(AttendanceRecord.attendance_date)))
        query = self._apply_date_range(query, date_from, date_to)
        return self.db.execute(query).scalar() or 0

    def school_day_dates(self, date_from: date, date_to: date) -> list[date]:
        query = (
            select(distinct(AttendanceRecord.attendance_date))
            .order_by(AttendanceRecord.attendance_date)
        )
        query = self._apply_date_range(query, date_from, date_to)
        return list(self.db.execute(query).scalars().all())

    def count_students(self, year: YearLevel | None = None) -> int:
        query = select(func.count(Student.id))
        if year:
            query = query.where(Student.year == year)
        return self.db.execute(query).scalar() or 0

    def attendance_by_year(self, attendance_date: date) -> AttendanceByYearResponse:
        """Present-or-late share of each year level on one day.

        Year levels without students are left out.
        """
        totals = dict(
            self.db.execute(
                select(Student.year, func.count(Student.id)).group_by(Student.year)
            ).all()
        )
        attending = dict(
            self.db.execute(
                select(Student.year, func.count(AttendanceRecord.id))
                .join(AttendanceRecord, AttendanceRecord.student_id == Student.id)
                .where(
                    AttendanceRecord.attendance_date == attendance_date,
                    AttendanceRecord.status.in_([AttendanceStatus.PRESENT, AttendanceStatus.LATE]),
                )
                .group_by(Student.year)
            ).all()
        )

        years = []
        for level in YearLevel:
            total = totals.get(level, 0)
            if not total:
                continue
            count = attending.get(level, 0)
            years.append(YearAttendanceStat(
                year=level.value,
                total_students=total,
                attending=count,
                rate=percentage(count, total),
            ))

        return AttendanceByYearResponse(attendance_date=attendance_date, years=years)

    @staticmethod
    def _apply_date_range(query, date_from: date | None, date_to: date | None):
        if date_from:
            query = query.where(AttendanceRecord.attendance_date >= date_from)
        if date_to:
            query = query.where(AttendanceRecord.attendance_date <= date_to)
        return query
