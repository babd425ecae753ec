"""Attendance record model."""

import enum
from datetime import date

from sqlalchemy import Date, Enum, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from attendance_api.core.database import Base
from attendance_api.models.base import IDMixin, Identifier, TimestampMixin

# Batch-only pseudo status: delete whatever is recorded for the day
UNMARKED = "Unmarked"


class AttendanceStatus(str, enum.Enum):
    """Attendance status enumeration."""

    PRESENT = "Present"
    ABSENT = "Absent"
    LATE = "Late"
    EXCUSED = "Excused"

    @classmethod
    def from_string(cls, value: str) -> "AttendanceStatus":
        """Convert string to AttendanceStatus, handling common variations."""
        key = value.strip().upper()
        mapping = {
            "P": cls.PRESENT,
            "PRESENT": cls.PRESENT,
            "A": cls.ABSENT,
            "ABSENT": cls.ABSENT,
            "L": cls.LATE,
            "LATE": cls.LATE,
            "E": cls.EXCUSED,
            "EXCUSED": cls.EXCUSED,
        }
        if key in mapping:
            return mapping[key]
        raise ValueError(f"Invalid attendance status: {value}")

    @property
    def initial(self) -> str:
        return self.value[0]


class AttendanceRecord(Base, IDMixin, TimestampMixin):
    """One student's attendance for one calendar day."""

    __tablename__ = "attendance_records"

    # Copy of the student's external id at write time, display only
    external_id: Mapped[str] = mapped_column(String(64), nullable=False, default="", index=True)
    student_id: Mapped[int] = mapped_column(
        Identifier,
        ForeignKey("students.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    attendance_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    status: Mapped[AttendanceStatus] = mapped_column(
        Enum(AttendanceStatus),
        nullable=False,
    )
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Relationships
    student: Mapped["Student"] = relationship(
        "Student",
        back_populates="attendance_records",
        lazy="selectin",
    )

    __table_args__ = (
        UniqueConstraint(
            "student_id", "attendance_date",
            name="uq_attendance_student_date",
        ),
    )

    @property
    def student_name(self) -> str:
        """Get student name from relationship."""
        return self.student.name if self.student else ""

    @property
    def year(self) -> str | None:
        """Get year level from student relationship."""
        return self.student.year.value if self.student else None

    def __repr__(self) -> str:
        return f"<AttendanceRecord(student_id={self.student_id}, date={self.attendance_date})>"
