"""Student model."""

import enum
from datetime import date

from sqlalchemy import Date, Enum, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from attendance_api.core.database import Base
from attendance_api.models.base import IDMixin, TimestampMixin


class Sex(str, enum.Enum):
    """Student sex enumeration."""

    MALE = "Male"
    FEMALE = "Female"


class YearLevel(str, enum.Enum):
    """School year levels, in order from early years upwards."""

    EY = "EY"
    YEAR_1 = "Year 1"
    YEAR_2 = "Year 2"
    YEAR_3 = "Year 3"
    YEAR_4 = "Year 4"
    YEAR_5 = "Year 5"
    YEAR_6 = "Year 6"
    YEAR_7 = "Year 7"
    YEAR_8 = "Year 8"
    YEAR_9 = "Year 9"
    YEAR_10 = "Year 10"
    YEAR_11 = "Year 11"
    YEAR_12 = "Year 12"
    YEAR_13 = "Year 13"

    @classmethod
    def from_string(cls, value: str) -> "YearLevel":
        """Convert string to YearLevel, handling common variations."""
        cleaned = " ".join(value.split()).lower()
        if cleaned in ("ey", "early years"):
            return cls.EY
        if cleaned.isdigit():
            cleaned = f"year {int(cleaned)}"
        for level in cls:
            if level.value.lower() == cleaned:
                return level
        raise ValueError(f"Invalid year: {value}")


class Student(Base, IDMixin, TimestampMixin):
    """Student model for managing student records."""

    __tablename__ = "students"

    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    # NULL when absent so the unique index never collides on ""
    external_id: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
        unique=True,
    )
    sex: Mapped[Sex] = mapped_column(Enum(Sex), nullable=False)
    year: Mapped[YearLevel] = mapped_column(Enum(YearLevel), nullable=False, index=True)
    date_of_birth: Mapped[date | None] = mapped_column(Date, nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Relationships
    attendance_records: Mapped[list["AttendanceRecord"]] = relationship(
        "AttendanceRecord",
        back_populates="student",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Student(id={self.id}, name={self.name}, year={self.year})>"
