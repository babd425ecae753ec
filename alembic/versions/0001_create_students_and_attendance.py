"""Create students and attendance_records tables.

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19

students.external_id is nullable with a unique index, so students without a
school-issued ID (NULL) never collide. attendance_records carries the
one-record-per-student-per-day constraint.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


sex_enum = sa.Enum('MALE', 'FEMALE', name='sex')
year_enum = sa.Enum(
    'EY', 'YEAR_1', 'YEAR_2', 'YEAR_3', 'YEAR_4', 'YEAR_5', 'YEAR_6', 'YEAR_7',
    'YEAR_8', 'YEAR_9', 'YEAR_10', 'YEAR_11', 'YEAR_12', 'YEAR_13',
    name='yearlevel',
)
status_enum = sa.Enum('PRESENT', 'ABSENT', 'LATE', 'EXCUSED', name='attendancestatus')


def upgrade() -> None:
    op.create_table(
        'students',
        sa.Column('id', sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('external_id', sa.String(64), nullable=True),
        sa.Column('sex', sex_enum, nullable=False),
        sa.Column('year', year_enum, nullable=False),
        sa.Column('date_of_birth', sa.Date(), nullable=True),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('phone', sa.String(50), nullable=True),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('external_id', name='uq_students_external_id'),
    )
    op.create_index('ix_students_name', 'students', ['name'])
    op.create_index('ix_students_year', 'students', ['year'])

    op.create_table(
        'attendance_records',
        sa.Column('id', sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column('external_id', sa.String(64), nullable=False, server_default=''),
        sa.Column(
            'student_id',
            sa.BigInteger(),
            sa.ForeignKey('students.id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column('attendance_date', sa.Date(), nullable=False),
        sa.Column('status', status_enum, nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('student_id', 'attendance_date', name='uq_attendance_student_date'),
    )
    op.create_index('ix_attendance_records_student_id', 'attendance_records', ['student_id'])
    op.create_index('ix_attendance_records_attendance_date', 'attendance_records', ['attendance_date'])
    op.create_index('ix_attendance_records_external_id', 'attendance_records', ['external_id'])


def downgrade() -> None:
    op.drop_table('attendance_records')
    op.drop_table('students')
    status_enum.drop(op.get_bind(), checkfirst=True)
    year_enum.drop(op.get_bind(), checkfirst=True)
    sex_enum.drop(op.get_bind(), checkfirst=True)
