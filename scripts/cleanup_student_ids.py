"""Convert empty student IDs to NULL.

Rows imported before IDs were normalized may hold '' in students.external_id,
which collides on the unique index. Attendance copies are left as ''.
"""
from sqlalchemy import text

from attendance_api.core.database import engine

with engine.connect() as conn:
    result = conn.execute(text(
        "SELECT COUNT(*) FROM students WHERE TRIM(external_id) = ''"
    ))
    blank = result.scalar() or 0
    print(f"Students with an empty ID: {blank}")

    if blank:
        conn.execute(text(
            "UPDATE students SET external_id = NULL WHERE TRIM(external_id) = ''"
        ))
        conn.commit()
        print(f"Cleared {blank} empty student IDs")
    else:
        print("Nothing to clean up - good!")
