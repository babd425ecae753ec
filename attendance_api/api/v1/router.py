"""Main API router aggregating all module routers."""

from fastapi import APIRouter

from attendance_api.api.v1.endpoints import attendance, chat, students

api_router = APIRouter()

# Students
api_router.include_router(
    students.router,
    prefix="/students",
    tags=["Students"],
)

# Attendance
api_router.include_router(
    attendance.router,
    prefix="/attendance",
    tags=["Attendance"],
)

# Chat assistant
api_router.include_router(
    chat.router,
    tags=["Chat"],
)
