"""Chat assistant endpoint."""

from fastapi import APIRouter

from attendance_api.core.dependencies import ChatServiceDep
from attendance_api.schemas.chat import ChatRequest, ChatResponse

router = APIRouter()


@router.post("/chat", response_model=ChatResponse)
def chat(
    request: ChatRequest,
    service: ChatServiceDep,
):
    """
    Answer a question about students and attendance.
    Returns the reply and the raw data it was based on (or null).
    """
    return service.process(request)
