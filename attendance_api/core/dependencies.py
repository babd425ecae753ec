"""FastAPI dependency injection utilities."""

from typing import Annotated

from fastapi import Depends
from sqlalchemy.orm import Session

from attendance_api.core.config import settings
from attendance_api.core.database import get_db
from attendance_api.services.chat import ChatService
from attendance_api.services.llm import CompletionClient


def get_completion_client() -> CompletionClient:
    """Text-generation client built from the configured credentials."""
    return CompletionClient.from_settings(settings)


def get_chat_service(
    db: Annotated[Session, Depends(get_db)],
    client: Annotated[CompletionClient, Depends(get_completion_client)],
) -> ChatService:
    return ChatService(db, client, settings=settings)


ChatServiceDep = Annotated[ChatService, Depends(get_chat_service)]
