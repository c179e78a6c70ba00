from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Path

from medsim_api.api.dependencies import ChatServiceDependency, SessionManagerDependency
from medsim_api.domain.schemas.chat import ChatMessage, ChatReply
from medsim_api.domain.schemas.sessions import SessionSummary

router = APIRouter(prefix="/chat", tags=["Chat"])

UserIdPath = Annotated[str, Path(min_length=1, max_length=128)]


@router.post("/messages", response_model=ChatReply)
async def post_message(payload: ChatMessage, service: ChatServiceDependency) -> ChatReply:
    """Handle one inbound chat message and return the replies in order."""
    replies = await service.handle(payload.user_id, payload.text)
    return ChatReply(user_id=payload.user_id, replies=replies)


@router.get("/sessions/{user_id}", response_model=SessionSummary)
async def get_session_summary(
    user_id: UserIdPath, manager: SessionManagerDependency
) -> SessionSummary:
    session = await manager.session(user_id)
    return session.summary()
