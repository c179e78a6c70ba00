from __future__ import annotations

from pydantic import Field

from medsim_api.domain.schemas.base import BaseSchema


class ChatMessage(BaseSchema):
    user_id: str = Field(..., min_length=1, max_length=128, description="Transport user identifier.")
    text: str = Field(..., min_length=1, max_length=8000, description="Raw command or message text.")


class ChatReply(BaseSchema):
    user_id: str
    replies: list[str] = Field(default_factory=list)


__all__ = ["ChatMessage", "ChatReply"]
