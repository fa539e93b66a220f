from pydantic import Field
from datetime import datetime
from typing import Optional

from unimatch.schemas.base import CamelModel


class MessageCreate(CamelModel):
    match_id: str = Field(min_length=1)
    content: str = Field(min_length=1)


class MessageResponse(CamelModel):
    id: str
    match_id: str
    sender_id: str
    content: str
    is_read: bool
    created_at: datetime
    sender_first_name: Optional[str] = None
    sender_last_name: Optional[str] = None


class MarkReadResponse(CamelModel):
    message: str
    updated: int


class UnreadCountResponse(CamelModel):
    unread_count: int
