from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from schemas.user import UserCard


class MessageCreate(BaseModel):
    text: str = Field(..., max_length=4000)

    @field_validator("text")
    @classmethod
    def not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Message text cannot be empty")
        return value


class MessageRead(BaseModel):
    id: str
    chat_id: str
    sender_id: str
    text: str
    created_at: datetime

    class Config:
        from_attributes = True


class ChatRead(BaseModel):
    chat_id: str
    participants: List[str]
    created_at: datetime
    last_message_text: Optional[str] = None
    last_message_sender_id: Optional[str] = None
    last_message_at: Optional[datetime] = None
    other_user: Optional[UserCard] = None


class ChatOpenResponse(BaseModel):
    chat_id: str
