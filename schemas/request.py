from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel

from schemas.user import UserCard


class ConnectionRequestRead(BaseModel):
    id: str
    requester_id: str
    receiver_id: str
    status: Literal["pending", "accepted", "declined"]
    created_at: datetime

    class Config:
        from_attributes = True


class InboundRequestRead(ConnectionRequestRead):
    requester: Optional[UserCard] = None


class AcceptedMatchRead(ConnectionRequestRead):
    other_user: Optional[UserCard] = None


class AcceptResponse(BaseModel):
    request: ConnectionRequestRead
    chat_id: str
