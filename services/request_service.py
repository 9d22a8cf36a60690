"""
Connection requests: pending -> accepted | declined.

One request per ordered (requester, receiver) pair, whatever its status.
The pre-insert lookup gives the caller a clean error; the unique constraint
on the table catches two sends racing past that lookup.
"""
import logging
from datetime import datetime, timezone
from typing import List, Set, Tuple

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import (
    DuplicateRequestError,
    InvalidTransitionError,
    PermissionDeniedError,
    ProfileNotFoundError,
    RequestNotFoundError,
    SelfRequestError,
)
from models.connection_request import ConnectionRequest
from models.user import User
from services import chat_service

logger = logging.getLogger(__name__)

INBOX_LIMIT = 50


def _newest_first(requests: List[ConnectionRequest]) -> List[ConnectionRequest]:
    # Sorted here rather than in SQL, matching the other list queries
    return sorted(requests, key=lambda r: r.created_at, reverse=True)


async def send_request(db: AsyncSession, requester_id: str, receiver_id: str) -> ConnectionRequest:
    if requester_id == receiver_id:
        raise SelfRequestError()

    if await db.get(User, requester_id) is None:
        raise ProfileNotFoundError("Create your profile before sending requests")
    if await db.get(User, receiver_id) is None:
        raise ProfileNotFoundError()

    existing = await db.execute(
        select(ConnectionRequest.id).where(
            ConnectionRequest.requester_id == requester_id,
            ConnectionRequest.receiver_id == receiver_id,
        )
    )
    if existing.first() is not None:
        raise DuplicateRequestError()

    request = ConnectionRequest(
        requester_id=requester_id,
        receiver_id=receiver_id,
        status="pending",
        created_at=datetime.now(timezone.utc),
    )
    db.add(request)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise DuplicateRequestError()
    await db.refresh(request)
    logger.info("Connection request %s: %s -> %s", request.id, requester_id, receiver_id)
    return request


async def _pending_for_receiver(db: AsyncSession, request_id: str, actor_id: str) -> ConnectionRequest:
    request = await db.get(ConnectionRequest, request_id)
    if request is None:
        raise RequestNotFoundError()
    if request.receiver_id != actor_id:
        raise PermissionDeniedError("Only the receiver can answer this request")
    if request.status != "pending":
        raise InvalidTransitionError(f"Request is already {request.status}")
    return request


async def accept_request(db: AsyncSession, request_id: str, actor_id: str) -> Tuple[ConnectionRequest, str]:
    """
    Marks the request accepted and provisions the pair's chat.
    Returns (request, chat_id).
    """
    request = await _pending_for_receiver(db, request_id, actor_id)
    request.status = "accepted"
    await db.commit()
    await db.refresh(request)

    chat = await chat_service.get_or_create_chat(db, request.requester_id, request.receiver_id)
    logger.info("Connection request %s accepted, chat %s", request.id, chat.id)
    return request, chat.id


async def decline_request(db: AsyncSession, request_id: str, actor_id: str) -> ConnectionRequest:
    request = await _pending_for_receiver(db, request_id, actor_id)
    request.status = "declined"
    await db.commit()
    await db.refresh(request)
    return request


async def inbound_pending(db: AsyncSession, user_id: str) -> List[ConnectionRequest]:
    result = await db.execute(
        select(ConnectionRequest).where(
            ConnectionRequest.receiver_id == user_id,
            ConnectionRequest.status == "pending",
        )
    )
    return _newest_first(list(result.scalars().all()))[:INBOX_LIMIT]


async def outbound_pending(db: AsyncSession, user_id: str) -> List[ConnectionRequest]:
    result = await db.execute(
        select(ConnectionRequest).where(
            ConnectionRequest.requester_id == user_id,
            ConnectionRequest.status == "pending",
        )
    )
    return _newest_first(list(result.scalars().all()))


async def accepted_for_user(db: AsyncSession, user_id: str) -> List[ConnectionRequest]:
    result = await db.execute(
        select(ConnectionRequest).where(
            ConnectionRequest.status == "accepted",
            or_(
                ConnectionRequest.requester_id == user_id,
                ConnectionRequest.receiver_id == user_id,
            ),
        )
    )
    unique = {request.id: request for request in result.scalars().all()}
    return _newest_first(list(unique.values()))


async def all_for_user(db: AsyncSession, user_id: str) -> List[ConnectionRequest]:
    result = await db.execute(
        select(ConnectionRequest).where(
            or_(
                ConnectionRequest.requester_id == user_id,
                ConnectionRequest.receiver_id == user_id,
            )
        )
    )
    return _newest_first(list(result.scalars().all()))


async def requested_receiver_ids(db: AsyncSession, requester_id: str) -> Set[str]:
    """Everyone the user has already sent a request to, any status."""
    result = await db.execute(
        select(ConnectionRequest.receiver_id).where(ConnectionRequest.requester_id == requester_id)
    )
    return {row[0] for row in result.all()}


def other_party(request: ConnectionRequest, user_id: str) -> str:
    return request.receiver_id if request.requester_id == user_id else request.requester_id
