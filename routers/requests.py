from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.params import Path
from sqlalchemy.ext.asyncio import AsyncSession

from core.auth import get_session
from core.database import get_db
from core.errors import JamspotError, http_status_for
from core.session import SessionContext
from schemas.request import (
    AcceptedMatchRead,
    AcceptResponse,
    ConnectionRequestRead,
    InboundRequestRead,
)
from services import profile_service, request_service
from utils.user_helpers import to_user_card

router = APIRouter(prefix="/requests", tags=["requests"])


@router.get(
    "/inbound",
    response_model=List[InboundRequestRead],
    summary="Pending requests sent to me, newest first",
)
async def inbound_requests(
    db: AsyncSession = Depends(get_db),
    session: SessionContext = Depends(get_session),
) -> List[InboundRequestRead]:
    requests = await request_service.inbound_pending(db, session.user_id)
    profiles = await profile_service.get_profiles(db, (r.requester_id for r in requests))

    output: List[InboundRequestRead] = []
    for req in requests:
        requester = profiles.get(req.requester_id)
        output.append(InboundRequestRead(
            **ConnectionRequestRead.model_validate(req).model_dump(),
            requester=to_user_card(requester) if requester else None,
        ))
    return output


@router.get(
    "/outbound",
    response_model=List[ConnectionRequestRead],
    summary="My pending requests",
)
async def outbound_requests(
    db: AsyncSession = Depends(get_db),
    session: SessionContext = Depends(get_session),
):
    return await request_service.outbound_pending(db, session.user_id)


@router.get(
    "/accepted",
    response_model=List[AcceptedMatchRead],
    summary="Accepted connections in either direction",
)
async def accepted_requests(
    db: AsyncSession = Depends(get_db),
    session: SessionContext = Depends(get_session),
) -> List[AcceptedMatchRead]:
    me = session.user_id
    accepted = await request_service.accepted_for_user(db, me)
    profiles = await profile_service.get_profiles(
        db, (request_service.other_party(r, me) for r in accepted)
    )

    output: List[AcceptedMatchRead] = []
    for req in accepted:
        other = profiles.get(request_service.other_party(req, me))
        output.append(AcceptedMatchRead(
            **ConnectionRequestRead.model_validate(req).model_dump(),
            other_user=to_user_card(other) if other else None,
        ))
    return output


@router.post(
    "/{receiver_id}",
    response_model=ConnectionRequestRead,
    status_code=status.HTTP_201_CREATED,
    summary="Ask a musician to connect",
)
async def send_request(
    receiver_id: str = Path(..., description="Receiver user id"),
    db: AsyncSession = Depends(get_db),
    session: SessionContext = Depends(get_session),
):
    try:
        return await request_service.send_request(db, session.user_id, receiver_id)
    except JamspotError as exc:
        raise HTTPException(status_code=http_status_for(exc), detail=exc.detail)


@router.post(
    "/{request_id}/accept",
    response_model=AcceptResponse,
    summary="Accept a request; returns the chat to open",
)
async def accept_request(
    request_id: str = Path(..., description="Request id"),
    db: AsyncSession = Depends(get_db),
    session: SessionContext = Depends(get_session),
):
    try:
        request, chat_id = await request_service.accept_request(db, request_id, session.user_id)
    except JamspotError as exc:
        raise HTTPException(status_code=http_status_for(exc), detail=exc.detail)
    return AcceptResponse(request=ConnectionRequestRead.model_validate(request), chat_id=chat_id)


@router.post(
    "/{request_id}/decline",
    response_model=ConnectionRequestRead,
    summary="Decline a request",
)
async def decline_request(
    request_id: str = Path(..., description="Request id"),
    db: AsyncSession = Depends(get_db),
    session: SessionContext = Depends(get_session),
):
    try:
        return await request_service.decline_request(db, request_id, session.user_id)
    except JamspotError as exc:
        raise HTTPException(status_code=http_status_for(exc), detail=exc.detail)
