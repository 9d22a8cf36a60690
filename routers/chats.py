import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect, status
from fastapi.params import Path
from sqlalchemy.ext.asyncio import AsyncSession

from core.auth import get_session, get_websocket_session
from core.database import AsyncSessionLocal, get_db
from core.errors import JamspotError, http_status_for
from core.session import SessionContext
from schemas.chat import ChatOpenResponse, ChatRead, MessageCreate, MessageRead
from services import chat_service, profile_service
from utils.user_helpers import to_user_card

router = APIRouter(prefix="/chats", tags=["chats"])
logger = logging.getLogger(__name__)


@router.get("", response_model=List[ChatRead], summary="My chats, latest activity first")
async def list_my_chats(
    db: AsyncSession = Depends(get_db),
    session: SessionContext = Depends(get_session),
) -> List[ChatRead]:
    me = session.user_id
    try:
        chats = await chat_service.list_chats(db, me)
    except JamspotError as exc:
        raise HTTPException(status_code=http_status_for(exc), detail=exc.detail)
    profiles = await profile_service.get_profiles(
        db, (chat_service.other_participant(c, me) for c in chats)
    )

    output: List[ChatRead] = []
    for chat in chats:
        other = profiles.get(chat_service.other_participant(chat, me))
        output.append(ChatRead(
            chat_id=chat.id,
            participants=list(chat.participants),
            created_at=chat.created_at,
            last_message_text=chat.last_message_text,
            last_message_sender_id=chat.last_message_sender_id,
            last_message_at=chat.last_message_at,
            other_user=to_user_card(other) if other else None,
        ))
    return output


@router.post(
    "/{other_user_id}",
    response_model=ChatOpenResponse,
    summary="Open the chat with a musician, creating it if needed",
)
async def open_chat(
    other_user_id: str = Path(..., description="The other participant"),
    db: AsyncSession = Depends(get_db),
    session: SessionContext = Depends(get_session),
):
    try:
        chat = await chat_service.get_or_create_chat(db, session.user_id, other_user_id)
    except JamspotError as exc:
        raise HTTPException(status_code=http_status_for(exc), detail=exc.detail)
    return ChatOpenResponse(chat_id=chat.id)


@router.get(
    "/{chat_id}/messages",
    response_model=List[MessageRead],
    summary="Chat history, oldest first",
)
async def read_messages(
    chat_id: str = Path(...),
    db: AsyncSession = Depends(get_db),
    session: SessionContext = Depends(get_session),
):
    try:
        await chat_service.get_chat_for_participant(db, chat_id, session.user_id)
        return await chat_service.get_messages(db, chat_id)
    except JamspotError as exc:
        raise HTTPException(status_code=http_status_for(exc), detail=exc.detail)


@router.post(
    "/{chat_id}/messages",
    response_model=MessageRead,
    status_code=status.HTTP_201_CREATED,
    summary="Send a message",
)
async def post_message(
    payload: MessageCreate,
    chat_id: str = Path(...),
    db: AsyncSession = Depends(get_db),
    session: SessionContext = Depends(get_session),
):
    try:
        return await chat_service.send_message(db, chat_id, session.user_id, payload.text)
    except JamspotError as exc:
        raise HTTPException(status_code=http_status_for(exc), detail=exc.detail)


@router.websocket("/{chat_id}/ws")
async def chat_live(
    websocket: WebSocket,
    chat_id: str,
    session: Optional[SessionContext] = Depends(get_websocket_session),
):
    """
    Pushes the full message list on connect and after every new message.
    Text frames sent by the client are posted as messages. When the history
    cannot be loaded the socket is closed with 1011 and the error detail.
    """
    if session is None:
        await websocket.close(code=4401)
        return

    async with AsyncSessionLocal() as db:
        try:
            await chat_service.get_chat_for_participant(db, chat_id, session.user_id)
        except JamspotError as exc:
            await websocket.close(code=4000 + http_status_for(exc), reason=exc.detail)
            return

    await websocket.accept()

    async def push(messages: List[MessageRead]) -> None:
        await websocket.send_json([m.model_dump(mode="json") for m in messages])

    async def fail(exc: Exception) -> None:
        detail = exc.detail if isinstance(exc, JamspotError) else "Could not load messages"
        await websocket.close(code=status.WS_1011_INTERNAL_ERROR, reason=detail)

    unsubscribe = chat_service.subscribe(chat_id, push, on_error=fail)
    try:
        while True:
            text = await websocket.receive_text()
            if not text.strip():
                continue
            async with AsyncSessionLocal() as db:
                try:
                    await chat_service.send_message(db, chat_id, session.user_id, text)
                except JamspotError as exc:
                    await websocket.close(code=4000 + http_status_for(exc), reason=exc.detail)
                    return
    except WebSocketDisconnect:
        logger.debug("Chat socket %s closed for %s", chat_id, session.user_id)
    finally:
        await unsubscribe()
