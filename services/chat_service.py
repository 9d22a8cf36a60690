"""
Two-party chats keyed by the sorted participant pair, with append-only messages.
"""
import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable, List, Optional

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.config import settings
from core.database import AsyncSessionLocal
from core.errors import (
    BackendUnavailableError,
    ChatNotFoundError,
    PermissionDeniedError,
    ProfileNotFoundError,
    ValidationError,
)
from models.chat import Chat, Message
from models.user import User
from schemas.chat import MessageRead
from services.live import Unsubscribe, broker, subscribe_snapshots

logger = logging.getLogger(__name__)


def chat_id_for(user_a: str, user_b: str) -> str:
    u1, u2 = sorted([user_a, user_b])
    return f"{u1}_{u2}"


def chat_topic(chat_id: str) -> str:
    return f"chat:{chat_id}"


async def get_or_create_chat(db: AsyncSession, user_a: str, user_b: str) -> Chat:
    """
    Idempotent: both argument orders, and concurrent callers, end up with the
    same row. Losing an insert race is not an error.
    """
    if user_a == user_b:
        raise ValidationError("A chat needs two different participants")

    chat_id = chat_id_for(user_a, user_b)
    chat = await db.get(Chat, chat_id)
    if chat is not None:
        return chat

    u1, u2 = sorted([user_a, user_b])
    result = await db.execute(select(User.id).where(User.id.in_([u1, u2])))
    if len(result.all()) != 2:
        raise ProfileNotFoundError()

    chat = Chat(
        id=chat_id,
        user1_id=u1,
        user2_id=u2,
        participants=[u1, u2],
        created_at=datetime.now(timezone.utc),
    )
    db.add(chat)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        chat = await db.get(Chat, chat_id)
        if chat is None:
            raise
        return chat
    await db.refresh(chat)
    logger.info("Chat %s created", chat_id)
    return chat


async def get_chat(db: AsyncSession, chat_id: str) -> Chat:
    chat = await db.get(Chat, chat_id)
    if chat is None:
        raise ChatNotFoundError()
    return chat


async def get_chat_for_participant(db: AsyncSession, chat_id: str, user_id: str) -> Chat:
    chat = await get_chat(db, chat_id)
    if user_id not in (chat.user1_id, chat.user2_id):
        raise PermissionDeniedError("You are not a participant of this chat")
    return chat


async def send_message(db: AsyncSession, chat_id: str, sender_id: str, text: str) -> Message:
    """
    Appends a message. Blank text is rejected by the request schema before
    this point; here the text is stored as given.
    """
    chat = await get_chat_for_participant(db, chat_id, sender_id)
    now = datetime.now(timezone.utc)

    message = Message(chat_id=chat.id, sender_id=sender_id, text=text, created_at=now)
    db.add(message)
    chat.last_message_text = text
    chat.last_message_sender_id = sender_id
    chat.last_message_at = now
    await db.commit()
    await db.refresh(message)
    await db.refresh(chat)

    broker.publish(chat_topic(chat.id))
    return message


async def get_messages(db: AsyncSession, chat_id: str, limit: Optional[int] = None) -> List[Message]:
    """The most recent ``limit`` messages, oldest first."""
    try:
        result = await db.execute(
            select(Message)
            .where(Message.chat_id == chat_id)
            .order_by(Message.created_at.desc(), Message.id.desc())
            .limit(limit or settings.CHAT_HISTORY_LIMIT)
        )
    except SQLAlchemyError as e:
        logger.exception("Message fetch for %s failed: %s", chat_id, e)
        raise BackendUnavailableError("Could not load messages") from e
    return list(reversed(result.scalars().all()))


async def list_chats(db: AsyncSession, user_id: str) -> List[Chat]:
    try:
        result = await db.execute(
            select(Chat).where(
                or_(Chat.user1_id == user_id, Chat.user2_id == user_id)
            )
        )
    except SQLAlchemyError as e:
        logger.exception("Chat list for %s failed: %s", user_id, e)
        raise BackendUnavailableError("Could not load chats") from e
    chats = list(result.scalars().all())
    return sorted(chats, key=lambda c: c.last_message_at or c.created_at, reverse=True)


def other_participant(chat: Chat, user_id: str) -> str:
    return chat.user2_id if chat.user1_id == user_id else chat.user1_id


def subscribe(
    chat_id: str,
    on_change: Callable[[List[MessageRead]], Awaitable[None]],
    session_factory: async_sessionmaker = AsyncSessionLocal,
    limit: Optional[int] = None,
    on_error: Optional[Callable[[Exception], Awaitable[None]]] = None,
) -> Unsubscribe:
    """
    Push the chat's full ordered message list to ``on_change`` right away and
    again after every new message. Each delivery replaces the previous one.
    A failed load is handed to ``on_error``. Call the returned coroutine
    function to stop.
    """
    async def load_snapshot() -> List[MessageRead]:
        async with session_factory() as db:
            messages = await get_messages(db, chat_id, limit)
            return [MessageRead.model_validate(m) for m in messages]

    return subscribe_snapshots(chat_topic(chat_id), load_snapshot, on_change, on_error=on_error)
