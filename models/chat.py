# models/chat.py
from sqlalchemy import Column, String, Text, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship

from .base import Base


class Chat(Base):
    __tablename__ = "chats"

    # "{min(user_id)}_{max(user_id)}"
    id = Column(String(80), primary_key=True, index=True)
    user1_id = Column(String(32), ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    user2_id = Column(String(32), ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    participants = Column(JSON, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)

    last_message_text = Column(Text, nullable=True)
    last_message_sender_id = Column(String(32), nullable=True)
    last_message_at = Column(DateTime(timezone=True), nullable=True)

    messages = relationship("Message", back_populates="chat", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Chat {self.user1_id}↔{self.user2_id}>"


class Message(Base):
    __tablename__ = "messages"

    id = Column(String(32), primary_key=True, index=True)
    chat_id = Column(String(80), ForeignKey("chats.id", ondelete="CASCADE"), index=True, nullable=False)
    sender_id = Column(String(32), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    text = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)

    chat = relationship("Chat", back_populates="messages")

    def __repr__(self):
        return f"<Message chat={self.chat_id} sender={self.sender_id}>"
