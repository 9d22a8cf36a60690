# models/account.py
from sqlalchemy import Column, String, Integer, DateTime
from sqlalchemy.sql import func

from .base import Base


class Account(Base):
    """Identity record: one per email, whatever the sign-in method."""

    __tablename__ = "accounts"

    id = Column(String(32), primary_key=True, index=True)
    email = Column(String(320), unique=True, nullable=False, index=True)
    provider = Column(String(32), nullable=False, default="password")
    password_hash = Column(String(256), nullable=True)
    display_name = Column(String(100), nullable=True)
    session_version = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<Account id={self.id} provider={self.provider}>"
