# models/connection_request.py
from sqlalchemy import Column, String, DateTime, Enum, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from .base import Base

REQUEST_STATUSES = ("pending", "accepted", "declined")


class ConnectionRequest(Base):
    __tablename__ = "connection_requests"

    id = Column(String(32), primary_key=True, index=True)
    requester_id = Column(String(32), ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    receiver_id = Column(String(32), ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    status = Column(
        Enum(*REQUEST_STATUSES, name="connection_request_status"),
        nullable=False,
        default="pending",
    )
    created_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "requester_id",
            "receiver_id",
            name="uq_request_requester_receiver"
        ),
    )

    requester = relationship("User", foreign_keys=[requester_id])
    receiver = relationship("User", foreign_keys=[receiver_id])

    def __repr__(self):
        return f"<ConnectionRequest {self.requester_id}→{self.receiver_id} {self.status}>"
