"""
Message delivery model. One row per (message, recipient); read_at null means unread.
"""
from sqlalchemy import Column, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import uuid
from property_inbox.core.database import Base
from property_inbox.utils.time import utcnow


class MessageDelivery(Base):
    __tablename__ = "message_deliveries"
    __table_args__ = (UniqueConstraint("message_id", "user_id", name="uq_message_deliveries_message_user"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    message_id = Column(UUID(as_uuid=True), ForeignKey("messages.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    delivered_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    read_at = Column(DateTime(timezone=True), nullable=True)

    message = relationship("Message", back_populates="deliveries")
