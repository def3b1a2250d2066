"""
Conversation model. One thread of messages among participants.
"""
from sqlalchemy import Column, String, Integer, Boolean, DateTime, JSON
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import uuid
from property_inbox.core.database import Base
from property_inbox.utils.time import utcnow

class Conversation(Base):
    __tablename__ = "conversations"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    title = Column(String, nullable=True)
    type = Column(String, nullable=False, default="direct")
    priority = Column(String, nullable=False, default="normal")
    property_id = Column(UUID(as_uuid=True), nullable=True, index=True)
    maintenance_request_id = Column(UUID(as_uuid=True), nullable=True, index=True)
    created_by = Column(UUID(as_uuid=True), nullable=False, index=True)
    # Denormalized for list search; captured at creation time
    sender_name = Column(String, nullable=True)
    recipient_names = Column(JSON, nullable=True)
    status = Column(String, nullable=False, default="active")
    is_archived = Column(Boolean, nullable=False, default=False)
    is_starred = Column(Boolean, nullable=False, default=False)
    # Count of non-draft, non-deleted messages; only changed by atomic +1/-1 updates
    thread_count = Column(Integer, nullable=False, default=0)
    last_message_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow)

    participants = relationship("ConversationParticipant", back_populates="conversation", cascade="all, delete-orphan")
    messages = relationship("Message", back_populates="conversation", cascade="all, delete-orphan")
    labels = relationship("ConversationLabel", back_populates="conversation", cascade="all, delete-orphan")
