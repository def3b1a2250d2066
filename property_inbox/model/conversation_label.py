"""
Per-viewer conversation label. The literal label "muted" doubles as the mute flag.
"""
from sqlalchemy import Column, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import uuid
from property_inbox.core.database import Base
from property_inbox.utils.time import utcnow

MUTED_LABEL = "muted"


class ConversationLabel(Base):
    __tablename__ = "conversation_labels"
    __table_args__ = (
        UniqueConstraint("user_id", "conversation_id", "label", name="uq_conversation_labels_user_conversation_label"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    conversation_id = Column(UUID(as_uuid=True), ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False, index=True)
    label = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    conversation = relationship("Conversation", back_populates="labels")
