"""
Per-user communication preferences for the outbound notification gateway.
"""
from sqlalchemy import Column, Boolean, DateTime
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func
import uuid
from property_inbox.core.database import Base
from property_inbox.utils.time import utcnow


class NotificationPreference(Base):
    __tablename__ = "notification_preferences"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), unique=True, index=True, nullable=False)
    email_enabled = Column(Boolean, nullable=False, default=True)
    sms_enabled = Column(Boolean, nullable=False, default=False)
    push_enabled = Column(Boolean, nullable=False, default=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow)

    def enabled_channels(self) -> list:
        channels = []
        if self.email_enabled:
            channels.append("email")
        if self.sms_enabled:
            channels.append("sms")
        if self.push_enabled:
            channels.append("push")
        return channels
