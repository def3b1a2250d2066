"""
Inbox schemas: conversations, participants, messages, labels, reactions,
mentions, templates and notification preferences.
"""
from datetime import datetime
from typing import Any, List, Literal, Optional
import uuid
from pydantic import BaseModel, Field, field_validator


ConversationType = Literal["direct", "broadcast", "maintenance", "property", "tenant", "urgent"]
Priority = Literal["normal", "high"]
Importance = Literal["normal", "high"]
ReactionType = Literal["like", "love", "laugh", "wow", "sad", "angry", "thumbs_up", "thumbs_down"]


# --- Conversation ---


class LastMessagePreview(BaseModel):
    """Most recent message for a list row."""
    id: uuid.UUID
    content: str
    sender_id: uuid.UUID
    sender_name: str
    is_draft: bool = False
    created_at: datetime


class ConversationListItem(BaseModel):
    """Conversation enriched for the viewer: last message, unread count, private labels."""
    id: uuid.UUID
    title: Optional[str] = None
    type: str
    priority: str = "normal"
    property_id: Optional[uuid.UUID] = None
    maintenance_request_id: Optional[uuid.UUID] = None
    created_by: uuid.UUID
    sender_name: Optional[str] = None
    recipient_names: Optional[List[str]] = None
    status: str
    is_archived: bool = False
    is_starred: bool = False
    thread_count: int = 0
    last_message_at: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    unread_count: int = 0
    labels: List[str] = Field(default_factory=list)
    is_muted: bool = False
    last_message: Optional[LastMessagePreview] = None


class ConversationListResponse(BaseModel):
    items: List[ConversationListItem]
    filter: str
    search: Optional[str] = None


class ConversationCreateBody(BaseModel):
    """Body for POST /inbox/conversations."""
    title: Optional[str] = Field(None, max_length=255)
    type: ConversationType = "direct"
    priority: Priority = "normal"
    property_id: Optional[uuid.UUID] = None
    maintenance_request_id: Optional[uuid.UUID] = None
    participant_ids: List[uuid.UUID] = Field(default_factory=list)
    initial_message: str = Field(..., min_length=1, max_length=10_000)
    subject: Optional[str] = Field(None, max_length=255)
    notify: bool = False


class ParticipantResponse(BaseModel):
    user_id: uuid.UUID
    role: str
    display_name: str
    joined_at: Optional[datetime] = None
    left_at: Optional[datetime] = None
    last_read_at: Optional[datetime] = None


class FlagBody(BaseModel):
    """Body for star/archive toggles."""
    value: bool


class LabelBody(BaseModel):
    label: str = Field(..., min_length=1, max_length=64)

    @field_validator("label")
    @classmethod
    def label_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("label must not be blank")
        return v


class LabelsResponse(BaseModel):
    conversation_id: uuid.UUID
    labels: List[str]
    is_muted: bool


class MarkReadResponse(BaseModel):
    conversation_id: uuid.UUID
    marked: int = Field(..., description="Delivery rows changed from unread to read.")


# --- Message ---


class MessageCreateBody(BaseModel):
    """Body for POST /inbox/conversations/{id}/messages. Content is stored exactly as sent."""
    content: str = Field(..., min_length=1, max_length=10_000)
    subject: Optional[str] = Field(None, max_length=255)
    importance: Importance = "normal"
    attachments: Optional[Any] = None
    reply_to_id: Optional[uuid.UUID] = None
    mention_ids: List[uuid.UUID] = Field(default_factory=list, description="Participants named in the message.")
    notify: bool = False


class DraftCreateBody(BaseModel):
    """Body for POST /inbox/conversations/{id}/drafts."""
    content: str = Field(..., min_length=1, max_length=10_000)
    subject: Optional[str] = Field(None, max_length=255)
    importance: Importance = "normal"
    attachments: Optional[Any] = None
    reply_to_id: Optional[uuid.UUID] = None


class MessageUpdateBody(BaseModel):
    content: str = Field(..., min_length=1, max_length=10_000)


class MessageResponse(BaseModel):
    """
    Single message. id is a string because optimistic entries in the thread
    cache carry a temporary "temp-..." id until the thread is refetched.
    """
    id: str
    conversation_id: uuid.UUID
    sender_id: uuid.UUID
    sender_name: str
    content: str
    subject: Optional[str] = None
    message_type: str = "text"
    importance: str = "normal"
    attachments: Optional[Any] = None
    reply_to_id: Optional[uuid.UUID] = None
    is_draft: bool = False
    created_at: datetime
    updated_at: Optional[datetime] = None
    edited_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None


class MessageListResponse(BaseModel):
    """Full thread, oldest first."""
    items: List[MessageResponse]


class MessagePageResponse(BaseModel):
    """One page of a thread, newest first."""
    items: List[MessageResponse]
    page: int = Field(..., description="Current page (0-based).")
    page_size: int = Field(..., description="Messages per page.")
    has_more: bool = Field(..., description="False once a page comes back short.")


# --- Reactions, mentions, templates ---


class ReactionBody(BaseModel):
    reaction_type: ReactionType


class MessageReactionResponse(BaseModel):
    id: uuid.UUID
    message_id: uuid.UUID
    user_id: uuid.UUID
    reaction_type: str
    created_at: datetime

    class Config:
        from_attributes = True


class MentionResponse(BaseModel):
    """A mention of the viewer together with the message it came from."""
    id: uuid.UUID
    message_id: uuid.UUID
    conversation_id: uuid.UUID
    mentioned_user_id: uuid.UUID
    created_at: datetime
    read_at: Optional[datetime] = None
    message: MessageResponse


class TemplateCreateBody(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    content: str = Field(..., min_length=1, max_length=10_000)
    category: Optional[str] = Field(None, max_length=64)
    is_shared: bool = False


class MessageTemplateResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    name: str
    content: str
    category: Optional[str] = None
    is_shared: bool = False
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# --- Notification preferences ---


class NotificationPreferenceResponse(BaseModel):
    email_enabled: bool = True
    sms_enabled: bool = False
    push_enabled: bool = False

    class Config:
        from_attributes = True


class NotificationPreferenceUpdate(BaseModel):
    email_enabled: Optional[bool] = None
    sms_enabled: Optional[bool] = None
    push_enabled: Optional[bool] = None
