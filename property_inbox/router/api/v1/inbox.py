"""
Inbox API: conversations, messages, labels, read state, reactions, mentions,
templates and notification preferences.
"""
import logging
import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from property_inbox.cache import QueryCache, get_query_cache
from property_inbox.core.database import get_db
from property_inbox.core.dependencies import get_viewer_id
from property_inbox.schema.inbox import (
    ConversationCreateBody,
    ConversationListItem,
    ConversationListResponse,
    DraftCreateBody,
    FlagBody,
    LabelBody,
    LabelsResponse,
    MentionResponse,
    MarkReadResponse,
    MessageCreateBody,
    MessageListResponse,
    MessagePageResponse,
    MessageReactionResponse,
    MessageResponse,
    MessageTemplateResponse,
    MessageUpdateBody,
    NotificationPreferenceResponse,
    NotificationPreferenceUpdate,
    ParticipantResponse,
    ReactionBody,
    TemplateCreateBody,
)
from property_inbox.service.conversation_service import ConversationService
from property_inbox.service.mention_service import MentionService
from property_inbox.service.message_service import MessageService
from property_inbox.service.messaging_service import MessagingService
from property_inbox.service.reaction_service import ReactionService
from property_inbox.service.template_service import TemplateService

router = APIRouter()
logger = logging.getLogger(__name__)


def get_conversation_service(
    db: Session = Depends(get_db), cache: QueryCache = Depends(get_query_cache)
) -> ConversationService:
    return ConversationService(db, cache)


def get_message_service(
    db: Session = Depends(get_db), cache: QueryCache = Depends(get_query_cache)
) -> MessageService:
    return MessageService(db, cache)


def get_messaging_service(
    db: Session = Depends(get_db), cache: QueryCache = Depends(get_query_cache)
) -> MessagingService:
    return MessagingService(db, cache)


def get_reaction_service(
    db: Session = Depends(get_db), cache: QueryCache = Depends(get_query_cache)
) -> ReactionService:
    return ReactionService(db, cache)


def get_mention_service(
    db: Session = Depends(get_db), cache: QueryCache = Depends(get_query_cache)
) -> MentionService:
    return MentionService(db, cache)


def get_template_service(
    db: Session = Depends(get_db), cache: QueryCache = Depends(get_query_cache)
) -> TemplateService:
    return TemplateService(db, cache)


# --- Conversations ---

@router.get("/conversations", response_model=ConversationListResponse)
async def list_conversations(
    inbox_filter: str = Query("inbox", alias="filter", description="inbox, sent, starred, archived, drafts, maintenance, properties, tenants, urgent"),
    search: Optional[str] = None,
    viewer_id: uuid.UUID = Depends(get_viewer_id),
    service: ConversationService = Depends(get_conversation_service),
):
    """Conversations for one inbox filter, most recent activity first."""
    items = await service.list_conversations(viewer_id, inbox_filter=inbox_filter, search=search)
    return ConversationListResponse(items=items, filter=inbox_filter, search=search)


@router.post("/conversations", response_model=ConversationListItem, status_code=status.HTTP_201_CREATED)
async def create_conversation(
    body: ConversationCreateBody,
    viewer_id: uuid.UUID = Depends(get_viewer_id),
    service: MessagingService = Depends(get_messaging_service),
):
    """Create a conversation with its participants and first message."""
    return await service.create_conversation(viewer_id, body)


@router.get("/conversations/{conversation_id}", response_model=ConversationListItem)
async def get_conversation(
    conversation_id: uuid.UUID,
    viewer_id: uuid.UUID = Depends(get_viewer_id),
    service: ConversationService = Depends(get_conversation_service),
):
    return await service.get_conversation(viewer_id, conversation_id)


@router.get("/conversations/{conversation_id}/participants", response_model=List[ParticipantResponse])
async def list_participants(
    conversation_id: uuid.UUID,
    viewer_id: uuid.UUID = Depends(get_viewer_id),
    service: ConversationService = Depends(get_conversation_service),
):
    return await service.list_participants(viewer_id, conversation_id)


@router.put("/conversations/{conversation_id}/star", response_model=ConversationListItem)
async def star_conversation(
    conversation_id: uuid.UUID,
    body: FlagBody,
    viewer_id: uuid.UUID = Depends(get_viewer_id),
    service: MessagingService = Depends(get_messaging_service),
):
    return await service.set_starred(viewer_id, conversation_id, body.value)


@router.put("/conversations/{conversation_id}/archive", response_model=ConversationListItem)
async def archive_conversation(
    conversation_id: uuid.UUID,
    body: FlagBody,
    viewer_id: uuid.UUID = Depends(get_viewer_id),
    service: MessagingService = Depends(get_messaging_service),
):
    return await service.set_archived(viewer_id, conversation_id, body.value)


@router.post("/conversations/{conversation_id}/labels", response_model=LabelsResponse)
async def add_label(
    conversation_id: uuid.UUID,
    body: LabelBody,
    viewer_id: uuid.UUID = Depends(get_viewer_id),
    service: MessagingService = Depends(get_messaging_service),
):
    return await service.add_label(viewer_id, conversation_id, body.label)


@router.delete("/conversations/{conversation_id}/labels/{label}", response_model=LabelsResponse)
async def remove_label(
    conversation_id: uuid.UUID,
    label: str,
    viewer_id: uuid.UUID = Depends(get_viewer_id),
    service: MessagingService = Depends(get_messaging_service),
):
    return await service.remove_label(viewer_id, conversation_id, label)


@router.post("/conversations/{conversation_id}/mute", response_model=LabelsResponse)
async def toggle_mute(
    conversation_id: uuid.UUID,
    viewer_id: uuid.UUID = Depends(get_viewer_id),
    service: MessagingService = Depends(get_messaging_service),
):
    """Mute if unmuted, unmute if muted."""
    return await service.toggle_mute(viewer_id, conversation_id)


@router.post("/conversations/{conversation_id}/read", response_model=MarkReadResponse)
async def mark_as_read(
    conversation_id: uuid.UUID,
    viewer_id: uuid.UUID = Depends(get_viewer_id),
    service: MessagingService = Depends(get_messaging_service),
):
    return await service.mark_as_read(viewer_id, conversation_id)


# --- Messages ---

@router.get("/conversations/{conversation_id}/messages", response_model=MessageListResponse)
async def list_thread(
    conversation_id: uuid.UUID,
    drafts: bool = False,
    viewer_id: uuid.UUID = Depends(get_viewer_id),
    service: MessageService = Depends(get_message_service),
):
    """Whole thread, oldest first."""
    items = await service.list_thread(viewer_id, conversation_id, drafts=drafts)
    return MessageListResponse(items=items)


@router.get("/conversations/{conversation_id}/pages/{page}", response_model=MessagePageResponse)
async def get_message_page(
    conversation_id: uuid.UUID,
    page: int,
    drafts: bool = False,
    viewer_id: uuid.UUID = Depends(get_viewer_id),
    service: MessageService = Depends(get_message_service),
):
    """Infinite scroll: page 0 is the newest messages."""
    return await service.get_page(viewer_id, conversation_id, page=page, drafts=drafts)


@router.post(
    "/conversations/{conversation_id}/messages",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
)
async def send_message(
    conversation_id: uuid.UUID,
    body: MessageCreateBody,
    viewer_id: uuid.UUID = Depends(get_viewer_id),
    service: MessagingService = Depends(get_messaging_service),
):
    return await service.send_message(viewer_id, conversation_id, body)


@router.post(
    "/conversations/{conversation_id}/drafts",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
)
async def save_draft(
    conversation_id: uuid.UUID,
    body: DraftCreateBody,
    viewer_id: uuid.UUID = Depends(get_viewer_id),
    service: MessagingService = Depends(get_messaging_service),
):
    return await service.save_draft(viewer_id, conversation_id, body)


@router.get("/messages/search", response_model=MessageListResponse)
async def search_messages(
    q: str = Query(..., min_length=1),
    conversation_id: Optional[uuid.UUID] = None,
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    viewer_id: uuid.UUID = Depends(get_viewer_id),
    service: MessageService = Depends(get_message_service),
):
    items = await service.search(viewer_id, q, conversation_id=conversation_id, limit=limit, offset=offset)
    return MessageListResponse(items=items)


@router.get("/messages/{message_id}", response_model=MessageResponse)
async def get_message(
    message_id: uuid.UUID,
    viewer_id: uuid.UUID = Depends(get_viewer_id),
    service: MessageService = Depends(get_message_service),
):
    """Any message by id, including soft-deleted ones."""
    return service.get_message(viewer_id, message_id)


@router.patch("/messages/{message_id}", response_model=MessageResponse)
async def edit_message(
    message_id: uuid.UUID,
    body: MessageUpdateBody,
    viewer_id: uuid.UUID = Depends(get_viewer_id),
    service: MessagingService = Depends(get_messaging_service),
):
    return await service.edit_message(viewer_id, message_id, body.content)


@router.delete("/messages/{message_id}", response_model=MessageResponse)
async def delete_message(
    message_id: uuid.UUID,
    viewer_id: uuid.UUID = Depends(get_viewer_id),
    service: MessagingService = Depends(get_messaging_service),
):
    """Soft delete. The row stays retrievable by id."""
    return await service.delete_message(viewer_id, message_id)


# --- Reactions ---

@router.get("/messages/{message_id}/reactions", response_model=List[MessageReactionResponse])
async def list_reactions(
    message_id: uuid.UUID,
    viewer_id: uuid.UUID = Depends(get_viewer_id),
    service: ReactionService = Depends(get_reaction_service),
):
    return await service.list_reactions(viewer_id, message_id)


@router.post(
    "/messages/{message_id}/reactions",
    response_model=MessageReactionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_reaction(
    message_id: uuid.UUID,
    body: ReactionBody,
    viewer_id: uuid.UUID = Depends(get_viewer_id),
    service: ReactionService = Depends(get_reaction_service),
):
    return await service.add_reaction(viewer_id, message_id, body.reaction_type)


@router.delete("/messages/{message_id}/reactions/{reaction_type}", response_model=List[MessageReactionResponse])
async def remove_reaction(
    message_id: uuid.UUID,
    reaction_type: str,
    viewer_id: uuid.UUID = Depends(get_viewer_id),
    service: ReactionService = Depends(get_reaction_service),
):
    """Removing a reaction the viewer never added is a no-op."""
    return await service.remove_reaction(viewer_id, message_id, reaction_type)


# --- Mentions ---

@router.get("/mentions", response_model=List[MentionResponse])
async def list_mentions(
    unread_only: bool = Query(False),
    viewer_id: uuid.UUID = Depends(get_viewer_id),
    service: MentionService = Depends(get_mention_service),
):
    return await service.list_mentions(viewer_id, unread_only)


@router.post("/mentions/{mention_id}/read", response_model=MentionResponse)
async def mark_mention_read(
    mention_id: uuid.UUID,
    viewer_id: uuid.UUID = Depends(get_viewer_id),
    service: MentionService = Depends(get_mention_service),
):
    return await service.mark_read(viewer_id, mention_id)


# --- Templates ---

@router.get("/templates", response_model=List[MessageTemplateResponse])
async def list_templates(
    viewer_id: uuid.UUID = Depends(get_viewer_id),
    service: TemplateService = Depends(get_template_service),
):
    return await service.list_templates(viewer_id)


@router.post("/templates", response_model=MessageTemplateResponse, status_code=status.HTTP_201_CREATED)
async def create_template(
    body: TemplateCreateBody,
    viewer_id: uuid.UUID = Depends(get_viewer_id),
    service: TemplateService = Depends(get_template_service),
):
    return await service.create_template(viewer_id, body)


# --- Preferences ---

@router.get("/preferences", response_model=NotificationPreferenceResponse)
async def get_preferences(
    viewer_id: uuid.UUID = Depends(get_viewer_id),
    service: MessagingService = Depends(get_messaging_service),
):
    return await service.get_preferences(viewer_id)


@router.put("/preferences", response_model=NotificationPreferenceResponse)
async def update_preferences(
    body: NotificationPreferenceUpdate,
    viewer_id: uuid.UUID = Depends(get_viewer_id),
    service: MessagingService = Depends(get_messaging_service),
):
    return await service.update_preferences(viewer_id, body)
