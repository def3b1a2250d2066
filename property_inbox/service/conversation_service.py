"""
Conversation reads: inbox lists, single conversation, participants.
"""
from typing import Dict, List, Optional
import uuid
from sqlalchemy.orm import Session

from property_inbox.cache import QueryCache, StaleTime, query_cache
from property_inbox.cache import keys
from property_inbox.core.exceptions import InvalidFilter
from property_inbox.crud import (
    conversation_crud,
    delivery_crud,
    label_crud,
    message_crud,
    participant_crud,
    profile_crud,
)
from property_inbox.crud.conversation_crud import INBOX_FILTERS
from property_inbox.model.conversation import Conversation
from property_inbox.model.conversation_label import MUTED_LABEL
from property_inbox.model.message import Message
from property_inbox.schema.inbox import (
    ConversationListItem,
    LastMessagePreview,
    ParticipantResponse,
)
from property_inbox.service.access import require_conversation, require_viewer, rollback_on_error

PREVIEW_LENGTH = 200


def _preview(msg: Message, sender_name: str) -> LastMessagePreview:
    content = msg.content or ""
    return LastMessagePreview(
        id=msg.id,
        content=content[:PREVIEW_LENGTH] + ("..." if len(content) > PREVIEW_LENGTH else ""),
        sender_id=msg.sender_id,
        sender_name=sender_name,
        is_draft=bool(msg.is_draft),
        created_at=msg.created_at,
    )


class ConversationService:
    """Read side of the inbox. Results are cached per viewer."""

    def __init__(self, db: Session, cache: QueryCache = query_cache):
        self.db = db
        self.cache = cache

    async def list_conversations(
        self,
        viewer_id: Optional[uuid.UUID],
        inbox_filter: str = "inbox",
        search: Optional[str] = None,
    ) -> List[ConversationListItem]:
        """
        Conversations for one inbox filter, newest activity first.

        Each item carries the latest message matching the filter (the viewer's
        own drafts for "drafts", sent messages otherwise), the viewer's unread
        count and the viewer's private labels.
        """
        viewer_id = require_viewer(viewer_id)
        inbox_filter = inbox_filter or "inbox"
        if inbox_filter not in INBOX_FILTERS:
            raise InvalidFilter(inbox_filter)

        async def fetch() -> List[ConversationListItem]:
            conversations = conversation_crud.list_for_viewer(
                self.db, viewer_id=viewer_id, inbox_filter=inbox_filter, search=search
            )
            return self._enrich(conversations, viewer_id=viewer_id, drafts=inbox_filter == "drafts")

        return await self.cache.fetch(
            keys.conversation_list(viewer_id, inbox_filter, search),
            rollback_on_error(self.db, fetch),
            stale_time=StaleTime.REALTIME,
        )

    async def get_conversation(
        self, viewer_id: Optional[uuid.UUID], conversation_id: uuid.UUID
    ) -> ConversationListItem:
        viewer_id = require_viewer(viewer_id)

        async def fetch() -> ConversationListItem:
            conversation = require_conversation(self.db, conversation_id=conversation_id, viewer_id=viewer_id)
            return self._enrich([conversation], viewer_id=viewer_id, drafts=False)[0]

        return await self.cache.fetch(
            keys.conversation_detail(conversation_id, viewer_id),
            rollback_on_error(self.db, fetch),
            stale_time=StaleTime.REALTIME,
        )

    async def list_participants(
        self, viewer_id: Optional[uuid.UUID], conversation_id: uuid.UUID
    ) -> List[ParticipantResponse]:
        viewer_id = require_viewer(viewer_id)
        require_conversation(self.db, conversation_id=conversation_id, viewer_id=viewer_id)

        async def fetch() -> List[ParticipantResponse]:
            parts = participant_crud.list_by_conversation(self.db, conversation_id=conversation_id)
            names = profile_crud.display_names(self.db, user_ids=[p.user_id for p in parts])
            return [
                ParticipantResponse(
                    user_id=p.user_id,
                    role=p.role,
                    display_name=names.get(p.user_id, ""),
                    joined_at=p.joined_at,
                    left_at=p.left_at,
                    last_read_at=p.last_read_at,
                )
                for p in parts
            ]

        return await self.cache.fetch(
            keys.participants(conversation_id),
            rollback_on_error(self.db, fetch),
            stale_time=StaleTime.STANDARD,
        )

    def _enrich(
        self, conversations: List[Conversation], *, viewer_id: uuid.UUID, drafts: bool
    ) -> List[ConversationListItem]:
        """Batch enrichment: one query each for last messages, unread counts, names and labels."""
        ids = [c.id for c in conversations]
        last = message_crud.last_messages(self.db, conversation_ids=ids, viewer_id=viewer_id, drafts=drafts)
        unread = delivery_crud.unread_counts(self.db, conversation_ids=ids, viewer_id=viewer_id)
        names: Dict[uuid.UUID, str] = profile_crud.display_names(
            self.db, user_ids=[m.sender_id for m in last.values()]
        )
        labels = label_crud.labels_by_conversation(self.db, user_id=viewer_id, conversation_ids=ids)

        items: List[ConversationListItem] = []
        for c in conversations:
            msg = last.get(c.id)
            conv_labels = labels.get(c.id, [])
            items.append(
                ConversationListItem(
                    id=c.id,
                    title=c.title,
                    type=c.type,
                    priority=c.priority,
                    property_id=c.property_id,
                    maintenance_request_id=c.maintenance_request_id,
                    created_by=c.created_by,
                    sender_name=c.sender_name,
                    recipient_names=c.recipient_names,
                    status=c.status,
                    is_archived=c.is_archived,
                    is_starred=c.is_starred,
                    thread_count=c.thread_count,
                    last_message_at=c.last_message_at,
                    created_at=c.created_at,
                    updated_at=c.updated_at,
                    unread_count=unread.get(c.id, 0),
                    labels=conv_labels,
                    is_muted=MUTED_LABEL in conv_labels,
                    last_message=_preview(msg, names[msg.sender_id]) if msg else None,
                )
            )
        return items
