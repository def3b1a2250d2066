"""
Message reads: full thread, reverse-chronological pages, search.
"""
from typing import AsyncIterator, Dict, List, Optional
import uuid
from sqlalchemy.orm import Session

from property_inbox.cache import QueryCache, StaleTime, query_cache
from property_inbox.cache import keys
from property_inbox.core.config import settings
from property_inbox.core.exceptions import NotFound
from property_inbox.crud import message_crud, participant_crud, profile_crud
from property_inbox.model.message import Message
from property_inbox.schema.inbox import MessagePageResponse, MessageResponse
from property_inbox.service.access import require_conversation, require_viewer, rollback_on_error


def message_to_response(msg: Message, sender_name: str) -> MessageResponse:
    """Serialize a stored message. Shared with the write path."""
    return MessageResponse(
        id=str(msg.id),
        conversation_id=msg.conversation_id,
        sender_id=msg.sender_id,
        sender_name=sender_name,
        content=msg.content,
        subject=msg.subject,
        message_type=msg.message_type,
        importance=msg.importance,
        attachments=msg.attachments,
        reply_to_id=msg.reply_to_id,
        is_draft=bool(msg.is_draft),
        created_at=msg.created_at,
        updated_at=msg.updated_at,
        edited_at=msg.edited_at,
        deleted_at=msg.deleted_at,
    )


class MessageService:
    def __init__(self, db: Session, cache: QueryCache = query_cache, page_size: Optional[int] = None):
        self.db = db
        self.cache = cache
        self.page_size = page_size or settings.MESSAGE_PAGE_SIZE

    def _annotate(self, messages: List[Message]) -> List[MessageResponse]:
        names: Dict[uuid.UUID, str] = profile_crud.display_names(
            self.db, user_ids=[m.sender_id for m in messages]
        )
        return [message_to_response(m, names[m.sender_id]) for m in messages]

    async def list_thread(
        self, viewer_id: Optional[uuid.UUID], conversation_id: uuid.UUID, drafts: bool = False
    ) -> List[MessageResponse]:
        """Whole thread, oldest first. drafts=True returns only the viewer's own drafts."""
        viewer_id = require_viewer(viewer_id)
        require_conversation(self.db, conversation_id=conversation_id, viewer_id=viewer_id)

        async def fetch() -> List[MessageResponse]:
            msgs = message_crud.list_thread(
                self.db, conversation_id=conversation_id, viewer_id=viewer_id, drafts=drafts
            )
            return self._annotate(msgs)

        return await self.cache.fetch(
            keys.thread(conversation_id, viewer_id, drafts),
            rollback_on_error(self.db, fetch),
            stale_time=StaleTime.REALTIME,
        )

    async def get_page(
        self,
        viewer_id: Optional[uuid.UUID],
        conversation_id: uuid.UUID,
        page: int = 0,
        drafts: bool = False,
    ) -> MessagePageResponse:
        """Page N (0-based) holds messages N*page_size .. N*page_size+page_size-1, newest first."""
        viewer_id = require_viewer(viewer_id)
        page = max(page, 0)
        require_conversation(self.db, conversation_id=conversation_id, viewer_id=viewer_id)

        async def fetch() -> MessagePageResponse:
            msgs = message_crud.list_page(
                self.db,
                conversation_id=conversation_id,
                viewer_id=viewer_id,
                page=page,
                page_size=self.page_size,
                drafts=drafts,
            )
            return MessagePageResponse(
                items=self._annotate(msgs),
                page=page,
                page_size=self.page_size,
                has_more=len(msgs) == self.page_size,
            )

        return await self.cache.fetch(
            keys.message_page(conversation_id, viewer_id, page, drafts),
            rollback_on_error(self.db, fetch),
            stale_time=StaleTime.REALTIME,
        )

    async def iter_pages(
        self, viewer_id: Optional[uuid.UUID], conversation_id: uuid.UUID, drafts: bool = False
    ) -> AsyncIterator[List[MessageResponse]]:
        """Yield non-empty pages from newest until a short page ends the thread."""
        page = 0
        while True:
            result = await self.get_page(viewer_id, conversation_id, page=page, drafts=drafts)
            if result.items:
                yield result.items
            if not result.has_more:
                return
            page += 1

    async def search(
        self,
        viewer_id: Optional[uuid.UUID],
        term: str,
        conversation_id: Optional[uuid.UUID] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[MessageResponse]:
        """Case-insensitive substring search over sent messages the viewer can see. Not cached."""
        viewer_id = require_viewer(viewer_id)
        if not term or not term.strip():
            return []
        msgs = message_crud.search(
            self.db,
            viewer_id=viewer_id,
            term=term,
            conversation_id=conversation_id,
            limit=limit,
            offset=offset,
        )
        return self._annotate(msgs)

    def get_message(self, viewer_id: Optional[uuid.UUID], message_id: uuid.UUID) -> MessageResponse:
        """One message by id, soft-deleted ones included. Drafts are only visible to their author."""
        viewer_id = require_viewer(viewer_id)
        msg = message_crud.get_by_id(self.db, message_id=message_id)
        if not msg or (msg.is_draft and msg.sender_id != viewer_id):
            raise NotFound("Message")
        if not participant_crud.is_active_participant(
            self.db, conversation_id=msg.conversation_id, user_id=viewer_id
        ):
            raise NotFound("Message")
        return message_to_response(msg, profile_crud.display_name(self.db, user_id=msg.sender_id))
