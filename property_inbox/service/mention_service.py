"""
Mentions of the viewer across conversations.
"""
from typing import List, Optional
import logging
import uuid

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from property_inbox.cache import QueryCache, StaleTime, query_cache
from property_inbox.cache import keys
from property_inbox.core.exceptions import NotFound, ServiceError
from property_inbox.crud import mention_crud, profile_crud
from property_inbox.model.message import Message
from property_inbox.model.message_mention import MessageMention
from property_inbox.schema.inbox import MentionResponse
from property_inbox.service.access import require_viewer, rollback_on_error
from property_inbox.service.message_service import message_to_response
from property_inbox.utils.time import utcnow

logger = logging.getLogger(__name__)


def mention_to_response(mention: MessageMention, message: Message, sender_name: str) -> MentionResponse:
    return MentionResponse(
        id=mention.id,
        message_id=mention.message_id,
        conversation_id=message.conversation_id,
        mentioned_user_id=mention.mentioned_user_id,
        created_at=mention.created_at,
        read_at=mention.read_at,
        message=message_to_response(message, sender_name),
    )


class MentionService:
    def __init__(self, db: Session, cache: QueryCache = query_cache):
        self.db = db
        self.cache = cache

    async def list_mentions(
        self, viewer_id: Optional[uuid.UUID], unread_only: bool = False
    ) -> List[MentionResponse]:
        viewer_id = require_viewer(viewer_id)

        async def fetch() -> List[MentionResponse]:
            rows = mention_crud.list_for_user(self.db, user_id=viewer_id, unread_only=unread_only)
            names = profile_crud.display_names(self.db, user_ids=[msg.sender_id for _, msg in rows])
            return [mention_to_response(mention, msg, names[msg.sender_id]) for mention, msg in rows]

        return await self.cache.fetch(
            keys.mentions(viewer_id, unread_only),
            rollback_on_error(self.db, fetch),
            stale_time=StaleTime.REALTIME,
        )

    async def mark_read(self, viewer_id: Optional[uuid.UUID], mention_id: uuid.UUID) -> MentionResponse:
        """Stamp read_at once; marking an already read mention keeps the first time."""
        viewer_id = require_viewer(viewer_id)
        mention = mention_crud.get_for_user(self.db, mention_id=mention_id, user_id=viewer_id)
        if not mention or mention.message.deleted_at is not None:
            raise NotFound("Mention")
        if mention.read_at is None:
            try:
                mention = mention_crud.update(self.db, db_obj=mention, obj_in={"read_at": utcnow()})
            except SQLAlchemyError:
                self.db.rollback()
                logger.exception("Mark mention %s read failed", mention_id)
                raise ServiceError()
            self.cache.invalidate(keys.mention_lists(viewer_id))
        message = mention.message
        return mention_to_response(mention, message, profile_crud.display_name(self.db, user_id=message.sender_id))
