"""
Message reactions: list, add, remove.
"""
from typing import List, Optional
import logging
import uuid

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from property_inbox.cache import QueryCache, StaleTime, query_cache
from property_inbox.cache import keys
from property_inbox.core.exceptions import ServiceError
from property_inbox.crud import reaction_crud
from property_inbox.schema.inbox import MessageReactionResponse
from property_inbox.service.access import require_message, require_viewer, rollback_on_error

logger = logging.getLogger(__name__)


class ReactionService:
    def __init__(self, db: Session, cache: QueryCache = query_cache):
        self.db = db
        self.cache = cache

    async def list_reactions(
        self, viewer_id: Optional[uuid.UUID], message_id: uuid.UUID
    ) -> List[MessageReactionResponse]:
        """Every participant's reactions to one message, oldest first."""
        viewer_id = require_viewer(viewer_id)
        require_message(self.db, message_id=message_id, viewer_id=viewer_id)

        async def fetch() -> List[MessageReactionResponse]:
            rows = reaction_crud.list_for_message(self.db, message_id=message_id)
            return [MessageReactionResponse.model_validate(r) for r in rows]

        return await self.cache.fetch(
            keys.reactions(message_id),
            rollback_on_error(self.db, fetch),
            stale_time=StaleTime.REALTIME,
        )

    async def add_reaction(
        self, viewer_id: Optional[uuid.UUID], message_id: uuid.UUID, reaction_type: str
    ) -> MessageReactionResponse:
        """Idempotent: reacting twice with the same type returns the first reaction."""
        viewer_id = require_viewer(viewer_id)
        require_message(self.db, message_id=message_id, viewer_id=viewer_id)
        try:
            reaction = reaction_crud.add_reaction(
                self.db, message_id=message_id, user_id=viewer_id, reaction_type=reaction_type
            )
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Add %s reaction to message %s failed", reaction_type, message_id)
            raise ServiceError("Reaction could not be added. Please try again.")
        self.cache.invalidate(keys.reactions(message_id))
        return MessageReactionResponse.model_validate(reaction)

    async def remove_reaction(
        self, viewer_id: Optional[uuid.UUID], message_id: uuid.UUID, reaction_type: str
    ) -> List[MessageReactionResponse]:
        """Remove the viewer's reaction of this type, if any, and return what is left."""
        viewer_id = require_viewer(viewer_id)
        require_message(self.db, message_id=message_id, viewer_id=viewer_id)
        try:
            reaction_crud.remove_reaction(
                self.db, message_id=message_id, user_id=viewer_id, reaction_type=reaction_type
            )
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Remove %s reaction from message %s failed", reaction_type, message_id)
            raise ServiceError("Reaction could not be removed. Please try again.")
        self.cache.invalidate(keys.reactions(message_id))
        return await self.list_reactions(viewer_id, message_id)
