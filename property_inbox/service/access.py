"""
Viewer checks and read helpers shared by the inbox services.
"""
from typing import Any, Awaitable, Callable, Optional
import uuid
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from property_inbox.core.exceptions import NotAuthenticated, NotFound
from property_inbox.crud import conversation_crud, message_crud, participant_crud
from property_inbox.model.conversation import Conversation
from property_inbox.model.message import Message


def require_viewer(viewer_id: Optional[uuid.UUID]) -> uuid.UUID:
    """Fail fast before any persistence call when there is no viewer."""
    if viewer_id is None:
        raise NotAuthenticated()
    return viewer_id


def require_conversation(db: Session, *, conversation_id: uuid.UUID, viewer_id: uuid.UUID) -> Conversation:
    """
    The conversation if the viewer is an active participant.
    Conversations the viewer cannot see are reported as missing, not forbidden.
    """
    conversation = conversation_crud.get_visible(db, conversation_id=conversation_id, viewer_id=viewer_id)
    if not conversation:
        raise NotFound("Conversation")
    return conversation


def require_message(db: Session, *, message_id: uuid.UUID, viewer_id: uuid.UUID) -> Message:
    """A sent, undeleted message in a conversation the viewer takes part in."""
    msg = message_crud.get_by_id(db, message_id=message_id)
    if not msg or msg.is_draft or msg.deleted_at is not None:
        raise NotFound("Message")
    if not participant_crud.is_active_participant(db, conversation_id=msg.conversation_id, user_id=viewer_id):
        raise NotFound("Message")
    return msg


def rollback_on_error(db: Session, fetcher: Callable[[], Awaitable[Any]]) -> Callable[[], Awaitable[Any]]:
    """
    Wrap a cached read so a database error rolls the session back before the
    cache retries. Without it an aborted transaction fails every retry too.
    """
    async def run() -> Any:
        try:
            return await fetcher()
        except SQLAlchemyError:
            db.rollback()
            raise
    return run
