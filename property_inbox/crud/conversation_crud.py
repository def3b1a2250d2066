"""
Conversation CRUD.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
import uuid
from sqlalchemy.orm import Session
from sqlalchemy import case, desc, func, nulls_last, or_

from property_inbox.model.conversation import Conversation
from property_inbox.model.conversation_participant import ConversationParticipant
from property_inbox.model.message import Message
from property_inbox.crud.base import CRUDBase

INBOX_FILTERS = (
    "inbox",
    "sent",
    "starred",
    "archived",
    "drafts",
    "maintenance",
    "properties",
    "tenants",
    "urgent",
)

# filter name -> conversation.type
TYPE_FILTERS = {
    "maintenance": "maintenance",
    "properties": "property",
    "tenants": "tenant",
}


class CRUDConversation(CRUDBase[Conversation, Dict[str, Any], Dict[str, Any]]):
    def get_by_id(self, db: Session, *, conversation_id: uuid.UUID) -> Optional[Conversation]:
        return db.query(self.model).filter(self.model.id == conversation_id).first()

    def get_visible(
        self, db: Session, *, conversation_id: uuid.UUID, viewer_id: uuid.UUID
    ) -> Optional[Conversation]:
        """Get a conversation only if the viewer is an active participant."""
        return (
            db.query(self.model)
            .join(ConversationParticipant, ConversationParticipant.conversation_id == self.model.id)
            .filter(
                self.model.id == conversation_id,
                ConversationParticipant.user_id == viewer_id,
                ConversationParticipant.left_at.is_(None),
            )
            .first()
        )

    def list_for_viewer(
        self,
        db: Session,
        *,
        viewer_id: uuid.UUID,
        inbox_filter: str = "inbox",
        search: Optional[str] = None,
    ) -> List[Conversation]:
        """
        Conversations visible to the viewer for one inbox filter.
        Ordered by last_message_at desc (nulls last), then created_at desc.
        search: ILIKE on title or sender_name (optional).
        """
        visible = (
            db.query(ConversationParticipant.conversation_id)
            .filter(
                ConversationParticipant.user_id == viewer_id,
                ConversationParticipant.left_at.is_(None),
            )
        )
        base = db.query(self.model).filter(self.model.id.in_(visible))

        if inbox_filter == "starred":
            base = base.filter(self.model.is_starred.is_(True))
        elif inbox_filter == "archived":
            base = base.filter(self.model.is_archived.is_(True))
        elif inbox_filter == "sent":
            base = base.filter(
                self.model.created_by == viewer_id,
                self.model.is_archived.is_(False),
            )
        elif inbox_filter == "drafts":
            draft_ids = self.draft_conversation_ids(db, viewer_id=viewer_id)
            if not draft_ids:
                return []
            base = base.filter(self.model.id.in_(draft_ids))
        elif inbox_filter in TYPE_FILTERS:
            base = base.filter(self.model.type == TYPE_FILTERS[inbox_filter])
        elif inbox_filter == "urgent":
            base = base.filter(or_(self.model.priority == "high", self.model.type == "urgent"))
        else:
            base = base.filter(
                self.model.is_archived.is_(False),
                self.model.created_by != viewer_id,
            )

        if search and search.strip():
            term = f"%{search.strip()}%"
            base = base.filter(
                or_(
                    self.model.title.ilike(term),
                    self.model.sender_name.ilike(term),
                )
            )

        return (
            base.order_by(
                nulls_last(desc(self.model.last_message_at)),
                desc(self.model.created_at),
            )
            .all()
        )

    def draft_conversation_ids(self, db: Session, *, viewer_id: uuid.UUID) -> List[uuid.UUID]:
        """Ids of conversations holding at least one live draft written by the viewer."""
        rows = (
            db.query(Message.conversation_id)
            .filter(
                Message.sender_id == viewer_id,
                Message.is_draft.is_(True),
                Message.deleted_at.is_(None),
            )
            .distinct()
            .all()
        )
        return [r[0] for r in rows]

    def set_flag(
        self, db: Session, *, conversation: Conversation, field: str, value: bool, at: datetime
    ) -> Conversation:
        """Idempotent boolean update (is_starred / is_archived) plus updated_at touch."""
        return self.update(db, db_obj=conversation, obj_in={field: value, "updated_at": at})

    def increment_thread_count(self, db: Session, *, conversation_id: uuid.UUID, at: datetime) -> None:
        """Single UPDATE statement: thread_count + 1, last_message_at/updated_at = at. Caller commits."""
        db.query(self.model).filter(self.model.id == conversation_id).update(
            {
                self.model.thread_count: self.model.thread_count + 1,
                self.model.last_message_at: at,
                self.model.updated_at: at,
            },
            synchronize_session=False,
        )

    def decrement_thread_count(self, db: Session, *, conversation_id: uuid.UUID, at: datetime) -> None:
        """Single UPDATE statement: thread_count - 1, never below zero. Caller commits."""
        db.query(self.model).filter(self.model.id == conversation_id).update(
            {
                self.model.thread_count: case(
                    (self.model.thread_count > 0, self.model.thread_count - 1),
                    else_=0,
                ),
                self.model.updated_at: at,
            },
            synchronize_session=False,
        )

    def list_thread_count_drift(self, db: Session) -> List[Tuple[uuid.UUID, int, int]]:
        """(conversation_id, stored thread_count, actual count) for every drifted conversation."""
        actual = (
            db.query(
                Message.conversation_id.label("conversation_id"),
                func.count(Message.id).label("cnt"),
            )
            .filter(Message.is_draft.is_(False), Message.deleted_at.is_(None))
            .group_by(Message.conversation_id)
            .subquery()
        )
        rows = (
            db.query(
                self.model.id,
                self.model.thread_count,
                func.coalesce(actual.c.cnt, 0),
            )
            .outerjoin(actual, actual.c.conversation_id == self.model.id)
            .all()
        )
        return [(cid, stored, int(cnt)) for cid, stored, cnt in rows if stored != cnt]


conversation_crud = CRUDConversation(Conversation)
