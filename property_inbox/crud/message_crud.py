"""
Message CRUD.
"""
from typing import Any, Dict, Iterable, List, Optional
import uuid
from sqlalchemy.orm import Session
from sqlalchemy import asc, desc, func

from property_inbox.model.conversation_participant import ConversationParticipant
from property_inbox.model.message import Message
from property_inbox.crud.base import CRUDBase


class CRUDMessage(CRUDBase[Message, Dict[str, Any], Dict[str, Any]]):
    def create_pending(self, db: Session, *, obj_in: Dict[str, Any]) -> Message:
        """Add and flush (id assigned) without committing; the caller owns the transaction."""
        db_obj = self.model(**obj_in)
        db.add(db_obj)
        db.flush()
        return db_obj

    def get_by_id(self, db: Session, *, message_id: uuid.UUID) -> Optional[Message]:
        """Any message by id, including soft-deleted ones."""
        return db.query(self.model).filter(self.model.id == message_id).first()

    def _visible(self, db: Session, *, viewer_id: uuid.UUID, drafts: bool = False):
        """Live messages: the viewer's own drafts when drafts=True, otherwise sent messages."""
        q = db.query(self.model).filter(self.model.deleted_at.is_(None))
        if drafts:
            return q.filter(self.model.is_draft.is_(True), self.model.sender_id == viewer_id)
        return q.filter(self.model.is_draft.is_(False))

    def list_thread(
        self,
        db: Session,
        *,
        conversation_id: uuid.UUID,
        viewer_id: uuid.UUID,
        drafts: bool = False,
    ) -> List[Message]:
        """Full thread, oldest first."""
        return (
            self._visible(db, viewer_id=viewer_id, drafts=drafts)
            .filter(self.model.conversation_id == conversation_id)
            .order_by(asc(self.model.created_at), asc(self.model.id))
            .all()
        )

    def list_page(
        self,
        db: Session,
        *,
        conversation_id: uuid.UUID,
        viewer_id: uuid.UUID,
        page: int = 0,
        page_size: int = 50,
        drafts: bool = False,
    ) -> List[Message]:
        """One page of a thread, newest first. page is 0-based: offset page * page_size."""
        return (
            self._visible(db, viewer_id=viewer_id, drafts=drafts)
            .filter(self.model.conversation_id == conversation_id)
            .order_by(desc(self.model.created_at), desc(self.model.id))
            .offset(page * page_size)
            .limit(page_size)
            .all()
        )

    def last_messages(
        self,
        db: Session,
        *,
        conversation_ids: Iterable[uuid.UUID],
        viewer_id: uuid.UUID,
        drafts: bool = False,
    ) -> Dict[uuid.UUID, Message]:
        """Most recent visible message per conversation, in one query."""
        ids = list(conversation_ids)
        if not ids:
            return {}
        ranked = (
            self._visible(db, viewer_id=viewer_id, drafts=drafts)
            .filter(self.model.conversation_id.in_(ids))
            .with_entities(
                self.model.id.label("message_id"),
                func.row_number()
                .over(
                    partition_by=self.model.conversation_id,
                    order_by=(desc(self.model.created_at), desc(self.model.id)),
                )
                .label("rn"),
            )
            .subquery()
        )
        rows = (
            db.query(self.model)
            .join(ranked, ranked.c.message_id == self.model.id)
            .filter(ranked.c.rn == 1)
            .all()
        )
        return {m.conversation_id: m for m in rows}

    def search(
        self,
        db: Session,
        *,
        viewer_id: uuid.UUID,
        term: str,
        conversation_id: Optional[uuid.UUID] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Message]:
        """ILIKE on content across conversations the viewer participates in, newest first."""
        visible = (
            db.query(ConversationParticipant.conversation_id)
            .filter(
                ConversationParticipant.user_id == viewer_id,
                ConversationParticipant.left_at.is_(None),
            )
        )
        q = (
            self._visible(db, viewer_id=viewer_id)
            .filter(self.model.conversation_id.in_(visible))
            .filter(self.model.content.ilike(f"%{term.strip()}%"))
        )
        if conversation_id is not None:
            q = q.filter(self.model.conversation_id == conversation_id)
        return q.order_by(desc(self.model.created_at)).offset(offset).limit(limit).all()


message_crud = CRUDMessage(Message)
