"""
Message delivery CRUD: per-recipient read tracking.
"""
from datetime import datetime
from typing import Any, Dict, Iterable, List
import uuid
from sqlalchemy.orm import Session
from sqlalchemy import func

from property_inbox.model.message import Message
from property_inbox.model.message_delivery import MessageDelivery
from property_inbox.crud.base import CRUDBase


class CRUDDelivery(CRUDBase[MessageDelivery, Dict[str, Any], Dict[str, Any]]):
    def create_for_message(
        self,
        db: Session,
        *,
        message_id: uuid.UUID,
        recipient_ids: Iterable[uuid.UUID],
        sender_id: uuid.UUID,
        at: datetime,
    ) -> List[MessageDelivery]:
        """One row per recipient. The sender's own row is created already read. Caller commits."""
        rows = []
        for user_id in dict.fromkeys(recipient_ids):
            rows.append(
                {
                    "message_id": message_id,
                    "user_id": user_id,
                    "delivered_at": at,
                    "read_at": at if user_id == sender_id else None,
                }
            )
        db_objs = [self.model(**row) for row in rows]
        db.add_all(db_objs)
        db.flush()
        return db_objs

    def _unread_for_viewer(self, db: Session, *, viewer_id: uuid.UUID):
        return (
            db.query(MessageDelivery)
            .join(Message, Message.id == MessageDelivery.message_id)
            .filter(
                MessageDelivery.user_id == viewer_id,
                MessageDelivery.read_at.is_(None),
                Message.is_draft.is_(False),
            )
        )

    def unread_counts(
        self, db: Session, *, conversation_ids: Iterable[uuid.UUID], viewer_id: uuid.UUID
    ) -> Dict[uuid.UUID, int]:
        """Unread delivery rows per conversation for the viewer, in one grouped query."""
        ids = list(conversation_ids)
        if not ids:
            return {}
        rows = (
            self._unread_for_viewer(db, viewer_id=viewer_id)
            .filter(Message.conversation_id.in_(ids))
            .with_entities(Message.conversation_id, func.count(MessageDelivery.id))
            .group_by(Message.conversation_id)
            .all()
        )
        counts = {cid: 0 for cid in ids}
        counts.update({cid: int(cnt) for cid, cnt in rows})
        return counts

    def mark_conversation_read(
        self, db: Session, *, conversation_id: uuid.UUID, viewer_id: uuid.UUID, at: datetime
    ) -> int:
        """Set read_at on every unread delivery of the viewer in one conversation. Returns rows changed."""
        message_ids = db.query(Message.id).filter(Message.conversation_id == conversation_id)
        updated = (
            db.query(self.model)
            .filter(
                self.model.user_id == viewer_id,
                self.model.read_at.is_(None),
                self.model.message_id.in_(message_ids),
            )
            .update({self.model.read_at: at}, synchronize_session=False)
        )
        db.commit()
        return updated


delivery_crud = CRUDDelivery(MessageDelivery)
