"""
Message mention CRUD.
"""
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple
import uuid
from sqlalchemy.orm import Session
from sqlalchemy import desc

from property_inbox.model.message import Message
from property_inbox.model.message_mention import MessageMention
from property_inbox.crud.base import CRUDBase


class CRUDMention(CRUDBase[MessageMention, Dict[str, Any], Dict[str, Any]]):
    def create_for_message(
        self, db: Session, *, message_id: uuid.UUID, user_ids: Iterable[uuid.UUID], at: datetime
    ) -> List[MessageMention]:
        """One row per mentioned user. Caller commits."""
        db_objs = [
            self.model(message_id=message_id, mentioned_user_id=user_id, created_at=at)
            for user_id in dict.fromkeys(user_ids)
        ]
        db.add_all(db_objs)
        db.flush()
        return db_objs

    def list_for_user(
        self, db: Session, *, user_id: uuid.UUID, unread_only: bool = False
    ) -> List[Tuple[MessageMention, Message]]:
        """Mentions of the user with their message, newest first. Deleted messages are skipped."""
        q = (
            db.query(self.model, Message)
            .join(Message, Message.id == self.model.message_id)
            .filter(self.model.mentioned_user_id == user_id, Message.deleted_at.is_(None))
        )
        if unread_only:
            q = q.filter(self.model.read_at.is_(None))
        return q.order_by(desc(self.model.created_at), desc(self.model.id)).all()

    def get_for_user(self, db: Session, *, mention_id: uuid.UUID, user_id: uuid.UUID) -> Optional[MessageMention]:
        return (
            db.query(self.model)
            .filter(self.model.id == mention_id, self.model.mentioned_user_id == user_id)
            .first()
        )


mention_crud = CRUDMention(MessageMention)
