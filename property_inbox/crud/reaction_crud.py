"""
Message reaction CRUD.
"""
from typing import Any, Dict, List, Optional
import uuid
from sqlalchemy.orm import Session
from sqlalchemy import asc

from property_inbox.model.message_reaction import MessageReaction
from property_inbox.crud.base import CRUDBase


class CRUDReaction(CRUDBase[MessageReaction, Dict[str, Any], Dict[str, Any]]):
    def get_reaction(
        self, db: Session, *, message_id: uuid.UUID, user_id: uuid.UUID, reaction_type: str
    ) -> Optional[MessageReaction]:
        return (
            db.query(self.model)
            .filter(
                self.model.message_id == message_id,
                self.model.user_id == user_id,
                self.model.reaction_type == reaction_type,
            )
            .first()
        )

    def list_for_message(self, db: Session, *, message_id: uuid.UUID) -> List[MessageReaction]:
        """Oldest first."""
        return (
            db.query(self.model)
            .filter(self.model.message_id == message_id)
            .order_by(asc(self.model.created_at), asc(self.model.id))
            .all()
        )

    def add_reaction(
        self, db: Session, *, message_id: uuid.UUID, user_id: uuid.UUID, reaction_type: str
    ) -> MessageReaction:
        existing = self.get_reaction(db, message_id=message_id, user_id=user_id, reaction_type=reaction_type)
        if existing:
            return existing
        return self.create_from_dict(
            db, obj_in={"message_id": message_id, "user_id": user_id, "reaction_type": reaction_type}
        )

    def remove_reaction(
        self, db: Session, *, message_id: uuid.UUID, user_id: uuid.UUID, reaction_type: str
    ) -> bool:
        existing = self.get_reaction(db, message_id=message_id, user_id=user_id, reaction_type=reaction_type)
        if not existing:
            return False
        self.remove(db, db_obj=existing)
        return True


reaction_crud = CRUDReaction(MessageReaction)
