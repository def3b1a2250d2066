"""
Conversation participant CRUD.
"""
from typing import Any, Dict, List, Optional
import uuid
from sqlalchemy.orm import Session

from property_inbox.model.conversation_participant import ConversationParticipant
from property_inbox.crud.base import CRUDBase


class CRUDParticipant(CRUDBase[ConversationParticipant, Dict[str, Any], Dict[str, Any]]):
    def get_by_conversation_and_user(
        self, db: Session, *, conversation_id: uuid.UUID, user_id: uuid.UUID
    ) -> Optional[ConversationParticipant]:
        return (
            db.query(self.model)
            .filter(
                self.model.conversation_id == conversation_id,
                self.model.user_id == user_id,
            )
            .first()
        )

    def is_active_participant(
        self, db: Session, *, conversation_id: uuid.UUID, user_id: uuid.UUID
    ) -> bool:
        part = self.get_by_conversation_and_user(db, conversation_id=conversation_id, user_id=user_id)
        return part is not None and part.left_at is None

    def list_by_conversation(self, db: Session, *, conversation_id: uuid.UUID) -> List[ConversationParticipant]:
        return (
            db.query(self.model)
            .filter(self.model.conversation_id == conversation_id)
            .order_by(self.model.joined_at)
            .all()
        )

    def list_active_user_ids(self, db: Session, *, conversation_id: uuid.UUID) -> List[uuid.UUID]:
        rows = (
            db.query(self.model.user_id)
            .filter(
                self.model.conversation_id == conversation_id,
                self.model.left_at.is_(None),
            )
            .all()
        )
        return [r[0] for r in rows]


participant_crud = CRUDParticipant(ConversationParticipant)
