"""
Conversation label CRUD. Labels are private to the user who set them.
"""
from typing import Any, Dict, Iterable, List, Optional
import uuid
from sqlalchemy.orm import Session

from property_inbox.model.conversation_label import ConversationLabel
from property_inbox.crud.base import CRUDBase


class CRUDLabel(CRUDBase[ConversationLabel, Dict[str, Any], Dict[str, Any]]):
    def get_label(
        self, db: Session, *, user_id: uuid.UUID, conversation_id: uuid.UUID, label: str
    ) -> Optional[ConversationLabel]:
        return (
            db.query(self.model)
            .filter(
                self.model.user_id == user_id,
                self.model.conversation_id == conversation_id,
                self.model.label == label,
            )
            .first()
        )

    def list_labels(self, db: Session, *, user_id: uuid.UUID, conversation_id: uuid.UUID) -> List[str]:
        return self.labels_by_conversation(db, user_id=user_id, conversation_ids=[conversation_id]).get(
            conversation_id, []
        )

    def labels_by_conversation(
        self, db: Session, *, user_id: uuid.UUID, conversation_ids: Iterable[uuid.UUID]
    ) -> Dict[uuid.UUID, List[str]]:
        ids = list(conversation_ids)
        if not ids:
            return {}
        rows = (
            db.query(self.model.conversation_id, self.model.label)
            .filter(self.model.user_id == user_id, self.model.conversation_id.in_(ids))
            .order_by(self.model.label)
            .all()
        )
        out: Dict[uuid.UUID, List[str]] = {cid: [] for cid in ids}
        for cid, label in rows:
            out[cid].append(label)
        return out

    def add_label(
        self, db: Session, *, user_id: uuid.UUID, conversation_id: uuid.UUID, label: str
    ) -> ConversationLabel:
        existing = self.get_label(db, user_id=user_id, conversation_id=conversation_id, label=label)
        if existing:
            return existing
        return self.create_from_dict(
            db, obj_in={"user_id": user_id, "conversation_id": conversation_id, "label": label}
        )

    def remove_label(
        self, db: Session, *, user_id: uuid.UUID, conversation_id: uuid.UUID, label: str
    ) -> bool:
        existing = self.get_label(db, user_id=user_id, conversation_id=conversation_id, label=label)
        if not existing:
            return False
        self.remove(db, db_obj=existing)
        return True


label_crud = CRUDLabel(ConversationLabel)
