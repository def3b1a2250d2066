"""
Notification preference CRUD.
"""
from typing import Any, Dict, Iterable, Optional
import uuid
from sqlalchemy.orm import Session

from property_inbox.model.notification_preference import NotificationPreference
from property_inbox.crud.base import CRUDBase


class CRUDNotificationPreference(CRUDBase[NotificationPreference, Dict[str, Any], Dict[str, Any]]):
    def get_for_user(self, db: Session, *, user_id: uuid.UUID) -> Optional[NotificationPreference]:
        return self.get_by_field(db, "user_id", user_id)

    def get_many(
        self, db: Session, *, user_ids: Iterable[uuid.UUID]
    ) -> Dict[uuid.UUID, NotificationPreference]:
        ids = list(set(user_ids))
        if not ids:
            return {}
        rows = db.query(self.model).filter(self.model.user_id.in_(ids)).all()
        return {p.user_id: p for p in rows}

    def upsert(self, db: Session, *, user_id: uuid.UUID, obj_in: Dict[str, Any]) -> NotificationPreference:
        existing = self.get_for_user(db, user_id=user_id)
        if existing:
            return self.update(db, db_obj=existing, obj_in=obj_in)
        return self.create_from_dict(db, obj_in={"user_id": user_id, **obj_in})


notification_preference_crud = CRUDNotificationPreference(NotificationPreference)
