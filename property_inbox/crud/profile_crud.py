"""
Profile CRUD: display-name resolution.
"""
from typing import Any, Dict, Iterable, Optional
import uuid
from sqlalchemy.orm import Session

from property_inbox.model.profile import Profile, UNKNOWN_USER
from property_inbox.crud.base import CRUDBase


class CRUDProfile(CRUDBase[Profile, Dict[str, Any], Dict[str, Any]]):
    def get_by_user_id(self, db: Session, *, user_id: uuid.UUID) -> Optional[Profile]:
        return self.get_by_field(db, "user_id", user_id)

    def get_by_email(self, db: Session, email: str) -> Optional[Profile]:
        return self.get_by_field(db, "email", email)

    def display_name(self, db: Session, *, user_id: Optional[uuid.UUID]) -> str:
        if user_id is None:
            return UNKNOWN_USER
        profile = self.get_by_user_id(db, user_id=user_id)
        return profile.display_name if profile else UNKNOWN_USER

    def display_names(self, db: Session, *, user_ids: Iterable[uuid.UUID]) -> Dict[uuid.UUID, str]:
        """Display name per user id; unknown users map to "Unknown User"."""
        ids = list({uid for uid in user_ids if uid is not None})
        if not ids:
            return {}
        profiles = db.query(self.model).filter(self.model.user_id.in_(ids)).all()
        names = {uid: UNKNOWN_USER for uid in ids}
        names.update({p.user_id: p.display_name for p in profiles})
        return names

    def get_many(self, db: Session, *, user_ids: Iterable[uuid.UUID]) -> Dict[uuid.UUID, Profile]:
        ids = list(set(user_ids))
        if not ids:
            return {}
        return {p.user_id: p for p in db.query(self.model).filter(self.model.user_id.in_(ids)).all()}


profile_crud = CRUDProfile(Profile)
