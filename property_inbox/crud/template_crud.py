"""
Message template CRUD.
"""
from typing import Any, Dict, List
import uuid
from sqlalchemy.orm import Session
from sqlalchemy import asc, or_

from property_inbox.model.message_template import MessageTemplate
from property_inbox.crud.base import CRUDBase


class CRUDTemplate(CRUDBase[MessageTemplate, Dict[str, Any], Dict[str, Any]]):
    def list_visible(self, db: Session, *, user_id: uuid.UUID) -> List[MessageTemplate]:
        """The user's own templates plus everyone's shared ones, by name."""
        return (
            db.query(self.model)
            .filter(or_(self.model.user_id == user_id, self.model.is_shared.is_(True)))
            .order_by(asc(self.model.name), asc(self.model.created_at))
            .all()
        )


template_crud = CRUDTemplate(MessageTemplate)
