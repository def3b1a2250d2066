"""
Message templates: the viewer's own plus shared ones.
"""
from typing import List, Optional
import logging
import uuid

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from property_inbox.cache import QueryCache, StaleTime, query_cache
from property_inbox.cache import keys
from property_inbox.core.exceptions import ServiceError
from property_inbox.crud import template_crud
from property_inbox.schema.inbox import MessageTemplateResponse, TemplateCreateBody
from property_inbox.service.access import require_viewer, rollback_on_error

logger = logging.getLogger(__name__)


class TemplateService:
    def __init__(self, db: Session, cache: QueryCache = query_cache):
        self.db = db
        self.cache = cache

    async def list_templates(self, viewer_id: Optional[uuid.UUID]) -> List[MessageTemplateResponse]:
        viewer_id = require_viewer(viewer_id)

        async def fetch() -> List[MessageTemplateResponse]:
            rows = template_crud.list_visible(self.db, user_id=viewer_id)
            return [MessageTemplateResponse.model_validate(t) for t in rows]

        return await self.cache.fetch(
            keys.templates(viewer_id),
            rollback_on_error(self.db, fetch),
            stale_time=StaleTime.MODERATE,
        )

    async def create_template(
        self, viewer_id: Optional[uuid.UUID], body: TemplateCreateBody
    ) -> MessageTemplateResponse:
        viewer_id = require_viewer(viewer_id)
        try:
            template = template_crud.create_from_dict(
                self.db,
                obj_in={
                    "user_id": viewer_id,
                    "name": body.name,
                    "content": body.content,
                    "category": body.category,
                    "is_shared": body.is_shared,
                },
            )
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Create template for %s failed", viewer_id)
            raise ServiceError("Template could not be saved. Please try again.")
        logger.info("Template %s created by %s (shared=%s)", template.id, viewer_id, template.is_shared)
        # Shared templates show up in every viewer's list.
        self.cache.invalidate(keys.templates() if body.is_shared else keys.templates(viewer_id))
        return MessageTemplateResponse.model_validate(template)
