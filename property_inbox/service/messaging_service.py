"""
Inbox mutations: create conversation, send, drafts, edit, soft delete,
star/archive, labels and mute, mark as read, notification preferences.
"""
from typing import Any, Dict, List, Optional
import logging
import uuid

import httpx
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from property_inbox.cache import QueryCache, StaleTime, query_cache
from property_inbox.cache import keys
from property_inbox.core.config import settings
from property_inbox.core.exceptions import Forbidden, InvalidInput, NotFound, ServiceError
from property_inbox.crud import (
    conversation_crud,
    delivery_crud,
    label_crud,
    mention_crud,
    message_crud,
    notification_preference_crud,
    participant_crud,
    profile_crud,
)
from property_inbox.model.conversation_label import MUTED_LABEL
from property_inbox.model.conversation_participant import ROLE_ADMIN, ROLE_PARTICIPANT
from property_inbox.model.message import Message
from property_inbox.notify import CommunicationClient, CommunicationClientError, communication_client
from property_inbox.schema.inbox import (
    ConversationCreateBody,
    ConversationListItem,
    DraftCreateBody,
    LabelsResponse,
    MarkReadResponse,
    MessageCreateBody,
    MessageResponse,
    NotificationPreferenceResponse,
    NotificationPreferenceUpdate,
)
from property_inbox.service.access import require_conversation, require_viewer, rollback_on_error
from property_inbox.service.conversation_service import ConversationService
from property_inbox.service.message_service import message_to_response
from property_inbox.utils.time import utcnow

logger = logging.getLogger(__name__)

DEFAULT_CHANNELS = ["email"]


def temp_message_id() -> str:
    """Placeholder id for an optimistic message; never a valid UUID string."""
    return f"temp-{uuid.uuid4().hex}"


def is_temp_message_id(message_id: str) -> bool:
    return message_id.startswith("temp-")


class MessagingService:
    """Handles inbox write operations. Every operation needs a viewer."""

    def __init__(
        self,
        db: Session,
        cache: QueryCache = query_cache,
        notifier: Optional[CommunicationClient] = None,
    ):
        self.db = db
        self.cache = cache
        if notifier is None and settings.use_notifications:
            notifier = communication_client
        self.notifier = notifier

    # --- conversations ---

    async def create_conversation(
        self, viewer_id: Optional[uuid.UUID], body: ConversationCreateBody
    ) -> ConversationListItem:
        """
        Conversation row, then participants, then the initial message.

        Each step commits on its own. If participants or the message fail, the
        conversation row stays behind; the failure is logged and reported.
        """
        viewer_id = require_viewer(viewer_id)
        now = utcnow()
        member_ids = list(dict.fromkeys([viewer_id, *body.participant_ids]))
        names = profile_crud.display_names(self.db, user_ids=member_ids)

        try:
            conversation = conversation_crud.create_from_dict(
                self.db,
                obj_in={
                    "title": body.title,
                    "type": body.type,
                    "priority": body.priority,
                    "property_id": body.property_id,
                    "maintenance_request_id": body.maintenance_request_id,
                    "created_by": viewer_id,
                    "sender_name": names[viewer_id],
                    "recipient_names": [names[uid] for uid in member_ids if uid != viewer_id],
                    "thread_count": 1,
                    "last_message_at": now,
                },
            )
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Create conversation failed for %s", viewer_id)
            raise ServiceError("Conversation could not be created. Please try again.")

        conversation_id = conversation.id
        try:
            participant_crud.create_many(
                self.db,
                objs_in=[
                    {
                        "conversation_id": conversation_id,
                        "user_id": uid,
                        "role": ROLE_ADMIN if uid == viewer_id else ROLE_PARTICIPANT,
                        "joined_at": now,
                    }
                    for uid in member_ids
                ],
            )
            message = message_crud.create_pending(
                self.db,
                obj_in={
                    "conversation_id": conversation_id,
                    "sender_id": viewer_id,
                    "content": body.initial_message,
                    "subject": body.subject,
                    "is_draft": False,
                    "created_at": now,
                },
            )
            delivery_crud.create_for_message(
                self.db, message_id=message.id, recipient_ids=member_ids, sender_id=viewer_id, at=now
            )
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.error(
                "Conversation %s was created but its participants or initial message were not", conversation_id,
                exc_info=True,
            )
            raise ServiceError("Conversation could not be created. Please try again.")

        logger.info(
            "Conversation %s created by %s with %s participants", conversation_id, viewer_id, len(member_ids)
        )
        self.cache.invalidate(keys.conversation_lists())

        if body.notify:
            await self._notify(
                conversation_id=conversation_id,
                sender_id=viewer_id,
                content=body.initial_message,
                subject=body.subject or body.title,
            )
        return await ConversationService(self.db, self.cache).get_conversation(viewer_id, conversation_id)

    async def set_starred(
        self, viewer_id: Optional[uuid.UUID], conversation_id: uuid.UUID, value: bool
    ) -> ConversationListItem:
        return await self._set_flag(viewer_id, conversation_id, "is_starred", value)

    async def set_archived(
        self, viewer_id: Optional[uuid.UUID], conversation_id: uuid.UUID, value: bool
    ) -> ConversationListItem:
        return await self._set_flag(viewer_id, conversation_id, "is_archived", value)

    async def _set_flag(
        self, viewer_id: Optional[uuid.UUID], conversation_id: uuid.UUID, field: str, value: bool
    ) -> ConversationListItem:
        viewer_id = require_viewer(viewer_id)
        conversation = require_conversation(self.db, conversation_id=conversation_id, viewer_id=viewer_id)
        try:
            conversation_crud.set_flag(self.db, conversation=conversation, field=field, value=value, at=utcnow())
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Update %s on conversation %s failed", field, conversation_id)
            raise ServiceError()
        self._invalidate_conversation(conversation_id)
        return await ConversationService(self.db, self.cache).get_conversation(viewer_id, conversation_id)

    # --- messages ---

    async def send_message(
        self, viewer_id: Optional[uuid.UUID], conversation_id: uuid.UUID, body: MessageCreateBody
    ) -> MessageResponse:
        """
        Append a temporary message to the viewer's cached thread, then insert.

        The message, its deliveries and mentions, and the thread_count
        increment share one commit. Mentions of non-participants are dropped.
        On failure the cached thread is restored from the snapshot taken
        before the optimistic append.
        """
        viewer_id = require_viewer(viewer_id)
        conversation = require_conversation(self.db, conversation_id=conversation_id, viewer_id=viewer_id)
        sender_name = profile_crud.display_name(self.db, user_id=viewer_id)
        subject = body.subject or conversation.title
        now = utcnow()

        optimistic = MessageResponse(
            id=temp_message_id(),
            conversation_id=conversation_id,
            sender_id=viewer_id,
            sender_name=sender_name,
            content=body.content,
            subject=body.subject,
            importance=body.importance,
            attachments=body.attachments,
            reply_to_id=body.reply_to_id,
            created_at=now,
            updated_at=now,
        )

        def append(thread: Optional[List[MessageResponse]]) -> Optional[List[MessageResponse]]:
            if thread is None:
                return None
            return [*thread, optimistic]

        try:
            async with self.cache.optimistic(keys.thread(conversation_id, viewer_id), append):
                message = self._insert_message(conversation_id, viewer_id, body, now)
        except SQLAlchemyError:
            self.db.rollback()
            logger.warning("Send to conversation %s failed; optimistic message rolled back", conversation_id,
                           exc_info=True)
            raise ServiceError("Message could not be sent. Please try again.")

        self._invalidate_conversation(conversation_id)
        if body.mention_ids:
            self.cache.invalidate(keys.mention_lists())
        response = message_to_response(message, sender_name)
        if body.notify:
            await self._notify(
                conversation_id=conversation_id,
                sender_id=viewer_id,
                content=body.content,
                subject=subject,
            )
        return response

    def _insert_message(
        self, conversation_id: uuid.UUID, viewer_id: uuid.UUID, body: MessageCreateBody, now
    ) -> Message:
        message = message_crud.create_pending(
            self.db,
            obj_in={
                "conversation_id": conversation_id,
                "sender_id": viewer_id,
                "content": body.content,
                "subject": body.subject,
                "importance": body.importance,
                "attachments": body.attachments,
                "reply_to_id": body.reply_to_id,
                "is_draft": False,
                "created_at": now,
            },
        )
        recipients = participant_crud.list_active_user_ids(self.db, conversation_id=conversation_id)
        delivery_crud.create_for_message(
            self.db, message_id=message.id, recipient_ids=recipients, sender_id=viewer_id, at=now
        )
        active = set(recipients)
        mentioned = [uid for uid in body.mention_ids if uid != viewer_id and uid in active]
        if mentioned:
            mention_crud.create_for_message(self.db, message_id=message.id, user_ids=mentioned, at=now)
        conversation_crud.increment_thread_count(self.db, conversation_id=conversation_id, at=now)
        self.db.commit()
        self.db.refresh(message)
        return message

    async def save_draft(
        self, viewer_id: Optional[uuid.UUID], conversation_id: uuid.UUID, body: DraftCreateBody
    ) -> MessageResponse:
        """Drafts get no deliveries and leave thread_count and last_message_at alone."""
        viewer_id = require_viewer(viewer_id)
        require_conversation(self.db, conversation_id=conversation_id, viewer_id=viewer_id)
        try:
            draft = message_crud.create_from_dict(
                self.db,
                obj_in={
                    "conversation_id": conversation_id,
                    "sender_id": viewer_id,
                    "content": body.content,
                    "subject": body.subject,
                    "importance": body.importance,
                    "attachments": body.attachments,
                    "reply_to_id": body.reply_to_id,
                    "is_draft": True,
                },
            )
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Save draft in conversation %s failed", conversation_id)
            raise ServiceError("Draft could not be saved. Please try again.")
        self.cache.invalidate(keys.threads(conversation_id))
        self.cache.invalidate(keys.message_pages(conversation_id))
        self.cache.invalidate(keys.conversation_lists(viewer_id))
        return message_to_response(draft, profile_crud.display_name(self.db, user_id=viewer_id))

    def _own_message(self, viewer_id: uuid.UUID, message_id: uuid.UUID) -> Message:
        msg = message_crud.get_by_id(self.db, message_id=message_id)
        if not msg or msg.deleted_at is not None:
            raise NotFound("Message")
        require_conversation(self.db, conversation_id=msg.conversation_id, viewer_id=viewer_id)
        if msg.sender_id != viewer_id:
            raise Forbidden("Only the sender can change this message.")
        return msg

    async def edit_message(
        self, viewer_id: Optional[uuid.UUID], message_id: uuid.UUID, content: str
    ) -> MessageResponse:
        """New content and edited_at; created_at (thread position) is unchanged."""
        viewer_id = require_viewer(viewer_id)
        msg = self._own_message(viewer_id, message_id)
        try:
            msg = message_crud.update(self.db, db_obj=msg, obj_in={"content": content, "edited_at": utcnow()})
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Edit message %s failed", message_id)
            raise ServiceError()
        self._invalidate_conversation(msg.conversation_id)
        self.cache.invalidate(keys.mention_lists())
        return message_to_response(msg, profile_crud.display_name(self.db, user_id=viewer_id))

    async def delete_message(self, viewer_id: Optional[uuid.UUID], message_id: uuid.UUID) -> MessageResponse:
        """Soft delete: stamp deleted_at and, for a sent message, decrement thread_count in the same commit."""
        viewer_id = require_viewer(viewer_id)
        msg = self._own_message(viewer_id, message_id)
        now = utcnow()
        try:
            msg.deleted_at = now
            self.db.add(msg)
            if not msg.is_draft:
                conversation_crud.decrement_thread_count(self.db, conversation_id=msg.conversation_id, at=now)
            self.db.commit()
            self.db.refresh(msg)
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Delete message %s failed", message_id)
            raise ServiceError()
        self._invalidate_conversation(msg.conversation_id)
        self.cache.invalidate(keys.mention_lists())
        return message_to_response(msg, profile_crud.display_name(self.db, user_id=viewer_id))

    # --- per-viewer state ---

    async def add_label(
        self, viewer_id: Optional[uuid.UUID], conversation_id: uuid.UUID, label: str
    ) -> LabelsResponse:
        viewer_id = require_viewer(viewer_id)
        label = (label or "").strip()
        if not label:
            raise InvalidInput("Label must not be blank.")
        require_conversation(self.db, conversation_id=conversation_id, viewer_id=viewer_id)
        try:
            label_crud.add_label(self.db, user_id=viewer_id, conversation_id=conversation_id, label=label)
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Add label %r to conversation %s failed", label, conversation_id)
            raise ServiceError()
        return self._labels_changed(viewer_id, conversation_id)

    async def remove_label(
        self, viewer_id: Optional[uuid.UUID], conversation_id: uuid.UUID, label: str
    ) -> LabelsResponse:
        viewer_id = require_viewer(viewer_id)
        require_conversation(self.db, conversation_id=conversation_id, viewer_id=viewer_id)
        try:
            label_crud.remove_label(
                self.db, user_id=viewer_id, conversation_id=conversation_id, label=(label or "").strip()
            )
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Remove label %r from conversation %s failed", label, conversation_id)
            raise ServiceError()
        return self._labels_changed(viewer_id, conversation_id)

    async def toggle_mute(self, viewer_id: Optional[uuid.UUID], conversation_id: uuid.UUID) -> LabelsResponse:
        """Mute is the presence of the "muted" label."""
        viewer_id = require_viewer(viewer_id)
        require_conversation(self.db, conversation_id=conversation_id, viewer_id=viewer_id)
        current = label_crud.list_labels(self.db, user_id=viewer_id, conversation_id=conversation_id)
        try:
            if MUTED_LABEL in current:
                label_crud.remove_label(self.db, user_id=viewer_id, conversation_id=conversation_id, label=MUTED_LABEL)
            else:
                label_crud.add_label(self.db, user_id=viewer_id, conversation_id=conversation_id, label=MUTED_LABEL)
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Toggle mute on conversation %s failed", conversation_id)
            raise ServiceError()
        return self._labels_changed(viewer_id, conversation_id)

    def _labels_changed(self, viewer_id: uuid.UUID, conversation_id: uuid.UUID) -> LabelsResponse:
        self.cache.invalidate(keys.conversation_lists(viewer_id))
        self.cache.invalidate(keys.conversation_detail(conversation_id, viewer_id))
        labels = label_crud.list_labels(self.db, user_id=viewer_id, conversation_id=conversation_id)
        return LabelsResponse(conversation_id=conversation_id, labels=labels, is_muted=MUTED_LABEL in labels)

    async def mark_as_read(self, viewer_id: Optional[uuid.UUID], conversation_id: uuid.UUID) -> MarkReadResponse:
        """Bulk: every unread delivery of the viewer in this conversation. Other viewers are untouched."""
        viewer_id = require_viewer(viewer_id)
        require_conversation(self.db, conversation_id=conversation_id, viewer_id=viewer_id)
        now = utcnow()
        try:
            marked = delivery_crud.mark_conversation_read(
                self.db, conversation_id=conversation_id, viewer_id=viewer_id, at=now
            )
            participant = participant_crud.get_by_conversation_and_user(
                self.db, conversation_id=conversation_id, user_id=viewer_id
            )
            participant_crud.update(self.db, db_obj=participant, obj_in={"last_read_at": now})
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Mark conversation %s read failed", conversation_id)
            raise ServiceError()
        self.cache.invalidate(keys.conversation_lists(viewer_id))
        self.cache.invalidate(keys.conversation_detail(conversation_id, viewer_id))
        self.cache.invalidate(keys.participants(conversation_id))
        return MarkReadResponse(conversation_id=conversation_id, marked=marked)

    # --- notification preferences ---

    async def get_preferences(self, viewer_id: Optional[uuid.UUID]) -> NotificationPreferenceResponse:
        viewer_id = require_viewer(viewer_id)

        async def fetch() -> NotificationPreferenceResponse:
            pref = notification_preference_crud.get_for_user(self.db, user_id=viewer_id)
            if not pref:
                return NotificationPreferenceResponse()
            return NotificationPreferenceResponse.model_validate(pref)

        return await self.cache.fetch(
            keys.notification_preferences(viewer_id), rollback_on_error(self.db, fetch), stale_time=StaleTime.STABLE
        )

    async def update_preferences(
        self, viewer_id: Optional[uuid.UUID], body: NotificationPreferenceUpdate
    ) -> NotificationPreferenceResponse:
        viewer_id = require_viewer(viewer_id)
        try:
            pref = notification_preference_crud.upsert(
                self.db, user_id=viewer_id, obj_in=body.model_dump(exclude_none=True)
            )
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Update notification preferences for %s failed", viewer_id)
            raise ServiceError()
        result = NotificationPreferenceResponse.model_validate(pref)
        self.cache.set_query_data(keys.notification_preferences(viewer_id), lambda _: result)
        return result

    # --- helpers ---

    def _invalidate_conversation(self, conversation_id: uuid.UUID) -> None:
        """A change every participant can see."""
        self.cache.invalidate(keys.threads(conversation_id))
        self.cache.invalidate(keys.message_pages(conversation_id))
        self.cache.invalidate(keys.conversation_details(conversation_id))
        self.cache.invalidate(keys.conversation_lists())

    async def _notify(
        self,
        *,
        conversation_id: uuid.UUID,
        sender_id: uuid.UUID,
        content: str,
        subject: Optional[str],
    ) -> int:
        """
        One gateway request per other participant, on the channels that
        participant enabled. Failures are logged, never raised. Returns the
        number of requests the gateway accepted.
        """
        if self.notifier is None or not self.notifier.configured:
            logger.info("Notification requested for %s but no gateway is configured", conversation_id)
            return 0

        try:
            recipient_ids = [
                uid
                for uid in participant_crud.list_active_user_ids(self.db, conversation_id=conversation_id)
                if uid != sender_id
            ]
            prefs = notification_preference_crud.get_many(self.db, user_ids=recipient_ids)
            profiles = profile_crud.get_many(self.db, user_ids=recipient_ids)
        except SQLAlchemyError:
            self.db.rollback()
            logger.warning("Notification recipients for conversation %s could not be loaded", conversation_id,
                           exc_info=True)
            return 0

        sent = 0
        for uid in recipient_ids:
            pref = prefs.get(uid)
            channels = pref.enabled_channels() if pref else list(DEFAULT_CHANNELS)
            if not channels:
                continue
            profile = profiles.get(uid)
            recipient: Dict[str, Any] = {
                "user_id": str(uid),
                "name": profile.display_name if profile else None,
                "email": profile.email if profile else None,
                "phone": profile.phone if profile else None,
            }
            try:
                await self.notifier.send_communication(
                    recipients=[recipient],
                    subject=subject,
                    content=content,
                    channels=channels,
                    conversation_id=str(conversation_id),
                )
                sent += 1
            except (CommunicationClientError, httpx.HTTPError) as e:
                logger.warning("Notification to %s for conversation %s failed: %s", uid, conversation_id, e)
        return sent
