"""
Query key factory and staleness tiers.

Keys are tuples whose first element is the query type; invalidation matches on
tuple prefixes, so ("inbox-messages", conversation_id) hits every viewer's copy
of that thread.
"""
from typing import Any, Optional, Tuple
import uuid

from property_inbox.core.config import settings

QueryKey = Tuple[Any, ...]

INBOX_CONVERSATIONS = "inbox-conversations"
CONVERSATION_DETAIL = "conversation-detail"
CONVERSATION_PARTICIPANTS = "conversation-participants"
INBOX_MESSAGES = "inbox-messages"
INBOX_MESSAGE_PAGES = "inbox-message-pages"
NOTIFICATION_PREFERENCES = "notification-preferences"
MESSAGE_REACTIONS = "message-reactions"
USER_MENTIONS = "user-mentions"
MESSAGE_TEMPLATES = "message-templates"


class StaleTime:
    """Seconds after which a cached result may be refetched."""
    REALTIME = settings.CACHE_STALE_REALTIME
    STANDARD = settings.CACHE_STALE_STANDARD
    MODERATE = settings.CACHE_STALE_MODERATE
    STABLE = settings.CACHE_STALE_STABLE
    LONG = settings.CACHE_STALE_LONG
    STATIC = settings.CACHE_STALE_STATIC


def _s(value: Optional[uuid.UUID]) -> Optional[str]:
    return str(value) if value is not None else None


def conversation_lists(viewer_id: Optional[uuid.UUID] = None) -> QueryKey:
    if viewer_id is None:
        return (INBOX_CONVERSATIONS,)
    return (INBOX_CONVERSATIONS, _s(viewer_id))


def conversation_list(viewer_id: uuid.UUID, inbox_filter: str, search: Optional[str]) -> QueryKey:
    return (INBOX_CONVERSATIONS, _s(viewer_id), inbox_filter, (search or "").strip())


def conversation_details(conversation_id: Optional[uuid.UUID] = None) -> QueryKey:
    if conversation_id is None:
        return (CONVERSATION_DETAIL,)
    return (CONVERSATION_DETAIL, _s(conversation_id))


def conversation_detail(conversation_id: uuid.UUID, viewer_id: uuid.UUID) -> QueryKey:
    return (CONVERSATION_DETAIL, _s(conversation_id), _s(viewer_id))


def participants(conversation_id: uuid.UUID) -> QueryKey:
    return (CONVERSATION_PARTICIPANTS, _s(conversation_id))


def threads(conversation_id: uuid.UUID) -> QueryKey:
    return (INBOX_MESSAGES, _s(conversation_id))


def thread(conversation_id: uuid.UUID, viewer_id: uuid.UUID, drafts: bool = False) -> QueryKey:
    return (INBOX_MESSAGES, _s(conversation_id), _s(viewer_id), drafts)


def message_pages(conversation_id: uuid.UUID) -> QueryKey:
    return (INBOX_MESSAGE_PAGES, _s(conversation_id))


def message_page(conversation_id: uuid.UUID, viewer_id: uuid.UUID, page: int, drafts: bool = False) -> QueryKey:
    return (INBOX_MESSAGE_PAGES, _s(conversation_id), _s(viewer_id), drafts, page)


def notification_preferences(viewer_id: uuid.UUID) -> QueryKey:
    return (NOTIFICATION_PREFERENCES, _s(viewer_id))


def reactions(message_id: uuid.UUID) -> QueryKey:
    return (MESSAGE_REACTIONS, _s(message_id))


def mention_lists(viewer_id: Optional[uuid.UUID] = None) -> QueryKey:
    if viewer_id is None:
        return (USER_MENTIONS,)
    return (USER_MENTIONS, _s(viewer_id))


def mentions(viewer_id: uuid.UUID, unread_only: bool = False) -> QueryKey:
    return (USER_MENTIONS, _s(viewer_id), unread_only)


def templates(viewer_id: Optional[uuid.UUID] = None) -> QueryKey:
    if viewer_id is None:
        return (MESSAGE_TEMPLATES,)
    return (MESSAGE_TEMPLATES, _s(viewer_id))
