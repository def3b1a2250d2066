"""
Timestamp helpers.
"""
from datetime import datetime, timezone


def utcnow() -> datetime:
    """Timezone-aware now in UTC. Used for row timestamps written by the app."""
    return datetime.now(timezone.utc)
