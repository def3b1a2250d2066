"""
Session layer - Redis-based token store and validation.
Sessions are written by the identity service (or scripts/issue_dev_session.py)
and only read by the inbox API.
"""
from typing import Optional, Dict, Any
import logging
import json
import redis

logger = logging.getLogger(__name__)

SESSION_KEY_PREFIX = "session:"

# Redis connection pool and client
_redis_pool: Optional[redis.ConnectionPool] = None
_redis_client: Optional[redis.Redis] = None
_session_ttl: int = 86400


def init_redis(host: str, port: int, db: int, session_ttl: int = 86400) -> None:
    """Initialize Redis connection pool. Call once at app startup."""
    global _redis_pool, _redis_client, _session_ttl
    _redis_pool = redis.ConnectionPool(
        host=host,
        port=port,
        db=db,
        decode_responses=True,
        max_connections=10
    )
    _redis_client = redis.Redis(connection_pool=_redis_pool)
    _session_ttl = session_ttl
    logger.info(f"Redis initialized: {host}:{port}/{db}, TTL: {session_ttl}s")


def _get_redis_client() -> redis.Redis:
    """Get Redis client. Raises if not initialized."""
    if _redis_client is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _redis_client


def _key(token: str) -> str:
    return f"{SESSION_KEY_PREFIX}{token}"


def create_session(token: str, user_data: Dict[str, Any], ttl: Optional[int] = None) -> None:
    """Store token and viewer data (user_id, email) with TTL."""
    client = _get_redis_client()
    client.setex(_key(token), ttl or _session_ttl, json.dumps(user_data))
    logger.info(f"Session created for user: {user_data.get('user_id')}")


def get_session(token: str) -> Optional[Dict[str, Any]]:
    """Get viewer data from Redis session if token exists."""
    client = _get_redis_client()
    data = client.get(_key(token))
    if data:
        return json.loads(data)
    return None


def remove_session(token: str) -> bool:
    """Remove token from Redis."""
    client = _get_redis_client()
    if client.delete(_key(token)) > 0:
        logger.info("Session removed for token")
        return True
    return False


def extract_token(auth_header: Optional[str]) -> Optional[str]:
    """Extract bearer token from Authorization header."""
    if not auth_header:
        return None

    parts = auth_header.split(" ")
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None

    return parts[1]
