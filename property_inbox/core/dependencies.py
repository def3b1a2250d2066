"""
FastAPI dependencies for route protection.
"""
from fastapi import Request, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from property_inbox.core.exceptions import NotAuthenticated, SessionExpired
from typing import Dict, Any, Optional
import uuid

# Security scheme for OpenAPI docs (shows lock icon and Authorization header)
bearer_scheme = HTTPBearer(
    scheme_name="Bearer",
    description="Session token issued by the identity service",
    auto_error=False,
)


async def validate_session(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)
) -> Dict[str, Any]:
    """
    Validates session loaded by middleware.

    Returns:
        Session data dict with user_id and email

    Raises:
        NotAuthenticated: No token provided
        SessionExpired: Token not found in Redis
    """
    if not request.state.token:
        raise NotAuthenticated()

    if not request.state.session:
        raise SessionExpired()

    return request.state.session


async def get_viewer_id(session: Dict[str, Any] = Depends(validate_session)) -> uuid.UUID:
    """The viewer's user id from the session."""
    try:
        return uuid.UUID(str(session["user_id"]))
    except (KeyError, ValueError):
        raise NotAuthenticated()
