"""
Session Middleware - loads session from Redis for each request.
"""
import logging
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from typing import Callable
import redis
from property_inbox.session import extract_token, get_session

logger = logging.getLogger(__name__)


class SessionMiddleware(BaseHTTPMiddleware):
    """Loads session from Redis based on Authorization header."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request.state.session = {}
        request.state.token = None

        auth_header = request.headers.get("authorization")
        token = extract_token(auth_header)

        if token:
            # A token with no readable session is treated as unauthenticated.
            request.state.token = token
            try:
                user_data = get_session(token)
            except (redis.RedisError, RuntimeError) as e:
                logger.warning("Session lookup failed: %s", e)
                user_data = None
            if user_data:
                request.state.session = user_data

        response = await call_next(request)
        return response
