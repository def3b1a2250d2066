"""
HTTP exceptions raised by dependencies, services and routes.
Detail is always {"code": ..., "message": ...}.
"""
from fastapi import HTTPException, status


class NotAuthenticated(HTTPException):
    def __init__(self):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": "NOT_AUTHENTICATED", "message": "Not authenticated."},
        )


class SessionExpired(HTTPException):
    def __init__(self):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": "SESSION_EXPIRED", "message": "Session expired. Please log in again."},
        )


class NotFound(HTTPException):
    def __init__(self, resource: str = "Resource"):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "NOT_FOUND", "message": f"{resource} not found."},
        )


class Forbidden(HTTPException):
    def __init__(self, message: str = "You do not have access to this resource."):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"code": "FORBIDDEN", "message": message},
        )


class InvalidFilter(HTTPException):
    def __init__(self, value: str):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": "INVALID_FILTER", "message": f"Unknown inbox filter: {value!r}."},
        )


class ServiceError(HTTPException):
    """Generic failure shown to the user; details go to the log."""

    def __init__(self, message: str = "Something went wrong. Please try again."):
        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"code": "SERVICE_ERROR", "message": message},
        )


class InvalidInput(HTTPException):
    def __init__(self, message: str):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": "INVALID_INPUT", "message": message},
        )
