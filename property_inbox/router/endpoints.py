"""
API Router - all endpoints.
"""
from fastapi import APIRouter
from property_inbox.router.api.v1 import inbox

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(
    inbox.router,
    prefix="/inbox",
    tags=["Inbox"],
)
