"""
Create a Redis session for an existing profile so the inbox API can be called
without the identity service. Prints the bearer token.

Run from project root: python -m scripts.issue_dev_session --email someone@example.com
                       python -m scripts.issue_dev_session --user-id <uuid>
                       python -m scripts.issue_dev_session --revoke <token>
"""
import argparse
import logging
import secrets
import sys
import uuid

# Add project root so package imports work
sys.path.insert(0, ".")

from property_inbox.core.config import settings
from property_inbox.core.database import SessionLocal
from property_inbox.crud import profile_crud
from property_inbox.session import create_session, init_redis, remove_session

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def _connect() -> None:
    init_redis(
        host=settings.REDIS_HOST,
        port=settings.REDIS_PORT,
        db=settings.REDIS_DB,
        session_ttl=settings.SESSION_TTL,
    )


def issue(*, email: str = None, user_id: str = None, ttl: int = None) -> str:
    db = SessionLocal()
    try:
        if user_id:
            try:
                profile = profile_crud.get_by_user_id(db, user_id=uuid.UUID(user_id))
            except ValueError:
                logger.error("--user-id must be a valid UUID.")
                sys.exit(1)
        else:
            profile = profile_crud.get_by_email(db, email)
        if not profile:
            logger.error("No profile found for %r.", user_id or email)
            sys.exit(1)
        session_data = {"user_id": str(profile.user_id), "email": profile.email}
        name = profile.display_name
    finally:
        db.close()

    _connect()
    token = secrets.token_urlsafe(32)
    create_session(token, session_data, ttl=ttl)
    logger.info("Session issued for %s (%s)", session_data["user_id"], name)
    return token


def revoke(token: str) -> bool:
    _connect()
    return remove_session(token)


def main() -> None:
    parser = argparse.ArgumentParser(description="Issue a development session token.")
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--email")
    group.add_argument("--user-id")
    group.add_argument("--revoke", metavar="TOKEN")
    parser.add_argument("--ttl", type=int, default=None, help="Seconds; defaults to SESSION_TTL.")
    args = parser.parse_args()
    if args.revoke:
        if not revoke(args.revoke):
            logger.warning("No session for that token.")
        return
    print(issue(email=args.email, user_id=args.user_id, ttl=args.ttl))


if __name__ == "__main__":
    main()
