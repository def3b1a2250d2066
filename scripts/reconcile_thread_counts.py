"""
Recompute conversations.thread_count from the messages table and fix drifted rows.
thread_count counts non-draft, non-deleted messages; rows inserted outside the
API (imports, manual SQL) never bump it.

Run from project root: python -m scripts.reconcile_thread_counts [--dry-run]
"""
import argparse
import logging
import sys

# Add project root so package imports work
sys.path.insert(0, ".")

from sqlalchemy.orm import Session

from property_inbox.core.database import SessionLocal
from property_inbox.crud import conversation_crud
from property_inbox.model.conversation import Conversation

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def reconcile(db: Session, *, dry_run: bool = False) -> int:
    """Fix every drifted conversation. Returns how many were (or would be) fixed."""
    drifted = conversation_crud.list_thread_count_drift(db)
    if not drifted:
        logger.info("All thread counts match.")
        return 0
    for conversation_id, stored, actual in drifted:
        logger.info("Conversation %s: thread_count %s -> %s", conversation_id, stored, actual)
        if not dry_run:
            db.query(Conversation).filter(Conversation.id == conversation_id).update(
                {Conversation.thread_count: actual}, synchronize_session=False
            )
    if dry_run:
        logger.info("Dry run: %s conversations would be fixed.", len(drifted))
    else:
        db.commit()
        logger.info("Fixed %s conversations.", len(drifted))
    return len(drifted)


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    parser.add_argument("--dry-run", action="store_true", help="Report drift without writing.")
    args = parser.parse_args()

    db = SessionLocal()
    try:
        reconcile(db, dry_run=args.dry_run)
    finally:
        db.close()


if __name__ == "__main__":
    main()
