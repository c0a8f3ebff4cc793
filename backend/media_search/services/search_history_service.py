import logging
from datetime import datetime, timedelta, timezone
from typing import List
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from media_search.core.errors import PersistenceError
from media_search.models.search import SearchRecord

logger = logging.getLogger(__name__)


class SearchHistoryService:
    """
    Per-user search history stored in the `searches` table.

    Every database failure is rolled back and re-raised as PersistenceError,
    including pool exhaustion (sqlalchemy.exc.TimeoutError is a SQLAlchemyError).
    """

    @staticmethod
    def save(db: Session, user_id: int, query: str, media_type: str) -> int:
        """Insert one search record and return its id"""
        try:
            record = SearchRecord(user_id=user_id, query=query, media_type=media_type)
            db.add(record)
            db.commit()
            db.refresh(record)
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to save search history: user_id={user_id} error={e}")
            raise PersistenceError("Error saving search history") from e

        logger.info(f"Search recorded: user_id={user_id} query='{query}' media_type={media_type}")
        return record.id

    @staticmethod
    def get_recent(db: Session, user_id: int, limit: int = 10) -> List[SearchRecord]:
        """Return up to `limit` of the user's searches, newest first"""
        try:
            return (
                db.query(SearchRecord)
                .filter(SearchRecord.user_id == user_id)
                # id breaks ties between rows created in the same second
                .order_by(SearchRecord.created_at.desc(), SearchRecord.id.desc())
                .limit(max(0, limit))
                .all()
            )
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Database error fetching searches: user_id={user_id} error={e}")
            raise PersistenceError("Error retrieving search history") from e

    @staticmethod
    def delete(db: Session, user_id: int, search_id: int) -> bool:
        """
        Delete one record if it belongs to user_id.

        Returns False when no row matches; a record owned by another user
        is indistinguishable from a missing one.
        """
        try:
            deleted = (
                db.query(SearchRecord)
                .filter(SearchRecord.id == search_id, SearchRecord.user_id == user_id)
                .delete(synchronize_session=False)
            )
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Error deleting search: user_id={user_id} search_id={search_id} error={e}")
            raise PersistenceError("Error deleting search") from e

        if deleted:
            logger.info(f"Search deleted: user_id={user_id} search_id={search_id}")
        else:
            logger.warning(f"Search deletion failed - not found or unauthorized: user_id={user_id} search_id={search_id}")
        return deleted > 0

    @staticmethod
    def clear_all(db: Session, user_id: int) -> int:
        """Delete every record of the user and return how many were removed"""
        try:
            deleted = (
                db.query(SearchRecord)
                .filter(SearchRecord.user_id == user_id)
                .delete(synchronize_session=False)
            )
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Error clearing search history: user_id={user_id} error={e}")
            raise PersistenceError("Error clearing search history") from e

        logger.info(f"Search history cleared: user_id={user_id} deleted={deleted}")
        return deleted

    @staticmethod
    def prune_older_than(db: Session, days: int) -> int:
        """Delete records of all users created more than `days` days ago"""
        cutoff = datetime.now(timezone.utc) - timedelta(days=days)
        try:
            deleted = (
                db.query(SearchRecord)
                .filter(SearchRecord.created_at < cutoff)
                .delete(synchronize_session=False)
            )
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise PersistenceError("Error pruning search history") from e
        return deleted


search_history_service = SearchHistoryService()
