"""Durable resumable cursor for blog generation, backed by SQLAlchemy."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import sessionmaker

from app.models.progress import BlogGenerationProgress

logger = logging.getLogger(__name__)

_PATCHABLE_FIELDS = ("current_page", "current_index", "total_generated", "last_media_id")


class ProgressStore:
    """CRUD over :class:`BlogGenerationProgress` rows.

    The store does not lock: the worker executing a job is the only writer of
    a given key, and the control layer refuses resets while a job using the
    key is live.
    """

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    def get(self, user_id: str, media_type: str, sort_by: str) -> Optional[BlogGenerationProgress]:
        db = self._session_factory()
        try:
            record = self._find(db, user_id, media_type, sort_by)
            if record is not None:
                db.expunge(record)
            return record
        finally:
            db.close()

    def upsert(self, user_id: str, media_type: str, sort_by: str, patch: Dict[str, Any]) -> BlogGenerationProgress:
        """Merge ``patch`` into the record for the key, creating it at page 1/index 0 if absent."""
        unknown = set(patch) - set(_PATCHABLE_FIELDS)
        if unknown:
            raise ValueError(f"Unknown progress fields: {sorted(unknown)}")

        db = self._session_factory()
        try:
            record = self._find(db, user_id, media_type, sort_by)
            if record is None:
                record = BlogGenerationProgress(
                    user_id=user_id,
                    media_type=media_type,
                    sort_by=sort_by,
                    current_page=1,
                    current_index=0,
                    total_generated=0,
                )
                db.add(record)
                logger.info("Created generation progress for user %s (%s/%s)", user_id, media_type, sort_by)
            for field, value in patch.items():
                setattr(record, field, value)
            record.last_updated = datetime.utcnow()
            db.commit()
            db.refresh(record)
            db.expunge(record)
            return record
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def reset(self, record_id: int) -> bool:
        """Delete a record by id. Returns whether something was deleted; a missing id is a no-op."""
        db = self._session_factory()
        try:
            deleted = db.query(BlogGenerationProgress).filter(BlogGenerationProgress.id == record_id).delete()
            db.commit()
            return bool(deleted)
        finally:
            db.close()

    def reset_key(self, user_id: str, media_type: str, sort_by: str) -> bool:
        """Delete the record for a (user, media type, sort) key, if any."""
        db = self._session_factory()
        try:
            deleted = (
                db.query(BlogGenerationProgress)
                .filter(
                    BlogGenerationProgress.user_id == user_id,
                    BlogGenerationProgress.media_type == media_type,
                    BlogGenerationProgress.sort_by == sort_by,
                )
                .delete()
            )
            db.commit()
            if deleted:
                logger.info("Reset generation progress for user %s (%s/%s)", user_id, media_type, sort_by)
            return bool(deleted)
        finally:
            db.close()

    def list_for_user(self, user_id: str) -> List[BlogGenerationProgress]:
        """All records of a user, most recently updated first."""
        db = self._session_factory()
        try:
            records = (
                db.query(BlogGenerationProgress)
                .filter(BlogGenerationProgress.user_id == user_id)
                .order_by(BlogGenerationProgress.last_updated.desc(), BlogGenerationProgress.id.desc())
                .all()
            )
            db.expunge_all()
            return records
        finally:
            db.close()

    @staticmethod
    def _find(db, user_id: str, media_type: str, sort_by: str) -> Optional[BlogGenerationProgress]:
        return (
            db.query(BlogGenerationProgress)
            .filter(
                BlogGenerationProgress.user_id == user_id,
                BlogGenerationProgress.media_type == media_type,
                BlogGenerationProgress.sort_by == sort_by,
            )
            .first()
        )
