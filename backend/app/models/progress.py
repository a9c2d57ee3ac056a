"""Resumable cursor into a catalog listing, one row per (user, media type, sort)."""

from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String, UniqueConstraint

from app.db.base import Base


class BlogGenerationProgress(Base):
    """
    Where the next generation run for a listing should pick up.

    ``current_index`` is an offset into the *filtered* results of
    ``current_page``; ``total_generated`` only ever grows.
    """
    __tablename__ = "blog_generation_progress"
    __table_args__ = (UniqueConstraint("user_id", "media_type", "sort_by", name="uq_progress_user_media_sort"),)

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    media_type = Column(String(16), nullable=False)
    sort_by = Column(String(32), nullable=False)
    current_page = Column(Integer, nullable=False, default=1)
    current_index = Column(Integer, nullable=False, default=0)
    total_generated = Column(Integer, nullable=False, default=0)
    last_media_id = Column(Integer, nullable=True, comment="Last catalog item turned into a post.")
    last_updated = Column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "media_type": self.media_type,
            "sort_by": self.sort_by,
            "current_page": self.current_page,
            "current_index": self.current_index,
            "total_generated": self.total_generated,
            "last_media_id": self.last_media_id,
            "last_updated": self.last_updated,
        }
