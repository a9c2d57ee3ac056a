"""Blog posts written by the generation worker."""

from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, Float, Integer, String, Text

from app.db.base import Base


class BlogPost(Base):
    """
    A published article about one movie or TV show.

    ``source_job_id`` records which generation job wrote the post so a retried
    attempt of the same job can recognise its own earlier write.
    """
    __tablename__ = "blog_posts"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    title = Column(String(255), nullable=False)
    slug = Column(String(255), nullable=False, unique=True, index=True)
    excerpt = Column(Text, nullable=True)
    content = Column(Text, nullable=False)
    meta_title = Column(String(255), nullable=True)
    meta_description = Column(Text, nullable=True)
    keywords = Column(JSON, nullable=False, default=list)
    tags = Column(JSON, nullable=False, default=list)
    category = Column(String(32), nullable=False, default="review")
    reading_time = Column(Integer, nullable=False, default=1, comment="Minutes at ~200 words per minute.")

    media_id = Column(Integer, nullable=False, index=True)
    media_type = Column(String(16), nullable=False)
    media_title = Column(String(255), nullable=False)
    media_poster_path = Column(String(255), nullable=True)
    media_backdrop_path = Column(String(255), nullable=True)
    media_release_date = Column(String(32), nullable=True)
    media_genres = Column(JSON, nullable=False, default=list)
    media_rating = Column(Float, nullable=True)
    media_overview = Column(Text, nullable=True)
    media_cast = Column(JSON, nullable=False, default=list)
    featured_image = Column(String(512), nullable=True)

    author_id = Column(String(64), nullable=False, index=True)
    source_job_id = Column(String(128), nullable=True, index=True)
    status = Column(String(16), nullable=False, default="published")
    published_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)
