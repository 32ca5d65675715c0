"""SQLAlchemy ORM models for the podcast catalog."""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class Podcast(Base):
    """Podcast catalog entry.

    Rows come either from the podcast directory (``source="directory"``) or
    from a feed added directly by URL (``source="rss"``), in which case
    ``external_id`` is a synthetic ``rss-`` identifier.
    """

    __tablename__ = "podcasts"

    # Primary key, also the search index key
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Identifier exposed to API callers
    external_id: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)

    # Searchable metadata
    title: Mapped[str] = mapped_column(String(512), nullable=False)
    publisher: Mapped[Optional[str]] = mapped_column(String(512))
    description: Mapped[Optional[str]] = mapped_column(Text)

    # Links
    feed_url: Mapped[Optional[str]] = mapped_column(String(2048), unique=True)
    website_url: Mapped[Optional[str]] = mapped_column(String(2048))
    image_url: Mapped[Optional[str]] = mapped_column(String(2048))
    language: Mapped[Optional[str]] = mapped_column(String(32))

    source: Mapped[str] = mapped_column(String(16), default="rss", nullable=False)

    # Subscription management
    is_subscribed: Mapped[bool] = mapped_column(Boolean, default=True)
    last_polled_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    __table_args__ = (Index("ix_podcasts_feed_url", "feed_url"),)

    def __repr__(self) -> str:
        return f"<Podcast(id={self.id}, external_id={self.external_id!r}, title={self.title!r})>"
