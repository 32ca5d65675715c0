"""Repository pattern implementation for the podcast catalog.

Provides an abstract interface and SQLAlchemy implementation for database operations.
Supports both SQLite (local development) and PostgreSQL (production).
"""

import logging
from abc import ABC, abstractmethod
from datetime import UTC, datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session, sessionmaker

from .models import Base, Podcast

logger = logging.getLogger(__name__)


class PodcastRepositoryInterface(ABC):
    """Abstract interface for podcast catalog persistence."""

    @abstractmethod
    def create_podcast(self, external_id: str, title: str, **kwargs) -> Podcast:
        """
        Create and persist a new catalog entry.

        Parameters:
            external_id (str): Identifier exposed to callers (directory ID or synthetic ``rss-`` ID).
            title (str): Display title for the podcast.
            **kwargs: Additional Podcast attributes (e.g., publisher, description, feed_url).

        Returns:
            Podcast: The persisted Podcast instance with its generated ``id``.
        """
        pass

    @abstractmethod
    def get_podcast(self, podcast_id: int) -> Optional[Podcast]:
        """
        Retrieve a podcast by its primary key.

        Returns:
            Podcast if a podcast with the given ID exists, `None` otherwise.
        """
        pass

    @abstractmethod
    def get_podcast_by_feed_url(self, feed_url: str) -> Optional[Podcast]:
        """
        Retrieve a podcast matching the given feed URL.

        Returns:
            The matching `Podcast` if found, `None` otherwise.
        """
        pass

    @abstractmethod
    def get_podcast_by_external_id(self, external_id: str) -> Optional[Podcast]:
        """
        Retrieve a podcast by its external identifier.

        Returns:
            The matching `Podcast` if found, `None` otherwise.
        """
        pass

    @abstractmethod
    def list_podcasts(
        self, subscribed_only: bool = True, limit: Optional[int] = None
    ) -> List[Podcast]:
        """
        Return podcasts optionally filtered to subscribed ones and limited in count.

        Parameters:
            subscribed_only (bool): If True, include only subscribed podcasts. Default is True.
            limit (Optional[int]): Maximum number of podcasts to return; if None, no limit is applied.

        Returns:
            List[Podcast]: Podcasts matching the filters, ordered by title.
        """
        pass

    @abstractmethod
    def update_podcast(self, podcast_id: int, **kwargs) -> Optional[Podcast]:
        """
        Update attributes of an existing podcast.

        Returns:
            Optional[Podcast]: The updated Podcast, or `None` if no podcast with `podcast_id` exists.
        """
        pass

    @abstractmethod
    def delete_podcast(self, podcast_id: int) -> bool:
        """
        Remove a podcast record.

        Returns:
            bool: `True` if a podcast was found and deleted, `False` otherwise.
        """
        pass

    @abstractmethod
    def list_catalog_entries(self) -> List[Dict[str, Any]]:
        """
        Return a snapshot of every catalog row for search indexing.

        No filtering and no pagination: the whole catalog is returned on every call.

        Returns:
            List[Dict[str, Any]]: One dict per podcast with keys ``id``, ``external_id``,
                ``title``, ``publisher`` and ``description``. ``publisher`` and
                ``description`` may be `None`.
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Release all database connections held by the repository."""
        pass


class SQLAlchemyPodcastRepository(PodcastRepositoryInterface):
    """SQLAlchemy-based implementation of the podcast repository.

    Supports SQLite for local development and PostgreSQL for production.
    """

    def __init__(
        self,
        database_url: str,
        pool_size: int = 5,
        max_overflow: int = 10,
        echo: bool = False,
        pool_pre_ping: bool = True,
        create_tables: bool = False,
    ):
        """
        Initialize the repository and configure its SQLAlchemy engine and session factory.

        Parameters:
            database_url (str): SQLAlchemy-compatible database URL.
            pool_size (int): Connection pool size for non-SQLite databases.
            max_overflow (int): Maximum overflow connections for non-SQLite databases.
            echo (bool): If true, enable SQLAlchemy SQL statement logging.
            pool_pre_ping (bool): If true, test pooled connections before use (non-SQLite only).
            create_tables (bool): If true, create missing tables from the ORM metadata.
                Production databases are managed with Alembic instead.
        """
        self.database_url = database_url

        # SQLite doesn't support connection pooling
        if database_url.startswith("sqlite"):
            self.engine = create_engine(
                database_url,
                echo=echo,
                connect_args={"check_same_thread": False},
            )
        else:
            self.engine = create_engine(
                database_url,
                pool_size=pool_size,
                max_overflow=max_overflow,
                pool_pre_ping=pool_pre_ping,
                echo=echo,
            )

        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False)

        if create_tables:
            Base.metadata.create_all(self.engine)

        logger.info(f"Database initialized: {database_url.split('@')[-1] if '@' in database_url else database_url}")

    def _get_session(self) -> Session:
        """Obtain a new SQLAlchemy session bound to the repository's engine."""
        return self.SessionLocal()

    # --- Podcast Operations ---

    def create_podcast(self, external_id: str, title: str, **kwargs) -> Podcast:
        with self._get_session() as session:
            podcast = Podcast(external_id=external_id, title=title, **kwargs)
            session.add(podcast)
            session.commit()
            session.refresh(podcast)
            logger.info(f"Created podcast: {title} ({podcast.id}, {external_id})")
            return podcast

    def get_podcast(self, podcast_id: int) -> Optional[Podcast]:
        with self._get_session() as session:
            return session.get(Podcast, podcast_id)

    def get_podcast_by_feed_url(self, feed_url: str) -> Optional[Podcast]:
        with self._get_session() as session:
            stmt = select(Podcast).where(Podcast.feed_url == feed_url)
            return session.scalar(stmt)

    def get_podcast_by_external_id(self, external_id: str) -> Optional[Podcast]:
        with self._get_session() as session:
            stmt = select(Podcast).where(Podcast.external_id == external_id)
            return session.scalar(stmt)

    def list_podcasts(
        self, subscribed_only: bool = True, limit: Optional[int] = None
    ) -> List[Podcast]:
        with self._get_session() as session:
            stmt = select(Podcast)
            if subscribed_only:
                stmt = stmt.where(Podcast.is_subscribed.is_(True))
            stmt = stmt.order_by(Podcast.title)
            if limit:
                stmt = stmt.limit(limit)
            return list(session.scalars(stmt).all())

    def update_podcast(self, podcast_id: int, **kwargs) -> Optional[Podcast]:
        """
        Update attributes of an existing podcast.

        Only attributes that exist on the Podcast model are set from `kwargs`. If the podcast is
        found, its `updated_at` timestamp is refreshed and the changes are persisted.
        """
        with self._get_session() as session:
            podcast = session.get(Podcast, podcast_id)
            if podcast:
                for key, value in kwargs.items():
                    if hasattr(podcast, key):
                        setattr(podcast, key, value)
                podcast.updated_at = datetime.now(UTC)
                session.commit()
                session.refresh(podcast)
                logger.debug(f"Updated podcast {podcast_id}: {list(kwargs.keys())}")
            return podcast

    def delete_podcast(self, podcast_id: int) -> bool:
        with self._get_session() as session:
            podcast = session.get(Podcast, podcast_id)
            if not podcast:
                return False

            session.delete(podcast)
            session.commit()
            logger.info(f"Deleted podcast: {podcast.title} ({podcast_id})")
            return True

    def list_catalog_entries(self) -> List[Dict[str, Any]]:
        with self._get_session() as session:
            stmt = select(
                Podcast.id,
                Podcast.external_id,
                Podcast.title,
                Podcast.publisher,
                Podcast.description,
            )
            rows = session.execute(stmt).all()

        logger.debug(f"Loaded catalog snapshot: {len(rows)} podcasts")
        return [
            {
                "id": row.id,
                "external_id": row.external_id,
                "title": row.title,
                "publisher": row.publisher,
                "description": row.description,
            }
            for row in rows
        ]

    def close(self) -> None:
        """Dispose the SQLAlchemy engine and release pooled connections."""
        self.engine.dispose()
        logger.info("Database connection closed")
