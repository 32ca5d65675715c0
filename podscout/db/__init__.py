"""Database module for the podcast catalog.

Provides:
- SQLAlchemy ORM models (Podcast)
- Repository interface and implementation
- Factory functions for creating repositories
"""

from .factory import create_repository, create_repository_from_config
from .models import Base, Podcast
from .repository import PodcastRepositoryInterface, SQLAlchemyPodcastRepository

__all__ = [
    "Base",
    "Podcast",
    "PodcastRepositoryInterface",
    "SQLAlchemyPodcastRepository",
    "create_repository",
    "create_repository_from_config",
]
