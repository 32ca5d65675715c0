"""Builds catalog repositories from a database URL or a `Config`.

SQLite is used for local runs and tests; any other SQLAlchemy URL
(PostgreSQL in deployments) gets a connection pool.
"""

import logging
import os
from typing import Optional

from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError

from .repository import PodcastRepositoryInterface, SQLAlchemyPodcastRepository

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite:///./podscout.db"


def _describe_url(database_url: str) -> str:
    """Render a database URL for logs with the password masked."""
    try:
        return make_url(database_url).render_as_string(hide_password=True)
    except ArgumentError:
        return "<unparseable database URL>"


def create_repository(
    database_url: Optional[str] = None,
    pool_size: int = 5,
    max_overflow: int = 10,
    echo: bool = False,
    pool_pre_ping: bool = True,
    create_tables: bool = False,
) -> PodcastRepositoryInterface:
    """
    Open the podcast catalog at `database_url`.

    Falls back to the DATABASE_URL environment variable, then to a SQLite file in
    the working directory. Pool arguments are ignored for SQLite. With
    `create_tables` the schema is created if it is missing, which is how tests and
    the CLI run without Alembic.
    """
    database_url = database_url or os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)
    logger.info(f"Opening podcast catalog: {_describe_url(database_url)}")

    return SQLAlchemyPodcastRepository(
        database_url=database_url,
        pool_size=pool_size,
        max_overflow=max_overflow,
        echo=echo,
        pool_pre_ping=pool_pre_ping,
        create_tables=create_tables,
    )


def create_repository_from_config(config, create_tables: bool = False) -> PodcastRepositoryInterface:
    """Create a repository using the database settings of a `Config` instance."""
    return create_repository(
        database_url=config.DATABASE_URL,
        pool_size=config.DB_POOL_SIZE,
        max_overflow=config.DB_MAX_OVERFLOW,
        echo=config.DB_ECHO,
        pool_pre_ping=config.DB_POOL_PRE_PING,
        create_tables=create_tables,
    )
