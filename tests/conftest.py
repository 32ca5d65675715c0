"""
Pytest configuration and fixtures for podscout tests.

This module runs before any test imports, setting up the test environment.
Environment variables are explicitly set to ensure deterministic test behavior
regardless of external environment configuration.
"""

import os
import tempfile

import pytest

# Keep the web app's module-level repository away from the working directory
_TEST_DB_DIR = tempfile.mkdtemp(prefix="podscout-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TEST_DB_DIR, 'app.db')}"

os.environ["SEARCH_INDEX_TTL_SECONDS"] = "300"
os.environ["OPML_IMPORT_RATE_LIMIT"] = "1/5minutes"
os.environ["LOG_LEVEL"] = "WARNING"

from podscout.db.factory import create_repository  # noqa: E402
from podscout.search.podcast_search import invalidate_index  # noqa: E402
from podscout.web.rate_limit import limiter  # noqa: E402


@pytest.fixture(autouse=True)
def reset_process_state():
    """Start every test with an empty search cache and fresh rate limit counters."""
    invalidate_index()
    limiter.reset()
    yield
    invalidate_index()


@pytest.fixture
def repository(tmp_path):
    """
    Create a temporary SQLite-backed repository for tests.

    Yields a repository instance configured to use a SQLite file under the provided temporary path
    and closes the repository when the fixture is torn down.
    """
    db_path = tmp_path / "test.db"
    repo = create_repository(f"sqlite:///{db_path}", create_tables=True)
    yield repo
    repo.close()
