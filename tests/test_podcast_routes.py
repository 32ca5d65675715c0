"""Tests for podcast routes - search, add, and import endpoints."""

from unittest.mock import Mock, patch

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from pydantic import ValidationError
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from podscout.config import Config
from podscout.web.models import (
    AddPodcastByUrlRequest,
    AddPodcastResponse,
    OPMLImportRequest,
    OPMLImportResult,
    PodcastSearchResult,
)
from podscout.web.podcast_routes import router
from podscout.web.rate_limit import limiter


SAMPLE_OPML = """<?xml version="1.0"?>
<opml version="2.0"><body>
  <outline text="Tech" xmlUrl="https://example.com/tech.xml"/>
  <outline text="News" xmlUrl="https://example.com/news.xml"/>
</body></opml>"""


class TestAddPodcastByUrlRequest:
    """Tests for AddPodcastByUrlRequest model."""

    def test_valid_https_url(self):
        """Test valid HTTPS URL is accepted."""
        request = AddPodcastByUrlRequest(feed_url="https://example.com/feed.xml")
        assert request.feed_url == "https://example.com/feed.xml"

    def test_valid_feed_scheme(self):
        request = AddPodcastByUrlRequest(feed_url="feed://example.com/feed.xml")
        assert request.feed_url == "feed://example.com/feed.xml"

    def test_whitespace_trimmed(self):
        request = AddPodcastByUrlRequest(feed_url="  https://example.com/feed.xml  ")
        assert request.feed_url == "https://example.com/feed.xml"

    @pytest.mark.parametrize("url", ["ftp://example.com/feed", "example.com/feed", "javascript:alert(1)"])
    def test_invalid_scheme_rejected(self, url):
        with pytest.raises(ValidationError, match="Invalid URL scheme"):
            AddPodcastByUrlRequest(feed_url=url)

    def test_url_too_long_fails(self):
        """Test URL exceeding max length fails validation."""
        with pytest.raises(ValidationError):
            AddPodcastByUrlRequest(feed_url="https://example.com/" + "a" * 2050)


class TestResponseModels:
    """Tests for response models."""

    def test_search_result_publisher_optional(self):
        result = PodcastSearchResult(external_id="pi-1", title="Show", score=1.5)
        assert result.publisher is None

    def test_add_response_episode_count_default(self):
        response = AddPodcastResponse(
            podcast_id=1, external_id="rss-1", title="Show", is_new=False, message="Podcast already in catalog"
        )
        assert response.episode_count == 0

    def test_opml_result_invalid_status(self):
        with pytest.raises(ValidationError):
            OPMLImportResult(feed_url="https://example.com/f", status="skipped")

    def test_opml_content_required(self):
        with pytest.raises(ValidationError):
            OPMLImportRequest(content="")


class TestPodcastRoutesIntegration:
    """Integration tests for podcast routes using TestClient."""

    @pytest.fixture
    def app_with_mocks(self):
        """Create a test app with mocked dependencies."""
        app = FastAPI()
        app.include_router(router)
        app.state.limiter = limiter
        app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

        mock_repo = Mock()
        mock_repo.get_podcast_by_feed_url.return_value = None
        mock_repo.list_catalog_entries.return_value = [
            {"id": 1, "external_id": "pi-1", "title": "Lex Fridman Podcast",
             "publisher": "Lex Fridman", "description": "Conversations"},
            {"id": 2, "external_id": "pi-2", "title": "Hardcore History",
             "publisher": None, "description": "History"},
        ]

        mock_sync = Mock()

        app.state.repository = mock_repo
        app.state.config = Config()
        app.state.sync_service = mock_sync

        return app, mock_repo, mock_sync

    @pytest.fixture
    def client(self, app_with_mocks):
        app, mock_repo, mock_sync = app_with_mocks
        yield TestClient(app), mock_repo, mock_sync

    # --- search ---

    def test_search(self, client):
        test_client, _, _ = client

        response = test_client.get("/api/podcasts/search", params={"q": "friedman"})

        assert response.status_code == 200
        data = response.json()
        assert data["query"] == "friedman"
        assert data["count"] == len(data["results"]) >= 1
        assert data["results"][0]["external_id"] == "pi-1"
        assert data["results"][0]["publisher"] == "Lex Fridman"
        assert data["results"][0]["score"] > 0

    def test_search_null_publisher(self, client):
        test_client, _, _ = client

        data = test_client.get("/api/podcasts/search", params={"q": "hardcore"}).json()

        assert data["results"][0]["publisher"] is None

    def test_search_limit_clamped(self, client):
        test_client, _, _ = client

        data = test_client.get("/api/podcasts/search", params={"q": "history lex", "limit": 0}).json()

        assert data["count"] == 1

    def test_search_default_limit_from_config(self, client):
        test_client, _, _ = client
        test_client.app.state.config.SEARCH_MAX_RESULTS = 1

        data = test_client.get("/api/podcasts/search", params={"q": "history lex"}).json()

        assert data["count"] == 1

    def test_search_query_too_long(self, client):
        """Test an overlong query is refused before the index is touched."""
        test_client, mock_repo, _ = client

        response = test_client.get("/api/podcasts/search", params={"q": "history " * 30})

        assert response.status_code == 422
        mock_repo.list_catalog_entries.assert_not_called()

    def test_search_many_terms(self, client):
        """Test a query with more terms than are searched still answers."""
        test_client, _, _ = client
        query = " ".join(f"word{i}" for i in range(30)) + " hardcore"

        response = test_client.get("/api/podcasts/search", params={"q": query})

        assert response.status_code == 200

    def test_search_empty_query_rejected(self, client):
        """Test search with empty query returns 400."""
        test_client, mock_repo, _ = client

        response = test_client.get("/api/podcasts/search?q=")

        assert response.status_code == 400
        assert "empty" in response.json()["detail"].lower()
        mock_repo.list_catalog_entries.assert_not_called()

    def test_search_whitespace_query_rejected(self, client):
        test_client, _, _ = client
        response = test_client.get("/api/podcasts/search?q=   ")
        assert response.status_code == 400

    def test_search_catalog_failure(self, client):
        test_client, mock_repo, _ = client
        mock_repo.list_catalog_entries.side_effect = RuntimeError("db down")

        response = test_client.get("/api/podcasts/search", params={"q": "history"})

        assert response.status_code == 500

    # --- add ---

    def test_add_podcast_invalid_url_scheme(self, client):
        """Test adding a podcast with invalid URL scheme returns 422."""
        test_client, _, _ = client
        response = test_client.post("/api/podcasts/add", json={"feed_url": "ftp://example.com/feed.xml"})
        assert response.status_code == 422
        assert "Invalid URL scheme" in response.text

    def test_add_podcast_unsafe_url(self, client):
        """Test URLs pointing at internal hosts are refused before any fetch."""
        test_client, _, mock_sync = client

        response = test_client.post("/api/podcasts/add", json={"feed_url": "http://127.0.0.1/feed.xml"})

        assert response.status_code == 400
        assert "not allowed" in response.json()["detail"]
        mock_sync.add_podcast_from_url.assert_not_called()

    @patch("podscout.web.podcast_routes.is_safe_url", return_value=True)
    def test_add_new_podcast(self, _mock_safe, client):
        test_client, _, mock_sync = client
        mock_sync.add_podcast_from_url.return_value = {
            "podcast_id": 5,
            "external_id": "rss-abc",
            "title": "New Show",
            "episodes": 12,
            "error": None,
        }

        response = test_client.post("/api/podcasts/add", json={"feed_url": "https://example.com/feed.xml"})

        assert response.status_code == 200
        data = response.json()
        assert data["is_new"] is True
        assert data["podcast_id"] == 5
        assert data["external_id"] == "rss-abc"
        assert data["episode_count"] == 12
        mock_sync.add_podcast_from_url.assert_called_once_with("https://example.com/feed.xml")

    @patch("podscout.web.podcast_routes.is_safe_url", return_value=True)
    def test_add_feed_scheme_normalized(self, mock_safe, client):
        test_client, mock_repo, _ = client
        mock_repo.get_podcast_by_feed_url.return_value = Mock(id=1, external_id="pi-1", title="Known")

        test_client.post("/api/podcasts/add", json={"feed_url": "feed://example.com/feed.xml"})

        mock_safe.assert_called_once_with("https://example.com/feed.xml")
        mock_repo.get_podcast_by_feed_url.assert_called_once_with("https://example.com/feed.xml")

    @patch("podscout.web.podcast_routes.is_safe_url", return_value=True)
    def test_add_existing_podcast(self, _mock_safe, client):
        """Test adding a podcast already in the catalog returns it."""
        test_client, mock_repo, mock_sync = client
        mock_repo.get_podcast_by_feed_url.return_value = Mock(id=9, external_id="pi-9", title="Existing Podcast")

        response = test_client.post("/api/podcasts/add", json={"feed_url": "https://example.com/feed.xml"})

        assert response.status_code == 200
        data = response.json()
        assert data["is_new"] is False
        assert data["podcast_id"] == 9
        mock_sync.add_podcast_from_url.assert_not_called()

    @patch("podscout.web.podcast_routes.is_safe_url", return_value=True)
    def test_add_podcast_feed_error(self, _mock_safe, client):
        test_client, _, mock_sync = client
        mock_sync.add_podcast_from_url.return_value = {
            "podcast_id": None,
            "external_id": None,
            "title": None,
            "episodes": 0,
            "error": "Too many redirects (max 5)",
        }

        response = test_client.post("/api/podcasts/add", json={"feed_url": "https://example.com/feed.xml"})

        assert response.status_code == 400
        assert "Too many redirects" in response.json()["detail"]

    # --- import ---

    def test_import_opml(self, client):
        test_client, mock_repo, mock_sync = client
        existing = Mock(id=3, title="Tech (existing)")
        mock_repo.get_podcast_by_feed_url.side_effect = (
            lambda url: existing if url.endswith("tech.xml") else None
        )
        mock_sync.add_podcast_from_url.return_value = {
            "podcast_id": 4,
            "external_id": "rss-news",
            "title": "News",
            "episodes": 2,
            "error": None,
        }

        response = test_client.post("/api/podcasts/import-opml", json={"content": SAMPLE_OPML})

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 2
        assert data["existing"] == 1
        assert data["added"] == 1
        assert data["failed"] == 0
        assert [r["status"] for r in data["results"]] == ["existing", "added"]

    def test_import_opml_invalid(self, client):
        test_client, _, _ = client

        response = test_client.post("/api/podcasts/import-opml", json={"content": "<html><body/></html>"})

        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid OPML: missing <opml> root element"

    def test_import_opml_no_feeds(self, client):
        test_client, _, _ = client

        response = test_client.post(
            "/api/podcasts/import-opml", json={"content": "<opml><body></body></opml>"}
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "No feeds found in OPML file"

    def test_import_opml_empty_content(self, client):
        """Test OPML import with empty content returns 422."""
        test_client, _, _ = client
        response = test_client.post("/api/podcasts/import-opml", json={"content": ""})
        assert response.status_code == 422

    def test_import_opml_rate_limited(self, client):
        """Test a second import from the same client inside the window is refused."""
        test_client, _, _ = client
        body = {"content": "<opml><body></body></opml>"}

        first = test_client.post("/api/podcasts/import-opml", json=body)
        second = test_client.post("/api/podcasts/import-opml", json=body)

        assert first.status_code == 400
        assert second.status_code == 429

    def test_import_opml_too_large(self, client):
        """Test content over OPML_MAX_BYTES is refused with 413."""
        test_client, _, mock_sync = client
        test_client.app.state.config.OPML_MAX_BYTES = 50

        response = test_client.post("/api/podcasts/import-opml", json={"content": SAMPLE_OPML})

        assert response.status_code == 413
        assert "larger than 50 bytes" in response.json()["detail"]
        mock_sync.add_podcast_from_url.assert_not_called()

    def test_import_opml_too_many_feeds(self, client):
        """Test a document with more than OPML_MAX_FEEDS feeds is refused with 400."""
        test_client, mock_repo, mock_sync = client
        test_client.app.state.config.OPML_MAX_FEEDS = 1

        response = test_client.post("/api/podcasts/import-opml", json={"content": SAMPLE_OPML})

        assert response.status_code == 400
        assert "at most 1 can be imported" in response.json()["detail"]
        mock_repo.get_podcast_by_feed_url.assert_not_called()
        mock_sync.add_podcast_from_url.assert_not_called()

    def test_import_opml_deeply_nested(self, client):
        """Test deeply nested folders import instead of failing the request."""
        test_client, _, mock_sync = client
        mock_sync.add_podcast_from_url.return_value = {
            "podcast_id": 9,
            "external_id": "rss-deep",
            "title": "Deep",
            "episodes": 0,
            "error": None,
        }
        depth = 2000
        content = (
            "<opml><body>"
            + '<outline text="f">' * depth
            + '<outline text="Deep" xmlUrl="https://example.com/deep.xml"/>'
            + "</outline>" * depth
            + "</body></opml>"
        )

        response = test_client.post("/api/podcasts/import-opml", json={"content": content})

        assert response.status_code == 200
        assert response.json()["added"] == 1
