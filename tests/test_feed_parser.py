"""Tests for the RSS feed parser."""

from unittest.mock import Mock

import pytest

from podscout.podcast.feed_parser import FeedParser, parse_duration
from podscout.podcast.safe_fetch import SafeFetchResult, UnsafeURLError


@pytest.fixture
def fetcher():
    """Mock SafeFetcher."""
    return Mock()


@pytest.fixture
def parser(fetcher):
    """
    Provide a FeedParser backed by a mock fetcher.

    Returns:
        FeedParser: A new FeedParser instance.
    """
    return FeedParser(fetcher=fetcher)


# Sample RSS feed for testing
SAMPLE_RSS_FEED = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0"
     xmlns:itunes="http://www.itunes.com/dtds/podcast-1.0.dtd">
  <channel>
    <title>Test Podcast</title>
    <description>A podcast for testing</description>
    <link>https://example.com</link>
    <language>en-us</language>
    <itunes:author>Test Author</itunes:author>
    <itunes:image href="https://example.com/artwork.jpg"/>

    <item>
      <title>Episode 1: Introduction</title>
      <description>The first episode of our podcast.</description>
      <link>https://example.com/ep1</link>
      <guid>episode-1-guid</guid>
      <pubDate>Mon, 01 Jan 2024 12:00:00 +0000</pubDate>
      <itunes:duration>01:30:00</itunes:duration>
      <enclosure url="https://example.com/ep1.mp3" length="54000000" type="audio/mpeg"/>
    </item>

    <item>
      <title>Episode 2: Deep Dive</title>
      <description><![CDATA[<p>A deeper look at the topic.</p>]]></description>
      <guid>episode-2-guid</guid>
      <pubDate>Mon, 08 Jan 2024 12:00:00 +0000</pubDate>
      <itunes:duration>45:30</itunes:duration>
      <enclosure url="https://example.com/ep2.mp3" length="27000000" type="audio/mpeg"/>
    </item>
  </channel>
</rss>"""


class TestFeedParser:
    """Tests for RSS feed parsing functionality."""

    def test_parse_string(self, parser):
        """Test parsing feed from string."""
        podcast = parser.parse_string(SAMPLE_RSS_FEED, "https://example.com/feed.xml")

        assert podcast.feed_url == "https://example.com/feed.xml"
        assert podcast.title == "Test Podcast"
        assert podcast.description == "A podcast for testing"
        assert podcast.website_url == "https://example.com"
        assert podcast.language == "en-us"

    def test_parse_itunes_metadata(self, parser):
        """Test iTunes author and artwork become publisher and image."""
        podcast = parser.parse_string(SAMPLE_RSS_FEED)

        assert podcast.publisher == "Test Author"
        assert podcast.image_url == "https://example.com/artwork.jpg"

    def test_parse_episodes(self, parser):
        """Test episodes are parsed with their audio enclosures."""
        podcast = parser.parse_string(SAMPLE_RSS_FEED)

        assert len(podcast.episodes) == 2
        ep1 = podcast.episodes[0]
        assert ep1.title == "Episode 1: Introduction"
        assert ep1.guid == "episode-1-guid"
        assert ep1.audio_url == "https://example.com/ep1.mp3"
        assert ep1.duration_seconds == 5400
        assert podcast.episodes[1].duration_seconds == 2730

    def test_parse_published_date(self, parser):
        podcast = parser.parse_string(SAMPLE_RSS_FEED)

        ep1 = podcast.episodes[0]
        assert ep1.published_date is not None
        assert (ep1.published_date.year, ep1.published_date.month, ep1.published_date.day) == (2024, 1, 1)

    def test_clean_html_description(self, parser):
        """Test HTML is stripped from descriptions."""
        podcast = parser.parse_string(SAMPLE_RSS_FEED)

        assert podcast.episodes[1].description == "A deeper look at the topic."

    def test_missing_title_defaults(self, parser):
        content = """<?xml version="1.0"?><rss version="2.0"><channel>
            <description>No title here</description>
        </channel></rss>"""

        podcast = parser.parse_string(content)

        assert podcast.title == "Unknown Podcast"

    def test_not_a_feed(self, parser):
        """Test content without feed data raises ValueError."""
        with pytest.raises(ValueError, match="Failed to parse feed"):
            parser.parse_string("this is not a feed", "https://example.com/feed.xml")

    def test_parse_url_uses_fetcher(self, parser, fetcher):
        """Test feeds are downloaded through the safe fetcher."""
        fetcher.fetch.return_value = SafeFetchResult(
            url="https://cdn.example.com/feed.xml",
            status_code=200,
            content=SAMPLE_RSS_FEED.encode("utf-8"),
            redirects=["https://cdn.example.com/feed.xml"],
        )

        podcast = parser.parse_url("https://example.com/feed.xml")

        fetcher.fetch.assert_called_once_with("https://example.com/feed.xml")
        assert podcast.title == "Test Podcast"
        assert podcast.feed_url == "https://example.com/feed.xml"

    def test_parse_url_fetch_error_propagates(self, parser, fetcher):
        fetcher.fetch.side_effect = UnsafeURLError("Unsafe URL detected: http://10.0.0.1/")

        with pytest.raises(UnsafeURLError):
            parser.parse_url("http://10.0.0.1/")


class TestParseDuration:
    """Tests for parse_duration."""

    def test_seconds(self):
        assert parse_duration("3600") == 3600
        assert parse_duration(60) == 60
        assert parse_duration("90.6") == 91

    def test_mm_ss(self):
        assert parse_duration("60:00") == 3600
        assert parse_duration("30:30") == 1830

    def test_hh_mm_ss(self):
        assert parse_duration("1:00:00") == 3600
        assert parse_duration("2:30:45") == 9045

    def test_invalid(self):
        assert parse_duration(None) is None
        assert parse_duration("") is None
        assert parse_duration("invalid") is None
        assert parse_duration("1:2:3:4") is None
        assert parse_duration("inf") is None


class TestCleanHtml:
    """Tests for HTML cleanup."""

    def test_remove_html_tags(self, parser):
        assert parser._clean_html("<p>Hello</p>") == "Hello"

    def test_entities_and_whitespace(self, parser):
        assert parser._clean_html("Tom &amp; Jerry\n\n  &lt;live&gt;") == "Tom & Jerry <live>"

    def test_empty(self, parser):
        assert parser._clean_html(None) is None
        assert parser._clean_html("<br/>") is None
