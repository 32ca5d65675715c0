"""OPML parser for importing podcast subscriptions.

Handles exports from podcast apps (Apple Podcasts, Overcast, Pocket Casts,
AntennaPod) and generic RSS readers. Outlines may be nested to any depth as
folders; every outline carrying an ``xmlUrl`` becomes a feed.

The input is untrusted, so XML is parsed with defusedxml: entity
declarations and external references are refused rather than expanded.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
from xml.etree.ElementTree import Element

from defusedxml import DefusedXmlException
from defusedxml.ElementTree import ParseError, fromstring

logger = logging.getLogger(__name__)

INVALID_XML_MESSAGE = "Invalid XML: the file could not be parsed"
ENTITIES_MESSAGE = "Invalid XML: entity declarations are not allowed"
MISSING_ROOT_MESSAGE = "Invalid OPML: missing <opml> root element"
MISSING_BODY_MESSAGE = "Invalid OPML: missing <body> element"
NO_FEEDS_MESSAGE = "No feeds found in OPML file"


class OPMLParseError(ValueError):
    """Raised when an OPML document is malformed or contains no feeds.

    The message is written for end users and can be shown as-is.
    """


@dataclass
class OPMLFeed:
    """A podcast feed extracted from OPML."""

    feed_url: str
    title: Optional[str] = None
    html_url: Optional[str] = None

    def __post_init__(self):
        """
        Ensure the feed_url is present and normalized.

        Raises:
            ValueError: If `feed_url` is empty or blank.
        """
        if not self.feed_url or not self.feed_url.strip():
            raise ValueError("feed_url is required")
        self.feed_url = self.feed_url.strip()


@dataclass
class OutlineNode:
    """Shape-normalized view of an ``<outline>`` element.

    Attributes are a plain dict and children are always a list, whether the
    source element had zero, one or many nested outlines.
    """

    attributes: Dict[str, str]
    children: List["OutlineNode"]

    @classmethod
    def from_element(cls, element: Element) -> "OutlineNode":
        """Convert an element and all its nested outlines without recursing."""
        root = cls(attributes=dict(element.attrib), children=[])
        pending = [(element, root)]
        while pending:
            source, node = pending.pop()
            for child in _outline_children(source):
                child_node = cls(attributes=dict(child.attrib), children=[])
                node.children.append(child_node)
                pending.append((child, child_node))
        return root


def _local_name(tag: Any) -> str:
    """Return a tag name without namespace. Comments and PIs have no name."""
    if not isinstance(tag, str):
        return ""
    return tag.rsplit("}", 1)[-1]


def _outline_children(element: Element) -> List[Element]:
    return [child for child in element if _local_name(child.tag) == "outline"]


class OPMLParser:
    """Parser for OPML files containing podcast subscriptions.

    Example:
        parser = OPMLParser()
        for feed in parser.parse_file("subscriptions.opml"):
            print(f"{feed.title}: {feed.feed_url}")
    """

    def parse_file(self, file_path: Union[str, Path]) -> List[OPMLFeed]:
        """
        Parse an OPML file and extract podcast feeds.

        Raises:
            FileNotFoundError: If the given file path does not exist.
            OPMLParseError: If the content is not valid OPML or has no feeds.
        """
        file_path = Path(file_path)
        if not file_path.exists():
            raise FileNotFoundError(f"OPML file not found: {file_path}")

        logger.info(f"Parsing OPML file: {file_path}")
        return self.parse_string(file_path.read_bytes())

    def parse_string(self, content: Union[str, bytes]) -> List[OPMLFeed]:
        """
        Parse an OPML document into a flat, deduplicated list of feeds.

        Feeds appear in document order. When several outlines share a feed URL the
        first one wins and the rest are dropped.

        Parameters:
            content (str | bytes): OPML XML content.

        Returns:
            List[OPMLFeed]: At least one feed.

        Raises:
            OPMLParseError: For invalid XML, a missing ``<opml>`` root, a missing ``<body>``,
                or a document without any feed URL.
        """
        root = self._parse_xml(content.lstrip() if content else content)

        if _local_name(root.tag) != "opml":
            raise OPMLParseError(MISSING_ROOT_MESSAGE)

        body = next((child for child in root if _local_name(child.tag) == "body"), None)
        if body is None:
            raise OPMLParseError(MISSING_BODY_MESSAGE)

        outlines = [OutlineNode.from_element(child) for child in _outline_children(body)]
        if not outlines:
            raise OPMLParseError(NO_FEEDS_MESSAGE)

        feeds: List[OPMLFeed] = []
        self._collect_feeds(outlines, feeds)

        if not feeds:
            raise OPMLParseError(NO_FEEDS_MESSAGE)

        unique = self._deduplicate(feeds)
        logger.info(
            f"Parsed OPML: {len(unique)} feeds found, "
            f"{len(feeds) - len(unique)} duplicates dropped"
        )
        return unique

    def _parse_xml(self, content: Union[str, bytes]) -> Element:
        try:
            return fromstring(content)
        except DefusedXmlException as e:
            logger.warning(f"Rejected OPML with forbidden XML construct: {e}")
            raise OPMLParseError(ENTITIES_MESSAGE) from e
        except ParseError as e:
            text = content.decode("utf-8", errors="replace") if isinstance(content, bytes) else content
            # Plain text without any markup has no root element at all
            if "<" not in text:
                raise OPMLParseError(MISSING_ROOT_MESSAGE) from e
            logger.error(f"Failed to parse OPML XML: {e}")
            raise OPMLParseError(INVALID_XML_MESSAGE) from e

    def _collect_feeds(self, outlines: List[OutlineNode], feeds: List[OPMLFeed]) -> None:
        """Depth-first walk: an outline's own feed precedes those of its children."""
        # Children are pushed in reverse so they pop in document order
        stack = list(reversed(outlines))
        while stack:
            outline = stack.pop()
            feed = self._extract_feed(outline)
            if feed:
                feeds.append(feed)
                logger.debug(f"Found feed: {feed.title or feed.feed_url}")
            stack.extend(reversed(outline.children))

    def _extract_feed(self, outline: OutlineNode) -> Optional[OPMLFeed]:
        """Build a feed from an outline with a non-blank ``xmlUrl``, else return None."""
        xml_url = outline.attributes.get("xmlUrl")
        if not xml_url or not xml_url.strip():
            return None

        return OPMLFeed(
            feed_url=xml_url.strip(),
            title=outline.attributes.get("text") or outline.attributes.get("title") or None,
            html_url=outline.attributes.get("htmlUrl") or None,
        )

    @staticmethod
    def _deduplicate(feeds: List[OPMLFeed]) -> List[OPMLFeed]:
        seen = set()
        unique = []
        for feed in feeds:
            if feed.feed_url not in seen:
                seen.add(feed.feed_url)
                unique.append(feed)
        return unique


def parse_opml(content: Union[str, bytes]) -> List[OPMLFeed]:
    """Parse an OPML document. See :meth:`OPMLParser.parse_string`."""
    return OPMLParser().parse_string(content)


def import_opml_to_repository(
    content: Union[str, bytes],
    repository,
    sync_service=None,
    max_feeds: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Parse an OPML document and import its feeds into the catalog.

    See :func:`import_feeds_to_repository` for the returned statistics.

    Raises:
        OPMLParseError: If the document cannot be parsed or has more than `max_feeds` feeds.
    """
    feeds = parse_opml(content)
    return import_feeds_to_repository(feeds, repository, sync_service, max_feeds=max_feeds)


def import_feeds_to_repository(
    feeds: List[OPMLFeed],
    repository,
    sync_service=None,
    max_feeds: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Import already-parsed OPML feeds into the catalog.

    Feeds already in the catalog (matched by feed URL) are reported as existing. New feeds are
    fetched and added through the feed sync service. A failure on one feed is recorded and the
    import carries on with the next.

    Parameters:
        feeds (List[OPMLFeed]): Feeds as returned by :func:`parse_opml`.
        repository: Catalog repository used to look up existing feeds.
        sync_service (FeedSyncService | None): Service used to add new feeds; one is created
            for `repository` when omitted.
        max_feeds (int | None): Refuse the whole import when there are more feeds than this.

    Returns:
        dict: Import statistics:
            - total (int): Number of unique feeds in the document.
            - added (int): Number of new podcasts created.
            - existing (int): Number of feeds already in the catalog.
            - failed (int): Number of feeds that could not be added.
            - results (list): Per-feed dicts with ``feed_url``, ``title``, ``status``,
              ``podcast_id`` and ``error``.

    Raises:
        OPMLParseError: If there are more than `max_feeds` feeds. Nothing is imported then.
    """
    from .feed_sync import FeedSyncService

    if max_feeds is not None and len(feeds) > max_feeds:
        raise OPMLParseError(
            f"OPML file has {len(feeds)} feeds; at most {max_feeds} can be imported at once"
        )

    if sync_service is None:
        sync_service = FeedSyncService(repository=repository)

    stats: Dict[str, Any] = {
        "total": len(feeds),
        "added": 0,
        "existing": 0,
        "failed": 0,
        "results": [],
    }

    for feed in feeds:
        entry = {
            "feed_url": feed.feed_url,
            "title": feed.title,
            "status": "failed",
            "podcast_id": None,
            "error": None,
        }
        try:
            existing = repository.get_podcast_by_feed_url(feed.feed_url)
            if existing:
                logger.debug(f"Skipping existing podcast: {feed.title or feed.feed_url}")
                entry.update(status="existing", title=existing.title, podcast_id=existing.id)
                stats["existing"] += 1
            else:
                result = sync_service.add_podcast_from_url(feed.feed_url)
                if result["error"]:
                    entry["error"] = result["error"]
                    stats["failed"] += 1
                else:
                    entry.update(
                        status="added",
                        title=result["title"],
                        podcast_id=result["podcast_id"],
                    )
                    stats["added"] += 1

        except Exception as e:
            logger.error(f"Failed to import feed {feed.feed_url}: {e}")
            entry["error"] = str(e)
            stats["failed"] += 1

        stats["results"].append(entry)

    logger.info(
        f"OPML import complete: {stats['added']} added, "
        f"{stats['existing']} existing, {stats['failed']} failed"
    )

    return stats
