"""CLI commands for the podcast catalog.

Provides commands for:
- Importing OPML files
- Adding podcasts from feed URLs
- Refreshing podcast metadata from feeds
- Searching the local catalog
- Rebuilding the search index
- Checking whether a URL is safe to fetch
"""

import argparse
import logging
import os
import sys
from pathlib import Path

from ..config import Config
from ..db.factory import create_repository_from_config
from ..podcast.feed_parser import FeedParser
from ..podcast.feed_sync import FeedSyncService
from ..podcast.opml_parser import OPMLParseError, OPMLParser, import_feeds_to_repository
from ..podcast.safe_fetch import create_fetcher_from_config
from ..podcast.url_safety import is_safe_url
from ..search.podcast_search import get_or_build_index, invalidate_index, search_local_podcasts

# Set up logging
logging.basicConfig(
    level=getattr(logging, os.environ.get("LOG_LEVEL", "INFO").upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def _create_sync_service(repository, fetcher) -> FeedSyncService:
    return FeedSyncService(repository=repository, feed_parser=FeedParser(fetcher=fetcher))


def import_opml(args, config: Config):
    """
    Import podcasts defined in an OPML file into the catalog.

    Parses the OPML file specified by args.file, shows the discovered feeds, and imports them
    unless args.dry_run is true. Exits with status 1 if the file is missing, too large, or not
    valid OPML.

    Parameters:
        args: CLI arguments with `file` (str) and `dry_run` (bool).
        config (Config): Application configuration.
    """
    logger.info(f"Importing OPML file: {args.file}")

    path = Path(args.file)
    if not path.exists():
        print(f"Error: OPML file not found: {path}")
        sys.exit(1)

    content = path.read_bytes()
    if len(content) > config.OPML_MAX_BYTES:
        print(f"Error: OPML file is larger than {config.OPML_MAX_BYTES} bytes")
        sys.exit(1)

    try:
        feeds = OPMLParser().parse_string(content)
    except OPMLParseError as e:
        print(f"Error: {e}")
        sys.exit(1)

    print(f"\nFound {len(feeds)} podcast feeds in OPML file")

    if args.dry_run:
        print("\n[DRY RUN] Would import the following feeds:")
        for feed in feeds:
            print(f"  - {feed.title or 'Unknown'}: {feed.feed_url}")
        return

    repository = create_repository_from_config(config, create_tables=True)
    fetcher = create_fetcher_from_config(config)
    try:
        try:
            stats = import_feeds_to_repository(
                feeds,
                repository,
                sync_service=_create_sync_service(repository, fetcher),
                max_feeds=config.OPML_MAX_FEEDS,
            )
        except OPMLParseError as e:
            print(f"Error: {e}")
            sys.exit(1)

        print("\nImport complete:")
        print(f"  Added: {stats['added']}")
        print(f"  Existing: {stats['existing']}")
        print(f"  Failed: {stats['failed']}")

        failures = [r for r in stats["results"] if r["status"] == "failed"]
        if failures:
            print("\nFailed feeds:")
            for failure in failures[:10]:
                print(f"  - {failure['feed_url']}: {failure['error']}")

    finally:
        fetcher.close()
        repository.close()


def add_podcast(args, config: Config):
    """
    Add a podcast to the catalog using the feed URL provided in args.

    Exits with status 1 if the URL is unsafe or the feed cannot be added.
    """
    logger.info(f"Adding podcast from: {args.url}")

    if not is_safe_url(args.url):
        print(f"Error: URL is not allowed: {args.url}")
        sys.exit(1)

    repository = create_repository_from_config(config, create_tables=True)
    fetcher = create_fetcher_from_config(config)
    try:
        result = _create_sync_service(repository, fetcher).add_podcast_from_url(args.url)

        if result["error"]:
            print(f"Error: {result['error']}")
            sys.exit(1)

        print(f"\nAdded podcast: {result['title']}")
        print(f"  ID: {result['podcast_id']}")
        print(f"  External ID: {result['external_id']}")
        print(f"  Episodes: {result['episodes']}")

    finally:
        fetcher.close()
        repository.close()


def refresh_podcasts(args, config: Config):
    """Re-fetch feeds and update catalog metadata, for one podcast or all subscribed ones."""
    repository = create_repository_from_config(config, create_tables=True)
    fetcher = create_fetcher_from_config(config)
    try:
        sync_service = _create_sync_service(repository, fetcher)

        if args.podcast_id is not None:
            result = sync_service.refresh_podcast(args.podcast_id)
            if result["error"]:
                print(f"Error: {result['error']}")
                sys.exit(1)
            print(f"\nRefreshed podcast {args.podcast_id}")
            return

        overall = sync_service.refresh_all_podcasts()
        print("\nRefresh complete:")
        print(f"  Refreshed: {overall['refreshed']}")
        print(f"  Failed: {overall['failed']}")

    finally:
        fetcher.close()
        repository.close()


def search_podcasts(args, config: Config):
    """Search the local catalog and print ranked matches."""
    repository = create_repository_from_config(config, create_tables=True)
    try:
        limit = args.limit or config.SEARCH_MAX_RESULTS
        results = search_local_podcasts(
            args.query,
            repository,
            limit=limit,
            ttl_seconds=config.SEARCH_INDEX_TTL_SECONDS,
        )

        if not results:
            print("No podcasts found")
            return

        print(f"\n{'Score':<8}  {'External ID':<24}  {'Title':<40}  {'Publisher'}")
        print("-" * 100)

        for result in results:
            print(
                f"{result.score:<8.3f}  "
                f"{result.external_id[:24]:<24}  "
                f"{result.title[:40]:<40}  "
                f"{result.publisher or ''}"
            )

    finally:
        repository.close()


def reindex(args, config: Config):
    """Discard the cached search index and rebuild it from the catalog."""
    repository = create_repository_from_config(config, create_tables=True)
    try:
        invalidate_index()
        index = get_or_build_index(repository, ttl_seconds=config.SEARCH_INDEX_TTL_SECONDS)
        print(f"\nIndexed {index.document_count} podcasts")

    finally:
        repository.close()


def check_url(args, config: Config):
    """Report whether a URL passes the SSRF check; exits with status 1 when it does not."""
    if is_safe_url(args.url):
        print(f"Safe: {args.url}")
        return

    print(f"Unsafe: {args.url}")
    sys.exit(1)


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        description="Podcast catalog CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--env-file",
        help="Path to .env file",
        default=None,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # import-opml command
    import_parser = subparsers.add_parser(
        "import-opml",
        help="Import podcasts from an OPML file",
    )
    import_parser.add_argument("file", help="Path to OPML file")
    import_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be imported without making changes",
    )

    # add command
    add_parser = subparsers.add_parser(
        "add",
        help="Add a podcast from feed URL",
    )
    add_parser.add_argument("url", help="RSS feed URL")

    # refresh command
    refresh_parser = subparsers.add_parser(
        "refresh",
        help="Refresh podcast metadata from feeds",
    )
    refresh_parser.add_argument(
        "--podcast-id",
        type=int,
        help="Refresh specific podcast by ID",
    )

    # search command
    search_parser = subparsers.add_parser(
        "search",
        help="Search the local podcast catalog",
    )
    search_parser.add_argument("query", help="Search query")
    search_parser.add_argument(
        "--limit",
        type=int,
        help="Maximum number of results to show",
    )

    # reindex command
    subparsers.add_parser(
        "reindex",
        help="Rebuild the podcast search index",
    )

    # check-url command
    check_parser = subparsers.add_parser(
        "check-url",
        help="Check whether a URL is safe to fetch",
    )
    check_parser.add_argument("url", help="URL to check")

    return parser


def main():
    """Main entry point for the CLI."""
    parser = create_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    # Load configuration
    config = Config(env_file=args.env_file)

    # Route to appropriate command
    commands = {
        "import-opml": import_opml,
        "add": add_podcast,
        "refresh": refresh_podcasts,
        "search": search_podcasts,
        "reindex": reindex,
        "check-url": check_url,
    }

    command_func = commands.get(args.command)
    if command_func:
        command_func(args, config)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
