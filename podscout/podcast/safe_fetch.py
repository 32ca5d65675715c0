"""Redirect-following HTTP fetcher that re-validates every hop.

The HTTP client never follows redirects on its own. Each ``Location`` is
resolved against the current URL and passed through :func:`is_safe_url`
before it is requested, so a public URL cannot bounce the server into an
internal address.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional
from urllib.parse import urljoin, urlsplit

import requests

from .url_safety import is_safe_url

logger = logging.getLogger(__name__)

# 304 Not Modified carries no Location and is not a redirect
REDIRECT_STATUS_CODES = frozenset({301, 302, 303, 307, 308})

# Headers that must not follow a redirect to a different origin
SENSITIVE_HEADERS = ("authorization", "cookie", "proxy-authorization")


class SafeFetchError(Exception):
    """Base class for all safe fetch failures."""

    def __init__(self, message: str, url: Optional[str] = None):
        super().__init__(message)
        self.url = url


class UnsafeURLError(SafeFetchError):
    """A URL in the chain failed the SSRF check."""


class TooManyRedirectsError(SafeFetchError):
    """The redirect chain exceeded the configured hop limit."""


class RedirectError(SafeFetchError):
    """A redirect response could not be followed (missing or malformed Location)."""


class HTTPStatusError(SafeFetchError):
    """The final response had a non-2xx status."""

    def __init__(self, message: str, url: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message, url)
        self.status_code = status_code


class NetworkError(SafeFetchError):
    """The transport failed (DNS, connection, timeout, TLS)."""


class ResponseTooLargeError(SafeFetchError):
    """The response body exceeded the configured size limit."""


@dataclass
class SafeFetchResult:
    """Successful outcome of a fetch chain."""

    url: str
    status_code: int
    content: bytes
    headers: Dict[str, str] = field(default_factory=dict)
    encoding: Optional[str] = None
    redirects: List[str] = field(default_factory=list)

    @property
    def text(self) -> str:
        return self.content.decode(self.encoding or "utf-8", errors="replace")


def _origin(url: str) -> tuple:
    parts = urlsplit(url)
    return (parts.scheme.lower(), parts.hostname, parts.port)


class SafeFetcher:
    """Fetches untrusted URLs with per-hop SSRF validation.

    Example:
        fetcher = SafeFetcher(max_redirects=5)
        result = fetcher.fetch("https://example.com/feed.xml")
        print(result.url, len(result.content))
    """

    DEFAULT_USER_AGENT = "podscout/1.0 (+https://github.com/podscout)"
    DEFAULT_TIMEOUT = 30
    DEFAULT_MAX_REDIRECTS = 5
    DEFAULT_MAX_BYTES = 10 * 1024 * 1024  # 10MB
    DEFAULT_CHUNK_SIZE = 8192

    def __init__(
        self,
        max_redirects: int = DEFAULT_MAX_REDIRECTS,
        timeout: float = DEFAULT_TIMEOUT,
        max_bytes: int = DEFAULT_MAX_BYTES,
        user_agent: Optional[str] = None,
        session: Optional[requests.Session] = None,
    ):
        """Initialize the fetcher.

        Args:
            max_redirects: Maximum number of redirects followed before giving up
            timeout: Per-request timeout in seconds
            max_bytes: Maximum accepted response body size
            user_agent: Custom user agent string
            session: Optional preconfigured requests session
        """
        self.max_redirects = max_redirects
        self.timeout = timeout
        self.max_bytes = max_bytes
        self.user_agent = user_agent or self.DEFAULT_USER_AGENT
        self._session = session or self._create_session()

    def _create_session(self) -> requests.Session:
        """Create a requests session. No retry adapter: retries belong to the caller."""
        session = requests.Session()
        session.headers.update({"User-Agent": self.user_agent})
        return session

    def fetch(self, url: str, headers: Optional[Mapping[str, str]] = None) -> SafeFetchResult:
        """Fetch a URL, following redirects one validated hop at a time.

        Args:
            url: Absolute http(s) URL to fetch
            headers: Extra request headers

        Returns:
            SafeFetchResult with the body and the final URL

        Raises:
            UnsafeURLError: A hop failed the SSRF check; that hop was not requested
            TooManyRedirectsError: More than ``max_redirects`` redirects
            RedirectError: Redirect without a usable Location header
            HTTPStatusError: Final response was not 2xx
            NetworkError: Transport failure
            ResponseTooLargeError: Body larger than ``max_bytes``
        """
        current_url = url
        current_headers = dict(headers or {})
        initial_origin = _origin(url)
        redirects: List[str] = []

        while True:
            if not is_safe_url(current_url):
                logger.warning(f"Blocked unsafe URL: {current_url} (started at {url})")
                raise UnsafeURLError(f"Unsafe URL detected: {current_url}", url=current_url)

            logger.debug(f"Fetching {current_url} (hop {len(redirects)})")
            try:
                response = self._session.get(
                    current_url,
                    headers=current_headers,
                    timeout=self.timeout,
                    allow_redirects=False,
                    stream=True,
                )
            except requests.RequestException as e:
                logger.error(f"Request failed for {current_url}: {e}")
                raise NetworkError(f"Failed to fetch {current_url}: {e}", url=current_url) from e

            if response.status_code in REDIRECT_STATUS_CODES:
                location = response.headers.get("Location")
                response.close()
                if not location:
                    raise RedirectError(
                        "Redirect response missing Location header", url=current_url
                    )

                if len(redirects) >= self.max_redirects:
                    logger.warning(f"Redirect limit reached fetching {url}")
                    raise TooManyRedirectsError(
                        f"Too many redirects (max {self.max_redirects})", url=current_url
                    )

                try:
                    next_url = urljoin(current_url, location)
                except ValueError as e:
                    raise RedirectError(
                        f"Invalid redirect URL: {location} ({e})", url=current_url
                    ) from e

                logger.debug(f"Redirect {response.status_code}: {current_url} -> {next_url}")

                if _origin(next_url) != initial_origin:
                    current_headers = {
                        name: value
                        for name, value in current_headers.items()
                        if name.lower() not in SENSITIVE_HEADERS
                    }

                redirects.append(next_url)
                current_url = next_url
                continue

            try:
                if not 200 <= response.status_code < 300:
                    raise HTTPStatusError(
                        f"Failed to fetch URL: {response.status_code} {response.reason or ''}".rstrip(),
                        url=current_url,
                        status_code=response.status_code,
                    )
                content = self._read_body(response, current_url)
            finally:
                response.close()

            return SafeFetchResult(
                url=current_url,
                status_code=response.status_code,
                content=content,
                headers=dict(response.headers),
                encoding=response.encoding,
                redirects=redirects,
            )

    def _read_body(self, response: requests.Response, url: str) -> bytes:
        """Read a streamed body, enforcing the size limit."""
        content_length = response.headers.get("Content-Length")
        if content_length:
            try:
                if int(content_length) > self.max_bytes:
                    raise ResponseTooLargeError(
                        f"Response too large: {content_length} bytes (max {self.max_bytes})",
                        url=url,
                    )
            except ValueError:
                pass

        chunks = []
        received = 0
        try:
            for chunk in response.iter_content(chunk_size=self.DEFAULT_CHUNK_SIZE):
                if not chunk:
                    continue
                received += len(chunk)
                if received > self.max_bytes:
                    raise ResponseTooLargeError(
                        f"Response too large: more than {self.max_bytes} bytes", url=url
                    )
                chunks.append(chunk)
        except requests.RequestException as e:
            raise NetworkError(f"Failed to read response from {url}: {e}", url=url) from e

        return b"".join(chunks)

    def close(self) -> None:
        self._session.close()


def safe_fetch(url: str, headers: Optional[Mapping[str, str]] = None, **kwargs) -> SafeFetchResult:
    """Fetch a URL with a one-off :class:`SafeFetcher`. Keyword arguments configure the fetcher."""
    fetcher = SafeFetcher(**kwargs)
    try:
        return fetcher.fetch(url, headers=headers)
    finally:
        fetcher.close()


def create_fetcher_from_config(config) -> SafeFetcher:
    """Create a fetcher using the outbound fetch settings of a `Config` instance."""
    return SafeFetcher(
        max_redirects=config.SAFE_FETCH_MAX_REDIRECTS,
        timeout=config.SAFE_FETCH_TIMEOUT,
        max_bytes=config.SAFE_FETCH_MAX_BYTES,
        user_agent=config.FEED_USER_AGENT,
    )
