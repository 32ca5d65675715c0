import os

from dotenv import load_dotenv

DEFAULT_OPML_IMPORT_RATE_LIMIT = "1/5minutes"


def _int_env(name, default):
    """Read an integer environment variable, failing loudly on bad values."""
    raw = os.getenv(name, str(default))
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got: {raw!r}") from None


class Config:
    def __init__(self, env_file=None):
        """
        Initialize configuration by loading environment variables and setting default attributes.

        Loads environment variables from the provided .env file path when `env_file` is given; otherwise
        loads from the default environment. After loading, sets database, search index, safe fetch,
        OPML import and web settings using environment values with sensible defaults.

        Parameters:
            env_file (str | None): Optional path to a .env file to load environment variables from.

        Raises:
            ValueError: If a numeric setting is not a valid integer or is out of range.
        """
        if env_file:
            load_dotenv(env_file)
        else:
            load_dotenv()

        # Database configuration
        self.DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./podscout.db")
        self.DB_POOL_SIZE = _int_env("DB_POOL_SIZE", 3)
        self.DB_MAX_OVERFLOW = _int_env("DB_MAX_OVERFLOW", 2)
        self.DB_POOL_PRE_PING = os.getenv("DB_POOL_PRE_PING", "true").lower() == "true"
        self.DB_ECHO = os.getenv("DB_ECHO", "false").lower() == "true"

        # Local search index
        self.SEARCH_INDEX_TTL_SECONDS = _int_env("SEARCH_INDEX_TTL_SECONDS", 300)
        if self.SEARCH_INDEX_TTL_SECONDS < 0:
            raise ValueError(
                f"SEARCH_INDEX_TTL_SECONDS must be >= 0, got {self.SEARCH_INDEX_TTL_SECONDS}"
            )
        self.SEARCH_MAX_RESULTS = _int_env("SEARCH_MAX_RESULTS", 20)
        # Outbound feed fetching
        self.SAFE_FETCH_MAX_REDIRECTS = _int_env("SAFE_FETCH_MAX_REDIRECTS", 5)
        self.SAFE_FETCH_TIMEOUT = _int_env("SAFE_FETCH_TIMEOUT", 30)
        self.SAFE_FETCH_MAX_BYTES = _int_env("SAFE_FETCH_MAX_BYTES", 10 * 1024 * 1024)
        self.FEED_USER_AGENT = os.getenv(
            "FEED_USER_AGENT", "podscout/1.0 (+https://github.com/podscout)"
        )

        # OPML import
        self.OPML_MAX_BYTES = _int_env("OPML_MAX_BYTES", 1024 * 1024)  # 1MB
        self.OPML_MAX_FEEDS = _int_env("OPML_MAX_FEEDS", 200)
        self.OPML_IMPORT_RATE_LIMIT = os.getenv("OPML_IMPORT_RATE_LIMIT", DEFAULT_OPML_IMPORT_RATE_LIMIT)

        # Web application configuration
        self.WEB_ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "*")
        self.WEB_PORT = _int_env("PORT", 8080)
