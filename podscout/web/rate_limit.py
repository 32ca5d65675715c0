"""Shared slowapi limiter for the web API."""

from slowapi import Limiter
from slowapi.util import get_remote_address

from ..config import Config

limiter = Limiter(key_func=get_remote_address)

# Read once at import time
OPML_IMPORT_RATE_LIMIT = Config().OPML_IMPORT_RATE_LIMIT
