"""podscout: podcast discovery backend with local search, OPML import and safe feed fetching."""

__version__ = "0.1.0"
