"""Command-line RSS feed aggregator with users, feeds and follows kept in SQLite."""

__version__ = "0.1.0"