"""Scheduled AI research digests for a stock watchlist."""

__version__ = "0.1.0"
