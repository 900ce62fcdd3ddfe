"""Exception types shared by the digest services and the HTTP layer."""


class StockDigestError(Exception):
    """Base class for errors raised by this package."""


class AuthorizationError(StockDigestError):
    """Missing or invalid credentials (session token or cron secret)."""


class ValidationError(StockDigestError):
    """Caller supplied input that cannot be acted on, e.g. an empty watchlist."""


class UpstreamError(StockDigestError):
    """A store, AI provider or email provider call failed."""
