"""Custom exceptions for the spend analytics service."""


class SpendAnalyticsError(Exception):
    """Base exception for all spend analytics errors."""
    pass


class StoreQueryError(SpendAnalyticsError):
    """Raised when the invoice store rejects or fails a query."""

    def __init__(self, message: str, table: str = None):
        super().__init__(message)
        self.table = table


class FetchExhausted(SpendAnalyticsError):
    """Raised when every retry of a cached fetch failed and no fallback was given."""

    def __init__(self, key: str, attempts: int, last_error: object = None):
        detail = f": {last_error}" if last_error is not None else ""
        super().__init__(f"Failed to fetch data for {key} after {attempts} attempts{detail}")
        self.key = key
        self.attempts = attempts
        self.last_error = last_error


class ValidationError(SpendAnalyticsError):
    """Raised when a request is missing a required parameter."""
    pass
