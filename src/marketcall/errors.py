"""Error taxonomy shared by the repository, lifecycle manager and API."""

from __future__ import annotations


class MarketCallError(Exception):
    """Base class for errors reported to callers."""

    code = "error"


class ValidationError(MarketCallError):
    """Missing, non-numeric or out-of-range input. Nothing was written."""

    code = "validation_error"


class NotFoundError(MarketCallError):
    """The record does not exist or belongs to another user."""

    code = "not_found"


class UpstreamUnavailableError(MarketCallError):
    """The quote source failed or returned incomplete data."""

    code = "upstream_unavailable"


class UpstreamTimeoutError(UpstreamUnavailableError):
    """The quote source did not answer within the configured bound."""

    code = "upstream_timeout"


class PersistenceError(MarketCallError):
    """Storage read or write failed."""

    code = "persistence_error"


class NotAuthenticatedError(MarketCallError):
    """No valid session identifies the caller."""

    code = "not_authenticated"
