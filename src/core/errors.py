"""
Exception types shared across the assistant pipeline.

Only failures that must abort a request are exceptions. Rejected input,
degraded planning and unresolved donation targets are ordinary responses.
"""

import re
from typing import Any, Optional


class GivehubError(Exception):
    """Base class for service errors."""

    status_code: int = 500

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details


class GenerationError(GivehubError):
    """The external text generator failed or timed out."""

    def __init__(self, message: str, status_code: Optional[int] = None, **details: Any):
        super().__init__(message, **details)
        self.upstream_status = status_code


class PersistenceError(GivehubError):
    """A ledger write could not be completed."""

    status_code = 500


class DonationRejected(GivehubError):
    """A donation violated a ledger precondition (amount or chain)."""

    status_code = 400


class CampaignNotFound(GivehubError):
    """No campaign exists with the requested id."""

    status_code = 404


_BAD_REQUEST_RE = re.compile(r"\b400\b|bad request", re.IGNORECASE)


def is_client_error(exc: BaseException) -> bool:
    """Return True when a generator failure looks like a 400-class rejection."""
    if isinstance(exc, GenerationError):
        status = exc.upstream_status
    else:
        status = getattr(exc, "status_code", None) or getattr(exc, "status", None)
    if status == 400:
        return True
    return bool(_BAD_REQUEST_RE.search(str(exc)))
