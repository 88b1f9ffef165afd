"""
togu.errors — Exception Taxonomy
=================================

Every failure the engine raises derives from :class:`ToguError`.

Store failures are split by what the caller should do about them:

* :class:`TransientNetworkError` — retry (transport errors, HTTP 429, 5xx).
* :class:`StoreHTTPError` — don't retry; the request itself was rejected.
* :class:`DecodingError` — don't retry; the response had the wrong shape.

"Already voted" and "already holds badge" are *outcomes*, not errors.
"""

from __future__ import annotations


class ToguError(Exception):
    """Base class for all Togu errors."""


# ---------------------------------------------------------------------------
# Store errors
# ---------------------------------------------------------------------------
class StoreError(ToguError):
    """A call to the remote record store failed."""


class TransientNetworkError(StoreError):
    """Retryable failure: transport error, rate limit, or server error."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class StoreHTTPError(StoreError):
    """The store answered with a non-retryable, non-2xx status."""

    def __init__(self, status_code: int, body: str = "") -> None:
        super().__init__(f"Store returned HTTP {status_code}: {body[:200]}")
        self.status_code = status_code
        self.body = body


class DecodingError(StoreError):
    """The store's response could not be parsed into the expected shape."""


# ---------------------------------------------------------------------------
# Domain errors
# ---------------------------------------------------------------------------
class IdentityUnavailable(ToguError):
    """No usable email claim; the user must sign in again."""

    user_message = "We couldn't identify your profile. Please sign out and sign in again."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.user_message)


class VoteFailed(ToguError):
    """Casting a vote failed at some step.

    ``partial`` is True when the Vote fact was written but the target's
    counter update failed.  The skew heals on the next counter read.
    """

    def __init__(self, message: str, *, partial: bool = False) -> None:
        super().__init__(message)
        self.partial = partial


class ContributionRejected(ToguError):
    """A question or answer failed local validation."""
