"""
Error taxonomy for the completion client.

Every error carries a ``category`` string.  Categories drive handling:
attempt errors are retried with backoff up to the policy bound; recovered
errors never leave the normalizer; ``ExhaustedError`` ends the attempt loop
and triggers fallback content in the client.
"""

from __future__ import annotations

import requests


class CompletionClientError(Exception):
    """Base for completion client errors."""

    category = "other"


# ---------------------------------------------------------------------------
# Recovered errors (content normalization)
# ---------------------------------------------------------------------------

class EmptySubmissionError(CompletionClientError):
    """Submitted content was absent or blank."""

    category = "empty_submission"


class SerializationFailure(CompletionClientError):
    """A structured query could not be serialized to JSON."""

    category = "serialization_failure"


# ---------------------------------------------------------------------------
# Attempt errors (retried)
# ---------------------------------------------------------------------------

class AttemptError(CompletionClientError):
    """A single attempt against the endpoint failed; eligible for retry."""


class RequestTimeoutError(AttemptError):
    category = "timeout"


class NetworkError(AttemptError):
    category = "network_error"


class UpstreamError(AttemptError):
    """The endpoint answered with an explicit error or a non-2xx status."""

    category = "api_error"

    def __init__(self, code: str | int | None, message: str | None) -> None:
        self.code = code if code is not None else "unknown"
        self.message = message or "unknown error"
        super().__init__(f"API error: {self.message} (code: {self.code})")


class EmptyResponseError(AttemptError):
    category = "empty_response"


class MalformedEnvelopeError(AttemptError):
    category = "invalid_response"


class MissingChoicesError(AttemptError):
    category = "missing_choices"


class MissingContentError(AttemptError):
    category = "content_missing"


# ---------------------------------------------------------------------------
# Terminal error
# ---------------------------------------------------------------------------

class ExhaustedError(CompletionClientError):
    """Every attempt failed.  Carries the last underlying error."""

    category = "exhausted"

    def __init__(self, attempts: int, last_error: AttemptError | None) -> None:
        self.attempts = attempts
        self.last_error = last_error
        detail = f"[{last_error.category}] {last_error}" if last_error else "no error recorded"
        super().__init__(f"All {attempts} attempts failed; last error: {detail}")


def categorize_request_exception(exc: requests.RequestException) -> AttemptError:
    """
    Map a ``requests`` exception onto the attempt-error taxonomy.

    Args:
        exc: Exception raised by ``requests`` during the HTTP call.

    Returns:
        ``RequestTimeoutError`` for connect/read timeouts, ``NetworkError``
        for everything else.
    """
    if isinstance(exc, requests.Timeout):
        return RequestTimeoutError(f"Request timed out: {exc}")
    return NetworkError(f"Network failure: {exc}")
