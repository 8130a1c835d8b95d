"""
Request construction, request summaries, and single-attempt execution.

One call to :func:`execute_completion_request` is one attempt: it posts the
request envelope once and either returns a validated result or raises an
:class:`~.errors.AttemptError`.  Retrying is the caller's job.
"""

from __future__ import annotations

import json
import time
from typing import Any

import requests
import structlog

from .config import (
    MESSAGE_ROLE,
    RESPONSE_PREVIEW_CHARS,
    STREAM_RESPONSES,
    SUMMARY_PREVIEW_CHARS,
)
from .errors import (
    EmptyResponseError,
    MalformedEnvelopeError,
    UpstreamError,
    categorize_request_exception,
)
from .parser import ParsedResult, decode_envelope, raise_for_error_field, validate_envelope

logger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# Request construction
# ---------------------------------------------------------------------------

def build_request_headers(api_key: str) -> dict:
    """
    Construct HTTP headers for a completion call.

    Args:
        api_key: Bearer token.  An empty key is sent as-is; the endpoint
            rejects it and the attempt fails like any other upstream error.

    Returns:
        Dict of HTTP header name → value pairs.
    """
    return {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json",
    }


def build_request_payload(routing_code: str, content: str) -> dict:
    """
    Construct the JSON request envelope.

    Args:
        routing_code: Application that should service the request.
        content: Normalized content string.

    Returns:
        Dict suitable for the ``json=`` argument of ``requests.post()``.
    """
    return {
        "app_code": routing_code,
        "messages": [{"role": MESSAGE_ROLE, "content": content}],
        "stream": STREAM_RESPONSES,
    }


def _preview(text: str, limit: int = SUMMARY_PREVIEW_CHARS) -> str:
    return text if len(text) <= limit else text[:limit] + "..."


def summarize_request(routing_code: str, query: Any, payload: dict) -> dict:
    """
    Describe a request for debug logging.

    Args:
        routing_code: Routing code of the call.
        query: Raw query as supplied by the caller.
        payload: Request envelope from :func:`build_request_payload`.

    Returns:
        Dict with ``appCode``, ``contentType``, ``contentLength``,
        ``messageContentLength``, ``requestBodySize`` and
        ``messagePreview``.  Lengths that do not apply are ``None``.
    """
    message_content = payload["messages"][0]["content"]
    try:
        body_size: int | None = len(json.dumps(payload, ensure_ascii=False))
    except (TypeError, ValueError):
        body_size = None

    return {
        "appCode": routing_code,
        "contentType": type(query).__name__,
        "contentLength": len(query) if isinstance(query, str) else None,
        "messageContentLength": (
            len(message_content) if isinstance(message_content, str) else None
        ),
        "requestBodySize": body_size,
        "messagePreview": (
            _preview(message_content) if isinstance(message_content, str) else None
        ),
    }


# ---------------------------------------------------------------------------
# API call execution
# ---------------------------------------------------------------------------

def _raise_for_status(response: requests.Response) -> None:
    if response.ok:
        return
    # Prefer the envelope's own error description over the bare status.
    try:
        raise_for_error_field(decode_envelope(response.text))
    except (EmptyResponseError, MalformedEnvelopeError):
        pass
    raise UpstreamError(response.status_code, f"HTTP status {response.status_code}")


def execute_completion_request(
    endpoint: str,
    headers: dict,
    payload: dict,
    timeout: float,
    log=None,
) -> ParsedResult:
    """
    Post the request envelope once and validate the response.

    Args:
        endpoint: Completion endpoint URL.
        headers: Headers from :func:`build_request_headers`.
        payload: Envelope from :func:`build_request_payload`.
        timeout: Request timeout in seconds.
        log: structlog-compatible logger; defaults to the module logger.

    Returns:
        :class:`ParsedResult` of the first choice.

    Raises:
        RequestTimeoutError: The request timed out.
        NetworkError: Connection or other transport failure.
        UpstreamError: Non-2xx status or an ``error`` field in the body.
        EmptyResponseError, MalformedEnvelopeError, MissingChoicesError,
        MissingContentError: The body failed validation.
    """
    log = log if log is not None else logger

    start = time.monotonic()
    try:
        response = requests.post(endpoint, headers=headers, json=payload, timeout=timeout)
    except requests.RequestException as exc:
        raise categorize_request_exception(exc) from exc
    latency = round(time.monotonic() - start, 3)

    log.debug(
        "response_received",
        status_code=response.status_code,
        latency_seconds=latency,
        preview=response.text[:RESPONSE_PREVIEW_CHARS],
    )

    _raise_for_status(response)
    return validate_envelope(response.text)
