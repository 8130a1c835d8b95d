"""
Response envelope validation, answer extraction, and embedded-JSON recovery.

No I/O occurs here; all functions are pure transformations of strings/dicts
to support easy unit testing.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any

from .errors import (
    AttemptError,
    EmptyResponseError,
    MalformedEnvelopeError,
    MissingChoicesError,
    MissingContentError,
    UpstreamError,
)


@dataclass
class ParsedResult:
    """Answer text from a validated envelope plus what could be decoded of it."""

    content: str
    content_object: Any | None = None
    usage: dict | None = None
    envelope: dict = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Envelope validation
# ---------------------------------------------------------------------------

def decode_envelope(raw_text: str | bytes | None) -> dict:
    """
    Decode raw response text into the envelope dict.

    Raises:
        EmptyResponseError: ``raw_text`` is empty or ``None``.
        MalformedEnvelopeError: Not valid JSON, or JSON that is not an object.
    """
    if isinstance(raw_text, bytes):
        try:
            raw_text = raw_text.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise MalformedEnvelopeError(f"Response is not UTF-8: {exc}") from exc

    if not raw_text or not raw_text.strip():
        raise EmptyResponseError("Empty response body")

    try:
        envelope = json.loads(raw_text)
    except json.JSONDecodeError as exc:
        raise MalformedEnvelopeError(
            f"Invalid JSON response: {raw_text[:100]}"
        ) from exc

    if not isinstance(envelope, dict):
        raise MalformedEnvelopeError(
            f"Expected a JSON object, got {type(envelope).__name__}"
        )
    return envelope


def raise_for_error_field(envelope: dict) -> None:
    """
    Raise :class:`UpstreamError` if the envelope carries an ``error`` field.

    Any non-null value counts, including an empty object.
    """
    error = envelope.get("error")
    if error is None:
        return
    if isinstance(error, dict):
        raise UpstreamError(error.get("code"), error.get("message"))
    raise UpstreamError(None, str(error))


def validate_envelope(raw_text: str | bytes | None) -> ParsedResult:
    """
    Validate a raw completion response and extract the answer text.

    Checks run in order and the first failure is raised:

    1. empty body → :class:`EmptyResponseError`
    2. not a JSON object → :class:`MalformedEnvelopeError`
    3. ``error`` field present → :class:`UpstreamError`
    4. ``choices`` absent, not a list, or empty → :class:`MissingChoicesError`
    5. ``choices[0].message.content`` absent or empty →
       :class:`MissingContentError`

    When the answer text is itself JSON, it is decoded into
    ``content_object``; a decode failure just leaves it ``None``.

    Args:
        raw_text: Response body as received.

    Returns:
        :class:`ParsedResult` for the first choice.
    """
    envelope = decode_envelope(raw_text)
    raise_for_error_field(envelope)

    choices = envelope.get("choices")
    if not isinstance(choices, list) or not choices:
        raise MissingChoicesError(
            f"Response has no choices; top-level keys present: {list(envelope)}"
        )

    first = choices[0]
    message = first.get("message") if isinstance(first, dict) else None
    content = message.get("content") if isinstance(message, dict) else None
    if not isinstance(content, str) or not content:
        raise MissingContentError("First choice has no message content")

    try:
        content_object = json.loads(content)
    except json.JSONDecodeError:
        content_object = None

    usage = envelope.get("usage")
    return ParsedResult(
        content=content,
        content_object=content_object,
        usage=usage if isinstance(usage, dict) else None,
        envelope=envelope,
    )


def analyze_response(raw_text: str | bytes | None) -> dict:
    """
    Non-raising variant of :func:`validate_envelope` for debugging tools.

    Returns:
        Dict with ``valid`` (bool).  Valid results add ``content``,
        ``contentObject`` and ``usage``; invalid ones add ``error``
        (message), ``errorType`` (error category) and, for upstream errors,
        ``code`` and ``message``.
    """
    try:
        result = validate_envelope(raw_text)
    except UpstreamError as exc:
        return {
            "valid": False,
            "error": str(exc),
            "errorType": exc.category,
            "code": exc.code,
            "message": exc.message,
        }
    except AttemptError as exc:
        return {"valid": False, "error": str(exc), "errorType": exc.category}

    return {
        "valid": True,
        "content": result.content,
        "contentObject": result.content_object,
        "usage": result.usage,
    }


# ---------------------------------------------------------------------------
# Embedded JSON recovery
# ---------------------------------------------------------------------------

def strip_code_fences(text: str) -> str:
    """Remove a surrounding Markdown code fence (```json ... ```), if any."""
    text = text.strip()
    if text.startswith("```"):
        text = re.sub(r"^```(?:json)?\n?", "", text)
        text = re.sub(r"\n?```$", "", text)
        text = text.strip()
    return text


def _loads_structured(candidate: str) -> Any | None:
    try:
        value = json.loads(candidate)
    except json.JSONDecodeError:
        return None
    return value if isinstance(value, (dict, list)) else None


def _balanced_spans(text: str):
    """
    Yield every ``{...}`` span whose braces balance, in order of start.

    One pass over ``text`` with a stack of open-brace positions.  Quotes
    only open a string literal inside an open brace, and braces inside
    string literals are ignored.
    """
    opens: list[int] = []
    spans: list[tuple[int, int]] = []
    in_string = False
    escaped = False

    for index, c in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif c == "\\":
                escaped = True
            elif c == '"':
                in_string = False
        elif c == "{":
            opens.append(index)
        elif c == "}":
            if opens:
                spans.append((opens.pop(), index + 1))
        elif c == '"' and opens:
            in_string = True

    spans.sort()
    for start, end in spans:
        yield text[start:end]


def extract_structured(text: str | None) -> Any | None:
    """
    Recover a JSON object or array from model output.  Never raises.

    Strategies, in order:

    1. Decode the whole text (after stripping Markdown code fences).
    2. Decode the greedy span from the first ``{`` to the last ``}``.  This
       is lossy when prose between two objects contains braces.
    3. Decode each brace-balanced span, first decodable one wins.

    Scalars (``"42"``, ``"true"``) do not count as structured results.

    Args:
        text: Answer text, possibly JSON embedded in explanatory prose.

    Returns:
        The decoded dict/list, or ``None`` when nothing decodes.
    """
    if not text:
        return None

    stripped = strip_code_fences(text)
    direct = _loads_structured(stripped)
    if direct is not None:
        return direct

    first = stripped.find("{")
    last = stripped.rfind("}")
    if first == -1 or last < first:
        return None
    recovered = _loads_structured(stripped[first:last + 1])
    if recovered is not None:
        return recovered

    for span in _balanced_spans(stripped):
        recovered = _loads_structured(span)
        if recovered is not None:
            return recovered
    return None


def extract_structured_from_text(text: str | None) -> Any | None:
    """Collaborator-facing name for :func:`extract_structured`."""
    return extract_structured(text)
