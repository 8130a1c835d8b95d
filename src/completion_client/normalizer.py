"""
Content normalization: turns an arbitrary query into one payload string.

No I/O occurs here.  Every recoverable problem (absent content, blank text,
empty or non-serializable structures) resolves to ``DEFAULT_QUERY`` and a
log event rather than an exception, so the caller always has something to
send.
"""

from __future__ import annotations

import json
import re
from collections.abc import Mapping
from typing import Any

import structlog

from .config import (
    DEFAULT_QUERY,
    MAX_CONTENT_CHARS,
    MAX_FILE_CONTENT_CHARS,
    RECORD_ANALYSIS_REQUEST,
    RECORD_ANALYSIS_TYPE,
    RECORD_FIELD_NAMES,
    RECORD_PARSING_REQUEST,
    RECORD_PARSING_TYPE,
    TRUNCATION_MARKER,
)
from .errors import EmptySubmissionError, SerializationFailure

logger = structlog.get_logger(__name__)

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f-\x9f]")
_LINE_ENDINGS = re.compile(r"\r\n?")


# ---------------------------------------------------------------------------
# Text helpers
# ---------------------------------------------------------------------------

def clean_text(text: str) -> str:
    """
    Normalize line endings, strip control characters, and trim whitespace.

    The stripped ranges are U+0000–U+001F and U+007F–U+009F, which include
    newline and tab: the cleaned text is a single line.

    Args:
        text: Raw text.

    Returns:
        Cleaned text (possibly empty).
    """
    text = _LINE_ENDINGS.sub("\n", text)
    return _CONTROL_CHARS.sub("", text).strip()


def truncate(text: str, limit: int = MAX_CONTENT_CHARS) -> str:
    """Cap ``text`` at ``limit`` characters, appending the truncation marker."""
    if len(text) <= limit:
        return text
    return text[:limit] + TRUNCATION_MARKER


def serialize(value: Any, sort_keys: bool = False) -> str:
    """
    Serialize ``value`` as compact JSON, keeping non-ASCII characters.

    Raises:
        SerializationFailure: ``value`` holds something JSON cannot encode
            (e.g. a set) or refers to itself.
    """
    try:
        return json.dumps(
            value,
            ensure_ascii=False,
            separators=(",", ":"),
            sort_keys=sort_keys,
        )
    except (TypeError, ValueError) as exc:
        raise SerializationFailure(str(exc)) from exc


def _is_present(value: Any) -> bool:
    """
    True unless ``value`` is missing, null, false, zero or an empty string.

    Containers count as present even when empty.
    """
    return isinstance(value, (Mapping, list, tuple)) or bool(value)


def is_patient_record(content: Mapping) -> bool:
    """True if any record field name carries a present value (see :func:`_is_present`)."""
    return any(_is_present(content.get(field)) for field in RECORD_FIELD_NAMES)


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------

def _default(log, event: str, **context) -> str:
    log.warning(event, replacement=DEFAULT_QUERY, **context)
    return DEFAULT_QUERY


def _cap(text: str, log, event: str) -> str:
    if len(text) > MAX_CONTENT_CHARS:
        log.warning(event, original_length=len(text), limit=MAX_CONTENT_CHARS)
    return truncate(text, MAX_CONTENT_CHARS)


def normalize_content(content: Any, log=None) -> str:
    """
    Sanitize and serialize a query into a single string payload.

    Handling by input type:

    - ``None`` → ``DEFAULT_QUERY`` (warning).
    - ``str`` → cleaned with :func:`clean_text`; blank → ``DEFAULT_QUERY``
      (warning); longer than ``MAX_CONTENT_CHARS`` → truncated with marker.
    - Mapping that looks like patient data (see :func:`is_patient_record`)
      → wrapped as a record-analysis request, then serialized.
    - Any other object → serialized directly; ``{}``/``[]`` →
      ``DEFAULT_QUERY`` (warning).

    Serialized forms are capped exactly like strings.  A serialization
    failure is recovered: ``DEFAULT_QUERY`` is returned and an error event
    is logged.

    Args:
        content: Raw query (string, mapping, sequence, or ``None``).
        log: structlog-compatible logger; defaults to the module logger.

    Returns:
        Payload string, never empty.
    """
    log = log if log is not None else logger

    if content is None:
        return _default(log, "empty_submission", reason="content is None")

    if isinstance(content, str):
        cleaned = clean_text(content)
        if not cleaned:
            return _default(log, "empty_submission", reason="blank string")
        return _cap(cleaned, log, "content_truncated")

    if isinstance(content, Mapping) and is_patient_record(content):
        patient_info = content.get("patientInfo")
        query = {
            "type": RECORD_ANALYSIS_TYPE,
            "patientInfo": patient_info if _is_present(patient_info) else content,
            "request": RECORD_ANALYSIS_REQUEST,
        }
    else:
        query = content

    try:
        serialized = serialize(query)
    except SerializationFailure as exc:
        log.error(
            "serialization_failure",
            category=SerializationFailure.category,
            error=str(exc),
            replacement=DEFAULT_QUERY,
        )
        return DEFAULT_QUERY

    if query is not content:
        log.debug("patient_record_wrapped", preview=serialized[:100])

    if serialized in ("{}", "[]"):
        return _default(log, "empty_submission", reason="empty structure")

    return _cap(serialized, log, "serialized_content_truncated")


def build_file_query(file_content: str) -> str:
    """
    Build the record-parsing query for the raw text of a medical-record file.

    The file text is cleaned, capped at ``MAX_FILE_CONTENT_CHARS``, and
    wrapped with the record-parsing instruction.

    Args:
        file_content: Raw file text.

    Returns:
        Serialized query string.

    Raises:
        EmptySubmissionError: ``file_content`` is empty or only whitespace.
    """
    if not file_content or not file_content.strip():
        raise EmptySubmissionError("File content is empty")

    cleaned = truncate(clean_text(file_content), MAX_FILE_CONTENT_CHARS)
    # Content leads so that the cache-key prefix distinguishes records.
    return serialize({
        "content": cleaned,
        "type": RECORD_PARSING_TYPE,
        "request": RECORD_PARSING_REQUEST,
    })
