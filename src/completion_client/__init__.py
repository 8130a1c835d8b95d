"""
src/completion_client — resilient client for the medical-record completion endpoint.

Module layout
-------------
config.py           — re-exported constants from the config package, path constants
errors.py           — error taxonomy (attempt errors, exhaustion, recovered errors)
normalizer.py       — query sanitizing, patient-record wrapping, truncation
cache.py            — per-client response cache, cache-key derivation
parser.py           — envelope validation, answer extraction, embedded-JSON recovery
retry.py            — retry policy, exponential backoff, bounded attempt loop
fallback.py         — canned fallback and offline-mode payloads
executor.py         — request construction, request summaries, single HTTP attempt
transaction_log.py  — bounded on-disk transaction log
client.py           — ApiClient orchestrator
records.py          — record → patient info → recommendations workflow, reports

Public interface
----------------
Call the endpoint (never raises on upstream failure):
    client = ApiClient()
    client.call_completion(routing_code, query)
    client.call_completion_detailed(routing_code, query)   # with provenance

Recover JSON embedded in an answer:
    extract_structured_from_text(text)

Inspect the cache:
    client.get_cache_diagnostics()

Run the two-stage record workflow:
    process_record_file(client, path)
"""

from .cache import ResponseCache, derive_cache_key
from .client import ApiClient, CompletionResult
from .errors import (
    AttemptError,
    CompletionClientError,
    EmptyResponseError,
    EmptySubmissionError,
    ExhaustedError,
    MalformedEnvelopeError,
    MissingChoicesError,
    MissingContentError,
    NetworkError,
    RequestTimeoutError,
    SerializationFailure,
    UpstreamError,
)
from .normalizer import build_file_query, normalize_content
from .parser import (
    ParsedResult,
    analyze_response,
    extract_structured,
    extract_structured_from_text,
    validate_envelope,
)
from .records import (
    generate_recommendations,
    parse_medical_record,
    process_record_file,
)
from .retry import RetryPolicy, execute_with_retry, exponential_backoff

__all__ = [
    # Client
    "ApiClient",
    "CompletionResult",
    "ResponseCache",
    "RetryPolicy",
    "derive_cache_key",
    # Building blocks
    "normalize_content",
    "build_file_query",
    "validate_envelope",
    "analyze_response",
    "extract_structured",
    "extract_structured_from_text",
    "execute_with_retry",
    "exponential_backoff",
    "ParsedResult",
    # Workflow
    "parse_medical_record",
    "generate_recommendations",
    "process_record_file",
    # Errors
    "CompletionClientError",
    "AttemptError",
    "EmptySubmissionError",
    "SerializationFailure",
    "RequestTimeoutError",
    "NetworkError",
    "UpstreamError",
    "EmptyResponseError",
    "MalformedEnvelopeError",
    "MissingChoicesError",
    "MissingContentError",
    "ExhaustedError",
]
