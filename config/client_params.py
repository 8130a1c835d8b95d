"""
Retry, timeout, content-limit, and diagnostic constants for the completion
client.

This is the AUTHORITATIVE source for client parameters.
src/completion_client/config.py imports from here — do not maintain parallel
copies.

Design notes:
- Backoff doubles from BASE_DELAY_MS and is capped at MAX_DELAY_MS, so with
  the defaults the waits are 2 s, 4 s, 8 s before attempts 2, 3 and 4.
- The cache key keeps a readable prefix of the serialized query and ends
  with a digest of the whole serialization, so queries sharing a prefix
  still get distinct keys.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Retry and timeout defaults
# ---------------------------------------------------------------------------

DEFAULT_MAX_RETRIES: int = 3        # total attempts = retries + 1
BASE_DELAY_MS: int = 1000           # first backoff is BASE_DELAY_MS * 2
MAX_DELAY_MS: int = 10000           # backoff ceiling
DEFAULT_TIMEOUT_MS: int = 30000     # per attempt, not per call

# ---------------------------------------------------------------------------
# Content normalization
# ---------------------------------------------------------------------------

MAX_CONTENT_CHARS: int = 10000
MAX_FILE_CONTENT_CHARS: int = 5000
TRUNCATION_MARKER: str = "..."
DEFAULT_QUERY: str = "default query"

# Presence (truthy value) of any of these marks a mapping as patient data.
RECORD_FIELD_NAMES: tuple[str, ...] = (
    "hospitalNumber",
    "patientInfo",
    "age",
    "gender",
    "diseaseType",
)

RECORD_ANALYSIS_TYPE: str = "record-analysis"
RECORD_ANALYSIS_REQUEST: str = (
    "Parse the information in this medical record and extract the key data."
)

RECORD_PARSING_TYPE: str = "record-parsing"
RECORD_PARSING_REQUEST: str = (
    "Parse the basic patient information in this medical record, including "
    "hospital number, age, gender, disease type, pathology, laboratory "
    "results, examination results and genetic test data."
)

RECOMMENDATION_REQUEST: str = (
    "Based on the patient information, generate a personalized colorectal "
    "cancer treatment plan, including treatment recommendations, a "
    "prognosis assessment and a nutrition support plan."
)

# ---------------------------------------------------------------------------
# Cache and diagnostics
# ---------------------------------------------------------------------------

CACHE_KEY_PREFIX_CHARS: int = 50
CACHE_KEY_DIGEST_CHARS: int = 16    # hex characters of the sha256 digest
SUMMARY_PREVIEW_CHARS: int = 100    # preview length in request summaries
RESPONSE_PREVIEW_CHARS: int = 200   # preview length of raw responses in logs

TRANSACTION_LOG_MAX_ENTRIES: int = 20
TRANSACTION_LOG_FIELD_CHARS: int = 500

# ---------------------------------------------------------------------------
# Fallback selection
# ---------------------------------------------------------------------------

# Query text containing any of these selects the recommendation fallback.
TREATMENT_KEYWORDS: tuple[str, ...] = (
    "treatment",
    "therapy",
    "recommendation",
    "治疗",
)

# Routing codes containing this marker select the recommendation fallback.
RECOMMENDATION_CODE_MARKER: str = "RECOMMENDATION"
