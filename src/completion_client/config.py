"""
Client configuration, parameter constants, and project path constants.

Constants are defined in the top-level ``config`` package and re-exported
here so that modules in this package import from a single place.
"""

from __future__ import annotations

from pathlib import Path

from config.api_config import (  # noqa: F401  (re-exported)
    DEFAULT_API_ENDPOINT,
    DEFAULT_PARSER_APP_CODE,
    DEFAULT_RECOMMENDATION_APP_CODE,
    ApiConfig,
    describe_api_config,
    load_api_config,
    mask_api_key,
)
from config.client_params import (  # noqa: F401  (re-exported)
    BASE_DELAY_MS,
    CACHE_KEY_DIGEST_CHARS,
    CACHE_KEY_PREFIX_CHARS,
    DEFAULT_MAX_RETRIES,
    DEFAULT_QUERY,
    DEFAULT_TIMEOUT_MS,
    MAX_CONTENT_CHARS,
    MAX_DELAY_MS,
    MAX_FILE_CONTENT_CHARS,
    RECOMMENDATION_CODE_MARKER,
    RECOMMENDATION_REQUEST,
    RECORD_ANALYSIS_REQUEST,
    RECORD_ANALYSIS_TYPE,
    RECORD_FIELD_NAMES,
    RECORD_PARSING_REQUEST,
    RECORD_PARSING_TYPE,
    RESPONSE_PREVIEW_CHARS,
    SUMMARY_PREVIEW_CHARS,
    TRANSACTION_LOG_FIELD_CHARS,
    TRANSACTION_LOG_MAX_ENTRIES,
    TREATMENT_KEYWORDS,
    TRUNCATION_MARKER,
)

# ---------------------------------------------------------------------------
# Project paths
# ---------------------------------------------------------------------------

# Resolve from this file: src/completion_client/config.py → src → root
PROJECT_ROOT = Path(__file__).resolve().parents[2]

LOGS_DIR = PROJECT_ROOT / "logs"
TRANSACTION_LOG_PATH = LOGS_DIR / "api_debug_logs.json"

# ---------------------------------------------------------------------------
# Wire protocol
# ---------------------------------------------------------------------------

MESSAGE_ROLE: str = "user"
STREAM_RESPONSES: bool = False
