"""
API endpoint, authentication, and routing configuration.

This is the AUTHORITATIVE source for API configuration.
src/completion_client/config.py imports from here — do not maintain parallel
copies.

ENVIRONMENT VARIABLES:
    LINK_AI_API_KEY                    — bearer token for the completion endpoint
    LINK_AI_API_ENDPOINT               — endpoint URL (defaults to DEFAULT_API_ENDPOINT)
    MEDICAL_RECORD_PARSER_APP_CODE     — routing code of the record-parsing application
    TREATMENT_RECOMMENDATION_APP_CODE  — routing code of the recommendation application
    COMPLETION_CLIENT_TEST_MODE        — "true"/"1"/"yes"/"on" bypasses the network
    COMPLETION_CLIENT_LOG_PATH         — location of the transaction log JSON file
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

# ---------------------------------------------------------------------------
# Endpoint and environment variable names
# ---------------------------------------------------------------------------

DEFAULT_API_ENDPOINT = "https://api.link-ai.tech/v1/chat/completions"

API_KEY_ENV = "LINK_AI_API_KEY"
API_ENDPOINT_ENV = "LINK_AI_API_ENDPOINT"
PARSER_APP_CODE_ENV = "MEDICAL_RECORD_PARSER_APP_CODE"
RECOMMENDATION_APP_CODE_ENV = "TREATMENT_RECOMMENDATION_APP_CODE"
TEST_MODE_ENV = "COMPLETION_CLIENT_TEST_MODE"
LOG_PATH_ENV = "COMPLETION_CLIENT_LOG_PATH"

# ---------------------------------------------------------------------------
# Routing codes
# ---------------------------------------------------------------------------
#
# Used when the environment does not name an application.  The
# recommendation code is also registered in fallback.ROUTING_FALLBACK_SHAPES.

DEFAULT_PARSER_APP_CODE = "zAgFDEkr"
DEFAULT_RECOMMENDATION_APP_CODE = "lF0qm8f8"

_TRUTHY = frozenset({"1", "true", "yes", "on"})


@dataclass(frozen=True)
class ApiConfig:
    """Resolved client configuration (one instance per client)."""

    api_key: str = ""
    endpoint: str = DEFAULT_API_ENDPOINT
    parser_app_code: str = DEFAULT_PARSER_APP_CODE
    recommendation_app_code: str = DEFAULT_RECOMMENDATION_APP_CODE
    test_mode: bool = False
    log_path: str | None = None

    @property
    def recommendation_codes(self) -> tuple[str, ...]:
        """Routing codes that should receive recommendation-shaped payloads."""
        codes = {DEFAULT_RECOMMENDATION_APP_CODE, self.recommendation_app_code}
        return tuple(sorted(code for code in codes if code))


def parse_bool(value: str | None) -> bool:
    """Interpret an environment-style flag; unset or unknown values are False."""
    if value is None:
        return False
    return value.strip().lower() in _TRUTHY


def load_api_config(environ: Mapping[str, str] | None = None) -> ApiConfig:
    """
    Build an :class:`ApiConfig` from environment variables.

    A missing API key is not an error here.  Calls made without one are
    rejected upstream and end in fallback content; use
    :func:`describe_api_config` to surface the gap before calling.

    Args:
        environ: Mapping to read from.  Defaults to ``os.environ``.

    Returns:
        Frozen configuration object.
    """
    env = os.environ if environ is None else environ
    return ApiConfig(
        api_key=env.get(API_KEY_ENV, "").strip(),
        endpoint=env.get(API_ENDPOINT_ENV, "").strip() or DEFAULT_API_ENDPOINT,
        parser_app_code=(
            env.get(PARSER_APP_CODE_ENV, "").strip() or DEFAULT_PARSER_APP_CODE
        ),
        recommendation_app_code=(
            env.get(RECOMMENDATION_APP_CODE_ENV, "").strip()
            or DEFAULT_RECOMMENDATION_APP_CODE
        ),
        test_mode=parse_bool(env.get(TEST_MODE_ENV)),
        log_path=env.get(LOG_PATH_ENV, "").strip() or None,
    )


def mask_api_key(api_key: str) -> str:
    """Return a display-safe form of ``api_key`` (first three characters only)."""
    if not api_key:
        return "not configured"
    if len(api_key) > 5:
        return f"configured ({api_key[:3]}...)"
    return "configured"


def describe_api_config(config: ApiConfig) -> dict[str, str]:
    """
    Summarize configuration for diagnostics without exposing the API key.

    Args:
        config: Configuration to describe.

    Returns:
        Dict of display label → value, all strings.
    """
    return {
        "api_key": mask_api_key(config.api_key),
        "endpoint": config.endpoint,
        "parser_app_code": config.parser_app_code or "not configured",
        "recommendation_app_code": config.recommendation_app_code or "not configured",
        "test_mode": "enabled" if config.test_mode else "disabled",
    }
