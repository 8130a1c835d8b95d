"""
Shared pytest fixtures for completion client tests.

Network access is never real: tests patch ``requests.post`` at
``EXECUTOR_POST`` and feed it responses built by :func:`make_response`.
Sleeps and clocks are injected so retry tests run instantly.
"""

from __future__ import annotations

import json
from unittest.mock import MagicMock

import pytest

from config.api_config import ApiConfig
from src.completion_client.client import ApiClient

EXECUTOR_POST = "src.completion_client.executor.requests.post"

PARSER_CODE = "parser-app"
RECOMMENDATION_CODE = "recommendation-app"


# ---------------------------------------------------------------------------
# Response builders
# ---------------------------------------------------------------------------

def make_envelope(content: str, usage: dict | None = None) -> str:
    """Serialized success envelope with one choice."""
    envelope: dict = {"choices": [{"message": {"role": "assistant", "content": content}}]}
    if usage is not None:
        envelope["usage"] = usage
    return json.dumps(envelope)


def make_response(text: str, status_code: int = 200) -> MagicMock:
    """Stand-in for ``requests.Response`` with the attributes the executor reads."""
    response = MagicMock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 400
    response.text = text
    return response


class SleepRecorder:
    """Injected sleeper that records requested waits instead of sleeping."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)

    @property
    def delays_ms(self) -> list[int]:
        return [round(s * 1000) for s in self.calls]


class FakeClock:
    """Monotonic clock advancing by ``step`` seconds on every read."""

    def __init__(self, step: float = 0.0) -> None:
        self.now = 0.0
        self.step = step

    def __call__(self) -> float:
        value = self.now
        self.now += self.step
        return value


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def api_config():
    """Online configuration with distinct routing codes."""
    return ApiConfig(
        api_key="sk-test-key",
        endpoint="https://completion.test/v1/chat/completions",
        parser_app_code=PARSER_CODE,
        recommendation_app_code=RECOMMENDATION_CODE,
        test_mode=False,
    )


@pytest.fixture
def offline_config(api_config):
    return ApiConfig(
        api_key=api_config.api_key,
        endpoint=api_config.endpoint,
        parser_app_code=PARSER_CODE,
        recommendation_app_code=RECOMMENDATION_CODE,
        test_mode=True,
    )


@pytest.fixture
def sleeper():
    return SleepRecorder()


@pytest.fixture
def client(api_config, sleeper):
    """Online client with recorded sleeps and a clock that never advances."""
    return ApiClient(config=api_config, sleep=sleeper, clock=FakeClock())
