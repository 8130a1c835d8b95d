"""
ApiClient — the orchestrator behind every completion call.

Per call:
  NORMALIZE → CACHE_LOOKUP (hit → done)
            → ATTEMPT/VALIDATE via execute_with_retry (success → cache → done)
            → EXHAUSTED → FALLBACK → cache → done

Callers get a usable string either way.  ``call_completion_detailed`` also
reports where the string came from, so a caller can tell a genuine answer
from a fallback stand-in.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import structlog

from .cache import ResponseCache, derive_cache_key
from .config import ApiConfig, load_api_config
from .errors import CompletionClientError, ExhaustedError
from .executor import (
    build_request_headers,
    build_request_payload,
    execute_completion_request,
    summarize_request,
)
from .fallback import provide_fallback, provide_offline_payload
from .normalizer import normalize_content
from .parser import ParsedResult, extract_structured
from .retry import RetryPolicy, execute_with_retry
from .transaction_log import TransactionLog

SOURCE_NETWORK = "network"
SOURCE_CACHE = "cache"
SOURCE_FALLBACK = "fallback"
SOURCE_OFFLINE = "offline"


@dataclass
class CompletionResult:
    """A completion string and its provenance."""

    content: str
    source: str
    attempts: int = 0
    cache_key: str | None = None
    error: CompletionClientError | None = None
    parsed: ParsedResult | None = None

    @property
    def is_degraded(self) -> bool:
        """True when ``content`` is a fallback stand-in, not an answer."""
        return self.source == SOURCE_FALLBACK


class ApiClient:
    """
    Resilient client for the completion endpoint.

    Each instance owns its cache, so independent clients never share
    responses.  All collaborators are injectable:

    - ``config``: defaults to :func:`load_api_config` (environment).
    - ``cache``: defaults to a fresh :class:`ResponseCache`.
    - ``logger``: any structlog-compatible logger.
    - ``transaction_log``: defaults to a :class:`TransactionLog` at
      ``config.log_path`` when that is set, otherwise no persisted log.
    - ``policy``: default :class:`RetryPolicy`; per-call overrides win.
    - ``sleep`` / ``clock``: backoff sleeper and monotonic clock.
    """

    def __init__(
        self,
        config: ApiConfig | None = None,
        cache: ResponseCache | None = None,
        logger=None,
        transaction_log: TransactionLog | None = None,
        policy: RetryPolicy | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config if config is not None else load_api_config()
        self.cache = cache if cache is not None else ResponseCache()
        self.policy = policy or RetryPolicy()
        self._log = logger if logger is not None else structlog.get_logger(__name__)
        self._sleep = sleep
        self._clock = clock

        if transaction_log is None and self.config.log_path:
            transaction_log = TransactionLog(self.config.log_path, log=self._log)
        self.transaction_log = transaction_log

    @property
    def log(self):
        """The logger this client reports through (injected or module default)."""
        return self._log

    # ------------------------------------------------------------------
    # Completion calls
    # ------------------------------------------------------------------

    def call_completion(
        self,
        routing_code: str,
        query: Any,
        use_cache: bool = True,
        timeout_ms: int | None = None,
        max_retries: int | None = None,
        base_delay_ms: int | None = None,
        api_key: str | None = None,
        endpoint: str | None = None,
    ) -> str:
        """
        Return the completion text for ``query``, never raising on failure.

        See :meth:`call_completion_detailed` for arguments.  When every
        attempt fails the returned text is a canned fallback payload.
        """
        return self.call_completion_detailed(
            routing_code,
            query,
            use_cache=use_cache,
            timeout_ms=timeout_ms,
            max_retries=max_retries,
            base_delay_ms=base_delay_ms,
            api_key=api_key,
            endpoint=endpoint,
        ).content

    def call_completion_detailed(
        self,
        routing_code: str,
        query: Any,
        use_cache: bool = True,
        timeout_ms: int | None = None,
        max_retries: int | None = None,
        base_delay_ms: int | None = None,
        api_key: str | None = None,
        endpoint: str | None = None,
        raise_on_exhaustion: bool = False,
    ) -> CompletionResult:
        """
        Run one logical completion call and report its provenance.

        Args:
            routing_code: Application that should service the request.
            query: Raw string or JSON-serializable mapping.  Not mutated.
            use_cache: Consult the cache first and store the result after.
            timeout_ms: Per-attempt timeout override.
            max_retries: Retry-count override (attempts = retries + 1).
            base_delay_ms: Backoff base override.
            api_key: API key override.
            endpoint: Endpoint URL override.
            raise_on_exhaustion: Raise :class:`ExhaustedError` instead of
                returning fallback content.

        Returns:
            :class:`CompletionResult`; ``source`` is one of ``"network"``,
            ``"cache"``, ``"fallback"`` or ``"offline"``.

        Raises:
            ExhaustedError: Only when ``raise_on_exhaustion`` is set.
        """
        log = self._log.bind(app_code=routing_code)

        if self.config.test_mode:
            log.info("offline_payload_returned")
            return CompletionResult(
                content=provide_offline_payload(
                    routing_code, self.config.recommendation_codes
                ),
                source=SOURCE_OFFLINE,
            )

        content = normalize_content(query, log=log)
        cache_key = derive_cache_key(routing_code, query)

        if use_cache:
            cached = self.cache.get(cache_key)
            if cached is not None:
                log.info("cache_hit", cache_key=cache_key)
                return CompletionResult(content=cached, source=SOURCE_CACHE, cache_key=cache_key)

        payload = build_request_payload(routing_code, content)
        log.debug("request_prepared", **summarize_request(routing_code, query, payload))
        headers = build_request_headers(
            api_key if api_key is not None else self.config.api_key
        )
        target = endpoint or self.config.endpoint
        policy = self._resolve_policy(timeout_ms, max_retries, base_delay_ms)

        attempts = 0

        def attempt(timeout: float) -> ParsedResult:
            nonlocal attempts
            attempts += 1
            return execute_completion_request(target, headers, payload, timeout, log=log)

        try:
            parsed = execute_with_retry(
                attempt, policy, sleep=self._sleep, clock=self._clock, log=log
            )
        except ExhaustedError as exc:
            if raise_on_exhaustion:
                raise
            fallback = provide_fallback(routing_code, query, self.config.recommendation_codes)
            log.warning(
                "fallback_used",
                attempts=exc.attempts,
                last_error=str(exc.last_error) if exc.last_error else None,
            )
            if use_cache:
                self.cache.set(cache_key, fallback)
            self._record_transaction(routing_code, content, fallback, success=False)
            return CompletionResult(
                content=fallback,
                source=SOURCE_FALLBACK,
                attempts=exc.attempts,
                cache_key=cache_key,
                error=exc,
            )

        if use_cache:
            self.cache.set(cache_key, parsed.content)
        self._record_transaction(routing_code, content, parsed.content, success=True)
        log.info("completion_succeeded", attempts=attempts)
        return CompletionResult(
            content=parsed.content,
            source=SOURCE_NETWORK,
            attempts=attempts,
            cache_key=cache_key,
            parsed=parsed,
        )

    # ------------------------------------------------------------------
    # Diagnostics and helpers
    # ------------------------------------------------------------------

    def get_cache_diagnostics(self) -> dict:
        """Return ``{"size": int, "keys": [...]}`` for this client's cache."""
        stats = self.cache.stats()
        self._log.debug("cache_diagnostics", size=stats["size"])
        return stats

    def clear_cache(self) -> None:
        self.cache.clear()

    @staticmethod
    def extract_structured_from_text(text: str | None) -> Any | None:
        """Recover a JSON object from answer text (see :func:`extract_structured`)."""
        return extract_structured(text)

    def _resolve_policy(
        self,
        timeout_ms: int | None,
        max_retries: int | None,
        base_delay_ms: int | None,
    ) -> RetryPolicy:
        return RetryPolicy(
            max_retries=self.policy.max_retries if max_retries is None else max_retries,
            base_delay_ms=(
                self.policy.base_delay_ms if base_delay_ms is None else base_delay_ms
            ),
            timeout_ms=self.policy.timeout_ms if timeout_ms is None else timeout_ms,
            max_delay_ms=self.policy.max_delay_ms,
        )

    def _record_transaction(
        self, routing_code: str, request: str, response: str, success: bool
    ) -> None:
        if self.transaction_log is not None:
            self.transaction_log.record(routing_code, request, response, success)
