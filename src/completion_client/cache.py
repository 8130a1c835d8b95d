"""
Session-lifetime response cache and cache-key derivation.

Entries never expire; they live as long as the owning :class:`ResponseCache`
(one per client).  Writing an existing key replaces its value.
"""

from __future__ import annotations

import hashlib
import time
from typing import Any

from .config import CACHE_KEY_DIGEST_CHARS, CACHE_KEY_PREFIX_CHARS
from .errors import SerializationFailure
from .normalizer import serialize


class ResponseCache:
    """Key → response-string store with diagnostic stats."""

    def __init__(self) -> None:
        self._entries: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._entries.get(key)

    def set(self, key: str, value: str) -> None:
        self._entries[key] = value

    def clear(self) -> None:
        self._entries.clear()

    def stats(self) -> dict:
        """
        Return the current entry count and keys (insertion order).

        Returns:
            Dict with keys ``size`` (int) and ``keys`` (list of str).
        """
        return {"size": len(self._entries), "keys": list(self._entries)}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries


def derive_cache_key(
    routing_code: str,
    query: Any,
    prefix_chars: int = CACHE_KEY_PREFIX_CHARS,
) -> str:
    """
    Build the cache key ``"<routing_code>_<prefix>_<digest>"``.

    The prefix is the first ``prefix_chars`` characters of the query and
    keeps keys readable in diagnostics.  The digest is a truncated sha256
    of the whole query, so two queries that only differ past the prefix
    (e.g. two patients with the same age and disease) never share a key.

    Strings are used as given.  Other queries are serialized with sorted
    keys so that two mappings with the same items share a key regardless
    of insertion order.  If serialization fails a millisecond timestamp is
    used instead, which effectively disables caching for that call.

    Args:
        routing_code: Routing code of the target application.
        query: Raw query as supplied by the caller.
        prefix_chars: Number of serialized characters kept in the key.

    Returns:
        Cache key string.
    """
    if isinstance(query, str):
        serialized = query
    else:
        try:
            serialized = serialize(query, sort_keys=True)
        except SerializationFailure:
            return f"{routing_code}_{int(time.time() * 1000)}"
    digest = hashlib.sha256(serialized.encode("utf-8")).hexdigest()[:CACHE_KEY_DIGEST_CHARS]
    return f"{routing_code}_{serialized[:prefix_chars]}_{digest}"
