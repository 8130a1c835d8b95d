"""
Bounded on-disk log of recent API transactions for post-hoc debugging.

The log is a JSON array of at most ``TRANSACTION_LOG_MAX_ENTRIES`` records;
once the cap is exceeded the oldest records are dropped.  Writing is
best-effort: a failure is logged and swallowed so that diagnostics never
break a completion call.
"""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Any

import structlog

from .config import (
    TRANSACTION_LOG_FIELD_CHARS,
    TRANSACTION_LOG_MAX_ENTRIES,
    TRANSACTION_LOG_PATH,
)

logger = structlog.get_logger(__name__)


def _clip(value: Any, limit: int = TRANSACTION_LOG_FIELD_CHARS) -> str:
    if isinstance(value, str):
        return value[:limit]
    try:
        return json.dumps(value, ensure_ascii=False)[:limit]
    except (TypeError, ValueError):
        return repr(value)[:limit]


class TransactionLog:
    """JSON-file-backed ring of ``{timestamp, appCode, request, response, success}``."""

    def __init__(
        self,
        path: Path | str = TRANSACTION_LOG_PATH,
        max_entries: int = TRANSACTION_LOG_MAX_ENTRIES,
        log=None,
    ) -> None:
        if max_entries < 1:
            raise ValueError(f"max_entries must be >= 1, got {max_entries}")
        self.path = Path(path)
        self.max_entries = max_entries
        self._log = log if log is not None else logger

    def load(self) -> list[dict]:
        """
        Read all records, oldest first.

        Returns:
            List of record dicts (empty if the file is missing or unreadable).
        """
        if not self.path.exists():
            return []
        try:
            records = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            self._log.warning("transaction_log_unreadable", path=str(self.path), error=str(exc))
            return []
        return records if isinstance(records, list) else []

    def record(self, app_code: str, request: Any, response: Any, success: bool) -> int:
        """
        Append one transaction, evicting the oldest beyond the cap.

        Args:
            app_code: Routing code of the call.
            request: Request content (clipped to 500 characters).
            response: Response content (clipped to 500 characters).
            success: Whether the call got a genuine answer.

        Returns:
            Number of records in the log after writing (0 if writing failed).
        """
        records = self.load()
        records.append({
            "timestamp": datetime.now().isoformat(),
            "appCode": app_code,
            "request": _clip(request),
            "response": _clip(response),
            "success": bool(success),
        })
        records = records[-self.max_entries:]

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(records, ensure_ascii=False), encoding="utf-8")
        except OSError as exc:
            self._log.warning("transaction_log_write_failed", path=str(self.path), error=str(exc))
            return 0

        self._log.debug("transaction_logged", entries=len(records))
        return len(records)

    def clear(self) -> None:
        """Delete the log file if present."""
        try:
            self.path.unlink(missing_ok=True)
        except OSError as exc:
            self._log.warning("transaction_log_clear_failed", path=str(self.path), error=str(exc))
