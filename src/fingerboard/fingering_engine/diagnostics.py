"""Diagnostics — the timestamped, human-readable log returned with every result.

The list is advisory: nothing in the pipeline branches on its contents.
Each entry is also forwarded to *structlog* so server logs and the
user-visible log stay in step.
"""

from __future__ import annotations

from datetime import datetime, timezone

import structlog

logger = structlog.get_logger(__name__)

_LEVELS = ("debug", "info", "warning", "error")


class Diagnostics:
    """Accumulates ``[ISO-timestamp] message`` strings for one pipeline run."""

    def __init__(self, logger_name: str | None = None) -> None:
        self.entries: list[str] = []
        self._log = structlog.get_logger(logger_name) if logger_name else logger

    def add(self, message: str, level: str = "info") -> None:
        if level not in _LEVELS:
            level = "info"
        stamp = datetime.now(timezone.utc).isoformat()
        self.entries.append(f"[{stamp}] {message}")
        getattr(self._log, level)(message)

    def warning(self, message: str) -> None:
        self.add(message, level="warning")

    def error(self, message: str) -> None:
        self.add(message, level="error")

    def extend(self, entries: list[str]) -> None:
        """Append already-stamped entries from another stage."""
        self.entries.extend(entries)

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self):
        return iter(self.entries)
