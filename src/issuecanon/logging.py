"""Structured JSON logging for issuecanon."""

from __future__ import annotations

import json
import logging
import sys
import time
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any

_STANDARD_ATTRS = set(
    logging.LogRecord("", logging.INFO, "", 0, "", None, None).__dict__
) | {"message", "asctime"}


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        # Known structured attributes first so their order is stable
        for attr in (
            "operation",
            "owner",
            "repo",
            "issue_id",
            "canonical_id",
            "duration_ms",
            "error",
        ):
            if hasattr(record, attr):
                entry[attr] = getattr(record, attr)
        for k, v in record.__dict__.items():
            if k not in _STANDARD_ATTRS and not k.startswith("_") and k not in entry:
                entry[k] = v
        return json.dumps(entry, default=str)


_TEXT_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"
_Signature = tuple[int, str, tuple[tuple[str, str], ...]]


class StructuredLogger:
    """Thin wrapper over a stdlib logger that attaches keyword fields as extras.

    In JSON mode a record identical to the one just emitted (same level,
    message and fields) is dropped.
    """

    def __init__(
        self, name: str = "issuecanon", json_logging: bool = False, level: str = "INFO"
    ) -> None:
        self._logger = logging.getLogger(name)
        self._logger.setLevel(getattr(logging, level.upper(), logging.INFO))
        for existing in list(self._logger.handlers):
            self._logger.removeHandler(existing)
        stream = logging.StreamHandler(sys.stdout)
        stream.setFormatter(JSONFormatter() if json_logging else logging.Formatter(_TEXT_FORMAT))
        self._logger.addHandler(stream)
        self._logger.propagate = False
        self._dedupe = json_logging
        self._previous: _Signature | None = None

    def _repeated(self, level: int, message: str, fields: dict[str, Any]) -> bool:
        if not self._dedupe:
            return False
        current = (level, message, tuple(sorted((k, repr(v)) for k, v in fields.items())))
        if current == self._previous:
            return True
        self._previous = current
        return False

    def _emit(self, level: int, message: str, fields: dict[str, Any]) -> None:
        if not self._repeated(level, message, fields):
            self._logger.log(level, message, extra=fields)

    def log_operation(self, operation: str, **kw: Any) -> None:
        self._emit(logging.INFO, f"Operation: {operation}", {"operation": operation, **kw})

    def log_issue_action(
        self,
        action: str,
        owner: str,
        repo: str,
        issue_id: int,
        canonical_id: int | None = None,
        **kw: Any,
    ) -> None:
        fields: dict[str, Any] = {
            "operation": f"issue_{action}",
            "owner": owner,
            "repo": repo,
            "issue_id": issue_id,
            **kw,
        }
        message = f"issue {action} {owner}/{repo}#{issue_id}"
        if canonical_id is not None:
            fields["canonical_id"] = canonical_id
            message += f" -> canonical {canonical_id}"
        self._emit(logging.INFO, message, fields)

    def log_performance(self, operation: str, duration_ms: float, **kw: Any) -> None:
        fields = {"operation": operation, "duration_ms": round(duration_ms, 2), **kw}
        message = f"Performance: {operation} completed in {duration_ms:.2f}ms"
        self._emit(logging.INFO, message, fields)

    def log_error(self, message: str, error: str | None = None, **kw: Any) -> None:
        if error:
            kw["error"] = error
        self._logger.error(message, extra=kw)

    def debug(self, message: str, **kw: Any) -> None:
        self._logger.debug(message, extra=kw)

    def info(self, message: str, **kw: Any) -> None:
        self._logger.info(message, extra=kw)

    def warning(self, message: str, **kw: Any) -> None:
        self._logger.warning(message, extra=kw)

    def error(self, message: str, **kw: Any) -> None:
        self._logger.error(message, extra=kw)

    @contextmanager
    def timed_operation(self, operation: str, **kw: Any) -> Iterator[None]:
        """Log ``<operation>_start``, then either the duration or the failure."""
        start = time.perf_counter()
        self.log_operation(f"{operation}_start", **kw)
        try:
            yield
        except Exception as exc:
            self.log_error(f"operation {operation} failed", error=str(exc), **kw)
            raise
        self.log_performance(operation, (time.perf_counter() - start) * 1000, **kw)


_GLOBAL: StructuredLogger | None = None


def get_logger() -> StructuredLogger:
    global _GLOBAL  # noqa: PLW0603
    if _GLOBAL is None:
        _GLOBAL = StructuredLogger()
    return _GLOBAL


def configure_logging(json_logging: bool = False, level: str = "INFO") -> StructuredLogger:
    global _GLOBAL  # noqa: PLW0603
    _GLOBAL = StructuredLogger(json_logging=json_logging, level=level)
    return _GLOBAL


__all__ = ["JSONFormatter", "StructuredLogger", "configure_logging", "get_logger"]
