"""Error taxonomy & redaction.

Tracker and store failures are not handled inside the core; they propagate to
the command or event hook that triggered them. This module is where those
callers turn an exception into something safe to log.

Public API:
- classify_error(exc) -> ErrorInfo
- redact(text) -> str
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

_SENSITIVE_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"gh[pousr]_[A-Za-z0-9]{20,}"),  # classic, OAuth, installation tokens
    re.compile(r"github_pat_\w{20,}"),  # fine-grained tokens
    re.compile(r"eyJ[\w-]+\.[\w-]+\.[\w-]*"),  # JWTs (app authentication)
    re.compile(r"-----BEGIN [A-Z ]*PRIVATE KEY-----[\s\S]*?-----END [A-Z ]*PRIVATE KEY-----"),
]

_REDACTION_PLACEHOLDER = "<redacted>"
_NETWORK_TOKENS = ("timeout", "timed out", "connection reset", "temporarily unavailable")


@dataclass
class ErrorInfo:
    category: str
    message: str
    original_type: str
    transient: bool = False
    details: dict[str, Any] | None = None


def redact(text: str) -> str:
    """Replace credentials found in ``text`` with a placeholder."""
    if not text:
        return text
    redacted = text
    for pat in _SENSITIVE_PATTERNS:
        redacted = pat.sub(_REDACTION_PLACEHOLDER, redacted)
    return redacted


def classify_error(exc: BaseException) -> ErrorInfo:
    """Best-effort classification of an exception.

    - rate limit / abuse messages -> 'github.rate_limit' / 'github.abuse', transient
    - duplicate key on cache insert -> 'store.duplicate'
    - network-y keywords -> 'network', transient
    - YAML / parse errors -> 'parse'
    - fallback -> 'generic' (transient if the exception says so)
    """
    msg = str(exc) if exc else ""
    low = msg.lower()
    name = exc.__class__.__name__
    status = getattr(exc, "status", None)
    details = {"status": status} if isinstance(status, int) else None

    if "rate limit" in low or "secondary rate" in low or status == 429:
        return ErrorInfo("github.rate_limit", redact(msg), name, transient=True, details=details)
    if "abuse" in low:
        return ErrorInfo("github.abuse", redact(msg), name, transient=True, details=details)
    if name == "DuplicateKeyError" or "duplicate key" in low:
        return ErrorInfo("store.duplicate", redact(msg), name)
    if any(k in low for k in _NETWORK_TOKENS):
        return ErrorInfo("network", redact(msg), name, transient=True)
    if any(k in low for k in ("yaml", "scannererror", "parsererror")):
        return ErrorInfo("parse", redact(msg), name)
    transient = bool(getattr(exc, "transient", False))
    return ErrorInfo("generic", redact(msg), name, transient=transient, details=details)


__all__ = ["ErrorInfo", "classify_error", "redact"]
