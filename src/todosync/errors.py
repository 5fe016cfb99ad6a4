"""Error taxonomy & redaction.

Every per-key failure recorded by a sync run goes through
``classify_error`` so summaries and logs share one category vocabulary, and
through ``redact`` so tokens echoed back by the API never reach a log line.

Public API:
- classify_error(exc) -> ErrorInfo
- redact(text) -> str
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

import requests

from .extractor import ExtractionError
from .github_rest import GitHubAPIError

_SENSITIVE_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"ghp_[A-Za-z0-9]{20,40}"),  # GitHub classic tokens
    re.compile(r"gh[osu]_[A-Za-z0-9]{20,40}"),  # OAuth / server / user tokens
    re.compile(r"github_pat_\w{20,}"),  # GitHub fine-grained tokens
    re.compile(r"(?i)(authorization:\s*(?:bearer|token)\s+)\S+"),
]

_REDACTION_PLACEHOLDER = "<redacted>"

HTTP_UNAUTHORIZED = 401
HTTP_FORBIDDEN = 403
HTTP_NOT_FOUND = 404
HTTP_TOO_MANY_REQUESTS = 429


@dataclass
class ErrorInfo:
    category: str
    message: str
    original_type: str
    transient: bool = False
    details: dict[str, Any] | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "category": self.category,
            "message": self.message,
            "original_type": self.original_type,
            "transient": self.transient,
        }


def redact(text: str) -> str:
    """Replace sensitive token matches with a placeholder."""
    if not text:
        return text
    redacted = text
    for pat in _SENSITIVE_PATTERNS:
        if pat.groups:
            redacted = pat.sub(lambda m: m.group(1) + _REDACTION_PLACEHOLDER, redacted)
        else:
            redacted = pat.sub(_REDACTION_PLACEHOLDER, redacted)
    return redacted


def _classify_api_error(exc: GitHubAPIError, msg: str, name: str) -> ErrorInfo | None:
    status = exc.status
    body = (exc.response_text or "").lower()
    details = {"status": status} if status is not None else None
    if status == HTTP_TOO_MANY_REQUESTS or "rate limit" in body:
        return ErrorInfo("github.rate_limit", msg, name, transient=True, details=details)
    if status in (HTTP_UNAUTHORIZED, HTTP_FORBIDDEN):
        return ErrorInfo("github.auth", msg, name, details=details)
    if status == HTTP_NOT_FOUND:
        return ErrorInfo("github.not_found", msg, name, details=details)
    if status is not None and status >= 500:  # noqa: PLR2004
        return ErrorInfo("github.server", msg, name, transient=True, details=details)
    return None


def classify_error(exc: BaseException) -> ErrorInfo:
    """Best-effort classification of an exception.

    - GitHub API errors by status: 429 -> rate limit, 401/403 -> auth,
      404 -> not found, 5xx -> server (transient)
    - requests timeouts / connection errors -> 'network', transient
    - extraction failures -> 'extraction'
    - message keywords for anything else, falling back to 'generic'
    """
    msg = redact(str(exc) if exc else "")
    low = msg.lower()
    name = exc.__class__.__name__

    if isinstance(exc, GitHubAPIError):
        info = _classify_api_error(exc, msg, name)
        if info is not None:
            return info
    if isinstance(exc, (requests.Timeout, requests.ConnectionError, TimeoutError)):
        return ErrorInfo("network", msg, name, transient=True)
    if isinstance(exc, ExtractionError):
        return ErrorInfo("extraction", msg, name, details={"path": exc.path})
    if "rate limit" in low or "secondary rate" in low:
        return ErrorInfo("github.rate_limit", msg, name, transient=True)
    if any(k in low for k in ("timeout", "timed out", "connection reset", "temporarily unavailable")):
        return ErrorInfo("network", msg, name, transient=True)
    return ErrorInfo("generic", msg, name)


__all__ = ["ErrorInfo", "classify_error", "redact"]
