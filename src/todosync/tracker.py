"""GitHub tracker gateway.

The only place that talks to the issue tracker. The runner sees four
operations: ``fetch_all`` / ``create`` / ``update`` / ``close``. Every
connection detail comes from the ``TrackerConfig`` value handed to the
constructor, never from ad hoc environment reads per call.

Modes:
 - normal: REST calls through ``GitHubRestClient`` (each bounded by the
   configured timeout)
 - dry-run is handled by the runner, which never calls a mutation then
 - mock: no network at all; created issues live in memory with fabricated
   incremental numbers so repeated runs behave like a real tracker
"""

from __future__ import annotations

import threading
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from .github_rest import DEFAULT_API_URL, DEFAULT_TIMEOUT, GitHubRestClient
from .keys import parse_key
from .logging import get_logger
from .models import TrackerIssue
from .retry import RetryConfig


@dataclass
class TrackerConfig:
    repo: str | None = None  # owner/repo
    token: str | None = None
    api_url: str = DEFAULT_API_URL
    timeout: float = DEFAULT_TIMEOUT
    labels: list[str] = field(default_factory=list)
    retry_attempts: int = 1
    mock: bool = False


def issue_from_payload(entry: dict[str, Any]) -> TrackerIssue:
    body = entry.get("body") or ""
    state = entry.get("state")
    return TrackerIssue(
        id=int(entry["number"]),
        title=str(entry.get("title") or ""),
        body=str(body),
        key=parse_key(str(body)),
        state=str(state).lower() if isinstance(state, str) else "open",
        url=entry.get("html_url") if isinstance(entry.get("html_url"), str) else None,
    )


class TrackerGateway:
    """Create/update/close issues on GitHub for the sync runner.

    Methods raise on failure (``GitHubAPIError`` or a ``requests``
    exception); the runner decides what a failure means for the run.
    """

    def __init__(self, cfg: TrackerConfig, rest_client: GitHubRestClient | None = None):
        self.cfg = cfg
        self._logger = get_logger()
        self._mock_issues: dict[int, TrackerIssue] = {}
        self._mock_counter = 1000
        self._mock_lock = threading.Lock()
        self._rest_client: GitHubRestClient | None
        if rest_client is not None:
            self._rest_client = rest_client
        elif cfg.mock:
            self._rest_client = None
        else:
            self._rest_client = self._build_rest_client()

    def _build_rest_client(self) -> GitHubRestClient:
        repo = (self.cfg.repo or "").strip()
        if not repo or "/" not in repo:
            raise ValueError(f"Tracker repository must be 'owner/name', got {self.cfg.repo!r}")
        token = (self.cfg.token or "").strip()
        if not token:
            raise ValueError("No GitHub token configured (github.token or GITHUB_TOKEN)")
        return GitHubRestClient(
            token=token,
            repo=repo,
            base_url=self.cfg.api_url,
            timeout=self.cfg.timeout,
            retry=RetryConfig(attempts=max(1, self.cfg.retry_attempts)),
        )

    def _client(self) -> GitHubRestClient:
        if self._rest_client is None:  # pragma: no cover - guarded by mock checks
            raise RuntimeError("REST client unavailable in mock mode")
        return self._rest_client

    # --- operations -------------------------------------------------------
    def fetch_all(self) -> list[TrackerIssue]:
        """Return all open issues (pull requests excluded) with parsed keys."""
        if self.cfg.mock:
            return [i for i in self._mock_issues.values() if i.state == "open"]
        issues: list[TrackerIssue] = []
        for entry in self._client().list_issues(state="open"):
            if "pull_request" in entry or not isinstance(entry.get("number"), int):
                continue
            issues.append(issue_from_payload(entry))
        return issues

    def create(self, title: str, body: str) -> TrackerIssue:
        if self.cfg.mock:
            with self._mock_lock:
                self._mock_counter += 1
                issue = TrackerIssue(
                    id=self._mock_counter, title=title, body=body, key=parse_key(body)
                )
                self._mock_issues[issue.id] = issue
            self._logger.debug(f"MOCK create #{issue.id}", title=title[:50])
            return issue
        data = self._client().create_issue(title=title, body=body, labels=self._labels())
        return issue_from_payload(data)

    def update(self, issue_id: int, title: str, body: str) -> None:
        if self.cfg.mock:
            existing = self._mock_issues.get(issue_id)
            if existing is None:
                raise KeyError(f"MOCK issue #{issue_id} does not exist")
            existing.title, existing.body, existing.key = title, body, parse_key(body)
            self._logger.debug(f"MOCK update #{issue_id}")
            return
        self._client().update_issue(number=issue_id, title=title, body=body)

    def close(self, issue_id: int) -> None:
        if self.cfg.mock:
            existing = self._mock_issues.get(issue_id)
            if existing is None:
                raise KeyError(f"MOCK issue #{issue_id} does not exist")
            existing.state = "closed"
            self._logger.debug(f"MOCK close #{issue_id}")
            return
        self._client().close_issue(number=issue_id)

    def seed(self, issues: Iterable[TrackerIssue]) -> None:
        """Preload mock-mode issues (tests and local experiments)."""
        if not self.cfg.mock:
            raise RuntimeError("seed() is only available in mock mode")
        with self._mock_lock:
            for issue in issues:
                self._mock_issues[issue.id] = issue
                self._mock_counter = max(self._mock_counter, issue.id)

    def _labels(self) -> list[str] | None:
        labels = [lbl for lbl in self.cfg.labels if lbl]
        return labels or None


__all__ = ["TrackerConfig", "TrackerGateway", "issue_from_payload"]
