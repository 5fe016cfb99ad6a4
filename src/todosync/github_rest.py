from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

import requests

from .retry import RetryConfig, is_transient, run_with_retries

DEFAULT_API_URL = "https://api.github.com"
DEFAULT_TIMEOUT = 30.0
USER_AGENT = "todosync-rest/0.1.0"
HTTP_ERROR_STATUS = 400
HTTP_TOO_MANY_REQUESTS = 429
HTTP_FORBIDDEN = 403


class GitHubAPIError(RuntimeError):
    """Raised when the GitHub REST API returns an error."""

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        response_text: str | None = None,
    ):
        super().__init__(message)
        self.status = status
        self.response_text = response_text


def _is_retryable(exc: Exception) -> bool:
    if not isinstance(exc, GitHubAPIError):
        return False
    if exc.status == HTTP_TOO_MANY_REQUESTS:
        return True
    # Secondary rate limits come back as 403 with an explanatory message.
    return exc.status == HTTP_FORBIDDEN and is_transient(exc.response_text or "")


@dataclass
class GitHubRestClient:
    """Lightweight REST client for the issue operations todosync needs."""

    token: str
    repo: str
    base_url: str = DEFAULT_API_URL
    timeout: float = DEFAULT_TIMEOUT
    retry: RetryConfig = field(default_factory=RetryConfig)
    session: requests.Session | None = None
    _session: requests.Session = field(init=False, repr=False)

    def __post_init__(self) -> None:  # pragma: no cover - simple wiring
        self._session = self.session or requests.Session()
        self._session.headers.setdefault("Authorization", f"Bearer {self.token}")
        self._session.headers.setdefault("Accept", "application/vnd.github+json")
        self._session.headers.setdefault("User-Agent", USER_AGENT)

    # ---- REST helpers -------------------------------------------------
    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: Any | None = None,
    ) -> Any:
        url = (
            path
            if path.startswith("http")
            else f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"
        )

        def _run() -> requests.Response:
            response = self._session.request(
                method,
                url,
                params=params,
                json=json_body,
                headers=self._session.headers,
                timeout=self.timeout,
            )
            if response.status_code >= HTTP_ERROR_STATUS:
                message = f"GitHub API {method} {url} failed with {response.status_code}"
                retry_after = getattr(response, "headers", {}).get("Retry-After")
                if retry_after:
                    message += f" (Retry-After: {retry_after})"
                raise GitHubAPIError(
                    message,
                    status=response.status_code,
                    response_text=response.text,
                )
            return response

        response = run_with_retries(_run, cfg=self.retry, should_retry=_is_retryable)
        if response.text:
            try:
                return response.json()
            except ValueError as exc:
                raise GitHubAPIError(
                    f"GitHub API {method} {url} returned invalid JSON",
                    status=response.status_code,
                    response_text=response.text,
                ) from exc
        return None

    def _paginate(
        self, path: str, *, params: dict[str, Any] | None = None
    ) -> list[Any]:
        params = dict(params or {})
        per_page = params.setdefault("per_page", 100)
        params.setdefault("page", 1)
        results: list[Any] = []
        while True:
            data = self._request("GET", path, params=params)
            if not isinstance(data, list):
                break
            results.extend(data)
            if len(data) < per_page:
                break
            params["page"] = params.get("page", 1) + 1
        return results

    # ---- Issue operations --------------------------------------------
    def create_issue(
        self,
        *,
        title: str,
        body: str,
        labels: Iterable[str] | None = None,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {"title": title, "body": body}
        if labels:
            payload["labels"] = list(labels)
        data = self._request("POST", f"/repos/{self.repo}/issues", json_body=payload)
        if not isinstance(data, dict) or not isinstance(data.get("number"), int):
            raise GitHubAPIError("GitHub API create issue response lacks an issue number")
        return data

    def update_issue(
        self,
        *,
        number: int,
        title: str | None = None,
        body: str | None = None,
        state: str | None = None,
    ) -> None:
        payload: dict[str, Any] = {}
        if title is not None:
            payload["title"] = title
        if body is not None:
            payload["body"] = body
        if state is not None:
            payload["state"] = state
        if payload:
            self._request(
                "PATCH", f"/repos/{self.repo}/issues/{number}", json_body=payload
            )

    def close_issue(self, *, number: int) -> None:
        self.update_issue(number=number, state="closed")

    def list_issues(self, *, state: str = "open") -> list[dict[str, Any]]:
        params = {"state": state, "per_page": 100, "page": 1}
        data = self._paginate(f"/repos/{self.repo}/issues", params=params)
        return [entry for entry in data if isinstance(entry, dict)]


__all__ = [
    "DEFAULT_API_URL",
    "DEFAULT_TIMEOUT",
    "GitHubAPIError",
    "GitHubRestClient",
]
