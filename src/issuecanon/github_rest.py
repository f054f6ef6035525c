from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from typing import Any

import requests

from .retry import RetryConfig, run_with_retries

DEFAULT_API_URL = "https://api.github.com"
USER_AGENT = "issuecanon-rest/0.1.0"
HTTP_ERROR_STATUS = 400
HTTP_FORBIDDEN = 403
HTTP_TOO_MANY_REQUESTS = 429
HTTP_SERVER_ERROR = 500


class GitHubAPIError(RuntimeError):
    """Raised when the GitHub REST API returns an error."""

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        response_text: str | None = None,
        retry_after: str | None = None,
    ):
        super().__init__(message)
        self.status = status
        self.response_text = response_text
        self.retry_after = retry_after

    @property
    def transient(self) -> bool:
        if self.status is None:
            return False
        if self.status == HTTP_TOO_MANY_REQUESTS or self.status >= HTTP_SERVER_ERROR:
            return True
        return self.status == HTTP_FORBIDDEN and "rate limit" in (self.response_text or "").lower()


@dataclass
class GitHubRestClient:
    """Lightweight blocking REST client for the GitHub operations the app needs.

    ``token`` is either an app JWT (installation listing, token minting) or an
    installation access token (everything repository-scoped).
    """

    token: str
    base_url: str = DEFAULT_API_URL
    session: requests.Session | None = None
    retry: RetryConfig | None = None
    _session: requests.Session = field(init=False, repr=False)

    def __post_init__(self) -> None:
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
                timeout=30,
            )
            if response.status_code >= HTTP_ERROR_STATUS:
                headers = getattr(response, "headers", None) or {}
                raise GitHubAPIError(
                    f"GitHub API {method} {url} failed with {response.status_code}",
                    status=response.status_code,
                    response_text=response.text,
                    retry_after=headers.get("Retry-After"),
                )
            return response

        response = run_with_retries(_run, cfg=self.retry)
        if response.text:
            try:
                return response.json()
            except ValueError:
                return response.text
        return None

    def _paginate(
        self, path: str, *, params: dict[str, Any] | None = None, key: str | None = None
    ) -> list[Any]:
        """Collect every page; ``key`` names the list inside wrapped responses."""
        params = dict(params or {})
        per_page = params.setdefault("per_page", 100)
        params.setdefault("page", 1)
        results: list[Any] = []
        while True:
            data = self._request("GET", path, params=dict(params))
            if key is not None and isinstance(data, dict):
                data = data.get(key)
            if not isinstance(data, list):
                break
            results.extend(data)
            if len(data) < per_page:
                break
            params["page"] = params.get("page", 1) + 1
        return results

    # ---- App / installation operations -------------------------------
    def list_installations(self) -> list[dict[str, Any]]:
        return [e for e in self._paginate("/app/installations") if isinstance(e, dict)]

    def create_installation_token(self, installation_id: int) -> dict[str, Any]:
        data = self._request("POST", f"/app/installations/{installation_id}/access_tokens")
        if not isinstance(data, dict) or not isinstance(data.get("token"), str):
            raise GitHubAPIError(
                f"Installation token response for {installation_id} did not contain a token"
            )
        return data

    def list_installation_repositories(self) -> list[dict[str, Any]]:
        data = self._paginate("/installation/repositories", key="repositories")
        return [e for e in data if isinstance(e, dict)]

    # ---- Issue operations --------------------------------------------
    def list_issues(self, owner: str, repo: str, *, state: str = "all") -> list[dict[str, Any]]:
        """All issues and pull requests of a repository, in tracker page order."""
        params = {"state": state, "per_page": 100, "page": 1}
        data = self._paginate(f"/repos/{owner}/{repo}/issues", params=params)
        return [e for e in data if isinstance(e, dict)]

    def get_issue(self, owner: str, repo: str, number: int) -> dict[str, Any]:
        data = self._request("GET", f"/repos/{owner}/{repo}/issues/{number}")
        if not isinstance(data, dict):
            raise GitHubAPIError(f"Unexpected payload for {owner}/{repo}#{number}")
        return data

    def create_comment(self, owner: str, repo: str, number: int, body: str) -> None:
        self._request(
            "POST",
            f"/repos/{owner}/{repo}/issues/{number}/comments",
            json_body={"body": body},
        )

    def update_issue_body(self, owner: str, repo: str, number: int, body: str) -> None:
        self._request(
            "PATCH", f"/repos/{owner}/{repo}/issues/{number}", json_body={"body": body}
        )


def compute_signature(payload: Any) -> str:
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":")).encode("utf-8")
    return hashlib.sha256(canonical).hexdigest()


__all__ = [
    "DEFAULT_API_URL",
    "GitHubAPIError",
    "GitHubRestClient",
    "compute_signature",
]
