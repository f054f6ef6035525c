import json
from dataclasses import dataclass, field
from typing import Any

import pytest

from issuecanon.github_rest import GitHubAPIError, GitHubRestClient, compute_signature
from issuecanon.retry import RetryConfig


@dataclass
class _DummyResponse:
    status_code: int
    payload: Any
    headers: dict[str, str] = field(default_factory=dict)

    def json(self) -> Any:
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload

    @property
    def text(self) -> str:
        payload = self.payload
        if payload is None:
            return ""
        if isinstance(payload, (dict, list)):
            return json.dumps(payload)
        return str(payload)


class _DummySession:
    def __init__(self, responses: list[_DummyResponse]):
        self._responses = responses
        self.request_log: list[tuple[str, str, dict[str, Any]]] = []
        self.headers: dict[str, str] = {}

    def request(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str],
        json: Any | None = None,
        params: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> _DummyResponse:
        self.request_log.append((method, url, {"headers": headers, "json": json, "params": params}))
        if not self._responses:
            raise AssertionError("No response queued for request")
        return self._responses.pop(0)


def _client(session: _DummySession, **kwargs: Any) -> GitHubRestClient:
    return GitHubRestClient(token="tkn", session=session, **kwargs)  # type: ignore[arg-type]


def test_client_sets_auth_headers():
    session = _DummySession([])
    _client(session)
    assert session.headers["Authorization"] == "Bearer tkn"
    assert session.headers["Accept"] == "application/vnd.github+json"


def test_list_issues_paginates_until_short_page():
    first = [{"number": n} for n in range(1, 101)]
    session = _DummySession([_DummyResponse(200, first), _DummyResponse(200, [{"number": 101}])])
    client = _client(session)

    issues = client.list_issues("TokTok", "toxcore")

    assert len(issues) == 101
    assert session.request_log[0][1] == "https://api.github.com/repos/TokTok/toxcore/issues"
    assert session.request_log[0][2]["params"] == {"state": "all", "per_page": 100, "page": 1}
    assert session.request_log[1][2]["params"]["page"] == 2


def test_list_installation_repositories_unwraps_payload():
    session = _DummySession(
        [_DummyResponse(200, {"total_count": 1, "repositories": [{"name": "toxcore"}]})]
    )
    assert _client(session).list_installation_repositories() == [{"name": "toxcore"}]
    assert session.request_log[0][1].endswith("/installation/repositories")


def test_list_installations():
    session = _DummySession([_DummyResponse(200, [{"id": 1}, {"id": 2}])])
    assert [i["id"] for i in _client(session).list_installations()] == [1, 2]


def test_issue_write_operations():
    session = _DummySession(
        [_DummyResponse(201, {"id": 1}), _DummyResponse(200, {"number": 4})]
    )
    client = _client(session, base_url="https://ghe.example/api/v3/")

    client.create_comment("o", "r", 4, "Thanks")
    client.update_issue_body("o", "r", 4, "new body")

    method, url, extra = session.request_log[0]
    assert (method, url) == ("POST", "https://ghe.example/api/v3/repos/o/r/issues/4/comments")
    assert extra["json"] == {"body": "Thanks"}
    method, url, extra = session.request_log[1]
    assert (method, url) == ("PATCH", "https://ghe.example/api/v3/repos/o/r/issues/4")
    assert extra["json"] == {"body": "new body"}


def test_get_issue_rejects_unexpected_payload():
    session = _DummySession([_DummyResponse(200, [1, 2])])
    with pytest.raises(GitHubAPIError):
        _client(session).get_issue("o", "r", 1)


def test_client_error_is_not_retried():
    session = _DummySession([_DummyResponse(404, {"message": "Not Found"})])
    with pytest.raises(GitHubAPIError) as excinfo:
        _client(session).get_issue("o", "r", 1)
    assert excinfo.value.status == 404
    assert excinfo.value.transient is False
    assert len(session.request_log) == 1


def test_server_error_is_retried():
    session = _DummySession(
        [_DummyResponse(502, "bad gateway"), _DummyResponse(200, {"number": 1, "body": "x"})]
    )
    client = _client(session, retry=RetryConfig(attempts=2, base_sleep=0))
    assert client.get_issue("o", "r", 1)["body"] == "x"
    assert len(session.request_log) == 2


def test_create_installation_token_requires_token():
    session = _DummySession([_DummyResponse(201, {"expires_at": "2030-01-01T00:00:00Z"})])
    with pytest.raises(GitHubAPIError):
        _client(session).create_installation_token(7)


@pytest.mark.parametrize(
    ("status", "text", "transient"),
    [
        (429, "", True),
        (500, "", True),
        (403, "API rate limit exceeded", True),
        (403, "Resource not accessible", False),
        (422, "", False),
        (None, "", False),
    ],
)
def test_api_error_transient_flag(status, text, transient):
    assert GitHubAPIError("x", status=status, response_text=text).transient is transient


def test_compute_signature_ignores_key_order():
    assert compute_signature({"a": 1, "b": [1, 2]}) == compute_signature({"b": [1, 2], "a": 1})
    assert compute_signature({"a": 1}) != compute_signature({"a": 2})
