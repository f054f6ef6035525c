from __future__ import annotations

import pytest
import requests

from issuecanon import retry
from issuecanon.github_rest import GitHubAPIError
from issuecanon.retry import RetryConfig, run_with_retries, should_retry


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    slept: list[float] = []
    monkeypatch.setattr(retry.time, "sleep", slept.append)
    return slept


def _flaky(failures: list[BaseException], result: str = "ok"):
    calls = {"n": 0}

    def fn() -> str:
        calls["n"] += 1
        if failures:
            raise failures.pop(0)
        return result

    return fn, calls


def test_retries_transient_then_succeeds(no_sleep):
    fn, calls = _flaky([requests.ConnectionError("reset"), GitHubAPIError("x", status=503)])
    assert run_with_retries(fn, cfg=RetryConfig(attempts=3, base_sleep=0)) == "ok"
    assert calls["n"] == 3
    assert len(no_sleep) == 2


def test_non_transient_propagates_immediately():
    fn, calls = _flaky([GitHubAPIError("x", status=404)])
    with pytest.raises(GitHubAPIError):
        run_with_retries(fn, cfg=RetryConfig(attempts=5, base_sleep=0))
    assert calls["n"] == 1


def test_gives_up_after_attempts():
    fn, calls = _flaky([requests.Timeout("slow")] * 3)
    with pytest.raises(requests.Timeout):
        run_with_retries(fn, cfg=RetryConfig(attempts=2, base_sleep=0))
    assert calls["n"] == 2


def test_retry_after_header_sets_sleep(no_sleep, monkeypatch):
    monkeypatch.delenv("ISSUECANON_RETRY_MAX_SLEEP", raising=False)
    fn, _ = _flaky([GitHubAPIError("x", status=429, retry_after="7")])
    run_with_retries(fn, cfg=RetryConfig(attempts=2, base_sleep=0))
    assert no_sleep == [7.0]


def test_max_sleep_caps_backoff(no_sleep, monkeypatch):
    monkeypatch.setenv("ISSUECANON_RETRY_MAX_SLEEP", "1.5")
    fn, _ = _flaky([GitHubAPIError("x", status=429, retry_after="60")])
    run_with_retries(fn, cfg=RetryConfig(attempts=2, base_sleep=0))
    assert no_sleep == [1.5]


def test_config_reads_environment(monkeypatch):
    monkeypatch.setenv("ISSUECANON_RETRY_ATTEMPTS", "6")
    monkeypatch.setenv("ISSUECANON_RETRY_BASE", "0.1")
    cfg = RetryConfig()
    assert cfg.attempts == 6
    assert cfg.base_sleep == 0.1


def test_should_retry_on_rate_limit_text():
    assert should_retry(RuntimeError("You have exceeded a secondary rate limit"))
    assert not should_retry(ValueError("bad input"))
