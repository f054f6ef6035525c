"""Cooperative concurrency for tracker I/O.

The REST client is blocking (``requests``); ``AsyncGitHubClient`` runs each
call on a shared thread pool so that the orchestrator can fan out over
installations and repositories with ``asyncio`` and suspend only at I/O.
"""

from __future__ import annotations

import asyncio
import functools
from collections.abc import Awaitable, Callable, Iterable
from concurrent.futures import ThreadPoolExecutor
from types import TracebackType
from typing import Any, TypeVar

from .github_auth import GitHubAppTokenManager
from .github_rest import GitHubRestClient

T = TypeVar("T")


class ConcurrencyConfig:
    """Configuration for concurrency settings."""

    def __init__(self, max_workers: int = 8):
        self.max_workers = max_workers


async def gather_flat(aws: Iterable[Awaitable[list[T]]]) -> list[T]:
    """Await every list-producing awaitable concurrently and concatenate in input order."""
    results = await asyncio.gather(*aws)
    out: list[T] = []
    for chunk in results:
        out.extend(chunk)
    return out


class AsyncGitHubClient:
    """Async facade over one authenticated :class:`GitHubRestClient`."""

    def __init__(self, rest: GitHubRestClient, executor: ThreadPoolExecutor | None = None):
        self.rest = rest
        self._executor = executor

    async def _call(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, functools.partial(fn, *args, **kwargs))

    async def list_installations(self) -> list[dict[str, Any]]:
        return await self._call(self.rest.list_installations)

    async def list_repositories(self) -> list[dict[str, Any]]:
        return await self._call(self.rest.list_installation_repositories)

    async def list_issues(self, owner: str, repo: str, state: str = "all") -> list[dict[str, Any]]:
        return await self._call(self.rest.list_issues, owner, repo, state=state)

    async def get_issue(self, owner: str, repo: str, number: int) -> dict[str, Any]:
        return await self._call(self.rest.get_issue, owner, repo, number)

    async def create_comment(self, owner: str, repo: str, number: int, body: str) -> None:
        await self._call(self.rest.create_comment, owner, repo, number, body)

    async def update_issue_body(self, owner: str, repo: str, number: int, body: str) -> None:
        await self._call(self.rest.update_issue_body, owner, repo, number, body)


class AsyncGitHubApp:
    """Hands out app-level or installation-level async clients.

    ``auth()`` authenticates as the app, ``auth(installation_id)`` as one
    installation. Use as a context manager so the worker pool is shut down.
    """

    def __init__(self, tokens: GitHubAppTokenManager, config: ConcurrencyConfig | None = None):
        self.tokens = tokens
        self.config = config or ConcurrencyConfig()
        self._executor: ThreadPoolExecutor | None = None

    def __enter__(self) -> AsyncGitHubApp:
        self._executor = ThreadPoolExecutor(max_workers=self.config.max_workers)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if self._executor:
            self._executor.shutdown(wait=True)
            self._executor = None

    async def __aenter__(self) -> AsyncGitHubApp:
        return self.__enter__()

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.__exit__(exc_type, exc_val, exc_tb)

    async def auth(self, installation_id: int | None = None) -> AsyncGitHubClient:
        loop = asyncio.get_running_loop()
        if installation_id is None:
            rest = await loop.run_in_executor(self._executor, self.tokens.app_client)
        else:
            rest = await loop.run_in_executor(
                self._executor, self.tokens.installation_client, installation_id
            )
        return AsyncGitHubClient(rest, self._executor)


__all__ = ["AsyncGitHubApp", "AsyncGitHubClient", "ConcurrencyConfig", "gather_flat"]
