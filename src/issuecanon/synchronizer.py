"""Lazily-populated cache of every issue in a repository.

A repository is fetched from GitHub at most once: the first sync lists all of
its issues (pull requests excluded), decodes their bodies and bulk-inserts
them under a unique ``(owner, repo, issueId)`` index; later syncs are served
from the store. Repositories named in ``force_refresh_repos`` are purged
before every sync so the live path keeps being exercised.

Store and tracker failures propagate; a duplicate-key error on insert means
another population of the same repository won the race and fails this one.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, Protocol

from .index_store import IssueStore
from .logging import get_logger
from .models import Issue, IssueContext, issue_filter
from .parser import parse_issue_body

UNIQUE_FIELDS = ("owner", "repo", "issueId")


class IssueLister(Protocol):
    async def list_issues(
        self, owner: str, repo: str, state: str = "all"
    ) -> list[dict[str, Any]]: ...


def repository_coordinates(repository: dict[str, Any]) -> tuple[str, str]:
    owner = repository.get("owner")
    login = owner.get("login") if isinstance(owner, dict) else None
    name = repository.get("name")
    if not isinstance(login, str) or not isinstance(name, str):
        full_name = repository.get("full_name")
        if isinstance(full_name, str) and "/" in full_name:
            login, name = full_name.split("/", 1)
        else:
            raise ValueError(f"Repository payload lacks owner/name: {repository!r}")
    return login, name


class IssueCache:
    def __init__(
        self,
        store: IssueStore,
        *,
        force_refresh_repos: Iterable[str] = ("experimental",),
        state: str = "all",
    ) -> None:
        self.store = store
        self.force_refresh_repos = frozenset(force_refresh_repos)
        self.state = state
        self.logger = get_logger()

    def _force_refresh(self, owner: str, repo: str) -> bool:
        return repo in self.force_refresh_repos or f"{owner}/{repo}" in self.force_refresh_repos

    async def fetch_from_github(self, github: IssueLister, owner: str, repo: str) -> list[Issue]:
        self.logger.debug("retrieving issues from GitHub", owner=owner, repo=repo)
        raw_issues = await github.list_issues(owner, repo, state=self.state)
        return [
            Issue(
                owner=owner,
                repo=repo,
                issue_id=int(raw["number"]),
                body=parse_issue_body(raw.get("body")),
            )
            for raw in raw_issues
            if not raw.get("pull_request")
        ]

    async def get_issues_for_repo(
        self, github: Any, repository: dict[str, Any]
    ) -> list[IssueContext]:
        owner, repo = repository_coordinates(repository)
        flt = issue_filter(owner, repo)

        if self._force_refresh(owner, repo):
            deleted = await self.store.delete_many(flt)
            self.logger.log_operation(
                "repo_cache_invalidated", owner=owner, repo=repo, deleted=deleted
            )

        existing = await self.store.find(flt)
        if existing:
            self.logger.debug(
                "found cached issues", owner=owner, repo=repo, issue_count=len(existing)
            )
            return [IssueContext(github, Issue.from_document(doc)) for doc in existing]

        await self.store.create_unique_index(UNIQUE_FIELDS)

        issues = await self.fetch_from_github(github, owner, repo)
        if not issues:
            self.logger.info("no issues found", owner=owner, repo=repo)
            return []

        await self.store.insert_many([issue.to_document() for issue in issues])
        self.logger.log_operation(
            "repo_cache_populated", owner=owner, repo=repo, issue_count=len(issues)
        )
        return [IssueContext(github, issue) for issue in issues]


__all__ = ["IssueCache", "IssueLister", "UNIQUE_FIELDS", "repository_coordinates"]
