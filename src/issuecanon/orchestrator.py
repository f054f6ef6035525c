"""Installation-wide orchestration.

``get_issues`` fans out over every installation of the app and every
repository of each installation, syncing each repository through the issue
cache concurrently. All results are joined before allocation: gap finding
needs the complete set of canonical IDs. The joined list is sorted by
(owner, repo, issue number) so allocation never depends on completion order.

Writing new IDs back (store + issue body) is a separate step,
``apply_assignments``, enabled by configuration.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Protocol

from .allocator import Assignment, assign_canonical_ids, sort_contexts
from .concurrency import gather_flat
from .config import DEFAULT_WELCOME_COMMENT, CanonConfig
from .index_store import IssueStore
from .logging import get_logger
from .models import IssueContext, issue_filter
from .parser import parse_issue_body, print_issue_body
from .synchronizer import IssueCache


class GitHubApp(Protocol):
    async def auth(self, installation_id: int | None = None) -> Any: ...


@dataclass
class AllocationSummary:
    issue_count: int = 0
    known_count: int = 0
    assignments: list[Assignment] = field(default_factory=list)
    written_back: bool = False
    generated_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> dict[str, Any]:
        return {
            "generated_at": self.generated_at,
            "totals": {
                "issues": self.issue_count,
                "known": self.known_count,
                "assigned": len(self.assignments),
            },
            "written_back": self.written_back,
            "assignments": [
                {
                    "owner": a.context.issue.owner,
                    "repo": a.context.issue.repo,
                    "issue": a.context.issue.issue_id,
                    "canonical_id": a.canonical_id,
                    "previous": a.previous,
                }
                for a in self.assignments
            ],
        }


class CanonicalOrchestrator:
    def __init__(
        self,
        app: GitHubApp,
        store: IssueStore,
        *,
        cache: IssueCache | None = None,
        max_gaps: int | None = None,
        write_back: bool = False,
        welcome_comment: str = DEFAULT_WELCOME_COMMENT,
        reencode_on_open: bool = False,
    ) -> None:
        self.app = app
        self.store = store
        self.cache = cache or IssueCache(store)
        self.max_gaps = max_gaps
        self.write_back = write_back
        self.welcome_comment = welcome_comment
        self.reencode_on_open = reencode_on_open
        self.logger = get_logger()

    @classmethod
    def from_config(
        cls, cfg: CanonConfig, app: GitHubApp, store: IssueStore
    ) -> CanonicalOrchestrator:
        cache = IssueCache(
            store, force_refresh_repos=cfg.force_refresh_repos, state=cfg.sync_state
        )
        return cls(
            app,
            store,
            cache=cache,
            max_gaps=cfg.max_gaps,
            write_back=cfg.write_back,
            welcome_comment=cfg.welcome_comment,
            reencode_on_open=cfg.reencode_on_open,
        )

    async def _issues_for_installation(self, installation: dict[str, Any]) -> list[IssueContext]:
        installation_id = int(installation["id"])
        self.logger.debug("fetching repositories for installation", installation_id=installation_id)
        github = await self.app.auth(installation_id)
        repositories = await github.list_repositories()
        return await gather_flat(
            self.cache.get_issues_for_repo(github, repository) for repository in repositories
        )

    async def get_issues(self) -> list[IssueContext]:
        github = await self.app.auth()
        installations = await github.list_installations()
        self.logger.log_operation("installations_listed", installation_count=len(installations))
        contexts = await gather_flat(
            self._issues_for_installation(installation) for installation in installations
        )
        return sort_contexts(contexts)

    async def initialise(self, *, write_back: bool | None = None) -> AllocationSummary:
        with self.logger.timed_operation("initialise"):
            contexts = await self.get_issues()
            if not contexts:
                self.logger.info("no issues found")
                return AllocationSummary()

            assignments = assign_canonical_ids(contexts, max_gaps=self.max_gaps)
            # Released duplicates are among the assignments, not the known IDs
            known = len(contexts) - len(assignments)
            self.logger.log_operation(
                "issues_collected", issue_count=len(contexts), known_count=known
            )
            for a in assignments:
                issue = a.context.issue
                self.logger.log_issue_action(
                    "canonical_assigned", issue.owner, issue.repo, issue.issue_id, a.canonical_id
                )

            summary = AllocationSummary(
                issue_count=len(contexts), known_count=known, assignments=assignments
            )
            if self.write_back if write_back is None else write_back:
                await self.apply_assignments(assignments)
                summary.written_back = True
            return summary

    async def _apply_one(self, assignment: Assignment) -> None:
        ctx = assignment.context
        issue = ctx.issue
        # Sections come from the live body, not the cached copy.
        raw = await ctx.github.get_issue(issue.owner, issue.repo, issue.issue_id)
        body = parse_issue_body(raw.get("body"))
        body.metadata.canonical_id = assignment.canonical_id
        issue.body = body

        await self.store.replace_one(
            issue_filter(issue.owner, issue.repo, issue.issue_id), issue.to_document()
        )
        await ctx.github.update_issue_body(
            issue.owner, issue.repo, issue.issue_id, print_issue_body(body)
        )
        self.logger.log_issue_action(
            "canonical_written", issue.owner, issue.repo, issue.issue_id, assignment.canonical_id
        )

    async def apply_assignments(self, assignments: Sequence[Assignment]) -> None:
        """Persist allocated IDs: cached document first, then the issue body."""
        await asyncio.gather(*(self._apply_one(a) for a in assignments))

    async def add_issue(self, github: Any, owner: str, repo: str, number: int) -> None:
        """``issues.opened`` hook: welcome comment, optional body re-encode."""
        await github.create_comment(owner, repo, number, self.welcome_comment)
        self.logger.log_issue_action("welcomed", owner, repo, number)
        if not self.reencode_on_open:
            return
        raw = await github.get_issue(owner, repo, number)
        body = parse_issue_body(raw.get("body"))
        await github.update_issue_body(owner, repo, number, print_issue_body(body))
        self.logger.log_issue_action("reencoded", owner, repo, number)


__all__ = ["AllocationSummary", "CanonicalOrchestrator"]
