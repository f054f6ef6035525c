from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:  # pragma: no cover
    from .concurrency import AsyncGitHubClient


@dataclass
class IssueMetadata:
    """Machine-generated fields embedded at the end of an issue body.

    ``canonical_id`` is either a positive integer or ``None``; decoders
    normalise anything else to ``None`` before an instance is built.
    """

    canonical_id: int | None = None

    def is_default(self) -> bool:
        return self.canonical_id is None

    def to_document(self) -> dict[str, Any]:
        return {"canonicalId": self.canonical_id}

    @classmethod
    def from_document(cls, raw: Any) -> IssueMetadata:
        if not isinstance(raw, dict):
            return cls()
        value = raw.get("canonicalId")
        if isinstance(value, bool) or not isinstance(value, int) or value < 1:
            return cls()
        return cls(canonical_id=value)


@dataclass
class IssueBody:
    sections: list[str] = field(default_factory=lambda: [""])
    metadata: IssueMetadata = field(default_factory=IssueMetadata)

    def to_document(self) -> dict[str, Any]:
        return {"sections": list(self.sections), "metadata": self.metadata.to_document()}

    @classmethod
    def from_document(cls, raw: Any) -> IssueBody:
        if not isinstance(raw, dict):
            return cls()
        sections_raw = raw.get("sections")
        sections = [str(s) for s in sections_raw] if isinstance(sections_raw, list) else [""]
        return cls(sections=sections, metadata=IssueMetadata.from_document(raw.get("metadata")))


@dataclass
class Issue:
    owner: str
    repo: str
    issue_id: int
    body: IssueBody = field(default_factory=IssueBody)

    @property
    def key(self) -> tuple[str, str, int]:
        return (self.owner, self.repo, self.issue_id)

    @property
    def slug(self) -> str:
        return f"{self.owner}/{self.repo}#{self.issue_id}"

    def to_document(self) -> dict[str, Any]:
        """Store layout: ``{owner, repo, issueId, body: {sections, metadata}}``."""
        return {
            "owner": self.owner,
            "repo": self.repo,
            "issueId": self.issue_id,
            "body": self.body.to_document(),
        }

    @classmethod
    def from_document(cls, raw: dict[str, Any]) -> Issue:
        return cls(
            owner=str(raw["owner"]),
            repo=str(raw["repo"]),
            issue_id=int(raw["issueId"]),
            body=IssueBody.from_document(raw.get("body")),
        )


@dataclass
class IssueContext:
    """Transient pairing of a tracker client with one issue; never persisted."""

    github: AsyncGitHubClient
    issue: Issue


def issue_filter(owner: str, repo: str, issue_id: int | None = None) -> dict[str, Any]:
    flt: dict[str, Any] = {"owner": owner, "repo": repo}
    if issue_id is not None:
        flt["issueId"] = issue_id
    return flt


__all__ = ["IssueMetadata", "IssueBody", "Issue", "IssueContext", "issue_filter"]
