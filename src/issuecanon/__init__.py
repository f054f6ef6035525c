"""issuecanon - stable canonical numbering for GitHub issues across repositories.

High-level public API:

from issuecanon import parse_issue_body, print_issue_body, find_gaps

body = parse_issue_body(issue["body"])
body.metadata.canonical_id = 42
text = print_issue_body(body)

The orchestrator (``CanonicalOrchestrator``) syncs every installed repository
into the issue cache and assigns canonical IDs; the CLI (``issuecanon``) and
the HTTP app (``issuecanon.app``) are thin layers over it.
"""

from __future__ import annotations

from .allocator import assign_canonical_ids, find_gaps
from .config import CanonConfig, load_config
from .models import Issue, IssueBody, IssueContext, IssueMetadata
from .parser import parse_issue_body, print_issue_body

__version__ = "0.1.0"


def __getattr__(name: str) -> object:
    """Lazy access to the orchestrator so codec users avoid the GitHub stack."""
    if name == "CanonicalOrchestrator":
        from .orchestrator import CanonicalOrchestrator

        return CanonicalOrchestrator
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")


__all__ = [
    "CanonConfig",
    "CanonicalOrchestrator",
    "Issue",
    "IssueBody",
    "IssueContext",
    "IssueMetadata",
    "assign_canonical_ids",
    "find_gaps",
    "load_config",
    "parse_issue_body",
    "print_issue_body",
    "__version__",
]
