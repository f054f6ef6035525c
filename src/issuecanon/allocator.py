"""Canonical ID allocation.

Canonical IDs are small positive integers shared by every issue the app can
see. Allocation fills gaps below the current maximum first (largest gap
first) and only then grows the space past the maximum.

``find_gaps`` scans ``1..max(used)`` so its cost is proportional to the largest
ID in use, not to the number of issues. ``max_gaps`` bounds that scan and must
be sized from the issue count (the orchestrator passes the number of
aggregated issues); an unbounded value lets one corrupted, huge ID turn the
scan into a near-infinite loop.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from .logging import get_logger
from .models import IssueContext


@dataclass
class Assignment:
    context: IssueContext
    canonical_id: int
    previous: int | None = None

    @property
    def slug(self) -> str:
        return self.context.issue.slug


def find_gaps(used_ids: Sequence[int], max_gaps: int) -> list[int]:
    """Return the ascending unused IDs in ``1..max(used_ids)``, at most ``max_gaps``.

    ``used_ids`` must be ascending. Repeated values are skipped rather than
    reported as gaps; leading non-positive values are ignored. The input is
    not modified.
    """
    if max_gaps < 0:
        raise ValueError(f"max_gaps must be >= 0, got {max_gaps}")
    start = 0
    while start < len(used_ids) and used_ids[start] < 1:
        start += 1
    ids = used_ids[start:]

    gaps: list[int] = []
    if not ids or max_gaps == 0:
        return gaps
    index = 0
    for candidate in range(1, ids[-1]):
        if index < len(ids) and candidate == ids[index]:
            index += 1
            while index < len(ids) and ids[index] == candidate:
                index += 1
            continue
        gaps.append(candidate)
        if len(gaps) >= max_gaps:
            break
    return gaps


def sort_contexts(contexts: Iterable[IssueContext]) -> list[IssueContext]:
    """Deterministic traversal order: owner, repo, then tracker issue number."""
    return sorted(contexts, key=lambda ctx: ctx.issue.key)


def known_canonical_ids(contexts: Iterable[IssueContext]) -> list[int]:
    ids = (ctx.issue.body.metadata.canonical_id for ctx in contexts)
    return sorted(i for i in ids if i)


def release_duplicate_ids(contexts: Iterable[IssueContext]) -> dict[tuple[str, str, int], int]:
    """Clear every repeat holder of a canonical ID, keeping the first in order.

    Returns the released IDs keyed by issue so callers can report them.
    """
    seen: set[int] = set()
    released: dict[tuple[str, str, int], int] = {}
    for ctx in contexts:
        metadata = ctx.issue.body.metadata
        cid = metadata.canonical_id
        if cid is None:
            continue
        if cid in seen:
            released[ctx.issue.key] = cid
            metadata.canonical_id = None
        else:
            seen.add(cid)
    return released


def assign_canonical_ids(
    contexts: Sequence[IssueContext], *, max_gaps: int | None = None
) -> list[Assignment]:
    """Give every context without a canonical ID the next available one.

    Contexts are visited in the given order and their metadata is updated in
    place. Nothing is written to the tracker or the store here.
    """
    logger = get_logger()
    released = release_duplicate_ids(contexts)
    for key, cid in released.items():
        logger.warning(
            "duplicate canonical id released",
            owner=key[0],
            repo=key[1],
            issue_id=key[2],
            canonical_id=cid,
        )

    known = known_canonical_ids(contexts)
    bound = len(contexts) if max_gaps is None else max_gaps
    gaps = find_gaps(known, bound)
    next_id = known[-1] if known else 0
    logger.debug("canonical id gaps", gap_count=len(gaps), max_known=next_id)

    assignments: list[Assignment] = []
    for ctx in contexts:
        metadata = ctx.issue.body.metadata
        if metadata.canonical_id is not None:
            continue
        if gaps:
            new_id = gaps.pop()
        else:
            next_id += 1
            new_id = next_id
        metadata.canonical_id = new_id
        assignments.append(Assignment(ctx, new_id, released.get(ctx.issue.key)))
    return assignments


__all__ = [
    "Assignment",
    "assign_canonical_ids",
    "find_gaps",
    "known_canonical_ids",
    "release_duplicate_ids",
    "sort_contexts",
]
