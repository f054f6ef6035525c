"""Split/join issue descriptions into human sections plus one metadata block.

``parse_issue_body`` and ``print_issue_body`` are inverses, except that a body
whose metadata is the default value prints without any metadata block.
"""

from __future__ import annotations

from .metadata import parse_metadata, print_metadata
from .models import IssueBody, IssueMetadata

DO_NOT_EDIT = "<!-- DO NOT EDIT -->\r\n"
SEPARATOR = "\r\n---\r\n"


def parse_issue_body(body_text: str | None) -> IssueBody:
    sections = (body_text or "").split(SEPARATOR)
    last = sections[-1]

    metadata = parse_metadata(last) if last else None
    if metadata is not None:
        sections.pop()

    return IssueBody(sections=sections, metadata=metadata or IssueMetadata())


def print_issue_body(body: IssueBody) -> str:
    sections = list(body.sections)
    metadata_section = print_metadata(body.metadata)
    if metadata_section:
        sections.append(DO_NOT_EDIT + metadata_section)
    return SEPARATOR.join(sections)


__all__ = ["DO_NOT_EDIT", "SEPARATOR", "parse_issue_body", "print_issue_body"]
