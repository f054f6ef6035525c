"""Metadata microformat embedded in issue bodies.

The machine-generated block is a small HTML fragment::

    <details><summary>Issue metadata</summary><ul>
      <li data-canonical-id="42">Canonical link: <a></a></li>
    </ul></details>

Each field of :class:`~issuecanon.models.IssueMetadata` is one ``<li>`` carrying
its value in a ``data-<name>`` attribute plus a static label for humans. New
fields are added by appending to ``METADATA_FIELDS``; the envelope does not
change.

Decoding never raises. Markup is only claimed as a metadata block when it
holds the list and is recognisably ours: the ``Issue metadata`` summary or at
least one known ``data-*`` field. Anything else returns ``None`` ("not a
metadata block") and stays human content. Field values that fail to decode
are dropped.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from lxml import etree
from lxml import html as lxml_html
from lxml.html.builder import E

from .models import IssueMetadata

SUMMARY_TEXT = "Issue metadata"
_ENTRY_XPATH = ".//details/ul/li"
_SUMMARY_XPATH = ".//details/summary"
_DATA_PREFIX = "data-"
_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def decode_positive_int(value: str) -> int | None:
    """Decode the leading integer of ``value``; non-positive or missing -> None."""
    m = _LEADING_INT.match(value or "")
    if not m:
        return None
    number = int(m.group(1))
    return number if number >= 1 else None


def _append_link(li: Any) -> None:
    li.append(E.a())


@dataclass(frozen=True)
class MetadataField:
    name: str
    attr: str
    label: str
    decode: Callable[[str], Any]
    encode: Callable[[Any], str] = str
    decorate: Callable[[Any], None] | None = None


METADATA_FIELDS: tuple[MetadataField, ...] = (
    MetadataField(
        name="canonical-id",
        attr="canonical_id",
        label="Canonical link: ",
        decode=decode_positive_int,
        decorate=_append_link,
    ),
)

_FIELDS_BY_NAME = {f.name: f for f in METADATA_FIELDS}


def _load_fragment(markup: str) -> Any | None:
    try:
        return lxml_html.fragment_fromstring(markup, create_parent="div")
    except (etree.LxmlError, ValueError, AssertionError):
        # lxml asserts on documents such as "<html></html>" that have no body
        return None


def _is_ours(root: Any, entries: list[Any]) -> bool:
    """A block is ours if it carries our summary or any known ``data-*`` field."""
    for summary in root.xpath(_SUMMARY_XPATH):
        if summary.text_content().strip() == SUMMARY_TEXT:
            return True
    return any(
        name.startswith(_DATA_PREFIX) and name[len(_DATA_PREFIX) :] in _FIELDS_BY_NAME
        for li in entries
        for name in li.attrib
    )


def parse_metadata(markup: str) -> IssueMetadata | None:
    if not markup or "<details" not in markup.lower():
        return None
    root = _load_fragment(markup)
    if root is None:
        return None
    entries = root.xpath(_ENTRY_XPATH)
    if not entries or not _is_ours(root, entries):
        return None

    values: dict[str, Any] = {}
    for li in entries:
        for attr_name, raw in li.attrib.items():
            if not attr_name.startswith(_DATA_PREFIX):
                continue
            spec = _FIELDS_BY_NAME.get(attr_name[len(_DATA_PREFIX) :])
            if spec is None:
                continue  # written by a newer release
            values[spec.attr] = spec.decode(str(raw))
    return IssueMetadata(**values)


def print_metadata(metadata: IssueMetadata | None) -> str | None:
    if metadata is None:
        return None
    items = []
    for spec in METADATA_FIELDS:
        value = getattr(metadata, spec.attr)
        if value is None:
            continue
        li = E.li(spec.label)
        li.set(_DATA_PREFIX + spec.name, spec.encode(value))
        if spec.decorate is not None:
            spec.decorate(li)
        items.append(li)
    if not items:
        return None
    details = E.details(E.summary(SUMMARY_TEXT), E.ul(*items))
    out = lxml_html.tostring(details, encoding="unicode")
    return str(out)


__all__ = [
    "METADATA_FIELDS",
    "MetadataField",
    "decode_positive_int",
    "parse_metadata",
    "print_metadata",
]
