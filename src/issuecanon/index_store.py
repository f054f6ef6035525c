"""Document store backing the issue cache.

The store speaks a small, Mongo-shaped contract (``find``, ``insert_many``,
``delete_many``, ``replace_one``, ``create_unique_index``) with equality-only
filters. Methods are coroutines so callers treat the store as I/O; the
implementations here never suspend inside a mutation, which makes each
uniqueness check and its insert atomic with respect to other coroutines.

``JsonIssueStore`` persists the collection to a single JSON file, written
atomically and guarded by a content signature. A file whose signature does
not match is ignored (the cache starts empty and repopulates from GitHub).
"""

from __future__ import annotations

import copy
import json
import logging
from collections.abc import Iterable, Sequence
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol

from .github_rest import compute_signature

logger = logging.getLogger(__name__)

Document = dict[str, Any]
STORE_FILE_VERSION = 1


class StoreError(RuntimeError):
    pass


class DuplicateKeyError(StoreError):
    def __init__(self, fields: tuple[str, ...], key: tuple[Any, ...]):
        super().__init__(f"duplicate key {dict(zip(fields, key))} for unique index {fields}")
        self.fields = fields
        self.key = key


class IssueStore(Protocol):
    async def find(self, flt: Document) -> list[Document]: ...

    async def insert_many(self, documents: Sequence[Document]) -> None: ...

    async def delete_many(self, flt: Document) -> int: ...

    async def replace_one(self, flt: Document, document: Document) -> bool: ...

    async def create_unique_index(self, fields: Sequence[str]) -> None: ...


def _matches(document: Document, flt: Document) -> bool:
    return all(document.get(k) == v for k, v in flt.items())


class MemoryIssueStore:
    """In-process collection; also the base of the JSON-file store."""

    def __init__(self, documents: Iterable[Document] | None = None) -> None:
        self._documents: list[Document] = [copy.deepcopy(d) for d in documents or ()]
        self._unique: list[tuple[str, ...]] = []

    @property
    def unique_indexes(self) -> list[tuple[str, ...]]:
        return list(self._unique)

    def __len__(self) -> int:
        return len(self._documents)

    def _flush(self) -> None:
        """Persist after a mutation; nothing to do in memory."""

    def _check_unique(self, incoming: Sequence[Document]) -> None:
        for fields in self._unique:
            seen = {tuple(d.get(f) for f in fields) for d in self._documents}
            for doc in incoming:
                key = tuple(doc.get(f) for f in fields)
                if key in seen:
                    raise DuplicateKeyError(fields, key)
                seen.add(key)

    async def find(self, flt: Document) -> list[Document]:
        return [copy.deepcopy(d) for d in self._documents if _matches(d, flt)]

    async def insert_many(self, documents: Sequence[Document]) -> None:
        """Insert all documents or none of them."""
        if not documents:
            return
        self._check_unique(documents)
        self._documents.extend(copy.deepcopy(d) for d in documents)
        self._flush()

    async def delete_many(self, flt: Document) -> int:
        kept = [d for d in self._documents if not _matches(d, flt)]
        deleted = len(self._documents) - len(kept)
        if deleted:
            self._documents = kept
            self._flush()
        return deleted

    async def replace_one(self, flt: Document, document: Document) -> bool:
        for index, existing in enumerate(self._documents):
            if _matches(existing, flt):
                others = self._documents[:index] + self._documents[index + 1 :]
                for fields in self._unique:
                    key = tuple(document.get(f) for f in fields)
                    if any(tuple(o.get(f) for f in fields) == key for o in others):
                        raise DuplicateKeyError(fields, key)
                self._documents[index] = copy.deepcopy(document)
                self._flush()
                return True
        return False

    async def create_unique_index(self, fields: Sequence[str]) -> None:
        """Idempotent; fails if existing documents already violate the index."""
        spec = tuple(fields)
        if spec in self._unique:
            return
        seen: set[tuple[Any, ...]] = set()
        for doc in self._documents:
            key = tuple(doc.get(f) for f in spec)
            if key in seen:
                raise DuplicateKeyError(spec, key)
            seen.add(key)
        self._unique.append(spec)
        self._flush()


class JsonIssueStore(MemoryIssueStore):
    def __init__(self, path: Path, collection: str = "issues") -> None:
        super().__init__()
        self.path = path
        self.collection = collection
        self._load()

    def _load(self) -> None:
        if not self.path.exists():
            return
        try:
            raw: Any = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Failed to read issue store %s: %s", self.path, exc)
            return
        if not isinstance(raw, dict):
            return
        indexes = raw.get("indexes")
        if isinstance(indexes, list):
            self._unique = [
                tuple(str(f) for f in spec) for spec in indexes if isinstance(spec, list)
            ]
        documents = raw.get("documents")
        if not isinstance(documents, list):
            return
        signature = str(raw.get("signature") or "")
        if signature and signature != compute_signature(documents):
            logger.warning(
                "Issue store signature mismatch detected at %s; ignoring documents", self.path
            )
            return
        self._documents = [d for d in documents if isinstance(d, dict)]

    def _flush(self) -> None:
        payload = {
            "version": STORE_FILE_VERSION,
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "collection": self.collection,
            "indexes": [list(spec) for spec in self._unique],
            "documents": self._documents,
            "signature": compute_signature(self._documents),
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")
        tmp.replace(self.path)


__all__ = [
    "DuplicateKeyError",
    "IssueStore",
    "JsonIssueStore",
    "MemoryIssueStore",
    "StoreError",
]
