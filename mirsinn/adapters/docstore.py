"""Keyed document storage contract and the in-memory backend.

Paths are slash separated: documents have an even number of segments
(``questions/02-20-2025``), collections an odd number
(``questions/02-20-2025/items``).
"""
from __future__ import annotations

import copy
import threading
from typing import Any, Dict, List, Mapping, Optional, Protocol, Tuple

from mirsinn.domain.errors import CommitError

DocumentRow = Tuple[str, Dict[str, Any]]


def split_path(path: str) -> List[str]:
    return [segment for segment in (path or "").strip("/").split("/") if segment]


def parent_path(path: str) -> str:
    segments = split_path(path)
    if len(segments) < 2 or len(segments) % 2:
        raise ValueError(f"Not a document path: {path!r}")
    return "/".join(segments[:-1])


def document_id(path: str) -> str:
    return split_path(path)[-1]


class WriteBatch(Protocol):
    def set(self, path: str, data: Mapping[str, Any], *, merge: bool = False) -> None: ...

    def commit(self) -> None: ...


class DocumentStore(Protocol):
    def get(self, path: str) -> Optional[Dict[str, Any]]: ...

    def set(self, path: str, data: Mapping[str, Any], *, merge: bool = False) -> None: ...

    def list(self, collection_path: str) -> List[DocumentRow]: ...

    def batch(self) -> WriteBatch: ...


def _apply(docs: Dict[str, Dict[str, Any]], path: str, data: Mapping[str, Any], merge: bool) -> None:
    payload = copy.deepcopy(dict(data))
    if merge and path in docs:
        docs[path].update(payload)
    else:
        docs[path] = payload


class MemoryWriteBatch:
    def __init__(self, store: "MemoryDocumentStore") -> None:
        self._store = store
        self._ops: List[Tuple[str, Dict[str, Any], bool]] = []
        self._committed = False

    def set(self, path: str, data: Mapping[str, Any], *, merge: bool = False) -> None:
        parent_path(path)
        self._ops.append((path, copy.deepcopy(dict(data)), merge))

    def commit(self) -> None:
        if self._committed:
            raise CommitError("batch already committed")
        self._store._commit(self._ops)
        self._committed = True

    def __len__(self) -> int:
        return len(self._ops)


class MemoryDocumentStore:
    """Process-local store used for dry runs and tests."""

    def __init__(self, documents: Optional[Mapping[str, Mapping[str, Any]]] = None) -> None:
        self._docs: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()
        self.write_count = 0
        for path, data in (documents or {}).items():
            parent_path(path)
            self._docs[path] = copy.deepcopy(dict(data))

    def get(self, path: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            data = self._docs.get(path)
            return copy.deepcopy(data) if data is not None else None

    def set(self, path: str, data: Mapping[str, Any], *, merge: bool = False) -> None:
        parent_path(path)
        with self._lock:
            _apply(self._docs, path, data, merge)
            self.write_count += 1

    def list(self, collection_path: str) -> List[DocumentRow]:
        collection = "/".join(split_path(collection_path))
        with self._lock:
            rows = [
                (path, copy.deepcopy(data))
                for path, data in self._docs.items()
                if parent_path(path) == collection
            ]
        return sorted(rows, key=lambda row: row[0])

    def batch(self) -> MemoryWriteBatch:
        return MemoryWriteBatch(self)

    def _commit(self, ops: List[Tuple[str, Dict[str, Any], bool]]) -> None:
        with self._lock:
            staged = copy.deepcopy(self._docs)
            for path, data, merge in ops:
                _apply(staged, path, data, merge)
            self._docs = staged
            self.write_count += len(ops)

    def paths(self) -> List[str]:
        with self._lock:
            return sorted(self._docs)


__all__ = [
    "DocumentRow",
    "DocumentStore",
    "MemoryDocumentStore",
    "MemoryWriteBatch",
    "WriteBatch",
    "document_id",
    "parent_path",
    "split_path",
]
