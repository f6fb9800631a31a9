from __future__ import annotations

from typing import Any

from mirsinn.adapters.docstore import MemoryDocumentStore
from mirsinn.config import get_settings

_ADAPTER: Any = None


def get_adapter():
    global _ADAPTER
    if _ADAPTER is None:
        if get_settings().db_backend == "memory":
            _ADAPTER = MemoryDocumentStore()
        else:
            from mirsinn.adapters.db_postgres import get_adapter as _postgres_get_adapter

            _ADAPTER = _postgres_get_adapter()
    return _ADAPTER


__all__ = ["get_adapter"]
