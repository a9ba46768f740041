"""Content store port used by the command handlers.

Handlers only depend on this protocol, so the primary and listing stores can
be any object with these coroutines (CouchDB in production, in-memory fakes
in tests).
"""

from __future__ import annotations

from typing import Any, Protocol

from spriteib.store.couch import DocumentRef, ViewRow


class ContentStore(Protocol):
    """Minimal protocol used by command handlers."""

    name: str

    async def create(self, document: dict[str, Any]) -> DocumentRef:
        ...

    async def get(self, doc_id: str) -> dict[str, Any] | None:
        ...

    async def update(self, document: dict[str, Any]) -> DocumentRef:
        ...

    async def query_by_range(
        self,
        design_doc_name: str,
        view_name: str,
        start_key: Any,
        end_key: Any,
        *,
        include_docs: bool = False,
    ) -> list[ViewRow]:
        ...
