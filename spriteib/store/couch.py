"""
CouchDB Content Store

Thin async adapter over the CouchDB HTTP API. One `CouchClient` (and its
httpx connection pool) is shared by every database handle in the process;
handles are plain references and safe to use from concurrent tasks.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

import httpx
import structlog

from spriteib.errors import StoreError

logger = structlog.get_logger()


@dataclass(frozen=True, slots=True)
class DocumentRef:
    """Identity and revision assigned by the store."""

    id: str
    rev: str


@dataclass(frozen=True, slots=True)
class ViewRow:
    id: str | None
    key: Any
    value: Any
    doc: dict[str, Any] | None = None


class CouchClient:
    """Owns the HTTP client shared by all database handles."""

    def __init__(
        self,
        url: str,
        username: str,
        password: str,
        *,
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.url = url.rstrip("/")
        self._http = httpx.AsyncClient(
            base_url=self.url,
            auth=(username, password),
            timeout=httpx.Timeout(timeout_seconds),
            transport=transport,
            headers={"Accept": "application/json"},
        )

    def db(self, name: str) -> "CouchDatabase":
        return CouchDatabase(self._http, name)

    async def close(self) -> None:
        await self._http.aclose()


class CouchDatabase:
    """A single CouchDB database."""

    def __init__(self, http: httpx.AsyncClient, name: str):
        self._http = http
        self.name = name

    def _path(self, *parts: str) -> str:
        return "/" + "/".join(quote(p, safe="") for p in (self.name, *parts))

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            return await self._http.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            raise StoreError(
                message=f"CouchDB request failed: {exc}",
                code="store.unreachable",
                meta={"db": self.name, "method": method, "path": path},
            ) from exc

    def _raise_for_status(self, response: httpx.Response, operation: str) -> None:
        if response.is_success:
            return
        reason = _error_reason(response)
        code = "store.conflict" if response.status_code == 409 else "store.error"
        raise StoreError(
            message=f"CouchDB {operation} failed: {reason}",
            code=code,
            status_code=response.status_code,
            meta={"db": self.name},
        )

    async def ensure_exists(self) -> None:
        """Create the database if it is missing."""
        response = await self._request("PUT", self._path())
        if response.status_code == 412:
            return
        self._raise_for_status(response, "create database")
        logger.info("Created CouchDB database", db=self.name)

    async def create(self, document: dict[str, Any]) -> DocumentRef:
        """
        Persist a new document.

        The store assigns the identity unless `_id` is present. Writes are
        single-document atomic; a failed call leaves nothing behind.

        Raises:
            StoreError: transport failure or conflict.
        """
        response = await self._request("POST", self._path(), json=document)
        self._raise_for_status(response, "create")
        body = response.json()
        return DocumentRef(id=body["id"], rev=body["rev"])

    async def get(self, doc_id: str) -> dict[str, Any] | None:
        response = await self._request("GET", self._path(doc_id))
        if response.status_code == 404:
            return None
        self._raise_for_status(response, "get")
        return response.json()

    async def update(self, document: dict[str, Any]) -> DocumentRef:
        """Write a new revision of an existing document (needs `_id` and `_rev`)."""
        doc_id = document.get("_id")
        if not doc_id or not document.get("_rev"):
            raise StoreError(message="update requires _id and _rev", meta={"db": self.name})
        response = await self._request("PUT", self._path(doc_id), json=document)
        self._raise_for_status(response, "update")
        body = response.json()
        return DocumentRef(id=body["id"], rev=body["rev"])

    async def exists(self, design_doc_name: str) -> bool:
        response = await self._request("HEAD", self._path("_design", design_doc_name))
        if response.status_code == 404:
            return False
        self._raise_for_status(response, "exists")
        return True

    async def create_view(self, design_doc_name: str, views: dict[str, str]) -> DocumentRef:
        """Create a design document from `{view_name: map_function}`."""
        document = {
            "language": "javascript",
            "views": {name: {"map": map_fn} for name, map_fn in views.items()},
        }
        response = await self._request("PUT", self._path("_design", design_doc_name), json=document)
        self._raise_for_status(response, "create view")
        body = response.json()
        return DocumentRef(id=body["id"], rev=body["rev"])

    async def query_by_range(
        self,
        design_doc_name: str,
        view_name: str,
        start_key: Any,
        end_key: Any,
        *,
        include_docs: bool = False,
    ) -> list[ViewRow]:
        """Rows whose key falls within [start_key, end_key], in key order."""
        params = {
            "startkey": json.dumps(start_key),
            "endkey": json.dumps(end_key),
            "inclusive_end": "true",
        }
        if include_docs:
            params["include_docs"] = "true"
        response = await self._request(
            "GET",
            self._path("_design", design_doc_name, "_view", view_name),
            params=params,
        )
        self._raise_for_status(response, "query")
        return [
            ViewRow(
                id=row.get("id"),
                key=row.get("key"),
                value=row.get("value"),
                doc=row.get("doc"),
            )
            for row in response.json().get("rows", [])
        ]


def _error_reason(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"
    if isinstance(body, dict):
        return f"{body.get('error', 'error')}: {body.get('reason', '')}".rstrip(": ")
    return f"HTTP {response.status_code}"
