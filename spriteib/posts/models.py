"""
Post Document Models

Documents persisted to the primary and listing stores. Field aliases are the
stored (CouchDB) names; the listing view functions and the web tier read
those names directly, so they must not change.
"""

from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

LISTING_ID_SUFFIX = "li"


def utc_now_ns() -> int:
    """Current UTC time as integer nanoseconds since the epoch."""
    return time.time_ns()


def listing_id(primary_id: str) -> str:
    """Identity of the listing-store copy of a primary document."""
    return primary_id + LISTING_ID_SUFFIX


def primary_id_from_listing(listing_doc_id: str) -> str:
    if not listing_doc_id.endswith(LISTING_ID_SUFFIX):
        raise ValueError(f"not a listing document id: {listing_doc_id!r}")
    return listing_doc_id[: -len(LISTING_ID_SUFFIX)]


class PostBody(BaseModel):
    """User-submitted post content, immutable once constructed."""

    model_config = ConfigDict(frozen=True)

    name: str
    comment: str
    time: int  # nanoseconds since epoch, UTC
    email: str

    @property
    def timestamp(self) -> datetime:
        return datetime.fromtimestamp(self.time / 1_000_000_000, tz=timezone.utc)

    @property
    def is_sage(self) -> bool:
        return self.email.strip().lower() == "sage"


class _Document(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default="", alias="_id")
    rev: str = Field(default="", alias="_rev")

    def to_document(self) -> dict[str, Any]:
        """Serialize for the store, leaving out identity/revision until assigned."""
        doc = self.model_dump(by_alias=True, exclude_none=True)
        if not self.id:
            doc.pop("_id", None)
        if not self.rev:
            doc.pop("_rev", None)
        return doc


class Comment(_Document):
    t: Literal["comment"] = "comment"
    board_code: str = Field(alias="bc")
    post_num: int = Field(alias="pid")
    parent_thread_id: str
    body: PostBody
    archived: bool = False


class Thread(_Document):
    t: Literal["thread"] = "thread"
    board_code: str = Field(alias="bc")
    thread_num: int = Field(alias="tid")
    body: PostBody
    bump_time: int
    archived: bool = False
    pinned: bool = False
    # only populated when read back from the listing store
    comments: list[Comment] | None = None
