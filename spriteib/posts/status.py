"""
Post Status

Violation codes and the status record written to the status cache for every
processed posting command.
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

SUCCESS_STATUS_TTL_SECONDS = 86_400
FAILURE_STATUS_TTL_SECONDS = 604_800


class PostStatus(str, Enum):
    """Reasons a post can be rejected. `OK` is never part of a violation set."""

    BANNED_IP = "BannedIp"
    TOO_FAST = "TooFast"
    THREAD_LOCKED = "ThreadLocked"
    BOARD_LOCKED = "BoardLocked"
    BANNED_WORD = "BannedWord"
    BANNED_NAME = "BannedName"
    BANNED_EMAIL = "BannedEmail"
    THREAD_ARCHIVED = "ThreadArchived"
    LARGE_THREAD = "LargeThread"
    LARGE_NAME = "LargeName"
    LARGE_COMMENT = "LargeComment"
    LARGE_EMAIL = "LargeEmail"
    LARGE_FILE = "LargeFile"
    DUPLICATE_FILE = "DuplicateFile"
    BAD_MIME = "BadMIME"
    FAILED_PROCESSING = "FailedProcessing"
    OK = "Ok"


_DECLARATION_ORDER = {status: index for index, status in enumerate(PostStatus)}


def ordered(violations: Iterable[PostStatus]) -> list[PostStatus]:
    """Violations in enumeration order, without `OK`."""
    return sorted(
        (v for v in set(violations) if v is not PostStatus.OK),
        key=_DECLARATION_ORDER.__getitem__,
    )


@dataclass(frozen=True, slots=True)
class StatusRecord:
    """Terminal outcome of a request, as read back by producers."""

    violations: frozenset[PostStatus]

    @classmethod
    def from_violations(cls, violations: Iterable[PostStatus]) -> "StatusRecord":
        return cls(violations=frozenset(v for v in violations if v is not PostStatus.OK))

    @property
    def ok(self) -> bool:
        return not self.violations

    @property
    def ttl_seconds(self) -> int:
        return SUCCESS_STATUS_TTL_SECONDS if self.ok else FAILURE_STATUS_TTL_SECONDS

    def to_dict(self) -> dict[str, str]:
        if self.ok:
            return {"status": "ok"}
        return {
            "status": "error",
            "errors": ", ".join(v.value for v in ordered(self.violations)),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"))
