from __future__ import annotations

import re
from enum import Enum
from typing import Any


_ERROR_CODE_RE = re.compile(r"^[a-z][a-z0-9_]*(\.[a-z][a-z0-9_]*)*$")


class SpriteError(Exception):
    """Base typed error for the worker.

    - Stable `code` for log filtering and tests.
    - Human-readable `message`.
    - Optional `meta` payload with debugging context.
    """

    def __init__(
        self,
        *,
        code: str,
        message: str,
        meta: dict[str, Any] | None = None,
    ) -> None:
        if not _ERROR_CODE_RE.fullmatch(code):
            raise ValueError(
                "Invalid error code. Expected dot-separated lowercase tokens, "
                f"got: {code!r}"
            )
        super().__init__(message)
        self.code = code
        self.message = message
        self.meta = dict(meta or {})

    def to_log_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"code": self.code, "error": self.message}
        if self.meta:
            payload["meta"] = self.meta
        return payload


class BusError(SpriteError):
    def __init__(
        self,
        *,
        message: str = "Bus operation failed",
        code: str = "bus.error",
        meta: dict[str, Any] | None = None,
    ):
        super().__init__(code=code, message=message, meta=meta)


class BusConnectionError(BusError):
    def __init__(self, *, message: str = "Bus is not connected", meta: dict[str, Any] | None = None):
        super().__init__(code="bus.missing_connection", message=message, meta=meta)


class BusClosedError(BusError):
    def __init__(self, *, message: str = "Subscription stream closed", meta: dict[str, Any] | None = None):
        super().__init__(code="bus.closed", message=message, meta=meta)


class StoreError(SpriteError):
    def __init__(
        self,
        *,
        message: str = "Store operation failed",
        code: str = "store.error",
        status_code: int | None = None,
        meta: dict[str, Any] | None = None,
    ):
        super().__init__(code=code, message=message, meta=meta)
        self.status_code = status_code


class CommandDecodeError(SpriteError):
    def __init__(self, *, message: str, meta: dict[str, Any] | None = None):
        super().__init__(code="command.decode_failed", message=message, meta=meta)


class DispatchErrorKind(str, Enum):
    NEW_THREAD_FAILED = "NewThreadFailed"
    NEW_THREAD_CREATED_WITH_ERROR = "NewThreadCreatedWithError"
    NEW_COMMENT_FAILED = "NewCommentFailed"
    NEW_COMMENT_CREATED_WITH_ERROR = "NewCommentCreatedWithError"
    PRUNE_FAILED = "PruneFailed"
    PUBLISH_FEED_FAILED = "PublishFeedFailed"


class DispatchError(SpriteError):
    """Raised by a command handler; caught and logged at the task boundary."""

    def __init__(self, kind: DispatchErrorKind, *, message: str | None = None, meta: dict[str, Any] | None = None):
        super().__init__(
            code=f"dispatch.{_snake(kind.value)}",
            message=message or kind.value,
            meta=meta,
        )
        self.kind = kind

    def __str__(self) -> str:
        return self.kind.value


def _snake(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()
