"""
Command Types

Commands carried over the bus. The wire format is an externally tagged JSON
object whose single key is the command name, which is also the channel the
command is published on:

    {"NewThread": {"body": {...}, "request_id": "...", ...}}
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, IPvAnyAddress, ValidationError

from spriteib.errors import CommandDecodeError
from spriteib.posts.models import PostBody


class Role(str, Enum):
    ADMIN = "Admin"
    MOD = "Mod"
    JANNY = "Janny"
    USER = "User"


class _Command(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class NewThread(_Command):
    body: PostBody
    request_id: UUID
    remote_ip: IPvAnyAddress
    role: Role
    board_code: str


class NewComment(_Command):
    body: PostBody
    parent_thread_id: str
    request_id: UUID
    remote_ip: IPvAnyAddress
    role: Role
    board_code: str


class PruneThreads(_Command):
    all_boards: bool = False
    board_code: str | None = None


class PublishFeed(_Command):
    all_boards: bool = False
    board_code: str | None = None


Command = Union[NewThread, NewComment, PruneThreads, PublishFeed]

COMMAND_TYPES: dict[str, type[_Command]] = {
    "NewThread": NewThread,
    "NewComment": NewComment,
    "PruneThreads": PruneThreads,
    "PublishFeed": PublishFeed,
}

# Channels the worker subscribes to and re-publishes cascades on.
CHANNELS: tuple[str, ...] = tuple(COMMAND_TYPES)


def command_name(command: Command) -> str:
    """Wire discriminant (and channel) of a command."""
    return type(command).__name__


def encode_command(command: Command) -> str:
    """Serialize a command to its externally tagged JSON envelope."""
    return json.dumps({command_name(command): command.model_dump(mode="json")})


def decode_command(payload: str | bytes) -> Command:
    """
    Parse a bus payload into a typed command.

    Raises:
        CommandDecodeError: payload is not JSON, is not a single-key object,
            names an unknown command, or fails field validation.
    """
    if isinstance(payload, bytes):
        payload = payload.decode("utf-8", errors="replace")

    try:
        data: Any = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise CommandDecodeError(message=f"payload is not JSON: {exc}") from exc

    if not isinstance(data, dict) or len(data) != 1:
        raise CommandDecodeError(message="envelope must be an object with exactly one key")

    name, fields = next(iter(data.items()))
    model = COMMAND_TYPES.get(name)
    if model is None:
        raise CommandDecodeError(message=f"unknown command {name!r}", meta={"command": name})

    try:
        return model.model_validate(fields)
    except ValidationError as exc:
        raise CommandDecodeError(
            message=f"invalid {name} command",
            meta={
                "command": name,
                "fields": [".".join(str(part) for part in err["loc"]) for err in exc.errors()],
            },
        ) from exc
