"""Application configuration using Pydantic Settings."""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Literal

from pydantic import Field, RedisDsn
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Worker settings loaded from environment variables.

    Fields without a default are required; a missing value raises a
    `pydantic.ValidationError` at startup.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    # Redis (bus + status cache)
    redis_url: RedisDsn
    redis_socket_timeout_seconds: float = Field(default=5.0)

    # CouchDB
    couch_url: str
    couch_username: str
    couch_password: str
    couch_db: str
    couch_listing_db: str
    couch_timeout_seconds: float = Field(default=10.0)

    # Post limits
    max_post_length_thread: int
    max_post_length_comment: int
    max_file_size: int
    max_thread_comments: int
    max_name_length: int = Field(default=75)
    max_email_length: int = Field(default=100)

    # Moderation
    banned_words: list[str] = Field(default_factory=list)
    banned_names: list[str] = Field(default_factory=list)
    banned_emails: list[str] = Field(default_factory=list)
    banned_networks: list[str] = Field(default_factory=list)
    locked_boards: list[str] = Field(default_factory=list)
    locked_threads: list[str] = Field(default_factory=list)
    post_cooldown_seconds: int = Field(default=0)

    # Boards
    boards: list[str] = Field(default=["g", "b"])
    max_active_threads: int = Field(default=150)
    board_thread_limits: dict[str, int] = Field(default_factory=dict)

    # Feeds
    feed_max_entries: int = Field(default=50)
    feed_base_url: str = Field(default="http://localhost:3000")

    # Web tier
    listen_address: str = Field(default="0.0.0.0:3000")

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")
    log_format: Literal["json", "text"] = Field(default="json")

    # Monitoring
    prometheus_metrics_port: int | None = Field(default=None)


@dataclass(frozen=True, slots=True)
class PostSettings:
    """Immutable post limits shared by every handler invocation."""

    thread_comment_length: int
    comment_comment_length: int
    file_size: int
    thread_replies: int
    listen_address: str = "0.0.0.0:3000"
    name_length: int = 75
    email_length: int = 100
    banned_words: frozenset[str] = frozenset()
    banned_names: frozenset[str] = frozenset()
    banned_emails: frozenset[str] = frozenset()
    banned_networks: tuple[str, ...] = ()
    locked_boards: frozenset[str] = frozenset()
    locked_threads: frozenset[str] = frozenset()
    cooldown_seconds: int = 0
    boards: tuple[str, ...] = ()
    max_active_threads: int = 150
    board_thread_limits: tuple[tuple[str, int], ...] = ()
    feed_max_entries: int = 50
    feed_base_url: str = "http://localhost:3000"

    @classmethod
    def from_settings(cls, settings: Settings) -> "PostSettings":
        return cls(
            thread_comment_length=settings.max_post_length_thread,
            comment_comment_length=settings.max_post_length_comment,
            file_size=settings.max_file_size,
            thread_replies=settings.max_thread_comments,
            listen_address=settings.listen_address,
            name_length=settings.max_name_length,
            email_length=settings.max_email_length,
            banned_words=frozenset(w.lower() for w in settings.banned_words),
            banned_names=frozenset(n.lower() for n in settings.banned_names),
            banned_emails=frozenset(e.lower() for e in settings.banned_emails),
            banned_networks=tuple(settings.banned_networks),
            locked_boards=frozenset(settings.locked_boards),
            locked_threads=frozenset(settings.locked_threads),
            cooldown_seconds=settings.post_cooldown_seconds,
            boards=tuple(settings.boards),
            max_active_threads=settings.max_active_threads,
            board_thread_limits=tuple(sorted(settings.board_thread_limits.items())),
            feed_max_entries=settings.feed_max_entries,
            feed_base_url=settings.feed_base_url,
        )

    def thread_limit_for(self, board_code: str) -> int:
        """Active-thread cap for a board, falling back to the global cap."""
        return dict(self.board_thread_limits).get(board_code, self.max_active_threads)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
