"""
Post Validation

Pure checks over a submitted post. Every check is independent and adds at
most one violation code; an empty result means the post is accepted.
"""

from __future__ import annotations

import ipaddress
from ipaddress import IPv4Address, IPv6Address

from spriteib.config import PostSettings
from spriteib.posts.models import PostBody, Thread
from spriteib.posts.status import PostStatus


def validate_new_post(body: PostBody, settings: PostSettings, is_reply: bool) -> set[PostStatus]:
    """Check a post body against the configured limits."""
    violations: set[PostStatus] = set()

    max_comment = settings.comment_comment_length if is_reply else settings.thread_comment_length
    if len(body.comment) > max_comment:
        violations.add(PostStatus.LARGE_COMMENT)

    if len(body.name) > settings.name_length:
        violations.add(PostStatus.LARGE_NAME)

    if len(body.email) > settings.email_length:
        violations.add(PostStatus.LARGE_EMAIL)

    if settings.banned_words:
        lowered = body.comment.lower()
        if any(word in lowered for word in settings.banned_words):
            violations.add(PostStatus.BANNED_WORD)

    if body.name.strip().lower() in settings.banned_names:
        violations.add(PostStatus.BANNED_NAME)

    if body.email.strip().lower() in settings.banned_emails:
        violations.add(PostStatus.BANNED_EMAIL)

    return violations


def validate_requester(
    remote_ip: IPv4Address | IPv6Address,
    board_code: str,
    settings: PostSettings,
) -> set[PostStatus]:
    """Checks that depend on who is posting and where."""
    violations: set[PostStatus] = set()

    if is_banned_address(remote_ip, settings.banned_networks):
        violations.add(PostStatus.BANNED_IP)

    if board_code in settings.locked_boards:
        violations.add(PostStatus.BOARD_LOCKED)

    return violations


def validate_reply_target(thread: Thread, reply_count: int, settings: PostSettings) -> set[PostStatus]:
    """Checks on the thread a comment replies to."""
    violations: set[PostStatus] = set()

    if thread.archived:
        violations.add(PostStatus.THREAD_ARCHIVED)

    if thread.id in settings.locked_threads:
        violations.add(PostStatus.THREAD_LOCKED)

    if reply_count >= settings.thread_replies:
        violations.add(PostStatus.LARGE_THREAD)

    return violations


def is_banned_address(remote_ip: IPv4Address | IPv6Address, networks: tuple[str, ...]) -> bool:
    addresses = [remote_ip]
    # Dual-stack listeners report IPv4 clients as ::ffff:a.b.c.d.
    if isinstance(remote_ip, IPv6Address) and remote_ip.ipv4_mapped is not None:
        addresses.append(remote_ip.ipv4_mapped)

    for network in networks:
        try:
            parsed = ipaddress.ip_network(network, strict=False)
        except ValueError:
            continue
        if any(address.version == parsed.version and address in parsed for address in addresses):
            return True
    return False
