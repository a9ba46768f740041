"""
Posting Handlers

New threads and new comments. Each invocation runs strictly in sequence:

    validate -> primary write -> listing write -> status write -> cascade publish

and every step only runs if the previous one succeeded. A failed listing
write leaves the primary document in place (no rollback, no retry); it is
reported as FailedProcessing and counted in
`spriteib_orphaned_primary_documents_total`.
"""

from __future__ import annotations

from typing import Literal

import structlog

from spriteib.bus.redis_bus import cooldown_key, reply_sequence_key, thread_sequence_key
from spriteib.commands import NewComment, NewThread, PruneThreads, PublishFeed, command_name, encode_command
from spriteib.errors import BusError, DispatchError, DispatchErrorKind, StoreError
from spriteib.posts.models import Comment, Thread, listing_id
from spriteib.posts.status import PostStatus, StatusRecord
from spriteib.posts.validation import validate_new_post, validate_reply_target, validate_requester
from spriteib.store.couch import DocumentRef
from spriteib.store.views import DESIGN_DOC, THREAD_VIEW, thread_range
from spriteib.worker.context import HandlerContext, Outcome

logger = structlog.get_logger()


async def new_thread(command: NewThread, ctx: HandlerContext) -> Outcome:
    """Validate and persist a new thread, then notify pruning and feeds."""
    request_id = str(command.request_id)

    violations = validate_new_post(command.body, ctx.settings, is_reply=False)
    violations |= validate_requester(command.remote_ip, command.board_code, ctx.settings)
    if not violations:
        violations |= await _check_cooldown(str(command.remote_ip), ctx)

    if violations:
        return await _reject(
            command,
            request_id,
            violations,
            ctx,
            failed_kind=DispatchErrorKind.NEW_THREAD_FAILED,
        )

    try:
        thread_num = await ctx.bus.next_sequence(thread_sequence_key(command.board_code))
        thread = Thread(
            board_code=command.board_code,
            thread_num=thread_num,
            body=command.body,
            bump_time=command.body.time,
        )
        primary_ref, _ = await _dual_write(thread, "thread", ctx)
    except (StoreError, BusError) as exc:
        await _write_failure_status(request_id, ctx)
        raise DispatchError(
            DispatchErrorKind.NEW_THREAD_FAILED,
            message=str(exc),
            meta={"request_id": request_id, "board_code": command.board_code},
        ) from exc

    await _finish(
        request_id,
        command.board_code,
        ctx,
        created_with_error=DispatchErrorKind.NEW_THREAD_CREATED_WITH_ERROR,
        meta={"thread_id": primary_ref.id},
    )
    return Outcome.OK


async def new_comment(command: NewComment, ctx: HandlerContext) -> Outcome:
    """Validate and persist a reply, bump its thread, then notify pruning and feeds."""
    request_id = str(command.request_id)

    violations = validate_new_post(command.body, ctx.settings, is_reply=True)
    violations |= validate_requester(command.remote_ip, command.board_code, ctx.settings)

    try:
        violations |= await _check_parent_thread(command, ctx)
    except StoreError as exc:
        await _write_failure_status(request_id, ctx)
        raise DispatchError(
            DispatchErrorKind.NEW_COMMENT_FAILED,
            message=str(exc),
            meta={"request_id": request_id, "parent_thread_id": command.parent_thread_id},
        ) from exc

    if not violations:
        violations |= await _check_cooldown(str(command.remote_ip), ctx)

    if violations:
        return await _reject(
            command,
            request_id,
            violations,
            ctx,
            failed_kind=DispatchErrorKind.NEW_COMMENT_FAILED,
        )

    try:
        post_num = await ctx.bus.next_sequence(
            reply_sequence_key(command.board_code, command.parent_thread_id)
        )
    except BusError as exc:
        await _write_failure_status(request_id, ctx)
        raise DispatchError(
            DispatchErrorKind.NEW_COMMENT_FAILED,
            message=str(exc),
            meta={"request_id": request_id, "parent_thread_id": command.parent_thread_id},
        ) from exc

    # Concurrent replies can all pass the view count; the counter is authoritative.
    if post_num > ctx.settings.thread_replies:
        return await _reject(
            command,
            request_id,
            {PostStatus.LARGE_THREAD},
            ctx,
            failed_kind=DispatchErrorKind.NEW_COMMENT_FAILED,
        )

    try:
        comment = Comment(
            board_code=command.board_code,
            post_num=post_num,
            parent_thread_id=command.parent_thread_id,
            body=command.body,
        )
        primary_ref, _ = await _dual_write(comment, "comment", ctx)
    except StoreError as exc:
        await _write_failure_status(request_id, ctx)
        raise DispatchError(
            DispatchErrorKind.NEW_COMMENT_FAILED,
            message=str(exc),
            meta={"request_id": request_id, "parent_thread_id": command.parent_thread_id},
        ) from exc

    if not command.body.is_sage:
        await _bump_thread(command.parent_thread_id, command.body.time, ctx)

    await _finish(
        request_id,
        command.board_code,
        ctx,
        created_with_error=DispatchErrorKind.NEW_COMMENT_CREATED_WITH_ERROR,
        meta={"comment_id": primary_ref.id, "parent_thread_id": command.parent_thread_id},
    )
    return Outcome.OK


async def _check_parent_thread(command: NewComment, ctx: HandlerContext) -> set[PostStatus]:
    document = await ctx.primary.get(command.parent_thread_id)
    if document is None or document.get("t") != "thread":
        logger.warning("Reply to unknown thread", parent_thread_id=command.parent_thread_id)
        return {PostStatus.FAILED_PROCESSING}

    thread = Thread.model_validate(document)
    if thread.board_code != command.board_code:
        logger.warning(
            "Reply board does not match thread board",
            parent_thread_id=command.parent_thread_id,
            thread_board=thread.board_code,
        )
        return {PostStatus.FAILED_PROCESSING}

    start_key, end_key = thread_range(command.board_code, command.parent_thread_id)
    rows = await ctx.primary.query_by_range(DESIGN_DOC, THREAD_VIEW, start_key, end_key)
    reply_count = sum(1 for row in rows if row.key[2] != 0)
    return validate_reply_target(thread, reply_count, ctx.settings)


async def _check_cooldown(remote_ip: str, ctx: HandlerContext) -> set[PostStatus]:
    if ctx.settings.cooldown_seconds <= 0:
        return set()
    try:
        claimed = await ctx.bus.claim_cooldown(cooldown_key(remote_ip), ctx.settings.cooldown_seconds)
    except BusError as exc:
        # Fail open: a Redis hiccup should not reject posts.
        logger.warning("Cooldown check skipped", **exc.to_log_dict())
        return set()
    return set() if claimed else {PostStatus.TOO_FAST}


async def _dual_write(
    document: Thread | Comment,
    kind: Literal["thread", "comment"],
    ctx: HandlerContext,
) -> tuple[DocumentRef, DocumentRef]:
    """Create `document` in primary, then its copy in listing."""
    primary_ref = await ctx.primary.create(document.to_document())
    logger.info("Document created in primary store", kind=kind, doc_id=primary_ref.id)

    listing_copy = document.model_copy(update={"id": listing_id(primary_ref.id)})
    try:
        listing_ref = await ctx.listing.create(listing_copy.to_document())
    except StoreError as exc:
        ctx.metrics.track_orphaned_primary(kind)
        logger.error(
            "Listing write failed, primary document left without listing copy",
            kind=kind,
            primary_id=primary_ref.id,
            **exc.to_log_dict(),
        )
        raise

    logger.info("Document created in listing store", kind=kind, doc_id=listing_ref.id)
    return primary_ref, listing_ref


async def _bump_thread(thread_id: str, bump_time: int, ctx: HandlerContext) -> None:
    """Move a thread up the board index. Best effort: failures are only logged."""
    try:
        document = await ctx.listing.get(listing_id(thread_id))
        if document is None:
            logger.warning("Listing copy missing, thread not bumped", thread_id=thread_id)
            return
        if document.get("bump_time", 0) >= bump_time:
            return
        document["bump_time"] = bump_time
        await ctx.listing.update(document)
    except StoreError as exc:
        logger.warning("Thread bump failed", thread_id=thread_id, **exc.to_log_dict())


async def _reject(
    command: NewThread | NewComment,
    request_id: str,
    violations: set[PostStatus],
    ctx: HandlerContext,
    *,
    failed_kind: DispatchErrorKind,
) -> Outcome:
    record = StatusRecord.from_violations(violations)
    ctx.metrics.track_rejection(command_name(command), record.violations)
    logger.info("Post rejected", errors=record.to_dict()["errors"])
    try:
        await _write_status(request_id, record, ctx)
    except BusError as exc:
        raise DispatchError(failed_kind, message=str(exc), meta={"request_id": request_id}) from exc
    return Outcome.REJECTED


async def _finish(
    request_id: str,
    board_code: str,
    ctx: HandlerContext,
    *,
    created_with_error: DispatchErrorKind,
    meta: dict[str, str],
) -> None:
    """Status write, then cascades. Content is already committed at this point."""
    try:
        await _write_status(request_id, StatusRecord.from_violations(()), ctx)
    except BusError as exc:
        raise DispatchError(
            created_with_error,
            message=f"status write failed: {exc}",
            meta={"request_id": request_id, **meta},
        ) from exc

    failed_channels = await _publish_cascades(board_code, ctx)
    if failed_channels:
        raise DispatchError(
            created_with_error,
            message=f"cascade publish failed: {', '.join(failed_channels)}",
            meta={"request_id": request_id, **meta},
        )


async def _publish_cascades(board_code: str, ctx: HandlerContext) -> list[str]:
    """Publish prune and feed commands for the board; returns channels that failed."""
    failed: list[str] = []
    for cascade in (
        PruneThreads(all_boards=False, board_code=board_code),
        PublishFeed(all_boards=False, board_code=board_code),
    ):
        channel = command_name(cascade)
        try:
            await ctx.bus.publish(channel, encode_command(cascade))
        except BusError as exc:
            ctx.metrics.track_cascade_failure(channel)
            logger.error("Cascade publish failed", channel=channel, board_code=board_code, **exc.to_log_dict())
            failed.append(channel)
    return failed


async def _write_status(request_id: str, record: StatusRecord, ctx: HandlerContext) -> None:
    try:
        await ctx.bus.set_status(request_id, record.to_json(), record.ttl_seconds)
    except BusError as exc:
        logger.error("Could not set status for request", **exc.to_log_dict())
        raise
    logger.info("Status published for request", status=record.to_dict()["status"])


async def _write_failure_status(request_id: str, ctx: HandlerContext) -> None:
    """Record FailedProcessing. The caller raises whether or not this succeeds."""
    try:
        await _write_status(request_id, StatusRecord.from_violations({PostStatus.FAILED_PROCESSING}), ctx)
    except BusError as exc:
        logger.warning("Request left without status", request_id=request_id, code=exc.code)
