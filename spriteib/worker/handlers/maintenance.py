"""
Maintenance Handlers

Board upkeep triggered by cascade commands: archiving threads that fell off
the end of a board, and regenerating board feeds.
"""

from __future__ import annotations

import structlog

from spriteib.bus.redis_bus import feed_key
from spriteib.commands import PruneThreads, PublishFeed
from spriteib.errors import BusError, DispatchError, DispatchErrorKind, StoreError
from spriteib.feeds.atom import FeedEntry, render_atom_feed
from spriteib.posts.models import PostBody, listing_id, primary_id_from_listing, utc_now_ns
from spriteib.store.couch import ViewRow
from spriteib.store.port import ContentStore
from spriteib.store.views import BUMP_VIEW, DESIGN_DOC, board_range
from spriteib.worker.context import HandlerContext, Outcome

logger = structlog.get_logger()


def _target_boards(command: PruneThreads | PublishFeed, ctx: HandlerContext) -> list[str]:
    if command.all_boards:
        return list(ctx.settings.boards)
    if command.board_code:
        return [command.board_code]
    return []


async def _active_threads(board_code: str, ctx: HandlerContext) -> list[ViewRow]:
    start_key, end_key = board_range(board_code)
    return await ctx.listing.query_by_range(DESIGN_DOC, BUMP_VIEW, start_key, end_key)


async def prune_threads(command: PruneThreads, ctx: HandlerContext) -> Outcome:
    """Archive threads past each board's active-thread cap, least recently bumped first."""
    boards = _target_boards(command, ctx)
    if not boards:
        logger.warning("Prune requested without a board")
        return Outcome.OK

    failed_boards: list[str] = []
    for board_code in boards:
        try:
            archived, failed = await prune_board(board_code, ctx)
        except StoreError as exc:
            logger.error("Prune query failed", board_code=board_code, **exc.to_log_dict())
            failed_boards.append(board_code)
            continue
        ctx.metrics.track_threads_archived(board_code, archived)
        if failed:
            failed_boards.append(board_code)

    if failed_boards:
        raise DispatchError(
            DispatchErrorKind.PRUNE_FAILED,
            message=f"pruning incomplete for boards: {', '.join(failed_boards)}",
            meta={"boards": failed_boards},
        )
    return Outcome.OK


async def prune_board(board_code: str, ctx: HandlerContext) -> tuple[int, int]:
    """
    Archive everything beyond the board's cap.

    Pinned threads rank above all others, then threads by bump time, newest
    first. Returns (archived, failed) counts.
    """
    limit = ctx.settings.thread_limit_for(board_code)
    rows = await _active_threads(board_code, ctx)
    if len(rows) <= limit:
        return 0, 0

    ranked = sorted(
        rows,
        key=lambda row: (bool((row.value or {}).get("pinned")), row.key[1]),
        reverse=True,
    )
    stale = ranked[limit:]

    archived = failed = 0
    for row in stale:
        try:
            await archive_thread(primary_id_from_listing(row.id), ctx)
            archived += 1
        except (StoreError, ValueError) as exc:
            failed += 1
            logger.error("Archiving thread failed", board_code=board_code, listing_id=row.id, error=str(exc))

    logger.info(
        "Board pruned",
        board_code=board_code,
        limit=limit,
        active=len(rows),
        archived=archived,
        failed=failed,
    )
    return archived, failed


async def archive_thread(thread_id: str, ctx: HandlerContext) -> None:
    """Mark a thread archived in primary, then in listing."""
    await _mark_archived(ctx.primary, thread_id)
    await _mark_archived(ctx.listing, listing_id(thread_id))


async def _mark_archived(store: ContentStore, doc_id: str) -> None:
    document = await store.get(doc_id)
    if document is None:
        logger.warning("Document to archive not found", db=store.name, doc_id=doc_id)
        return
    if document.get("archived"):
        return
    document["archived"] = True
    await store.update(document)


async def publish_feed(command: PublishFeed, ctx: HandlerContext) -> Outcome:
    """Regenerate the feed of non-archived threads, newest bump first, for each board."""
    boards = _target_boards(command, ctx)
    if not boards:
        logger.warning("Feed publish requested without a board")
        return Outcome.OK

    failed_boards: list[str] = []
    for board_code in boards:
        try:
            await publish_board_feed(board_code, ctx)
        except (StoreError, BusError) as exc:
            logger.error("Feed publish failed", board_code=board_code, **exc.to_log_dict())
            failed_boards.append(board_code)

    if failed_boards:
        raise DispatchError(
            DispatchErrorKind.PUBLISH_FEED_FAILED,
            message=f"feed not published for boards: {', '.join(failed_boards)}",
            meta={"boards": failed_boards},
        )
    return Outcome.OK


async def publish_board_feed(board_code: str, ctx: HandlerContext) -> str:
    rows = await _active_threads(board_code, ctx)
    newest = sorted(rows, key=lambda row: row.key[1], reverse=True)[: ctx.settings.feed_max_entries]

    entries = [
        FeedEntry(
            thread_id=primary_id_from_listing(row.id),
            thread_num=int(row.value["tid"]),
            bump_time=int(row.key[1]),
            body=PostBody.model_validate(row.value["body"]),
        )
        for row in newest
    ]
    document = render_atom_feed(
        board_code,
        entries,
        base_url=ctx.settings.feed_base_url,
        generated_at=utc_now_ns(),
    )
    await ctx.bus.set_key(feed_key(board_code), document, 0)
    ctx.metrics.track_feed_published(board_code)
    logger.info("Feed published", board_code=board_code, entries=len(entries))
    return document
