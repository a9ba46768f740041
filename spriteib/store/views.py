"""
Design documents for the primary and listing stores.

Keys emitted here are what the web tier range-queries on, so they depend on
the stored field names of `Thread`/`Comment` (`bc`, `pid`, `bump_time`, ...).
"""

from __future__ import annotations

import structlog

from spriteib.store.couch import CouchDatabase

logger = structlog.get_logger()

DESIGN_DOC = "user"
THREAD_VIEW = "thread_view"
BUMP_VIEW = "bump_view"

# OP row sorts first under [bc, thread_id, 0]; comments follow by post number.
PRIMARY_THREAD_VIEW = """function (doc) {
    if (doc.t == "thread" && !doc.archived) {
        emit([doc.bc, doc._id, 0], doc.body)
    }
    else if (doc.t == "comment") {
        emit([doc.bc, doc.parent_thread_id, doc.pid], doc.body)
    }
}"""

LISTING_THREAD_VIEW = """function (doc) {
    if (doc.t == "thread") {
        emit([doc.bc, doc._id, 0], null)
    }
}"""

LISTING_BUMP_VIEW = """function (doc) {
    if (doc.t == "thread" && !doc.archived) {
        emit([doc.bc, doc.bump_time], {tid: doc.tid, pinned: doc.pinned, body: doc.body})
    }
}"""


def thread_range(board_code: str, thread_id: str) -> tuple[list, list]:
    """Key range covering a thread's OP and all of its comments."""
    return [board_code, thread_id, 0], [board_code, thread_id, {}]


def board_range(board_code: str) -> tuple[list, list]:
    """Key range covering every bump_view row of a board."""
    return [board_code], [board_code, {}]


async def ensure_views(primary: CouchDatabase, listing: CouchDatabase) -> None:
    """Create the design documents when they do not exist yet."""
    if not await primary.exists(DESIGN_DOC):
        await primary.create_view(DESIGN_DOC, {THREAD_VIEW: PRIMARY_THREAD_VIEW})
        logger.info("Created design document", db=primary.name, design=DESIGN_DOC)

    if not await listing.exists(DESIGN_DOC):
        await listing.create_view(
            DESIGN_DOC,
            {THREAD_VIEW: LISTING_THREAD_VIEW, BUMP_VIEW: LISTING_BUMP_VIEW},
        )
        logger.info("Created design document", db=listing.name, design=DESIGN_DOC)
