"""
Atom Feed Rendering

Builds the per-board syndication feed from listing-store rows.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from xml.etree import ElementTree as ET

from spriteib.posts.models import PostBody

ATOM_NS = "http://www.w3.org/2005/Atom"
SUMMARY_LENGTH = 280
XML_DECLARATION = '<?xml version="1.0" encoding="utf-8"?>\n'

# Code points XML 1.0 does not allow in character data.
_XML_INVALID = re.compile("[\x00-\x08\x0b\x0c\x0e-\x1f\ufffe\uffff]")

ET.register_namespace("", ATOM_NS)


@dataclass(frozen=True, slots=True)
class FeedEntry:
    thread_id: str
    thread_num: int
    bump_time: int
    body: PostBody


def _iso(ns: int) -> str:
    dt = datetime.fromtimestamp(ns / 1_000_000_000, tz=timezone.utc)
    return dt.isoformat().replace("+00:00", "Z")


def _el(parent: ET.Element, tag: str, text: str | None = None, **attrs: str) -> ET.Element:
    element = ET.SubElement(parent, f"{{{ATOM_NS}}}{tag}", attrs)
    if text is not None:
        element.text = _XML_INVALID.sub("", text)
    return element


def render_atom_feed(
    board_code: str,
    entries: Sequence[FeedEntry],
    *,
    base_url: str,
    generated_at: int,
) -> str:
    """Render entries (already ordered newest bump first) as an Atom document."""
    base_url = base_url.rstrip("/")
    board_url = f"{base_url}/board/{board_code}"

    feed = ET.Element(f"{{{ATOM_NS}}}feed")
    _el(feed, "id", board_url)
    _el(feed, "title", f"/{board_code}/")
    _el(feed, "updated", _iso(entries[0].bump_time if entries else generated_at))
    _el(feed, "link", href=board_url)

    for entry in entries:
        thread_url = f"{board_url}/{entry.thread_id}"
        item = _el(feed, "entry")
        _el(item, "id", thread_url)
        _el(item, "title", f"/{board_code}/ #{entry.thread_num}")
        _el(item, "updated", _iso(entry.bump_time))
        _el(item, "published", _iso(entry.body.time))
        _el(item, "link", href=thread_url)
        author = _el(item, "author")
        _el(author, "name", entry.body.name or "Anonymous")
        summary = entry.body.comment
        if len(summary) > SUMMARY_LENGTH:
            summary = summary[: SUMMARY_LENGTH - 1] + "…"
        _el(item, "summary", summary)

    return XML_DECLARATION + ET.tostring(feed, encoding="unicode")
