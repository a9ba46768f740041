from xml.etree import ElementTree as ET

import pytest

from spriteib.feeds.atom import ATOM_NS, SUMMARY_LENGTH, FeedEntry, render_atom_feed
from tests.support.posts import BASE_TIME_NS, post_body

pytestmark = pytest.mark.unit


def _q(tag: str) -> str:
    return f"{{{ATOM_NS}}}{tag}"


def _entry(thread_num: int, comment: str = "hello", name: str = "") -> FeedEntry:
    return FeedEntry(
        thread_id=f"t{thread_num}",
        thread_num=thread_num,
        bump_time=BASE_TIME_NS + thread_num,
        body=post_body(comment, name=name),
    )


def test_feed_metadata():
    document = render_atom_feed("g", [_entry(1)], base_url="https://sprite.test/", generated_at=0)

    assert document.startswith('<?xml version="1.0" encoding="utf-8"?>')
    feed = ET.fromstring(document.encode())
    assert feed.tag == _q("feed")
    assert feed.findtext(_q("id")) == "https://sprite.test/board/g"
    assert feed.findtext(_q("title")) == "/g/"
    assert feed.findtext(_q("updated")) == "2023-11-14T22:13:20Z"


def test_entries_keep_given_order_and_fields():
    document = render_atom_feed(
        "g",
        [_entry(2, name="moot"), _entry(1)],
        base_url="https://sprite.test",
        generated_at=0,
    )

    entries = ET.fromstring(document.encode()).findall(_q("entry"))
    assert [e.findtext(_q("id")) for e in entries] == [
        "https://sprite.test/board/g/t2",
        "https://sprite.test/board/g/t1",
    ]
    assert entries[0].find(_q("link")).get("href") == "https://sprite.test/board/g/t2"
    assert entries[0].findtext(f"{_q('author')}/{_q('name')}") == "moot"
    assert entries[1].findtext(f"{_q('author')}/{_q('name')}") == "Anonymous"


def test_long_comments_are_truncated():
    document = render_atom_feed("g", [_entry(1, "y" * 1000)], base_url="https://sprite.test", generated_at=0)

    summary = ET.fromstring(document.encode()).find(_q("entry")).findtext(_q("summary"))
    assert len(summary) == SUMMARY_LENGTH
    assert summary.endswith("…")


def test_empty_feed_uses_generation_time():
    document = render_atom_feed("b", [], base_url="https://sprite.test", generated_at=BASE_TIME_NS)

    feed = ET.fromstring(document.encode())
    assert feed.findall(_q("entry")) == []
    assert feed.findtext(_q("updated")).startswith("2023-11-14T22:13:20")


def test_markup_in_comments_is_escaped():
    document = render_atom_feed("g", [_entry(1, "<b>&</b>")], base_url="https://sprite.test", generated_at=0)

    summary = ET.fromstring(document.encode()).find(_q("entry")).findtext(_q("summary"))
    assert summary == "<b>&</b>"


def test_control_characters_are_dropped_from_text():
    document = render_atom_feed(
        "g",
        [_entry(1, "hello\x0bworld\x00", name="a\x01b")],
        base_url="https://sprite.test",
        generated_at=0,
    )

    entry = ET.fromstring(document.encode()).find(_q("entry"))
    assert entry.findtext(_q("summary")) == "helloworld"
    assert entry.findtext(f"{_q('author')}/{_q('name')}") == "ab"


def test_line_breaks_and_tabs_are_kept():
    document = render_atom_feed("g", [_entry(1, "a\tb\nc")], base_url="https://sprite.test", generated_at=0)

    summary = ET.fromstring(document.encode()).find(_q("entry")).findtext(_q("summary"))
    assert summary == "a\tb\nc"
