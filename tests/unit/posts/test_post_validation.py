from dataclasses import replace
from ipaddress import ip_address

import pytest

from spriteib.posts.models import Thread
from spriteib.posts.status import PostStatus
from spriteib.posts.validation import (
    is_banned_address,
    validate_new_post,
    validate_reply_target,
    validate_requester,
)
from tests.support.posts import post_body, thread_document

pytestmark = pytest.mark.unit


def test_comment_at_limit_is_accepted(post_settings):
    assert validate_new_post(post_body("x" * 10), post_settings, is_reply=False) == set()


def test_comment_over_limit_is_large_comment(post_settings):
    violations = validate_new_post(post_body("x" * 11), post_settings, is_reply=False)

    assert violations == {PostStatus.LARGE_COMMENT}


def test_reply_uses_comment_limit(post_settings):
    settings = replace(post_settings, thread_comment_length=100, comment_comment_length=5)

    assert validate_new_post(post_body("x" * 6), settings, is_reply=False) == set()
    assert validate_new_post(post_body("x" * 6), settings, is_reply=True) == {PostStatus.LARGE_COMMENT}


def test_large_name_and_email(post_settings):
    settings = replace(post_settings, name_length=3, email_length=3)

    violations = validate_new_post(post_body("x", name="abcd", email="a@b.c"), settings, is_reply=False)

    assert violations == {PostStatus.LARGE_NAME, PostStatus.LARGE_EMAIL}


def test_banned_word_matches_case_insensitively(post_settings):
    settings = replace(post_settings, banned_words=frozenset({"spam"}))

    assert validate_new_post(post_body("buy SPAM"), settings, is_reply=False) == {PostStatus.BANNED_WORD}
    assert validate_new_post(post_body("ham"), settings, is_reply=False) == set()


def test_banned_name_and_email(post_settings):
    settings = replace(
        post_settings,
        banned_names=frozenset({"troll"}),
        banned_emails=frozenset({"bad@example.com"}),
    )

    violations = validate_new_post(
        post_body("hi", name=" Troll ", email="BAD@example.com"),
        settings,
        is_reply=True,
    )

    assert violations == {PostStatus.BANNED_NAME, PostStatus.BANNED_EMAIL}


def test_every_rule_is_reported_together(post_settings):
    settings = replace(post_settings, name_length=1, banned_words=frozenset({"x"}))

    violations = validate_new_post(post_body("x" * 50, name="long"), settings, is_reply=False)

    assert violations == {PostStatus.LARGE_COMMENT, PostStatus.LARGE_NAME, PostStatus.BANNED_WORD}


def test_requester_banned_network(post_settings):
    settings = replace(post_settings, banned_networks=("198.51.100.0/24", "not-a-network"))

    assert validate_requester(ip_address("198.51.100.20"), "g", settings) == {PostStatus.BANNED_IP}
    assert validate_requester(ip_address("203.0.113.7"), "g", settings) == set()


def test_requester_locked_board(post_settings):
    settings = replace(post_settings, locked_boards=frozenset({"b"}))

    assert validate_requester(ip_address("203.0.113.7"), "b", settings) == {PostStatus.BOARD_LOCKED}


def test_is_banned_address_ignores_other_ip_version():
    assert not is_banned_address(ip_address("::1"), ("127.0.0.0/8",))
    assert is_banned_address(ip_address("2001:db8::1"), ("2001:db8::/32",))


def test_ipv4_mapped_address_matches_ipv4_ban(post_settings):
    settings = replace(post_settings, banned_networks=("198.51.100.0/24",))

    assert validate_requester(ip_address("::ffff:198.51.100.7"), "g", settings) == {PostStatus.BANNED_IP}
    assert validate_requester(ip_address("::ffff:203.0.113.7"), "g", settings) == set()


def test_ipv4_mapped_address_still_matches_ipv6_ban():
    assert is_banned_address(ip_address("::ffff:198.51.100.7"), ("::ffff:0:0/96",))


def _thread(**fields) -> Thread:
    return Thread.model_validate(thread_document(doc_id="t1", **fields))


def test_reply_target_open_thread(post_settings):
    assert validate_reply_target(_thread(), 2, post_settings) == set()


def test_reply_target_full_thread(post_settings):
    assert validate_reply_target(_thread(), 3, post_settings) == {PostStatus.LARGE_THREAD}


def test_reply_target_archived_and_locked(post_settings):
    settings = replace(post_settings, locked_threads=frozenset({"t1"}))

    violations = validate_reply_target(_thread(archived=True), 0, settings)

    assert violations == {PostStatus.THREAD_ARCHIVED, PostStatus.THREAD_LOCKED}
