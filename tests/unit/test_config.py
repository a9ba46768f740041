import pytest
from pydantic import ValidationError

from spriteib.config import PostSettings, Settings

pytestmark = pytest.mark.unit


def test_settings_load_required_values_from_env():
    settings = Settings(_env_file=None)

    assert settings.max_post_length_thread == 10
    assert settings.couch_listing_db == "spriteib_listing_test"
    assert settings.boards == ["g", "b"]
    assert settings.prometheus_metrics_port is None


def test_missing_required_value_fails(monkeypatch):
    monkeypatch.delenv("COUCH_DB", raising=False)

    with pytest.raises(ValidationError):
        Settings(_env_file=None)


def test_list_settings_parse_json(monkeypatch):
    monkeypatch.setenv("BANNED_WORDS", '["Spam", "eggs"]')
    monkeypatch.setenv("BOARD_THREAD_LIMITS", '{"b": 5}')

    post_settings = PostSettings.from_settings(Settings(_env_file=None))

    assert post_settings.banned_words == frozenset({"spam", "eggs"})
    assert post_settings.thread_limit_for("b") == 5
    assert post_settings.thread_limit_for("g") == 150


def test_post_settings_from_settings():
    post_settings = PostSettings.from_settings(Settings(_env_file=None))

    assert post_settings.thread_comment_length == 10
    assert post_settings.comment_comment_length == 10
    assert post_settings.file_size == 1_048_576
    assert post_settings.thread_replies == 3
    assert post_settings.listen_address == "0.0.0.0:3000"
