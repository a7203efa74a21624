import pytest
from pydantic import ValidationError

from slack_archive.models.archive import (
    BotAuthor,
    EntityKind,
    EntityRecord,
    UnknownAuthor,
    UserAuthor,
    author_of,
    channel_kind,
    is_thread_parent,
    newest_first,
    ts_key,
)
from slack_archive.models.config import ArchiveConfig, ConfigLoader, resolve_token
from slack_archive.models.pages import ChannelPage, HistoryPage, MalformedResponseError, RepliesPage


def test_config_defaults():
    config = ArchiveConfig()
    assert config.page_size == 1000
    assert config.channel_types == ["public_channel", "private_channel", "im", "mpim"]
    assert config.channel_ids is None
    assert config.api_retries == 3


def test_config_rejects_non_positive_page_size():
    with pytest.raises(ValidationError):
        ArchiveConfig(page_size=0)


def test_config_loader_missing_file_returns_defaults(temp_dir):
    config = ConfigLoader.load(str(temp_dir / "missing.yaml"))
    assert config == ArchiveConfig()


def test_config_loader_reads_yaml(temp_dir):
    path = temp_dir / "archive.yaml"
    path.write_text("archive:\n  page_size: 50\n  channel_ids: [C1, C2]\n  out_dir: /tmp/site\n", encoding="utf-8")

    config = ConfigLoader.load(str(path))

    assert config.page_size == 50
    assert config.channel_ids == ["C1", "C2"]
    assert config.out_dir == "/tmp/site"


def test_resolve_token_prefers_argument(monkeypatch):
    monkeypatch.setenv("SLACK_TOKEN", "xoxp-env")
    assert resolve_token("xoxp-arg") == "xoxp-arg"
    assert resolve_token() == "xoxp-env"

    monkeypatch.delenv("SLACK_TOKEN")
    monkeypatch.setenv("SLACK_BOT_TOKEN", "xoxb-env")
    assert resolve_token() == "xoxb-env"


def test_author_of_prefers_user_over_bot():
    assert author_of({"user": "U1", "bot_id": "B1"}) == UserAuthor("U1")
    assert author_of({"bot_id": "B1"}) == BotAuthor("B1")
    assert isinstance(author_of({"subtype": "channel_join"}), UnknownAuthor)
    assert BotAuthor("B1").kind == EntityKind.bot


def test_ts_key_orders_exactly():
    assert ts_key("1700000000.000100") < ts_key("1700000000.000101")
    assert ts_key("1700000000.9") > ts_key("1700000000.000100")
    assert ts_key(None) == (0, 0)


def test_newest_first_sorts_by_timestamp():
    messages = [{"ts": "2.000000"}, {"ts": "10.000000"}, {"ts": "9.500000"}]
    assert [m["ts"] for m in newest_first(messages)] == ["10.000000", "9.500000", "2.000000"]


def test_is_thread_parent():
    assert is_thread_parent({"ts": "1.0", "thread_ts": "1.0", "reply_count": 2})
    assert not is_thread_parent({"ts": "1.0", "thread_ts": "1.0", "reply_count": 0})
    assert not is_thread_parent({"ts": "2.0", "thread_ts": "1.0", "reply_count": 2})
    assert not is_thread_parent({"ts": "1.0"})


def test_channel_kind():
    assert channel_kind({"is_im": True}) == "im"
    assert channel_kind({"is_mpim": True, "is_private": True}) == "mpim"
    assert channel_kind({"is_private": True}) == "private"
    assert channel_kind({"is_channel": True}) == "public"


def test_entity_record_from_user_payload():
    payload = {
        "id": "U1",
        "name": "alice",
        "real_name": "Alice Doe",
        "profile": {"image_72": "https://img/72.png", "image_512": "https://img/512.png"},
    }
    record = EntityRecord.from_api(EntityKind.user, payload)

    assert record.display_name == "alice"
    assert record.avatar == "https://img/512.png"
    assert EntityRecord.from_dict(record.to_dict()) == record


def test_entity_record_from_bot_payload():
    record = EntityRecord.from_api(EntityKind.bot, {"id": "B1", "name": "deploybot", "icons": {"image_48": "i48"}})
    assert record.kind == EntityKind.bot
    assert record.display_name == "deploybot"
    assert record.avatar == "i48"


def test_pages_decode_cursor_and_messages():
    page = HistoryPage.decode(
        {"ok": True, "messages": [{"ts": "1.0"}], "has_more": True, "response_metadata": {"next_cursor": "abc"}}
    )
    assert page.messages == [{"ts": "1.0"}]
    assert page.has_more is True
    assert page.next_cursor == "abc"

    last = ChannelPage.decode({"ok": True, "channels": [], "response_metadata": {"next_cursor": ""}})
    assert last.next_cursor is None


def test_pages_reject_missing_list():
    with pytest.raises(MalformedResponseError):
        RepliesPage.decode({"ok": True})
    with pytest.raises(MalformedResponseError):
        ChannelPage.decode({"ok": True, "channels": None})
