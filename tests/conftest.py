from typing import Any, Dict, Iterator, List, Optional

import pytest

from slack_archive.models.archive import EntityKind, newest_first, ts_key
from slack_archive.models.config import ArchiveConfig
from slack_archive.models.pages import ChannelPage, HistoryPage
from slack_archive.storage.archive_store import ArchiveStore
from slack_archive.sync.context import ArchiveContext


class FakeTransport:
    """In-memory stand-in for SlackTransport.

    `history` maps a channel id to its messages; `threads` maps
    (channel id, parent ts) to a transcript (parent first) or to an exception
    to raise; `entities` maps an id to a users.info/bots.info payload.
    """

    def __init__(self) -> None:
        self.channel_pages: List[List[Dict[str, Any]]] = [[]]
        self.history: Dict[str, List[Dict[str, Any]]] = {}
        self.threads: Dict[tuple, Any] = {}
        self.entities: Dict[str, Dict[str, Any]] = {}
        self.auth: Dict[str, Any] = {"ok": True, "user": "alice", "user_id": "U1", "team": "Acme", "team_id": "T1"}
        self.failing_history: Dict[str, Exception] = {}
        self.page_size = 2
        self.redeliver = False
        self.calls: List[tuple] = []

    def list_channels(self, types: List[str], exclude_archived: bool = False) -> Iterator[ChannelPage]:
        self.calls.append(("conversations.list",))
        for i, page in enumerate(self.channel_pages):
            cursor = f"c{i + 1}" if i + 1 < len(self.channel_pages) else None
            yield ChannelPage(channels=[dict(c) for c in page], next_cursor=cursor)

    def fetch_history(self, channel_id: str, since: Optional[str] = None) -> Iterator[HistoryPage]:
        self.calls.append(("conversations.history", channel_id, since))
        if channel_id in self.failing_history:
            raise self.failing_history[channel_id]
        messages = newest_first(self.history.get(channel_id, []))
        if since and not self.redeliver:
            messages = [m for m in messages if ts_key(m["ts"]) > ts_key(since)]
        pages = [messages[i : i + self.page_size] for i in range(0, len(messages), self.page_size)] or [[]]
        for i, page in enumerate(pages):
            more = i + 1 < len(pages)
            yield HistoryPage(messages=[dict(m) for m in page], has_more=more, next_cursor=f"h{i + 1}" if more else None)

    def fetch_thread_replies(self, channel_id: str, anchor_ts: str, since: Optional[str] = None) -> List[dict]:
        self.calls.append(("conversations.replies", channel_id, anchor_ts, since))
        transcript = self.threads.get((channel_id, anchor_ts), [])
        if isinstance(transcript, Exception):
            raise transcript
        return [dict(m) for m in transcript]

    def lookup_entity(self, kind: EntityKind, identifier: str) -> Optional[Dict[str, Any]]:
        self.calls.append((f"{kind.value}s.info", identifier))
        return self.entities.get(identifier)

    def test_auth(self) -> Dict[str, Any]:
        self.calls.append(("auth.test",))
        return dict(self.auth)

    def count(self, method: str) -> int:
        return sum(1 for call in self.calls if call[0] == method)


def make_message(ts: str, text: Optional[str] = None, user: Optional[str] = "U1", **extra: Any) -> Dict[str, Any]:
    message: Dict[str, Any] = {"type": "message", "ts": ts, "text": text if text is not None else f"message {ts}"}
    if user:
        message["user"] = user
    message.update(extra)
    return message


@pytest.fixture
def temp_dir(tmp_path):
    return tmp_path


@pytest.fixture
def msg():
    return make_message


@pytest.fixture
def fake_transport():
    return FakeTransport()


@pytest.fixture
def config(tmp_path):
    return ArchiveConfig(data_dir=str(tmp_path / "data"), out_dir=str(tmp_path / "out"), page_size=3, api_retries=0)


@pytest.fixture
def store(config):
    return ArchiveStore.from_config(config)


@pytest.fixture
def context(config, fake_transport):
    return ArchiveContext.create(config, transport=fake_transport)
