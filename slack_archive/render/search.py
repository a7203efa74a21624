"""Search index: page locator boundaries and the searchable message file."""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from slack_archive.models.archive import ts_key

logger = logging.getLogger(__name__)


def locate_page(boundaries: List[str], ts: str) -> Optional[int]:
    """Index of the page containing `ts`.

    Boundaries are the oldest timestamps of each page, decreasing with the
    page index. The page is the first one whose boundary is <= `ts`; None
    means `ts` is older than everything rendered.
    """
    target = ts_key(ts)
    for index, boundary in enumerate(boundaries):
        if ts_key(boundary) <= target:
            return index
    return None


class SearchIndexBuilder:
    """Collects, per channel, the oldest timestamp of every rendered page."""

    def __init__(self, pages: Optional[Dict[str, List[str]]] = None):
        self.pages: Dict[str, List[str]] = {k: list(v) for k, v in (pages or {}).items()}

    def record_page(self, channel_id: str, oldest_ts: str) -> None:
        """Append the boundary of the next page of `channel_id` (pages are recorded in index order)."""
        self.pages.setdefault(channel_id, []).append(oldest_ts)

    def reset_channel(self, channel_id: str) -> None:
        self.pages.pop(channel_id, None)

    def locate(self, channel_id: str, ts: str) -> Optional[int]:
        return locate_page(self.pages.get(channel_id, []), ts)

    def to_dict(self) -> Dict[str, List[str]]:
        return {k: list(v) for k, v in self.pages.items()}


@dataclass
class SearchFile:
    """Everything the archive viewer needs for search.

    Message entries use short keys to keep the file small: `m` text, `u`
    author id, `t` timestamp, `c` channel id, and `p` the parent timestamp for
    replies (replies live on their parent's page).
    """

    users: Dict[str, str] = field(default_factory=dict)
    channels: Dict[str, str] = field(default_factory=dict)
    messages: Dict[str, List[Dict[str, str]]] = field(default_factory=dict)
    index: SearchIndexBuilder = field(default_factory=SearchIndexBuilder)

    def add_channel(self, channel: Dict[str, Any], messages: List[Dict[str, Any]]) -> None:
        """Replace the searchable messages of `channel`."""
        channel_id = channel["id"]
        self.channels[channel_id] = channel.get("name") or channel_id
        entries: List[Dict[str, str]] = []
        for message in messages:
            entries.append(_entry(channel_id, message))
            for reply in message.get("replies") or []:
                entries.append(_entry(channel_id, reply, parent_ts=message.get("ts")))
        self.messages[channel_id] = entries

    def locate(self, channel_id: str, ts: str) -> Optional[int]:
        return self.index.locate(channel_id, ts)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "users": self.users,
            "channels": self.channels,
            "messages": self.messages,
            "pages": self.index.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SearchFile":
        return cls(
            users=dict(data.get("users") or {}),
            channels=dict(data.get("channels") or {}),
            messages=dict(data.get("messages") or {}),
            index=SearchIndexBuilder(data.get("pages") or {}),
        )


def _entry(channel_id: str, message: Dict[str, Any], parent_ts: Optional[str] = None) -> Dict[str, str]:
    entry = {"c": channel_id}
    if message.get("text"):
        entry["m"] = message["text"]
    author = message.get("user") or message.get("bot_id")
    if author:
        entry["u"] = author
    if message.get("ts"):
        entry["t"] = message["ts"]
    if parent_ts:
        entry["p"] = parent_ts
    return entry
