"""Splitting a channel's messages into fixed-size, navigable pages."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class JumpLink:
    """One entry of a page's jump bar."""

    index: int
    current: bool


@dataclass
class Page:
    """A page of a channel.

    Page 0 holds the newest messages. `messages` is in reading order, oldest
    message first.
    """

    channel: Dict[str, Any]
    index: int
    total: int
    messages: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def channel_id(self) -> str:
        return self.channel["id"]

    @property
    def is_empty(self) -> bool:
        return not self.messages

    @property
    def newer_index(self) -> Optional[int]:
        return self.index - 1 if self.index > 0 else None

    @property
    def older_index(self) -> Optional[int]:
        return self.index + 1 if self.index + 1 < self.total else None

    @property
    def jump_bar(self) -> List[JumpLink]:
        if self.total <= 1:
            return []
        return [JumpLink(index=i, current=i == self.index) for i in range(self.total)]

    @property
    def oldest_ts(self) -> Optional[str]:
        """Timestamp of the oldest message on the page (its locator boundary)."""
        if not self.messages:
            return None
        return self.messages[0].get("ts")


def chunk(messages: List[Dict[str, Any]], size: int) -> List[List[Dict[str, Any]]]:
    """Split `messages` into consecutive chunks of at most `size` items."""
    return [messages[i : i + size] for i in range(0, len(messages), size)]


def paginate(channel: Dict[str, Any], messages: List[Dict[str, Any]], page_size: int) -> List[Page]:
    """Split newest-first `messages` into pages.

    An empty channel still gets one (empty) page so it has a landing page.

    Raises:
        ValueError: If `page_size` is not positive.
    """
    if page_size <= 0:
        raise ValueError(f"page_size must be positive, got {page_size}")
    chunks = chunk(messages, page_size)
    if not chunks:
        return [Page(channel=channel, index=0, total=1, messages=[])]
    total = len(chunks)
    return [
        Page(channel=channel, index=i, total=total, messages=list(reversed(page_messages)))
        for i, page_messages in enumerate(chunks)
    ]
