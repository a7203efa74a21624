"""Archive state tracking for incremental synchronization.

The archive state records, per channel, how many messages are persisted and
whether the channel's history has been fully downloaded, plus the identity the
token authenticated as during the last run.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from slack_archive.storage.archive_store import ArchiveStore
from slack_archive.utils.json_store import read_json, write_json

logger = logging.getLogger(__name__)


@dataclass
class ChannelState:
    """Progress of one channel.

    Parameters:
        message_count: Length of the persisted message collection after the last flush.
        fully_downloaded: True once a sync pass found no new top-level messages.
    """

    message_count: int = 0
    fully_downloaded: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {"messages": self.message_count, "fullyDownloaded": self.fully_downloaded}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChannelState":
        return cls(
            message_count=int(data.get("messages", 0) or 0),
            fully_downloaded=bool(data.get("fullyDownloaded", False)),
        )


@dataclass
class ArchiveState:
    """Persisted per-channel counters and the last authenticated identity."""

    channels: Dict[str, ChannelState] = field(default_factory=dict)
    auth: Optional[Dict[str, Any]] = None

    def get(self, channel_id: str) -> Optional[ChannelState]:
        return self.channels.get(channel_id)

    def is_empty(self, channel_id: str) -> bool:
        """True when the channel is known to have zero persisted messages."""
        channel = self.channels.get(channel_id)
        return channel is not None and channel.message_count == 0

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"channels": {cid: c.to_dict() for cid, c in self.channels.items()}}
        if self.auth is not None:
            payload["auth"] = self.auth
        return payload

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ArchiveState":
        channels = data.get("channels") or {}
        return cls(
            channels={cid: ChannelState.from_dict(c) for cid, c in channels.items() if isinstance(c, dict)},
            auth=data.get("auth"),
        )


class ArchiveStateTracker:
    """Sole writer of per-channel completion flags.

    The state is read once per run with `load()`, mutated in memory with
    `update()`, and written with `flush()` at checkpoints chosen by the caller.
    """

    def __init__(self, store: ArchiveStore):
        self.store = store
        self.state = ArchiveState()

    def load(self) -> ArchiveState:
        """Read the persisted state, starting fresh if there is none."""
        data = read_json(self.store.state_path, default=None)
        if isinstance(data, dict):
            self.state = ArchiveState.from_dict(data)
        else:
            self.state = ArchiveState()
        logger.debug(f"Loaded archive state for {len(self.state.channels)} channels")
        return self.state

    def update(self, channel_id: str, message_count: int, fully_downloaded: bool) -> ChannelState:
        """Record the result of a sync pass for a channel.

        `fully_downloaded` is sticky: once True it stays True until
        `reset_channel` is called.
        """
        channel = self.state.channels.setdefault(channel_id, ChannelState())
        channel.message_count = message_count
        channel.fully_downloaded = channel.fully_downloaded or fully_downloaded
        return channel

    def reset_channel(self, channel_id: str) -> None:
        """Forget a channel's progress so it is treated as never synchronized."""
        self.state.channels.pop(channel_id, None)

    def set_auth(self, auth: Optional[Dict[str, Any]]) -> None:
        self.state.auth = auth

    def flush(self, state: Optional[ArchiveState] = None) -> None:
        """Persist `state` (defaults to the tracked state) atomically."""
        if state is not None:
            self.state = state
        write_json(self.store.state_path, self.state.to_dict())
        logger.debug(f"Archive state persisted at {self.store.state_path}")
