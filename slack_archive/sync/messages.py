"""Incremental synchronization of a channel's top-level message history."""

import logging
from dataclasses import dataclass, field
from time import perf_counter
from typing import Any, Dict, List, Optional, Set

from slack_archive.metrics.metrics import OP_ITEMS, OP_LATENCY
from slack_archive.models.archive import newest_first, ts_key
from slack_archive.sources.transport import SlackTransport
from slack_archive.storage.archive_store import ArchiveStore

logger = logging.getLogger(__name__)


@dataclass
class MessageSyncResult:
    """Outcome of one sync pass over a channel.

    Parameters:
        messages: Persisted plus newly fetched messages, newest-first, unique by `ts`.
        new_count: Number of messages fetched this pass that were not stored before.
    """

    messages: List[Dict[str, Any]] = field(default_factory=list)
    new_count: int = 0


def merge_messages(persisted: List[Dict[str, Any]], fetched: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Merge fetched messages into persisted ones.

    The result is newest-first with one message per timestamp. On a collision
    the persisted copy is kept, since it may already carry replies.
    """
    by_ts: Dict[str, Dict[str, Any]] = {}
    for message in list(persisted) + list(fetched):
        ts = message.get("ts")
        if ts and ts not in by_ts:
            by_ts[ts] = message
    return newest_first(list(by_ts.values()))


def newest_timestamp(messages: List[Dict[str, Any]]) -> Optional[str]:
    """Timestamp of the newest message, or None for an empty collection."""
    stamps = [m["ts"] for m in messages if m.get("ts")]
    if not stamps:
        return None
    return max(stamps, key=ts_key)


class MessageSynchronizer:
    """Fetches the messages a channel gained since the last run.

    The stored collection is the source of truth for what has already been
    downloaded: history is requested only after its newest timestamp. Nothing
    is written here; the caller persists the result once the pass completes,
    so an interrupted pass leaves the store untouched.
    """

    def __init__(self, transport: SlackTransport, store: ArchiveStore):
        self.transport = transport
        self.store = store

    def sync(self, channel: Dict[str, Any]) -> MessageSyncResult:
        """Fetch and merge new top-level messages for `channel`.

        Raises:
            ValueError: If the channel has no id.
            TransportError: If a history page could not be fetched.
        """
        channel_id = channel.get("id")
        if not channel_id:
            raise ValueError("Channel without id")

        op_start = perf_counter()
        persisted = self.store.read_messages(channel_id)
        cursor = newest_timestamp(persisted)
        seen: Set[str] = {m["ts"] for m in persisted if m.get("ts")}

        fetched: List[Dict[str, Any]] = []
        for page in self.transport.fetch_history(channel_id, since=cursor):
            for message in page.messages:
                ts = message.get("ts")
                if not ts:
                    logger.warning(f"Skipping message without ts in channel {channel_id}")
                    continue
                if ts in seen:
                    logger.debug(f"Dropping re-delivered message {ts} in channel {channel_id}")
                    continue
                seen.add(ts)
                fetched.append(message)
            logger.debug(
                f"sync_messages: page channel={channel_id} messages={len(page.messages)} "
                f"(total so far: {len(persisted) + len(fetched)})"
            )

        merged = merge_messages(persisted, fetched)
        op_elapsed = perf_counter() - op_start
        logger.info(
            f"sync_messages: done channel={channel_id} stored={len(persisted)} new={len(fetched)} "
            f"since={cursor} elapsed={op_elapsed:.3f}s"
        )
        OP_LATENCY.labels(operation="sync_messages").observe(op_elapsed)
        OP_ITEMS.labels(operation="sync_messages").observe(len(fetched))
        return MessageSyncResult(messages=merged, new_count=len(fetched))
