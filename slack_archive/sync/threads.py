"""Incremental synchronization of thread replies."""

import logging
from typing import Any, Callable, Dict, List, Optional

from slack_archive.models.archive import is_thread_parent, ts_key
from slack_archive.sources.transport import IncompleteThreadError, SlackTransport

logger = logging.getLogger(__name__)


class ThreadSynchronizer:
    """Fills in and extends the `replies` of thread parents.

    A thread counts as complete once it holds at least `reply_count` replies;
    complete threads are never fetched again. This trusts `reply_count`, which
    can over-state what Slack still returns (e.g. after deletions).
    """

    def __init__(self, transport: SlackTransport):
        self.transport = transport

    def sync_threads(
        self,
        channel: Dict[str, Any],
        messages: List[Dict[str, Any]],
        progress: Optional[Callable[[int, int], None]] = None,
    ) -> List[Dict[str, Any]]:
        """Return `messages` with the replies of every incomplete thread fetched.

        Args:
            channel: The channel the messages belong to.
            messages: Top-level messages, newest-first.
            progress: Optional callback receiving (processed threads, total threads).

        Raises:
            TransportError: On transport failures other than a missing thread.
        """
        channel_id = channel.get("id")
        total = sum(1 for m in messages if is_thread_parent(m))
        if not channel_id or total == 0:
            return messages

        processed = 0
        result: List[Dict[str, Any]] = []
        for message in messages:
            if is_thread_parent(message):
                processed += 1
                if progress is not None:
                    progress(processed, total)
                message = self._sync_thread(channel_id, message)
            result.append(message)
        logger.info(f"sync_threads: done channel={channel_id} threads={total}")
        return result

    def _sync_thread(self, channel_id: str, message: Dict[str, Any]) -> Dict[str, Any]:
        parent_ts = message["ts"]
        replies: List[Dict[str, Any]] = list(message.get("replies") or [])
        if len(replies) >= message["reply_count"]:
            return message

        # Oldest-first, so the last stored reply is the newest one
        cursor = replies[-1]["ts"] if replies else parent_ts
        try:
            transcript = self.transport.fetch_thread_replies(channel_id, parent_ts, since=cursor)
        except IncompleteThreadError as e:
            logger.warning(f"Thread {parent_ts} in channel {channel_id} is gone, keeping {len(replies)} replies: {e}")
            return message

        # The first entry is the parent itself
        if transcript and transcript[0].get("ts") == parent_ts:
            transcript = transcript[1:]
        new_replies = [r for r in transcript if r.get("ts") and ts_key(r["ts"]) > ts_key(cursor)]
        if not new_replies:
            logger.warning(
                f"Thread {parent_ts} in channel {channel_id} claims {message['reply_count']} replies "
                f"but none were returned after {cursor}"
            )
            return message

        updated = dict(message)
        updated["replies"] = replies + new_replies
        logger.debug(f"Thread {parent_ts}: +{len(new_replies)} replies (total {len(updated['replies'])})")
        return updated
