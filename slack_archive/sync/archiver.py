"""Workspace archiver: one synchronization run over all channels.

Channels are processed strictly one at a time. For each channel the message
pass is persisted and checkpointed before its threads are synchronized, and
the channel is checkpointed again once replies and authors are merged. Files
and avatars are downloaded after that checkpoint. A `TransportError` ends the
run; channels flushed before it keep their progress.
"""

import logging
from dataclasses import dataclass, field
from time import perf_counter
from typing import Any, Callable, Dict, Iterable, List, Optional

from slack_archive.metrics.metrics import OP_LATENCY
from slack_archive.models.archive import EntityRecord, author_of
from slack_archive.models.config import ArchiveConfig
from slack_archive.sources.transport import SlackTransport
from slack_archive.sync.channels import ChannelDirectory, merge_channel_lists
from slack_archive.sync.context import ArchiveContext
from slack_archive.sync.media import MediaDownloader
from slack_archive.sync.messages import MessageSynchronizer
from slack_archive.sync.threads import ThreadSynchronizer

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str], None]


@dataclass
class SyncReport:
    """Summary of a synchronization run."""

    channels: List[str] = field(default_factory=list)
    skipped: int = 0
    new_messages: Dict[str, int] = field(default_factory=dict)

    @property
    def total_new(self) -> int:
        return sum(self.new_messages.values())


class WorkspaceArchiver:
    """Runs channel listing, message sync, thread sync and state checkpoints.

    Args:
        config: Archive configuration.
        transport: Slack transport.
        context: Run context (store, entity cache, state tracker).
        progress: Optional callback receiving human-readable progress lines.
        media: Optional downloader of message files and avatars.
    """

    def __init__(
        self,
        config: ArchiveConfig,
        transport: SlackTransport,
        context: ArchiveContext,
        progress: Optional[ProgressCallback] = None,
        media: Optional[MediaDownloader] = None,
    ):
        self.config = config
        self.transport = transport
        self.context = context
        self.progress = progress
        self.media = media
        self.directory = ChannelDirectory(config, transport, context.entity_cache)
        self.messages = MessageSynchronizer(transport, context.store)
        self.threads = ThreadSynchronizer(transport)

    def _report(self, text: str) -> None:
        if self.progress is not None:
            self.progress(text)

    def run(self, channel_ids: Optional[Iterable[str]] = None) -> SyncReport:
        """Synchronize every channel (or only `channel_ids`).

        Raises:
            TransportError: On an unrecoverable remote failure.
        """
        start_time = perf_counter()
        report = SyncReport()
        try:
            tracker = self.context.state
            tracker.load()

            identity = self.transport.test_auth()
            self.context.current_identity = identity
            tracker.set_auth(identity)
            logger.info(f"Authenticated as {identity.get('user')} ({identity.get('user_id')}) on {identity.get('team')}")

            wanted = list(channel_ids) if channel_ids else self.config.channel_ids
            channels = self.directory.list_channels(wanted)
            stored = self.context.store.read_channels()
            self.context.store.write_channels(merge_channel_lists(stored, channels) if wanted else channels)
            self.context.entity_cache.flush()
            tracker.flush()
            if self.media is not None:
                cache = self.context.entity_cache
                counterparts = [cache.get(c.get("user")) for c in channels if c.get("is_im")]
                self.media.download_avatars([r for r in counterparts if r is not None])

            for i, channel in enumerate(channels):
                new_count = self.sync_channel(channel, i, len(channels))
                if new_count is None:
                    report.skipped += 1
                    continue
                report.channels.append(channel["id"])
                report.new_messages[channel["id"]] = new_count

            logger.info(f"Sync finished: channels={len(report.channels)} new_messages={report.total_new}")
            return report
        finally:
            OP_LATENCY.labels(operation="sync_workspace").observe(perf_counter() - start_time)

    def sync_channel(self, channel: Dict[str, Any], i: int = 0, total: int = 1) -> Optional[int]:
        """Synchronize one channel; returns its new message count, or None if skipped."""
        channel_id = channel.get("id")
        if not channel_id:
            logger.warning(f"Skipping channel without id: {channel.get('name')!r}")
            return None
        name = channel.get("name") or channel_id
        store = self.context.store
        tracker = self.context.state

        self._report(f"Downloading {i + 1}/{total} {name}...")
        result = self.messages.sync(channel)
        store.write_messages(channel_id, result.messages)
        tracker.update(channel_id, len(result.messages), fully_downloaded=result.new_count == 0)
        tracker.flush()

        def thread_progress(done: int, count: int) -> None:
            self._report(f"Downloading threads ({done}/{count}) for {name}...")

        messages = self.threads.sync_threads(channel, result.messages, progress=thread_progress)
        authors = self._resolve_authors(messages)
        store.write_messages(channel_id, messages)
        self.context.entity_cache.flush()
        tracker.update(channel_id, len(messages), fully_downloaded=result.new_count == 0)
        tracker.flush()

        if self.media is not None:
            self._report(f"Downloading files for {name}...")
            self.media.download_files(channel_id, messages)
            self.media.download_avatars(authors)

        self._report(f"Downloaded {i + 1}/{total} {name}: {result.new_count} new messages")
        return result.new_count

    def _resolve_authors(self, messages: List[Dict[str, Any]]) -> List[EntityRecord]:
        cache = self.context.entity_cache
        authors: Dict[str, EntityRecord] = {}
        for message in messages:
            for item in [message] + list(message.get("replies") or []):
                record = cache.resolve_author(author_of(item))
                if record is not None:
                    authors[record.id] = record
        return list(authors.values())
