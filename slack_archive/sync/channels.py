"""Channel directory: lists conversations and names direct/group conversations."""

import logging
from time import perf_counter
from typing import Any, Dict, Iterable, List, Optional

from slack_archive.entities.cache import EntityCache
from slack_archive.metrics.metrics import OP_ITEMS, OP_LATENCY
from slack_archive.models.archive import EntityKind
from slack_archive.models.config import ArchiveConfig
from slack_archive.sources.transport import SlackTransport

logger = logging.getLogger(__name__)


class ChannelDirectory:
    """Lists the conversations to archive.

    Direct conversations have no name of their own; they are named after the
    counterpart's profile. Group conversations are named after their purpose.
    """

    def __init__(self, config: ArchiveConfig, transport: SlackTransport, entity_cache: EntityCache):
        self.config = config
        self.transport = transport
        self.entity_cache = entity_cache

    def list_channels(self, channel_ids: Optional[Iterable[str]] = None) -> List[Dict[str, Any]]:
        """Return every listed channel that has an id, optionally restricted to `channel_ids`.

        Raises:
            TransportError: If listing or a counterpart lookup fails.
        """
        op_start = perf_counter()
        wanted = set(channel_ids) if channel_ids else None
        channels: List[Dict[str, Any]] = []
        for page in self.transport.list_channels(self.config.channel_types, self.config.exclude_archived):
            logger.info(f"Found {len(page.channels)} channels (found so far: {len(channels) + len(page.channels)})")
            for channel in page.channels:
                if not channel.get("id"):
                    logger.warning(f"Skipping channel without id: {channel.get('name')!r}")
                    continue
                if wanted is not None and channel["id"] not in wanted:
                    continue
                channels.append(self._with_display_name(channel))

        op_elapsed = perf_counter() - op_start
        logger.info(f"list_channels: done items={len(channels)} elapsed={op_elapsed:.3f}s")
        OP_LATENCY.labels(operation="list_channels").observe(op_elapsed)
        OP_ITEMS.labels(operation="list_channels").observe(len(channels))
        return channels

    def _with_display_name(self, channel: Dict[str, Any]) -> Dict[str, Any]:
        if channel.get("is_im"):
            if not channel.get("name"):
                channel["name"] = self._direct_name(channel.get("user"))
        elif channel.get("is_mpim"):
            purpose = (channel.get("purpose") or {}).get("value")
            channel["name"] = purpose or channel.get("name") or channel["id"]
        return channel

    def _direct_name(self, user_id: Optional[str]) -> str:
        record = self.entity_cache.resolve(user_id, EntityKind.user)
        if record is None:
            return user_id or "Unknown"
        real_name = f" ({record.real_name})" if record.real_name else ""
        return f"{record.name or record.id}{real_name}"


def merge_channel_lists(previous: List[Dict[str, Any]], current: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Overlay freshly listed channels on a previously stored list, keyed by id."""
    merged: Dict[str, Dict[str, Any]] = {c["id"]: c for c in previous if c.get("id")}
    for channel in current:
        merged[channel["id"]] = channel
    return list(merged.values())
