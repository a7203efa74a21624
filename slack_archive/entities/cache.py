"""Entity cache for user and bot profiles."""

import logging
import threading
from pathlib import Path
from typing import Dict, Optional

from slack_archive.metrics.metrics import ENTITY_CACHE_HITS, ENTITY_CACHE_MISSES
from slack_archive.models.archive import Author, EntityKind, EntityRecord, UnknownAuthor
from slack_archive.sources.transport import SlackTransport
from slack_archive.utils.json_store import read_json, write_json

logger = logging.getLogger(__name__)


class EntityCache:
    """JSON-backed, append-only cache of user and bot profiles.

    An identifier is fetched from Slack at most once: resolved records are kept
    (and persisted on `flush`) and never refreshed. Lookups that find nothing
    are not cached, so a later run may still resolve the identifier.

    Args:
        path: Path to the cache file (`users.json`).
        transport: Transport used for lookups; None makes the cache read-only,
            as when rendering.
    """

    def __init__(self, path: Path, transport: Optional[SlackTransport] = None):
        self._path = Path(path)
        self._transport = transport
        self._lock = threading.Lock()
        self._records: Dict[str, EntityRecord] = self._load()
        self._dirty = False

    def _load(self) -> Dict[str, EntityRecord]:
        data = read_json(self._path, default={})
        if not isinstance(data, dict):
            logger.warning(f"Ignoring malformed entity cache at {self._path}")
            return {}
        records: Dict[str, EntityRecord] = {}
        for identifier, entry in data.items():
            try:
                records[identifier] = EntityRecord.from_dict(entry)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping corrupted entity cache entry {identifier}: {e}")
        return records

    def __contains__(self, identifier: str) -> bool:
        return identifier in self._records

    def __len__(self) -> int:
        return len(self._records)

    def get(self, identifier: Optional[str]) -> Optional[EntityRecord]:
        """Return the cached record for `identifier` without any remote call."""
        if not identifier:
            return None
        return self._records.get(identifier)

    def resolve(self, identifier: Optional[str], kind: EntityKind) -> Optional[EntityRecord]:
        """Return the profile for `identifier`, fetching it on first use.

        Args:
            identifier: Slack user or bot id.
            kind: Which lookup to use (`users.info` or `bots.info`).

        Returns:
            The record, or None if Slack has no record (deleted or restricted account).

        Raises:
            TransportError: If the lookup itself failed.
        """
        if not identifier:
            return None
        with self._lock:
            cached = self._records.get(identifier)
            if cached is not None:
                ENTITY_CACHE_HITS.inc()
                logger.debug(f"entity cache HIT for {identifier}")
                return cached

            ENTITY_CACHE_MISSES.inc()
            if self._transport is None:
                return None
            logger.debug(f"entity cache MISS for {identifier}, fetching {kind.value}")
            payload = self._transport.lookup_entity(kind, identifier)
            if payload is None:
                logger.info(f"No {kind.value} record for {identifier}; it will be shown as a bare id")
                return None

            record = EntityRecord.from_api(kind, payload)
            # Keyed by the id we looked up, regardless of kind
            self._records[identifier] = record
            self._dirty = True
            return record

    def resolve_author(self, author: Author) -> Optional[EntityRecord]:
        """Resolve the author of a message; unknown authors resolve to None."""
        if isinstance(author, UnknownAuthor):
            return None
        return self.resolve(author.id, author.kind)

    def display_name(self, identifier: Optional[str]) -> str:
        """Name to show for an identifier, falling back to the bare id."""
        record = self.get(identifier)
        if record is not None:
            return record.display_name
        return identifier or "Unknown"

    def names(self) -> Dict[str, str]:
        """Mapping of every cached identifier to its display name."""
        return {identifier: record.display_name for identifier, record in self._records.items()}

    def flush(self) -> None:
        """Persist the cache if new records were added since the last flush."""
        with self._lock:
            if not self._dirty and self._path.exists():
                return
            write_json(self._path, {identifier: r.to_dict() for identifier, r in self._records.items()})
            self._dirty = False
            logger.debug(f"Entity cache persisted with {len(self._records)} records")
