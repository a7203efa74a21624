"""Per-run context shared by the synchronization and rendering components."""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from slack_archive.entities.cache import EntityCache
from slack_archive.models.config import ArchiveConfig
from slack_archive.sources.transport import SlackTransport
from slack_archive.storage.archive_store import ArchiveStore
from slack_archive.sync.state import ArchiveStateTracker


@dataclass
class ArchiveContext:
    """Everything a run shares, built once and passed to each component.

    Parameters:
        store: Persisted store layout.
        entity_cache: User/bot profile cache, shared by every channel of the run.
        state: Tracker of per-channel progress.
        current_identity: `auth.test` response of the token, once known.
    """

    store: ArchiveStore
    entity_cache: EntityCache
    state: ArchiveStateTracker
    current_identity: Optional[Dict[str, Any]] = None

    @classmethod
    def create(cls, config: ArchiveConfig, transport: Optional[SlackTransport] = None) -> "ArchiveContext":
        """Build a context for `config`; without a transport the entity cache is read-only."""
        store = ArchiveStore.from_config(config)
        context = cls(
            store=store,
            entity_cache=EntityCache(store.users_path, transport=transport),
            state=ArchiveStateTracker(store),
        )
        context.state.load()
        context.current_identity = context.state.state.auth
        return context

    @property
    def current_user_id(self) -> Optional[str]:
        if not self.current_identity:
            return None
        return self.current_identity.get("user_id")
