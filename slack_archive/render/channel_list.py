"""Channel list of the index page: grouping, ordering and suppression."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from slack_archive.entities.cache import EntityCache
from slack_archive.models.archive import EntityRecord, channel_kind
from slack_archive.storage.archive_store import page_file_name
from slack_archive.sync.state import ArchiveState

GROUP_PREFIX = "Group messaging with: "


@dataclass
class ChannelLink:
    """One entry of the channel list."""

    channel_id: str
    name: str
    kind: str
    avatar: Optional[str] = None
    user_id: Optional[str] = None

    @property
    def href(self) -> str:
        return f"html/{page_file_name(self.channel_id, 0)}"


@dataclass
class ChannelGroups:
    """Channel links split into the sections of the index page."""

    public: List[ChannelLink] = field(default_factory=list)
    private: List[ChannelLink] = field(default_factory=list)
    dms: List[ChannelLink] = field(default_factory=list)
    groups: List[ChannelLink] = field(default_factory=list)

    def all(self) -> List[ChannelLink]:
        return self.public + self.private + self.dms + self.groups


def _name(channel: Dict[str, Any]) -> str:
    return channel.get("name") or channel["id"]


def _group_name(name: str, me: Optional[EntityRecord]) -> str:
    if me is not None and me.name:
        name = name.replace(f"@{me.name}", "").replace("  ", " ")
    return name.replace(GROUP_PREFIX, "").strip()


def build_channel_groups(
    channels: List[Dict[str, Any]],
    state: ArchiveState,
    entity_cache: EntityCache,
    me: Optional[EntityRecord] = None,
) -> ChannelGroups:
    """Group channels for the index page.

    Channels known to have zero persisted messages are left out. Each section
    is sorted by name; the conversation with oneself leads the DMs.
    """
    groups = ChannelGroups()
    listed = [c for c in channels if c.get("id") and not state.is_empty(c["id"])]
    for channel in sorted(listed, key=_name):
        kind = channel_kind(channel)
        name = _name(channel)
        if kind == "mpim":
            groups.groups.append(ChannelLink(channel["id"], _group_name(name, me), kind))
        elif kind == "im":
            counterpart = entity_cache.get(channel.get("user"))
            avatar = counterpart.avatar if counterpart is not None else None
            groups.dms.append(ChannelLink(channel["id"], name, kind, avatar=avatar, user_id=channel.get("user")))
        elif kind == "private":
            groups.private.append(ChannelLink(channel["id"], name, kind))
        else:
            groups.public.append(ChannelLink(channel["id"], name, kind))

    me_id = me.id if me is not None else None
    users = {c["id"]: c.get("user") for c in listed}

    def dm_order(link: ChannelLink) -> tuple:
        is_self = me_id is not None and users[link.channel_id] == me_id
        return (not is_self, link.name)

    groups.dms.sort(key=dm_order)
    return groups
