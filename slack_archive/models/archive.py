"""Records and helpers for archived Slack data.

Messages, replies and channels are kept as the raw dictionaries returned by
the Slack Web API so that nothing is lost when they are persisted. The helpers
here give typed views over them: message authors, thread parents, timestamp
ordering, and entity (user/bot) profile records.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union


class EntityKind(str, Enum):
    """Kind of remote entity that can author a message."""

    user = "user"
    bot = "bot"


@dataclass(frozen=True)
class UserAuthor:
    """Message written by a workspace user."""

    id: str

    @property
    def kind(self) -> EntityKind:
        return EntityKind.user


@dataclass(frozen=True)
class BotAuthor:
    """Message posted by a bot integration."""

    id: str

    @property
    def kind(self) -> EntityKind:
        return EntityKind.bot


@dataclass(frozen=True)
class UnknownAuthor:
    """Message without an author identifier (e.g. some system messages)."""

    id: None = None


Author = Union[UserAuthor, BotAuthor, UnknownAuthor]


def author_of(message: Dict[str, Any]) -> Author:
    """Resolve the author of a message.

    The `user` field wins over `bot_id`; Slack fills in exactly one of them for
    regular messages.
    """
    user_id = message.get("user")
    if user_id:
        return UserAuthor(str(user_id))
    bot_id = message.get("bot_id")
    if bot_id:
        return BotAuthor(str(bot_id))
    return UnknownAuthor()


def ts_key(ts: Optional[str]) -> Tuple[int, int]:
    """Sort key for Slack timestamps ("<seconds>.<micros>").

    Compares exactly, without going through floats.
    """
    if not ts:
        return (0, 0)
    secs, _, frac = str(ts).partition(".")
    try:
        return (int(secs), int((frac + "000000")[:6]))
    except ValueError:
        return (0, 0)


def is_thread_parent(message: Dict[str, Any]) -> bool:
    """Return True if the message anchors a thread with replies.

    A message whose `thread_ts` points at itself but has no replies is a plain
    message.
    """
    reply_count = message.get("reply_count") or 0
    ts = message.get("ts")
    return bool(ts) and reply_count > 0 and message.get("thread_ts") == ts


def channel_kind(channel: Dict[str, Any]) -> str:
    """Classify a channel as "public", "private", "im" or "mpim"."""
    if channel.get("is_im"):
        return "im"
    if channel.get("is_mpim"):
        return "mpim"
    if channel.get("is_private"):
        return "private"
    return "public"


@dataclass
class EntityRecord:
    """Profile of a user or bot as needed by the archive.

    Parameters:
        id: Slack user or bot id.
        kind: Whether the record came from `users.info` or `bots.info`.
        name: Handle / display name.
        real_name: Full name, if known.
        avatar: URL of the largest avatar image available.
        raw: The remote payload, kept for fields the renderer may need later.
    """

    id: str
    kind: EntityKind
    name: Optional[str] = None
    real_name: Optional[str] = None
    avatar: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)

    @property
    def display_name(self) -> str:
        return self.name or self.real_name or self.id

    @classmethod
    def from_api(cls, kind: EntityKind, payload: Dict[str, Any]) -> "EntityRecord":
        """Build a record from a `users.info` user or `bots.info` bot object."""
        if kind == EntityKind.user:
            profile = payload.get("profile") or {}
            avatar = profile.get("image_512") or profile.get("image_192") or profile.get("image_72")
            return cls(
                id=payload["id"],
                kind=kind,
                name=payload.get("name") or profile.get("display_name"),
                real_name=payload.get("real_name") or profile.get("real_name"),
                avatar=avatar,
                raw=payload,
            )
        icons = payload.get("icons") or {}
        return cls(
            id=payload["id"],
            kind=kind,
            name=payload.get("name"),
            real_name=payload.get("name"),
            avatar=icons.get("image_72") or icons.get("image_48") or icons.get("image_36"),
            raw=payload,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the record for persistence."""
        return {
            "id": self.id,
            "kind": self.kind.value,
            "name": self.name,
            "real_name": self.real_name,
            "avatar": self.avatar,
            "raw": self.raw,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EntityRecord":
        """Deserialize a persisted record."""
        return cls(
            id=data["id"],
            kind=EntityKind(data.get("kind", EntityKind.user.value)),
            name=data.get("name"),
            real_name=data.get("real_name"),
            avatar=data.get("avatar"),
            raw=data.get("raw") or {},
        )


def newest_first(messages: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Return messages sorted newest-first by timestamp."""
    return sorted(messages, key=lambda m: ts_key(m.get("ts")), reverse=True)
