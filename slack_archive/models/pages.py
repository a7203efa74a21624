"""Typed views of paginated Slack Web API responses.

Every response coming back from the transport is decoded into one of these
variants before the synchronizers see it. A payload missing the field its
variant requires is rejected with `MalformedResponseError`.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional


class MalformedResponseError(ValueError):
    """A Slack response did not have the shape expected for its method."""


def _next_cursor(resp: Mapping[str, Any]) -> Optional[str]:
    metadata = resp.get("response_metadata") or {}
    return metadata.get("next_cursor") or None


def _require_list(resp: Mapping[str, Any], key: str, method: str) -> List[Dict[str, Any]]:
    value = resp.get(key)
    if not isinstance(value, list):
        raise MalformedResponseError(f"{method} response has no '{key}' list")
    return value


@dataclass
class ChannelPage:
    """One page of `conversations.list`."""

    channels: List[Dict[str, Any]] = field(default_factory=list)
    next_cursor: Optional[str] = None

    @classmethod
    def decode(cls, resp: Mapping[str, Any]) -> "ChannelPage":
        return cls(channels=_require_list(resp, "channels", "conversations.list"), next_cursor=_next_cursor(resp))


@dataclass
class HistoryPage:
    """One page of `conversations.history`, messages newest-first."""

    messages: List[Dict[str, Any]] = field(default_factory=list)
    has_more: bool = False
    next_cursor: Optional[str] = None

    @classmethod
    def decode(cls, resp: Mapping[str, Any]) -> "HistoryPage":
        return cls(
            messages=_require_list(resp, "messages", "conversations.history"),
            has_more=bool(resp.get("has_more", False)),
            next_cursor=_next_cursor(resp),
        )


@dataclass
class RepliesPage:
    """One page of `conversations.replies`, oldest-first, parent included on the first page."""

    messages: List[Dict[str, Any]] = field(default_factory=list)
    has_more: bool = False
    next_cursor: Optional[str] = None

    @classmethod
    def decode(cls, resp: Mapping[str, Any]) -> "RepliesPage":
        return cls(
            messages=_require_list(resp, "messages", "conversations.replies"),
            has_more=bool(resp.get("has_more", False)),
            next_cursor=_next_cursor(resp),
        )
