"""Layout of the persisted archive store.

    <data_dir>/channels.json           channel list as returned by conversations.list
    <data_dir>/users.json              entity cache (users and bots)
    <data_dir>/slack-archive.json      archive state (per-channel counters, auth)
    <data_dir>/<channel_id>.json       messages of one channel, newest-first
    <out_dir>/index.html               channel browser
    <out_dir>/html/<channel>-<n>.html  rendered pages
    <out_dir>/html/files/<channel>/    downloaded message files and their thumbnails
    <out_dir>/html/avatars/            downloaded avatars
    <out_dir>/search.json              search file with the page locator index
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import urlsplit

from slack_archive.models.config import ArchiveConfig
from slack_archive.utils.json_store import read_json, write_bytes, write_json, write_text

logger = logging.getLogger(__name__)


class ArchiveStore:
    """Paths and JSON persistence for the archive.

    Args:
        data_dir: Root of the persisted store.
        out_dir: Root of the rendered artifact.
    """

    def __init__(self, data_dir: str, out_dir: str):
        self.data_dir = Path(data_dir).expanduser().resolve()
        self.out_dir = Path(out_dir).expanduser().resolve()

    @classmethod
    def from_config(cls, config: ArchiveConfig) -> "ArchiveStore":
        return cls(config.data_dir, config.out_dir)

    @property
    def channels_path(self) -> Path:
        return self.data_dir / "channels.json"

    @property
    def users_path(self) -> Path:
        return self.data_dir / "users.json"

    @property
    def state_path(self) -> Path:
        return self.data_dir / "slack-archive.json"

    @property
    def search_path(self) -> Path:
        return self.out_dir / "search.json"

    @property
    def index_path(self) -> Path:
        return self.out_dir / "index.html"

    @property
    def html_dir(self) -> Path:
        return self.out_dir / "html"

    @property
    def avatars_dir(self) -> Path:
        return self.html_dir / "avatars"

    def files_dir(self, channel_id: str) -> Path:
        return self.html_dir / "files" / channel_id

    def messages_path(self, channel_id: str) -> Path:
        return self.data_dir / f"{channel_id}.json"

    def page_path(self, channel_id: str, index: int) -> Path:
        return self.html_dir / page_file_name(channel_id, index)

    def read_messages(self, channel_id: str) -> List[Dict[str, Any]]:
        """Load a channel's persisted messages (newest-first); empty if none."""
        data = read_json(self.messages_path(channel_id), default=[])
        if not isinstance(data, list):
            logger.warning(f"Ignoring malformed message store for channel {channel_id}")
            return []
        return data

    def write_messages(self, channel_id: str, messages: List[Dict[str, Any]]) -> None:
        write_json(self.messages_path(channel_id), messages)

    def read_channels(self) -> List[Dict[str, Any]]:
        data = read_json(self.channels_path, default=[])
        return data if isinstance(data, list) else []

    def write_channels(self, channels: List[Dict[str, Any]]) -> None:
        write_json(self.channels_path, channels)

    def read_search(self) -> Optional[Dict[str, Any]]:
        data = read_json(self.search_path)
        return data if isinstance(data, dict) else None

    def write_search(self, search: Dict[str, Any]) -> None:
        write_json(self.search_path, search, indent=None)

    def write_page(self, path: Path, html: str) -> None:
        write_text(path, html)

    def write_media(self, path: Path, content: bytes) -> None:
        write_bytes(path, content)


def page_file_name(channel_id: str, index: int) -> str:
    """File name of page `index` of a channel, e.g. "C123-0.html"."""
    return f"{channel_id}-{index}.html"


def media_file_name(file: Dict[str, Any]) -> Optional[str]:
    """Local name of a message file, e.g. "F123.pdf"; None without an id or filetype."""
    if not file.get("id") or not file.get("filetype"):
        return None
    return f"{file['id']}.{file['filetype']}"


def thumbnail_file_name(file: Dict[str, Any]) -> Optional[str]:
    """Local name of the PNG preview of a non-image file."""
    return f"{file['id']}.png" if file.get("id") else None


def avatar_file_name(entity_id: str, url: str) -> str:
    """Local name of an avatar, keeping the extension of its URL, e.g. "U123.jpg"."""
    return f"{entity_id}{Path(urlsplit(url).path).suffix}"

