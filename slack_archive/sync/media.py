"""Download of message files and avatars next to the rendered pages.

Files land in `html/files/<channel>/<id>.<filetype>`, with a `<id>.png`
preview for non-image files that have a thumbnail, and avatars in
`html/avatars/<id><ext>`. Anything already on disk is not fetched again.
A failed download is logged and skipped; the page then links the remote URL.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import requests

from slack_archive.metrics.metrics import OP_ITEMS
from slack_archive.models.archive import EntityRecord
from slack_archive.storage.archive_store import ArchiveStore, avatar_file_name, media_file_name, thumbnail_file_name

logger = logging.getLogger(__name__)

THUMB_FIELDS = ("thumb_1024", "thumb_720", "thumb_480", "thumb_pdf")


def file_thumbnail(file: Dict[str, Any]) -> Optional[str]:
    """URL of the largest thumbnail of a file, if any."""
    for key in THUMB_FIELDS:
        if file.get(key):
            return file[key]
    return None


class MediaDownloader:
    """Fetches message files and avatars into the rendered archive.

    Args:
        store: Archive store providing the target directories.
        token: Slack token, sent as a Bearer header on file downloads only. Avatars
            may be served by third parties and are fetched without it.
        timeout: Per-request timeout in seconds.
        session: Optional `requests` session, mostly for tests.
    """

    def __init__(
        self,
        store: ArchiveStore,
        token: str,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ):
        self.store = store
        self.timeout = timeout
        self.session = session or requests.Session()
        self._auth = {"Authorization": f"Bearer {token}"}

    def download_files(self, channel_id: str, messages: List[Dict[str, Any]]) -> int:
        """Download the files of `messages` and their replies; returns how many were fetched."""
        fetched = 0
        target_dir = self.store.files_dir(channel_id)
        for message in messages:
            for item in [message] + list(message.get("replies") or []):
                for file in item.get("files") or []:
                    fetched += self._download_file(target_dir, file)
        if fetched:
            logger.info(f"Downloaded {fetched} files for channel {channel_id}")
            OP_ITEMS.labels(operation="download_files").observe(fetched)
        return fetched

    def _download_file(self, target_dir: Path, file: Dict[str, Any]) -> int:
        name = media_file_name(file)
        url = file.get("url_private_download") or file.get("url_private")
        if name is None or not url:
            logger.debug(f"File {file.get('id')} has no downloadable content")
            return 0
        fetched = int(self._fetch(url, target_dir / name, headers=self._auth))

        thumb = file_thumbnail(file)
        if thumb and not (file.get("mimetype") or "").startswith("image"):
            fetched += int(self._fetch(thumb, target_dir / thumbnail_file_name(file), headers=self._auth))
        return fetched

    def download_avatars(self, records: Iterable[EntityRecord]) -> int:
        """Download the avatars of `records`; returns how many were fetched."""
        fetched = 0
        for record in records:
            if not record.avatar:
                continue
            fetched += int(self._fetch(record.avatar, self.store.avatars_dir / avatar_file_name(record.id, record.avatar)))
        if fetched:
            logger.info(f"Downloaded {fetched} avatars")
        return fetched

    def _fetch(self, url: str, path: Path, headers: Optional[Dict[str, str]] = None) -> bool:
        if path.exists():
            return False
        try:
            response = self.session.get(url, headers=headers or {}, timeout=self.timeout)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            logger.warning(f"Failed to download {url}: {e}")
            return False
        self.store.write_media(path, response.content)
        logger.debug(f"Saved {path}")
        return True
