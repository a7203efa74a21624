"""Static HTML rendering of the archive.

Pages are written to `<out_dir>/html/<channel>-<n>.html`, the channel browser
to `<out_dir>/index.html`, and the search file to `<out_dir>/search.json`.
Rendering reads only the persisted store; it never calls Slack.
"""

import html
import logging
from datetime import datetime, timezone
from time import perf_counter
from typing import Any, Callable, Dict, Iterable, List, Optional

from slack_archive.entities.cache import EntityCache
from slack_archive.metrics.metrics import OP_ITEMS, OP_LATENCY
from slack_archive.models.archive import EntityRecord, author_of
from slack_archive.models.config import ArchiveConfig
from slack_archive.render.channel_list import ChannelGroups, ChannelLink, build_channel_groups
from slack_archive.render.mrkdwn import safe_url, to_html
from slack_archive.render.pagination import Page, paginate
from slack_archive.render.search import SearchFile
from slack_archive.storage.archive_store import (
    ArchiveStore,
    avatar_file_name,
    media_file_name,
    page_file_name,
    thumbnail_file_name,
)
from slack_archive.sync.media import file_thumbnail
from slack_archive.sync.state import ArchiveState
from slack_archive.utils.json_store import copy_static_assets

logger = logging.getLogger(__name__)

EMPTY_CHANNEL_TEXT = "No messages were ever sent!"

DEEP_LINK_SCRIPT = """
const urlSearchParams = new URLSearchParams(window.location.search);
const channelValue = urlSearchParams.get("c");
const tsValue = urlSearchParams.get("ts");

if (channelValue) {
  const iframe = document.getElementsByName("iframe")[0];
  iframe.src = "html/" + decodeURIComponent(channelValue) + ".html" + "#" + (tsValue || "");
}
"""


def _e(value: Any) -> str:
    return html.escape(str(value), quote=True)


def format_ts(ts: Optional[str], fmt: str = "%b %d, %Y, %I:%M %p") -> str:
    """Human-readable UTC time of a Slack timestamp."""
    if not ts:
        return ""
    try:
        return datetime.fromtimestamp(float(ts), tz=timezone.utc).strftime(fmt)
    except (TypeError, ValueError, OverflowError):
        return str(ts)


class HtmlRenderer:
    """Renders channels, the index page and the search file.

    Args:
        config: Archive configuration (page size).
        store: Persisted store layout.
        entity_cache: Read-only source of author names and avatars.
        state: Archive state (zero-message suppression and current identity).
    """

    def __init__(self, config: ArchiveConfig, store: ArchiveStore, entity_cache: EntityCache, state: ArchiveState):
        self.config = config
        self.store = store
        self.entities = entity_cache
        self.state = state
        me_id = (state.auth or {}).get("user_id")
        self.me: Optional[EntityRecord] = entity_cache.get(me_id)

    def render_all(
        self,
        channels: Optional[List[Dict[str, Any]]] = None,
        progress: Optional[Callable[[str], None]] = None,
    ) -> int:
        """Render `channels` (default: every stored channel), the index and the search file.

        Returns:
            Number of pages written.
        """
        op_start = perf_counter()
        all_channels = self.store.read_channels()
        targets = channels if channels is not None else all_channels

        previous = self.store.read_search()
        search = SearchFile.from_dict(previous) if previous and channels is not None else SearchFile()

        written = 0
        for i, channel in enumerate(targets):
            if not channel.get("id"):
                logger.warning(f"Can't create HTML for channel {channel.get('name')!r}: no id found")
                continue
            if progress is not None:
                progress(f"Rendering HTML for {i + 1}/{len(targets)} {channel.get('name') or channel['id']}")
            written += self.render_channel(channel, search)

        search.users = self.entities.names()
        self.store.write_search(search.to_dict())
        self.render_index(all_channels or targets)
        copy_static_assets(self.store.html_dir)

        op_elapsed = perf_counter() - op_start
        logger.info(f"render: done channels={len(targets)} pages={written} elapsed={op_elapsed:.3f}s")
        OP_LATENCY.labels(operation="render").observe(op_elapsed)
        OP_ITEMS.labels(operation="render").observe(written)
        return written

    def render_channel(self, channel: Dict[str, Any], search: SearchFile) -> int:
        """Write every page of one channel and record its locator boundaries."""
        channel_id = channel["id"]
        messages = self.store.read_messages(channel_id)
        pages = paginate(channel, messages, self.config.page_size)
        search.index.reset_channel(channel_id)
        for page in pages:
            if page.oldest_ts:
                search.index.record_page(channel_id, page.oldest_ts)
            self.store.write_page(self.store.page_path(channel_id, page.index), self.page_html(page))
        search.add_channel(channel, messages)
        logger.debug(f"Rendered {len(pages)} pages for channel {channel_id}")
        return len(pages)

    def render_index(self, channels: List[Dict[str, Any]]) -> None:
        groups = build_channel_groups(channels, self.state, self.entities, self.me)
        self.store.write_page(self.store.index_path, self.index_html(groups))

    # --------- Page markup ----------
    def page_html(self, page: Page) -> str:
        if page.is_empty:
            body = f"<span>{EMPTY_CHANNEL_TEXT}</span>"
        else:
            body = "".join(self.message_html(m, page.channel_id) for m in page.messages)
        return self._document(
            f'<div style="padding-left: 10px">{self.header_html(page)}'
            f'<div class="messages-list">{body}</div></div>',
            base="",
        )

    def header_html(self, page: Page) -> str:
        channel = page.channel
        created = ""
        if not channel.get("is_im") and not channel.get("is_mpim"):
            creator = self.entities.display_name(channel["creator"]) if channel.get("creator") else "Unknown"
            when = format_ts(str(channel["created"]), "%A, %B %d, %Y") if channel.get("created") else "Unknown"
            created = f'<span class="created">Created by {_e(creator)} on {_e(when)}</span>'
        topic = (channel.get("topic") or {}).get("value") or ""
        return (
            f'<div class="header"><h1>{_e(channel.get("name") or channel["id"])}</h1>{created}'
            f'<p class="topic">{_e(topic)}</p>{self.pagination_html(page)}</div>'
        )

    def pagination_html(self, page: Page) -> str:
        if page.total <= 1:
            return ""
        parts = []
        if page.newer_index is not None:
            parts.append(f'<span><a href="{page_file_name(page.channel_id, page.newer_index)}">Newer Messages</a></span>')
        if page.older_index is not None:
            parts.append(f'<span><a href="{page_file_name(page.channel_id, page.older_index)}">Older Messages</a></span>')
        jump = "".join(
            f'<a class="{"current" if link.current else ""}" href="{page_file_name(page.channel_id, link.index)}">'
            f"{link.index}</a>"
            for link in page.jump_bar
        )
        return f'<div class="pagination">{" | ".join(parts)}<div class="jumper">{jump}</div></div>'

    def avatar_src(self, record: Optional[EntityRecord], base: str = "") -> Optional[str]:
        """Downloaded avatar relative to the page (`base` is its offset from `html/`), else the remote URL."""
        if record is None or not record.avatar:
            return None
        name = avatar_file_name(record.id, record.avatar)
        if (self.store.avatars_dir / name).exists():
            return f"{base}avatars/{name}"
        return record.avatar

    def avatar_html(self, identifier: Optional[str]) -> str:
        src = self.avatar_src(self.entities.get(identifier))
        if src is None:
            return ""
        return f'<img class="avatar" src="{_e(src)}" />'

    def message_html(self, message: Dict[str, Any], channel_id: str) -> str:
        """Markup of a message and, nested inside it, its replies."""
        author = author_of(message)
        sender = self.entities.display_name(author.id) if author.id else message.get("username") or "Unknown"
        blocks = message.get("blocks") or []
        attachments = message.get("attachments") or []
        show_text = not attachments and not blocks
        if len(blocks) == 1 and blocks[0].get("type") == "rich_text" and len(blocks[0].get("elements") or []) == 1:
            show_text = True

        parts = [
            f'<div class="message-gutter" id="{_e(message.get("ts", ""))}">',
            f'<div data-stringify-ignore="true">{self.avatar_html(author.id)}</div>',
            '<div class="message-body">',
            f'<span class="sender">{_e(sender)}</span>',
            f'<span class="timestamp"><span class="c-timestamp__label" title="{_e(format_ts(message.get("ts"), "%c"))}">'
            f"{_e(format_ts(message.get('ts')))}</span></span><br />",
        ]
        if show_text:
            parts.append(f'<div class="text">{self._mrkdwn(message.get("text"))}</div>')
        parts.extend(self.block_html(block) for block in blocks)
        parts.extend(self.attachment_html(attachment) for attachment in attachments)
        parts.append(self.files_html(message, channel_id))
        parts.extend(self.message_html(reply, channel_id) for reply in message.get("replies") or [])
        parts.append("</div></div>")
        return "".join(parts)

    def block_html(self, block: Dict[str, Any]) -> str:
        block_type = block.get("type", "")
        elements = block.get("elements") or []
        # A lone rich_text section duplicates the message text
        if block_type == "rich_text" and len(elements) == 1:
            return ""
        inner: List[str] = []
        if block_type == "section":
            if block.get("text"):
                inner.append(f"<span>{self._mrkdwn((block['text'] or {}).get('text'))}</span>")
            for fld in block.get("fields") or []:
                inner.append(f'<div class="message-block__field">{self._mrkdwn(fld.get("text"))}</div>')
        elif block_type == "rich_text":
            for element in elements:
                if element.get("type") == "rich_text_section":
                    inner.append(f"<span>{''.join(self._rich_text_item(item) for item in element.get('elements') or [])}</span>")
        elif block_type == "context":
            for element in elements:
                kind = element.get("type")
                if kind == "mrkdwn":
                    inner.append(f"<span>{self._mrkdwn(element.get('text'))}</span>")
                elif kind == "plain_text":
                    inner.append(f"<span>{_e(element.get('text', ''))}</span>")
                elif kind == "image":
                    inner.append(f'<img src="{_e(element.get("image_url", ""))}" alt="{_e(element.get("alt_text", ""))}" />')
        return f'<div class="message-block--{_e(block_type)}">{"".join(inner)}</div>'

    def _rich_text_item(self, item: Dict[str, Any]) -> str:
        kind = item.get("type")
        if kind == "link":
            url = item.get("url", "")
            if safe_url(url) is None:
                return _e(item.get("text") or url)
            return f'<a href="{_e(url)}" target="_blank">{_e(item.get("text") or url)}</a>'
        if kind == "emoji":
            return f":{_e(item.get('name', ''))}:"
        if kind == "user":
            user_id = item.get("user_id", "")
            return f'<a href="{page_file_name(user_id, 0)}">@{_e(self.entities.display_name(user_id))}</a>'
        if kind == "channel":
            channel_id = item.get("channel_id", "")
            return f'<a href="{page_file_name(channel_id, 0)}">#{_e(channel_id)}</a>'
        return f"<span>{self._mrkdwn(item.get('text'))}</span>"

    def attachment_html(self, attachment: Dict[str, Any]) -> str:
        parts = ['<div class="message-attachment">']
        if attachment.get("pretext"):
            parts.append(f'<div class="message-attachment__pretext">{self._mrkdwn(attachment["pretext"])}</div>')
        color = attachment.get("color")
        style = f' style="border-left-color: #{_e(str(color).lstrip("#"))}"' if color else ""
        parts.append(f'<div class="message-attachment__body"{style}>')
        if attachment.get("service_name"):
            icon = f'<img src="{_e(attachment["service_icon"])}" />' if attachment.get("service_icon") else ""
            parts.append(
                f'<div class="message-attachment__service">{icon}<span>{self._mrkdwn(attachment["service_name"])}</span></div>'
            )
        if attachment.get("title"):
            title = self._mrkdwn(attachment["title"])
            if safe_url(attachment.get("title_link")):
                title = f'<a href="{_e(attachment["title_link"])}" target="_blank">{title}</a>'
            parts.append(f'<div class="message-attachment__title">{title}</div>')
        parts.extend(self.block_html(block) for block in attachment.get("blocks") or [])
        if attachment.get("text"):
            parts.append(f'<div class="message-attachment__row">{self._mrkdwn(attachment["text"])}</div>')
        if attachment.get("image_url"):
            parts.append(f'<img class="message-attachment__image" src="{_e(attachment["image_url"])}" />')
        for fld in attachment.get("fields") or []:
            parts.append(
                f'<div><div class="message-attachment__field-title">{_e(fld.get("title", ""))}</div>'
                f'<div class="message-attachment__field-value">{self._mrkdwn(fld.get("value"))}</div></div>'
            )
        if attachment.get("footer"):
            icon = f'<img src="{_e(attachment["footer_icon"])}" />' if attachment.get("footer_icon") else ""
            when = f" | {_e(format_ts(str(attachment['ts']), '%d %b'))}" if attachment.get("ts") else ""
            parts.append(
                f'<div class="message-attachment__footer">{icon}<span>{self._mrkdwn(attachment["footer"])}</span>{when}</div>'
            )
        parts.append("</div></div>")
        return "".join(parts)

    def _local_file(self, channel_id: str, name: Optional[str]) -> Optional[str]:
        if name and (self.store.files_dir(channel_id) / name).exists():
            return f"files/{channel_id}/{name}"
        return None

    def files_html(self, message: Dict[str, Any], channel_id: str) -> str:
        """Markup of a message's files, pointing at the downloaded copies when present."""
        files = message.get("files") or []
        if not files:
            return ""
        elements = []
        for f in files:
            mimetype = f.get("mimetype") or ""
            local = self._local_file(channel_id, media_file_name(f))
            url = local or f.get("url_private") or f.get("permalink") or ""
            thumb = self._local_file(channel_id, thumbnail_file_name(f)) or file_thumbnail(f)
            name = f.get("name") or f.get("title") or f.get("id", "file")
            if mimetype.startswith("image"):
                src = url if local else file_thumbnail(f) or url
                elements.append(f'<a href="{_e(url)}" target="_blank"><img class="file" src="{_e(src)}" /></a>')
            elif mimetype.startswith("video"):
                elements.append(f'<video controls src="{_e(url)}"></video>')
            elif mimetype.startswith("audio"):
                elements.append(f'<audio controls src="{_e(url)}"></audio>')
            elif thumb:
                elements.append(f'<a href="{_e(url)}" target="_blank"><img class="file" src="{_e(thumb)}" /></a>')
            else:
                elements.append(f'<a href="{_e(url)}" target="_blank">{_e(name)}</a>')
        return f'<div class="files">{"".join(elements)}</div>'

    # --------- Index markup ----------
    def index_html(self, groups: ChannelGroups) -> str:
        sections = [
            ("Public Channels", groups.public),
            ("Private Channels", groups.private),
            ("DMs", groups.dms),
            ("Group DMs", groups.groups),
        ]
        lists = "".join(
            f'<p class="section">{title}</p><ul>{"".join(self._link_html(link) for link in links)}</ul>'
            for title, links in sections
        )
        first = groups.all()[0].href if groups.all() else ""
        return self._document(
            f'<div id="index"><div id="channels">{lists}</div>'
            f'<div id="messages"><iframe name="iframe" src="{_e(first)}"></iframe></div>'
            f"<script>{DEEP_LINK_SCRIPT}</script></div>",
            base="html/",
        )

    def _link_html(self, link: ChannelLink) -> str:
        src = self.avatar_src(self.entities.get(link.user_id), base="html/") if link.kind == "im" else None
        if src:
            lead = f'<img class="avatar" src="{_e(src)}" />'
        elif link.kind == "mpim":
            lead = ""
        else:
            lead = "<span># </span>"
        return (
            f'<li><a title="{_e(link.name)}" href="{_e(link.href)}" target="iframe">'
            f"{lead}<span>{_e(link.name)}</span></a></li>"
        )

    def _mrkdwn(self, text: Optional[str]) -> str:
        return to_html(text, self.entities.display_name)

    @staticmethod
    def _document(body: str, base: str) -> str:
        return (
            '<!DOCTYPE html><html lang="en"><head>'
            '<meta http-equiv="X-UA-Compatible" content="IE=edge" /><meta charset="UTF-8" />'
            '<meta name="viewport" content="width=device-width, initial-scale=1.0" />'
            f'<title>Slack</title><link rel="stylesheet" href="{base}style.css" /></head>'
            f"<body>{body}</body></html>"
        )


def render_archive(
    config: ArchiveConfig,
    store: ArchiveStore,
    entity_cache: EntityCache,
    state: ArchiveState,
    channel_ids: Optional[Iterable[str]] = None,
    progress: Optional[Callable[[str], None]] = None,
) -> int:
    """Render the archive, optionally only the channels in `channel_ids`."""
    renderer = HtmlRenderer(config, store, entity_cache, state)
    channels = None
    if channel_ids:
        wanted = set(channel_ids)
        channels = [c for c in store.read_channels() if c.get("id") in wanted]
    return renderer.render_all(channels, progress=progress)
