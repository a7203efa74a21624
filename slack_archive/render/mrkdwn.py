"""Conversion of Slack mrkdwn text to HTML."""

import html
import re
from typing import Callable, Optional
from urllib.parse import urlsplit

from slack_archive.storage.archive_store import page_file_name

NameResolver = Callable[[str], str]

_TOKEN_RE = re.compile(r"<([^<>]+)>")
_FENCE_RE = re.compile(r"```(.+?)```", re.DOTALL)
_CODE_RE = re.compile(r"`([^`\n]+)`")
_BOLD_RE = re.compile(r"(?<![\w*])\*([^*\n]+)\*(?![\w*])")
_ITALIC_RE = re.compile(r"(?<![\w_])_([^_\n]+)_(?![\w_])")
_STRIKE_RE = re.compile(r"(?<![\w~])~([^~\n]+)~(?![\w~])")

LINKABLE_SCHEMES = ("http", "https", "mailto")


def _escape(text: str) -> str:
    # Slack already escapes &, < and >; unescape first so they are not doubled
    return html.escape(html.unescape(text), quote=False)


def safe_url(url: Optional[str]) -> Optional[str]:
    """Return the url if its scheme is one of LINKABLE_SCHEMES, otherwise None."""
    if not url:
        return None
    scheme = urlsplit(html.unescape(url).strip()).scheme.lower()
    return url if scheme in LINKABLE_SCHEMES else None


def _render_token(token: str, user_name: NameResolver) -> str:
    target, _, label = token.partition("|")
    if target.startswith("@"):
        user_id = target[1:]
        return f'<a href="{page_file_name(user_id, 0)}">@{_escape(label or user_name(user_id))}</a>'
    if target.startswith("#"):
        channel_id = target[1:]
        return f'<a href="{page_file_name(channel_id, 0)}">#{_escape(label or channel_id)}</a>'
    if target.startswith("!"):
        special = label or target[1:].split("^")[0]
        return f"<span class=\"special\">@{_escape(special)}</span>"
    if safe_url(target) is None:
        return _escape(label or target)
    href = html.escape(html.unescape(target), quote=True)
    return f'<a href="{href}" target="_blank">{_escape(label or target)}</a>'


def _format(text: str) -> str:
    text = _CODE_RE.sub(r"<code>\1</code>", text)
    text = _BOLD_RE.sub(r"<b>\1</b>", text)
    text = _ITALIC_RE.sub(r"<i>\1</i>", text)
    text = _STRIKE_RE.sub(r"<s>\1</s>", text)
    return text


def to_html(text: Optional[str], user_name: Optional[NameResolver] = None) -> str:
    """Render Slack mrkdwn as HTML.

    Args:
        text: Message text as stored by Slack.
        user_name: Maps a user id to the name shown for `<@U...>` mentions.
    """
    if not text:
        return ""
    resolve = user_name or (lambda user_id: user_id)
    out = []
    # Fenced blocks are copied verbatim, everything else gets inline formatting
    for i, part in enumerate(_FENCE_RE.split(text)):
        if i % 2 == 1:
            out.append(f"<pre>{_escape(part.strip(chr(10)))}</pre>")
            continue
        pieces = []
        last = 0
        for match in _TOKEN_RE.finditer(part):
            pieces.append(_format(_escape(part[last : match.start()])))
            pieces.append(_render_token(match.group(1), resolve))
            last = match.end()
        pieces.append(_format(_escape(part[last:])))
        out.append("".join(pieces).replace("\n", "<br />"))
    return "".join(out)
