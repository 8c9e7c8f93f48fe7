"""Recover archive state from pages this package wrote on a previous run.

There is no index file: the published set of entries is whatever the page
itself contains.  The scanners below only understand the tag shapes the
renderer emits (``<meta name="date">``, a ``<main>`` region holding
``<article>`` blocks with an ``<h2><a href>`` title link) and are tested
against rendered output rather than arbitrary third-party HTML.
"""

from __future__ import annotations

import datetime as _dt
import re
from email.utils import parsedate_to_datetime
from html import unescape

from .models import ArchivePageState

__all__ = [
    "extract_meta_date",
    "extract_known_links",
    "extract_main_content",
    "replace_main_content",
    "update_meta_date",
    "format_meta_date",
    "count_articles",
    "read_page_state",
]

_META_NAME_FIRST = re.compile(
    r"""<meta\s+name=["']date["']\s+content=["']([^"']*)["']\s*/?>""",
    re.I,
)
_META_CONTENT_FIRST = re.compile(
    r"""<meta\s+content=["']([^"']*)["']\s+name=["']date["']\s*/?>""",
    re.I,
)
_META_NAME_FIRST_SUB = re.compile(
    r"""(<meta\s+name=["']date["']\s+content=)(["'])[^"']*(["'])""",
    re.I,
)
_META_CONTENT_FIRST_SUB = re.compile(
    r"""(<meta\s+content=)(["'])[^"']*(["']\s+name=["']date["'])""",
    re.I,
)
_HEAD_OPEN = re.compile(r"<head\b[^>]*>", re.I)

# Runs to the last </main> so a nested element cannot cut the region short.
_MAIN_RE = re.compile(r"(<main\b[^>]*>)(.*)(</main\s*>)", re.I | re.S)
_ARTICLE_RE = re.compile(r"<article\b[^>]*>(.*?)</article\s*>", re.I | re.S)
_ARTICLE_OPEN = re.compile(r"<article\b[^>]*>", re.I)
_HEADING_LINK_RE = re.compile(
    r"""<h[1-6]\b[^>]*>\s*<a\s+[^>]*?href=["']([^"']+)["']""",
    re.I,
)
_ANY_LINK_RE = re.compile(r"""<a\s+[^>]*?href=["']([^"']+)["']""", re.I)


def _parse_marker(raw: str) -> _dt.datetime | None:
    text = (raw or "").strip()
    if not text:
        return None
    candidate = text[:-1] + "+00:00" if text.endswith("Z") else text
    try:
        return _dt.datetime.fromisoformat(candidate)
    except ValueError:
        pass
    try:
        return parsedate_to_datetime(text)
    except (TypeError, ValueError, IndexError):
        return None


def extract_meta_date(html: str) -> _dt.datetime | None:
    """Return the freshness marker of ``html`` or ``None`` when absent or unparsable."""

    for pattern in (_META_NAME_FIRST, _META_CONTENT_FIRST):
        match = pattern.search(html or "")
        if match:
            parsed = _parse_marker(match.group(1))
            if parsed is not None:
                return parsed
    return None


def format_meta_date(when: _dt.datetime) -> str:
    if when.tzinfo is None:
        when = when.replace(tzinfo=_dt.timezone.utc)
    text = when.astimezone(_dt.timezone.utc).isoformat(timespec="milliseconds")
    return text.replace("+00:00", "Z")


def update_meta_date(html: str, when: _dt.datetime) -> str:
    """Rewrite (or insert) the ``<meta name="date">`` marker."""

    stamp = format_meta_date(when)

    if _META_NAME_FIRST_SUB.search(html):
        return _META_NAME_FIRST_SUB.sub(
            lambda m: f"{m.group(1)}{m.group(2)}{stamp}{m.group(3)}", html, count=1
        )
    if _META_CONTENT_FIRST_SUB.search(html):
        return _META_CONTENT_FIRST_SUB.sub(
            lambda m: f"{m.group(1)}{m.group(2)}{stamp}{m.group(3)}", html, count=1
        )

    head = _HEAD_OPEN.search(html)
    if head:
        insert = f'\n    <meta name="date" content="{stamp}">'
        return html[: head.end()] + insert + html[head.end():]

    return html


def extract_main_content(html: str) -> str | None:
    match = _MAIN_RE.search(html or "")
    return match.group(2).strip() if match else None


def replace_main_content(html: str, inner: str) -> str | None:
    """Swap the body of the ``<main>`` region; ``None`` when there is no region."""

    match = _MAIN_RE.search(html)
    if not match:
        return None
    replacement = f"{match.group(1)}\n        {inner}\n    {match.group(3)}"
    return html[: match.start()] + replacement + html[match.end():]


def _block_link(block: str) -> str | None:
    heading = _HEADING_LINK_RE.search(block)
    if heading:
        return unescape(heading.group(1))

    for match in _ANY_LINK_RE.finditer(block):
        href = match.group(1)
        if href and not href.startswith("#"):
            return unescape(href)
    return None


def extract_known_links(html: str) -> set[str]:
    """Links of every entry block inside the page's ``<main>`` region."""

    content = extract_main_content(html)
    if content is None:
        return set()

    links: set[str] = set()
    for match in _ARTICLE_RE.finditer(content):
        link = _block_link(match.group(1))
        if link:
            links.add(link)
    return links


def count_articles(html: str) -> int:
    return len(_ARTICLE_OPEN.findall(html or ""))


def read_page_state(html: str, path: str | None = None) -> ArchivePageState:
    has_region = extract_main_content(html) is not None
    return ArchivePageState(
        path=path,
        last_known_publish_time=extract_meta_date(html),
        known_links=frozenset(extract_known_links(html)),
        has_content_region=has_region,
    )
