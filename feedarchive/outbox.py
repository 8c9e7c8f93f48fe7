"""ActivityPub outbox support.

An outbox is a JSON ``OrderedCollection`` whose ``orderedItems`` are
activities.  Each public activity with content becomes one :class:`Entry`
linked to the activity id; posts carry no title of their own.
"""

from __future__ import annotations

import json
import pathlib
from typing import Any, Mapping

from .errors import ConfigError, ParseError
from .feeds import fetch_bytes, parse_date, validate_feed_url
from .models import Entry, FeedDocument, FeedMeta, is_absolute_uri

__all__ = [
    "OUTBOX_ACCEPT",
    "DEFAULT_OUTBOX_TITLE",
    "is_public_activity",
    "parse_outbox",
    "load_outbox_file",
    "fetch_outbox",
]

OUTBOX_ACCEPT = (
    'application/activity+json, application/ld+json; '
    'profile="https://www.w3.org/ns/activitystreams", application/json'
)
DEFAULT_OUTBOX_TITLE = "ActivityPub Outbox"


def is_public_activity(activity: Any) -> bool:
    if not isinstance(activity, Mapping):
        return False
    if activity.get("directMessage") is True:
        return False
    obj = activity.get("object")
    if not isinstance(obj, Mapping):
        return False
    if obj.get("sensitive") is True:
        return False
    if not activity.get("id"):
        return False
    return bool(obj.get("content"))


def _activity_entry(activity: Mapping[str, Any]) -> Entry | None:
    obj = activity["object"]
    link = str(activity["id"]).strip()
    if not is_absolute_uri(link):
        return None
    published = activity.get("published") or obj.get("published")
    return Entry(
        title="",
        link=link,
        description=str(obj.get("content") or ""),
        published_at=parse_date(published) if isinstance(published, str) else None,
        guid=link,
    )


def parse_outbox(
    text: str | bytes,
    *,
    title: str | None = None,
    description: str | None = None,
    link: str | None = None,
) -> FeedDocument:
    try:
        data = json.loads(text)
    except (TypeError, ValueError) as exc:
        raise ParseError(f"Invalid JSON: {exc}") from exc

    items = data.get("orderedItems") if isinstance(data, Mapping) else None
    if not isinstance(items, list):
        raise ParseError("orderedItems array not found in outbox")

    entries: list[Entry] = []
    invalid = 0
    for activity in items:
        if not is_public_activity(activity):
            continue
        entry = _activity_entry(activity)
        if entry is None:
            invalid += 1
            continue
        entries.append(entry)

    if not entries:
        raise ParseError("No valid items found in outbox (all filtered out or empty)")

    meta = FeedMeta(
        title=title or DEFAULT_OUTBOX_TITLE,
        description=description or "",
        link=link or "",
    )
    return FeedDocument(meta=meta, entries=tuple(entries), invalid_entries=invalid)


def load_outbox_file(path: pathlib.Path | str, **meta) -> FeedDocument:
    source = pathlib.Path(path)
    try:
        text = source.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise ConfigError(f"Outbox file not found: {source}") from None
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(f"Failed to read outbox file {source}: {exc}") from exc
    return parse_outbox(text, **meta)


def fetch_outbox(url: str, config, **meta) -> FeedDocument:
    url = validate_feed_url(url, allow_local=config.allow_local)
    data = fetch_bytes(url, timeout=config.timeout, user_agent=config.user_agent, accept=OUTBOX_ACCEPT)
    meta.setdefault("link", url)
    return parse_outbox(data, **meta)
