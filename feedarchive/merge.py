"""Decide, per monthly bucket, whether its page is created, extended or left alone."""

from __future__ import annotations

import dataclasses
import datetime as _dt
import enum
import re
from typing import Iterable, Sequence

from .grouping import archive_path, localize
from .models import Entry, FeedMeta, MonthAdjacency, RenderedPage
from .page_reader import (
    count_articles,
    extract_main_content,
    read_page_state,
    replace_main_content,
    update_meta_date,
)

__all__ = [
    "BucketState",
    "BucketPlan",
    "select_new_entries",
    "splice_entries",
    "plan_bucket",
]

_BODY_CLOSE = re.compile(r"</body\s*>", re.I)


class BucketState(str, enum.Enum):
    CREATE = "create"
    UPDATE = "update"
    NO_CHANGE = "no-change"


@dataclasses.dataclass(frozen=True, slots=True)
class BucketPlan:
    key: str
    state: BucketState
    new_entries: tuple[Entry, ...]
    page: RenderedPage | None = None
    last_known_publish_time: _dt.datetime | None = None
    warnings: tuple[str, ...] = ()

    @property
    def relative_path(self) -> str:
        return archive_path(self.key)


def _sort_key(entry: Entry, tz: _dt.tzinfo | None) -> float:
    if entry.published_at is None:
        return float("-inf")
    return localize(entry.published_at, tz).timestamp()


def select_new_entries(entries: Iterable[Entry], known_links: Iterable[str]) -> list[Entry]:
    """Entries whose link is not already on the page.

    Membership in ``known_links`` is the only test.  Entries older than the
    page's freshness marker are still added when their link is unknown.
    """

    known = set(known_links)
    return [entry for entry in entries if entry.link not in known]


def splice_entries(
    existing_html: str, new_entries_html: str, now: _dt.datetime
) -> tuple[str, list[str]]:
    """Put ``new_entries_html`` ahead of the existing entry block.

    Returns the updated page and any warnings.  Only the ``<main>`` region and
    the freshness marker change; navigation is left as it was written.
    """

    warnings: list[str] = []
    existing = extract_main_content(existing_html)

    if existing is None:
        warnings.append("no <main> region found; appended a new one")
        region = f"<main>\n        {new_entries_html}\n    </main>\n"
        body = _BODY_CLOSE.search(existing_html)
        if body:
            html = existing_html[: body.start()] + region + existing_html[body.start():]
        else:
            html = existing_html + "\n" + region
    else:
        combined = f"{new_entries_html}\n\n{existing}" if existing else new_entries_html
        html = replace_main_content(existing_html, combined)

    return update_meta_date(html, now), warnings


def plan_bucket(
    key: str,
    entries: Sequence[Entry],
    existing_html: str | None,
    *,
    renderer,
    feed: FeedMeta,
    adjacency: MonthAdjacency,
    now: _dt.datetime,
) -> BucketPlan:
    path = archive_path(key)

    if existing_html is None:
        html = renderer.render_page(feed, key, entries, adjacency, now)
        return BucketPlan(
            key=key,
            state=BucketState.CREATE,
            new_entries=tuple(entries),
            page=RenderedPage(path, html, len(entries)),
        )

    state = read_page_state(existing_html, path)
    fresh = select_new_entries(entries, state.known_links)
    if not fresh:
        return BucketPlan(
            key=key,
            state=BucketState.NO_CHANGE,
            new_entries=(),
            last_known_publish_time=state.last_known_publish_time,
        )

    warnings: list[str] = []
    if not state.has_content_region:
        warnings.append(f"no <main> region to read; all {len(fresh)} entries treated as new")

    fresh.sort(key=lambda entry: _sort_key(entry, renderer.tz), reverse=True)
    html, splice_warnings = splice_entries(existing_html, renderer.render_entries(fresh), now)
    warnings.extend(splice_warnings)
    existing_count = count_articles(extract_main_content(existing_html) or "")
    return BucketPlan(
        key=key,
        state=BucketState.UPDATE,
        new_entries=tuple(fresh),
        page=RenderedPage(path, html, existing_count + len(fresh)),
        last_known_publish_time=state.last_known_publish_time,
        warnings=tuple(f"{path}: {message}" for message in warnings),
    )
