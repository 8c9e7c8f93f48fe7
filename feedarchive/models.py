"""Records shared by the parsers, the grouping engine and the page writers."""

from __future__ import annotations

import dataclasses
import datetime as _dt
from urllib.parse import urlparse


def is_absolute_uri(value: str) -> bool:
    """Return ``True`` when ``value`` carries both a scheme and a host."""

    if not isinstance(value, str) or not value.strip():
        return False
    try:
        parsed = urlparse(value.strip())
    except ValueError:
        return False
    return bool(parsed.scheme and parsed.netloc)


@dataclasses.dataclass(frozen=True, slots=True)
class Entry:
    """One normalised feed entry.

    ``link`` is the identity of the entry across runs; it must be an absolute
    URI.  Entries without ``published_at`` can be parsed but are never
    archived because they cannot be bucketed.
    """

    title: str
    link: str
    description: str = ""
    published_at: _dt.datetime | None = None
    author: str = ""
    categories: tuple[str, ...] = ()
    guid: str = ""

    def __post_init__(self) -> None:
        if not is_absolute_uri(self.link):
            raise ValueError(f"Entry link must be an absolute URI: {self.link!r}")
        if self.published_at is not None and not isinstance(self.published_at, _dt.datetime):
            raise ValueError("published_at must be a datetime or None")
        # Accept any iterable of strings but store an immutable tuple.
        categories = tuple(str(cat).strip() for cat in self.categories if str(cat).strip())
        object.__setattr__(self, "categories", categories)
        object.__setattr__(self, "link", self.link.strip())

    @property
    def has_author(self) -> bool:
        return bool(self.author and self.author.strip())

    @property
    def has_categories(self) -> bool:
        return bool(self.categories)

    @property
    def categories_text(self) -> str:
        return ", ".join(self.categories)


@dataclasses.dataclass(frozen=True, slots=True)
class FeedMeta:
    title: str
    description: str = ""
    link: str = ""
    language: str = ""


@dataclasses.dataclass(frozen=True, slots=True)
class FeedDocument:
    """Parser output: feed-level metadata plus every valid entry, in feed order."""

    meta: FeedMeta
    entries: tuple[Entry, ...]
    invalid_entries: int = 0

    @property
    def entry_count(self) -> int:
        return len(self.entries)


@dataclasses.dataclass(frozen=True, slots=True)
class MonthAdjacency:
    prev: str | None = None
    next: str | None = None


@dataclasses.dataclass(frozen=True, slots=True)
class ArchivePageState:
    """What a previously written page tells us about itself."""

    path: str | None
    last_known_publish_time: _dt.datetime | None
    known_links: frozenset[str]
    has_content_region: bool = True


@dataclasses.dataclass(frozen=True, slots=True)
class RenderedPage:
    relative_path: str
    html: str
    entry_count: int

    @property
    def size(self) -> int:
        return len(self.html.encode("utf-8"))


@dataclasses.dataclass(frozen=True, slots=True)
class NavigationPatch:
    """Queued forward-link fix for the page that precedes a newly created one."""

    target_path: str
    target_key: str
    source_bucket_key: str
