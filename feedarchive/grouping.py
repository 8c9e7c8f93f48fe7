"""Group entries into monthly buckets and compute links between them.

Buckets are keyed by ``YYYY-MM`` in the target timezone (host local time
unless the caller passes one).  Because the keys are zero padded, plain
string ordering is chronological ordering, which keeps adjacency and
relative-path computations free of any date arithmetic.
"""

from __future__ import annotations

import dataclasses
import datetime as _dt
import re
from collections import defaultdict
from typing import Iterable, Sequence

from .models import Entry, MonthAdjacency

__all__ = [
    "GroupingResult",
    "group_entries",
    "month_key",
    "archive_path",
    "find_adjacent_months",
    "relative_path",
    "count_skipped",
    "month_distribution",
    "is_month_key",
    "localize",
]

_KEY_RE = re.compile(r"^\d{4}-\d{2}$")


@dataclasses.dataclass(frozen=True, slots=True)
class GroupingResult:
    """Buckets in descending key order plus the number of undated entries dropped."""

    buckets: dict[str, tuple[Entry, ...]]
    skipped: int = 0

    @property
    def keys(self) -> list[str]:
        return list(self.buckets)


def is_month_key(value: str) -> bool:
    return bool(_KEY_RE.match(value or ""))


def localize(value: _dt.datetime, tz: _dt.tzinfo | None) -> _dt.datetime:
    if value.tzinfo is None:
        # Naive timestamps are read as wall-clock time in the target zone.
        return value.replace(tzinfo=tz) if tz is not None else value.astimezone()
    return value.astimezone(tz)


def month_key(value: _dt.datetime, tz: _dt.tzinfo | None = None) -> str:
    local = localize(value, tz)
    return f"{local.year:04d}-{local.month:02d}"


def archive_path(key: str) -> str:
    """Return the output path of a bucket relative to the archive root."""

    year = key.split("-", 1)[0]
    return f"{year}/{key}.html"


def group_entries(entries: Iterable[Entry], tz: _dt.tzinfo | None = None) -> GroupingResult:
    groups: dict[str, list[tuple[_dt.datetime, Entry]]] = defaultdict(list)
    skipped = 0

    for entry in entries:
        if entry.published_at is None:
            skipped += 1
            continue
        local = localize(entry.published_at, tz)
        groups[f"{local.year:04d}-{local.month:02d}"].append((local, entry))

    buckets: dict[str, tuple[Entry, ...]] = {}
    for key in sorted(groups, reverse=True):
        # ``sorted`` is stable with ``reverse=True`` too, so equal timestamps
        # keep their input order.
        ordered = sorted(groups[key], key=lambda pair: pair[0], reverse=True)
        buckets[key] = tuple(entry for _, entry in ordered)

    return GroupingResult(buckets=buckets, skipped=skipped)


def find_adjacent_months(key: str, all_keys: Iterable[str]) -> MonthAdjacency:
    ordered = sorted(set(all_keys))
    try:
        index = ordered.index(key)
    except ValueError:
        return MonthAdjacency()

    prev_key = ordered[index - 1] if index > 0 else None
    next_key = ordered[index + 1] if index < len(ordered) - 1 else None
    return MonthAdjacency(prev=prev_key, next=next_key)


def relative_path(from_key: str, to_key: str) -> str:
    """Link target from the page of ``from_key`` to the page of ``to_key``."""

    from_year = from_key.split("-", 1)[0]
    to_year = to_key.split("-", 1)[0]
    if from_year == to_year:
        return f"{to_key}.html"
    return f"../{to_year}/{to_key}.html"


def count_skipped(entries: Sequence[Entry]) -> int:
    return sum(1 for entry in entries if entry.published_at is None)


def month_distribution(entries: Iterable[Entry], tz: _dt.tzinfo | None = None) -> dict[str, int]:
    result = group_entries(entries, tz)
    return {key: len(items) for key, items in result.buckets.items()}
