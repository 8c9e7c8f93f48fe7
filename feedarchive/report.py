"""Accumulate what an archive run did and persist it as a JSON heartbeat."""

from __future__ import annotations

import datetime as _dt
import json
import pathlib
from typing import Iterable, Sequence

__all__ = ["RunReport"]


def _utc_now_iso() -> str:
    """Return a second-precision UTC timestamp with a ``Z`` suffix."""

    return _dt.datetime.now(_dt.timezone.utc).replace(microsecond=0, tzinfo=None).isoformat() + "Z"


def _coerce_messages(messages: Sequence[str], *, limit: int | None = None) -> list[str]:
    """Clean and deduplicate messages while preserving order."""

    seen: set[str] = set()
    cleaned: list[str] = []
    for raw in messages:
        text = str(raw or "").strip()
        if not text or text in seen:
            continue
        seen.add(text)
        cleaned.append(text)
        if limit is not None and len(cleaned) >= limit:
            break
    return cleaned


class RunReport:
    """Per-run summary: bucket outcomes, files touched and warnings."""

    def __init__(self, source: str = "", output_dir: pathlib.Path | str | None = None) -> None:
        self.source = source
        self.output_dir = pathlib.Path(output_dir) if output_dir is not None else None
        self.buckets: dict[str, str] = {}
        self.page_entries: dict[str, int] = {}
        self.created: list[pathlib.Path] = []
        self.updated: list[pathlib.Path] = []
        self.patched: list[pathlib.Path] = []
        self.bytes_written = 0
        self.new_entries = 0
        self.skipped_entries = 0
        self.invalid_entries = 0
        self._warnings: list[str] = []

    # Public API ---------------------------------------------------------
    def record_bucket(self, key: str, state: str) -> None:
        self.buckets[key] = str(state)

    def record_page(self, relative_path: str, entry_count: int) -> None:
        self.page_entries[relative_path] = int(entry_count)

    def warn(self, message: str) -> None:
        text = str(message or "").strip()
        if text:
            self._warnings.append(text)

    def extend_warnings(self, messages: Iterable[str]) -> None:
        for message in messages:
            self.warn(str(message))

    @property
    def warnings(self) -> list[str]:
        return _coerce_messages(self._warnings)

    @property
    def files(self) -> list[pathlib.Path]:
        return [*self.created, *self.updated]

    @property
    def has_changes(self) -> bool:
        return bool(self.created or self.updated or self.patched)

    def summary_lines(self) -> list[str]:
        lines = [f"Source: {self.source}"]
        if self.output_dir is not None:
            lines.append(f"Output directory: {self.output_dir}")

        if not (self.created or self.updated):
            lines.append(f"No new items to add from: {self.source}")
        for path in self.created:
            lines.append(f"  created {self._display(path)}")
        for path in self.updated:
            lines.append(f"  updated {self._display(path)}")
        for path in self.patched:
            lines.append(f"  linked  {self._display(path)}")

        lines.append(
            f"{self.new_entries} new item(s), {len(self.created)} created, "
            f"{len(self.updated)} updated, {self.bytes_written} bytes written"
        )
        if self.skipped_entries:
            lines.append(f"{self.skipped_entries} item(s) skipped without a publication date")
        return lines

    def to_dict(self) -> dict:
        return {
            "generated_at": _utc_now_iso(),
            "source": self.source,
            "output_dir": str(self.output_dir) if self.output_dir is not None else None,
            "buckets": dict(self.buckets),
            "pages": dict(self.page_entries),
            "created": [str(path) for path in self.created],
            "updated": [str(path) for path in self.updated],
            "patched": [str(path) for path in self.patched],
            "bytes_written": self.bytes_written,
            "new_entries": self.new_entries,
            "skipped_entries": self.skipped_entries,
            "invalid_entries": self.invalid_entries,
            "warnings": self.warnings,
        }

    def write(self, path: pathlib.Path | str) -> pathlib.Path:
        target = pathlib.Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(json.dumps(self.to_dict(), ensure_ascii=False, indent=2) + "\n", encoding="utf-8")
        return target

    def _display(self, path: pathlib.Path) -> str:
        if self.output_dir is not None:
            try:
                return str(path.relative_to(self.output_dir))
            except ValueError:
                pass
        return str(path)
