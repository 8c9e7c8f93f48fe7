"""Turn a parsed feed into monthly archive pages on disk.

``plan_archive`` is pure: it takes the previously written pages as strings
and returns what should be written.  ``build_archive`` wires it to the file
system through :class:`ArchiveWriter` and records the outcome in a
:class:`RunReport`.
"""

from __future__ import annotations

import dataclasses
import datetime as _dt
from typing import Iterable, Mapping

from .config import ArchiveConfig, load_template
from .errors import FilesystemError
from .grouping import archive_path, find_adjacent_months, group_entries
from .merge import BucketPlan, BucketState, plan_bucket
from .models import FeedDocument, NavigationPatch
from .navigation import PatchResult, apply_navigation_patch
from .report import RunReport
from .templating import PageRenderer, PageTemplate
from .writer import ArchiveWriter

__all__ = ["ArchivePlan", "plan_archive", "build_archive"]


@dataclasses.dataclass(frozen=True, slots=True)
class ArchivePlan:
    buckets: tuple[BucketPlan, ...]
    patches: tuple[NavigationPatch, ...]
    skipped: int = 0

    @property
    def pages(self) -> list:
        return [bucket.page for bucket in self.buckets if bucket.page is not None]

    @property
    def warnings(self) -> list[str]:
        return [message for bucket in self.buckets for message in bucket.warnings]


def plan_archive(
    document: FeedDocument,
    *,
    renderer: PageRenderer,
    existing_pages: Mapping[str, str],
    known_keys: Iterable[str] = (),
    now: _dt.datetime,
    tz: _dt.tzinfo | None = None,
) -> ArchivePlan:
    grouping = group_entries(document.entries, tz)
    all_keys = set(grouping.buckets) | set(known_keys) | set(existing_pages)

    plans: list[BucketPlan] = []
    adjacency_by_key = {}
    for key, entries in grouping.buckets.items():
        adjacency = find_adjacent_months(key, all_keys)
        adjacency_by_key[key] = adjacency
        plans.append(
            plan_bucket(
                key,
                entries,
                existing_pages.get(key),
                renderer=renderer,
                feed=document.meta,
                adjacency=adjacency,
                now=now,
            )
        )

    created = {plan.key for plan in plans if plan.state is BucketState.CREATE}
    patches: list[NavigationPatch] = []
    for plan in plans:
        if plan.state is not BucketState.CREATE:
            continue
        preceding = adjacency_by_key[plan.key].prev
        # A preceding page rendered in this run already links forward.
        if preceding is None or preceding in created:
            continue
        patches.append(
            NavigationPatch(
                target_path=archive_path(preceding),
                target_key=preceding,
                source_bucket_key=plan.key,
            )
        )

    return ArchivePlan(buckets=tuple(plans), patches=tuple(patches), skipped=grouping.skipped)


def build_archive(
    document: FeedDocument,
    config: ArchiveConfig,
    *,
    template: PageTemplate | None = None,
    now: _dt.datetime | None = None,
    source: str = "",
) -> RunReport:
    """Write or extend the monthly pages for ``document`` under ``config.output_dir``.

    Raises :class:`FilesystemError` when an existing page cannot be read or a
    page cannot be written; in the latter case the batch is rolled back.
    Navigation patches run only after every page of the batch is on disk.
    """

    now = now or _dt.datetime.now(_dt.timezone.utc)
    template = template or load_template(config)
    renderer = PageRenderer(
        template,
        date_locale=config.date_locale,
        date_format=config.date_format,
        tz=config.timezone,
    )

    report = RunReport(source=source, output_dir=config.output_dir)
    report.extend_warnings(template.warnings)
    report.invalid_entries = document.invalid_entries
    if document.invalid_entries:
        report.warn(f"{document.invalid_entries} item(s) skipped without an absolute link")

    writer = ArchiveWriter(config.output_dir)
    writer.ensure_output_root()
    known_keys = writer.existing_keys()

    feed_keys = group_entries(document.entries, config.timezone).keys
    existing_pages: dict[str, str] = {}
    for key in feed_keys:
        html = writer.read_page(archive_path(key))
        if html is not None:
            existing_pages[key] = html

    plan = plan_archive(
        document,
        renderer=renderer,
        existing_pages=existing_pages,
        known_keys=known_keys,
        now=now,
        tz=config.timezone,
    )

    report.skipped_entries = plan.skipped
    for bucket in plan.buckets:
        report.record_bucket(bucket.key, bucket.state.value)
        report.new_entries += len(bucket.new_entries)
    report.extend_warnings(plan.warnings)

    writer.write_pages(plan.pages)
    for page in plan.pages:
        report.record_page(page.relative_path, page.entry_count)
    report.created.extend(writer.created)
    report.updated.extend(writer.updated)

    for patch in plan.patches:
        try:
            result = apply_navigation_patch(writer, patch)
        except FilesystemError as exc:
            report.warn(f"{patch.target_path}: could not link {patch.source_bucket_key}: {exc}")
            continue
        if result is PatchResult.APPLIED:
            report.patched.append(writer.path_for(patch.target_path))
        elif result is PatchResult.ANCHOR_MISSING:
            report.warn(f"{patch.target_path}: no next-month placeholder to link {patch.source_bucket_key}")
        elif result is PatchResult.TARGET_MISSING:
            report.warn(f"{patch.target_path}: page not found; cannot link {patch.source_bucket_key}")

    report.bytes_written = writer.total_bytes
    return report
