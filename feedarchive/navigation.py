"""Month-to-month navigation: rendering and retroactive forward-link patching.

A page only knows the months that existed when it was written.  When a newer
month gets its first page, the page before it still shows the disabled
``next-month`` placeholder, so the pipeline patches that single anchor in
place once every primary write has succeeded.
"""

from __future__ import annotations

import enum
import functools
import pathlib
import re

from jinja2 import Environment, FileSystemLoader

from .grouping import relative_path
from .models import MonthAdjacency, NavigationPatch

__all__ = [
    "PatchResult",
    "render_monthly_nav",
    "render_next_link",
    "has_active_next_link",
    "patch_forward_link",
    "apply_navigation_patch",
]

PARTIALS_DIR = pathlib.Path(__file__).resolve().parent / "partials"

_ACTIVE_NEXT = re.compile(r"""<a\b[^>]*\bclass=["'][^"']*\bnext-month\b[^"']*["'][^>]*>""", re.I)
_DISABLED_NEXT = re.compile(r"""<span\s+class=["']next-month disabled["']\s*>\s*</span>""", re.I)


class PatchResult(str, enum.Enum):
    APPLIED = "applied"
    ALREADY_LINKED = "already-linked"
    ANCHOR_MISSING = "anchor-missing"
    TARGET_MISSING = "target-missing"


@functools.lru_cache(maxsize=1)
def _environment() -> Environment:
    return Environment(loader=FileSystemLoader(str(PARTIALS_DIR)), autoescape=True)


def render_monthly_nav(key: str, adjacency: MonthAdjacency) -> str:
    """Render the navigation bar of the page for ``key``.

    Newer months sit on the left (``next-month``), older ones on the right
    (``prev-month``).  Missing neighbours render as disabled placeholders.
    """

    template = _environment().get_template("monthly_nav.html")
    html = template.render(
        current=key,
        next_key=adjacency.next,
        next_href=relative_path(key, adjacency.next) if adjacency.next else "",
        prev_key=adjacency.prev,
        prev_href=relative_path(key, adjacency.prev) if adjacency.prev else "",
    )
    return html.strip()


def render_next_link(from_key: str, to_key: str) -> str:
    links = _environment().get_template("links.html").module
    return str(links.next_link(relative_path(from_key, to_key), to_key))


def has_active_next_link(html: str) -> bool:
    return bool(_ACTIVE_NEXT.search(html or ""))


def patch_forward_link(html: str, preceding_key: str, new_key: str) -> tuple[str, PatchResult]:
    """Point the forward link of ``preceding_key``'s page at ``new_key``."""

    if has_active_next_link(html):
        return html, PatchResult.ALREADY_LINKED

    match = _DISABLED_NEXT.search(html)
    if not match:
        return html, PatchResult.ANCHOR_MISSING

    link = render_next_link(preceding_key, new_key)
    return html[: match.start()] + link + html[match.end():], PatchResult.APPLIED


def apply_navigation_patch(writer, patch: NavigationPatch) -> PatchResult:
    html = writer.read_page(patch.target_path)
    if html is None:
        return PatchResult.TARGET_MISSING

    patched, result = patch_forward_link(html, patch.target_key, patch.source_bucket_key)
    if result is PatchResult.APPLIED:
        writer.rewrite_page(patch.target_path, patched)
    return result
