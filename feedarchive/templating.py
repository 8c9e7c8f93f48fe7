"""Flat placeholder templates for archive pages.

Templates are plain HTML with ``{{TOKEN}}`` placeholders.  Only a handful of
constructs exist:

* ``{{TOKEN}}`` is replaced when the token is known; unknown tokens are left
  in the output exactly as written.
* The entries region is either a bare ``{{ITEMS}}`` or a
  ``{{#ITEMS}}...{{/ITEMS}}`` block whose body is the per-entry template.
* Inside the entry template ``{{#ITEM_X}}...{{/ITEM_X}}`` keeps its body only
  when the entry has a value for ``ITEM_X``.

Descriptions are passed through a small denylist (``<script>``, ``<iframe>``
and inline ``on*=`` handlers).  That is not a sanitizer: a hostile feed can
still inject markup into the generated pages.
"""

from __future__ import annotations

import datetime as _dt
import re
from html import escape
from typing import Iterable, Mapping, Sequence

from babel.dates import format_datetime

from .errors import TemplateError
from .grouping import localize
from .models import Entry, FeedMeta, MonthAdjacency
from .navigation import render_monthly_nav
from .page_reader import format_meta_date

__all__ = [
    "DEFAULT_TEMPLATE",
    "DEFAULT_ENTRY_TEMPLATE",
    "DEFAULT_DATE_FORMAT",
    "DEFAULT_LOCALE",
    "PAGE_PLACEHOLDERS",
    "ENTRY_PLACEHOLDERS",
    "PageTemplate",
    "PageRenderer",
    "substitute",
    "sanitize_description",
    "format_entry_date",
]

DEFAULT_LOCALE = "en_US"
DEFAULT_DATE_FORMAT = "MMMM d, y, hh:mm a"
NO_ITEMS_HTML = "<p>No items available.</p>"

PAGE_PLACEHOLDERS = (
    "FEED_TITLE",
    "FEED_DESCRIPTION",
    "FEED_LINK",
    "FEED_LANGUAGE",
    "GENERATION_DATE",
    "ITEMS",
    "YEAR_MONTH",
    "META_DATE",
    "TOTAL_ITEMS",
    "MONTHLY_NAV",
)
ENTRY_PLACEHOLDERS = (
    "ITEM_TITLE",
    "ITEM_LINK",
    "ITEM_DESCRIPTION",
    "ITEM_DATE",
    "ITEM_AUTHOR",
    "ITEM_CATEGORIES",
)

_TOKEN = re.compile(r"\{\{([A-Za-z0-9_]+)\}\}")
_ITEMS_BLOCK = re.compile(r"\{\{#ITEMS\}\}(.*?)\{\{/ITEMS\}\}", re.S)
_CONDITIONAL = re.compile(r"\{\{#(ITEM_[A-Z_]+)\}\}(.*?)\{\{/\1\}\}", re.S)
_MAIN_OPEN = re.compile(r"<main\b", re.I)

_SCRIPT_BLOCK = re.compile(r"<script\b[^>]*>.*?</script\s*>", re.I | re.S)
_IFRAME_BLOCK = re.compile(r"<iframe\b[^>]*>.*?</iframe\s*>", re.I | re.S)
_STRAY_TAG = re.compile(r"</?(?:script|iframe)\b[^>]*>", re.I)
# A nested <main> would end the page's content region early.
_MAIN_TAG = re.compile(r"</?main\b[^>]*>", re.I)
_OPEN_TAG = re.compile(r"<([a-zA-Z][^\s/>]*)([^>]*)>")
_ATTRIBUTE = re.compile(r"""([\s/]+)([^\s"'>/=]+)(\s*=\s*(?:"[^"]*"|'[^']*'|[^\s"'>]+))?""")
_HANDLER_NAME = re.compile(r"on[a-z]+", re.I)

DEFAULT_ENTRY_TEMPLATE = """<article>
    <h2><a href="{{ITEM_LINK}}">{{ITEM_TITLE}}</a></h2>
    <div class="meta">
        <time>{{ITEM_DATE}}</time>
        {{#ITEM_AUTHOR}}<span class="author">by {{ITEM_AUTHOR}}</span>{{/ITEM_AUTHOR}}
    </div>
    <div class="content">{{ITEM_DESCRIPTION}}</div>
    {{#ITEM_CATEGORIES}}
    <div class="categories">
        Tags: {{ITEM_CATEGORIES}}
    </div>
    {{/ITEM_CATEGORIES}}
</article>"""

DEFAULT_TEMPLATE = """<!DOCTYPE html>
<html lang="{{FEED_LANGUAGE}}">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <meta name="date" content="{{META_DATE}}">
    <title>{{FEED_TITLE}} - {{YEAR_MONTH}}</title>
    <style>
        body { font-family: Arial, sans-serif; max-width: 800px; margin: 0 auto; padding: 20px; }
        header { border-bottom: 2px solid #333; margin-bottom: 20px; }
        article { margin-bottom: 30px; border-bottom: 1px solid #eee; padding-bottom: 20px; }
        .meta { color: #666; margin-bottom: 10px; }
        .categories { margin-top: 10px; font-size: 0.9em; color: #666; }
        h1 { color: #333; }
        h2 { color: #555; }
        a { color: #0066cc; text-decoration: none; }
        a:hover { text-decoration: underline; }
        .monthly-nav {
            display: flex;
            justify-content: space-between;
            align-items: center;
            padding: 1em 0;
            margin: 1em 0;
            border-top: 1px solid #eee;
            border-bottom: 1px solid #eee;
        }
        .monthly-nav a { padding: 0.5em 1em; border: 1px solid #ddd; border-radius: 4px; }
        .monthly-nav a:hover { background-color: #f5f5f5; }
        .monthly-nav .current-month { font-weight: bold; }
        .monthly-nav .disabled { visibility: hidden; padding: 0.5em 1em; }
    </style>
</head>
<body>
    <header>
        <h1>{{FEED_TITLE}}</h1>
        <p>{{FEED_DESCRIPTION}}</p>
        <p><a href="{{FEED_LINK}}">Visit Original Site</a></p>
        <p>{{YEAR_MONTH}}</p>
    </header>

    {{MONTHLY_NAV}}

    <main>
        {{ITEMS}}
    </main>

    <footer>
        <p>Generated on {{GENERATION_DATE}}</p>
    </footer>
</body>
</html>"""


def substitute(text: str, values: Mapping[str, str]) -> str:
    """Replace every known ``{{TOKEN}}`` in a single pass.

    Substituted values are not scanned again, so feed content that happens to
    contain ``{{...}}`` is emitted as-is.
    """

    def _replace(match: re.Match) -> str:
        name = match.group(1)
        if name in values:
            return str(values[name])
        return match.group(0)

    return _TOKEN.sub(_replace, text)


def apply_conditionals(text: str, values: Mapping[str, str]) -> str:
    def _replace(match: re.Match) -> str:
        name = match.group(1)
        if name not in values:
            return match.group(0)
        return match.group(2) if values[name] else ""

    return _CONDITIONAL.sub(_replace, text)


def _strip_handlers(match: re.Match) -> str:
    def _attribute(attr: re.Match) -> str:
        return "" if _HANDLER_NAME.fullmatch(attr.group(2)) else attr.group(0)

    return f"<{match.group(1)}{_ATTRIBUTE.sub(_attribute, match.group(2))}>"


def sanitize_description(raw: str) -> str:
    if not raw:
        return ""
    text = _SCRIPT_BLOCK.sub("", raw)
    text = _IFRAME_BLOCK.sub("", text)
    text = _STRAY_TAG.sub("", text)
    text = _MAIN_TAG.sub("", text)
    return _OPEN_TAG.sub(_strip_handlers, text)


def format_entry_date(
    value: _dt.datetime | None,
    locale: str = DEFAULT_LOCALE,
    pattern: str = DEFAULT_DATE_FORMAT,
    tz: _dt.tzinfo | None = None,
) -> str:
    if value is None:
        return ""
    local = localize(value, tz)
    try:
        return format_datetime(local, pattern, locale=locale)
    except Exception:
        # Unknown locales and malformed patterns both land here.
        return local.strftime("%Y-%m-%d")


class PageTemplate:
    """A validated page template.

    Raises :class:`TemplateError` when ``{{FEED_TITLE}}`` is missing or the
    entries region does not appear exactly once.
    """

    def __init__(self, content: str, *, source: str | None = None) -> None:
        self.source = source
        self.content = content
        self.warnings: list[str] = []
        self._validate()

        block = _ITEMS_BLOCK.search(content)
        if block:
            self.entry_template = block.group(1).strip()
            self.page_content = content[: block.start()] + "{{ITEMS}}" + content[block.end():]
            self.uses_block = True
        else:
            self.entry_template = DEFAULT_ENTRY_TEMPLATE
            self.page_content = content
            self.uses_block = False

    @classmethod
    def default(cls) -> "PageTemplate":
        return cls(DEFAULT_TEMPLATE, source="<default>")

    def _validate(self) -> None:
        content = self.content
        label = self.source or "template"
        if not isinstance(content, str) or not content.strip():
            raise TemplateError(f"{label}: template content cannot be empty")

        if "{{FEED_TITLE}}" not in content:
            raise TemplateError(f"{label}: template is missing required placeholder {{{{FEED_TITLE}}}}")

        bare = content.count("{{ITEMS}}")
        blocks = content.count("{{#ITEMS}}")
        if bare + blocks == 0:
            raise TemplateError(f"{label}: template is missing {{{{ITEMS}}}} or {{{{#ITEMS}}}}...{{{{/ITEMS}}}}")
        if bare + blocks > 1:
            raise TemplateError(
                f"{label}: {{{{ITEMS}}}} or {{{{#ITEMS}}}}...{{{{/ITEMS}}}} must appear exactly once"
            )
        if blocks and not _ITEMS_BLOCK.search(content):
            raise TemplateError(f"{label}: {{{{#ITEMS}}}} block is not closed with {{{{/ITEMS}}}}")

        if not _MAIN_OPEN.search(content):
            self.warnings.append(
                f"{label}: no <main> region; incremental updates will not find existing entries"
            )
        unknown = self.unknown_placeholders()
        if unknown:
            names = ", ".join("{{" + name + "}}" for name in unknown)
            self.warnings.append(f"{label}: unknown placeholder(s) left as-is: {names}")

    def placeholders(self) -> list[str]:
        seen: list[str] = []
        for match in _TOKEN.finditer(self.content):
            if match.group(1) not in seen:
                seen.append(match.group(1))
        return seen

    def unknown_placeholders(self) -> list[str]:
        known = set(PAGE_PLACEHOLDERS) | set(ENTRY_PLACEHOLDERS)
        return [name for name in self.placeholders() if name not in known]


class PageRenderer:
    """Render entries and full monthly pages from a :class:`PageTemplate`."""

    def __init__(
        self,
        template: PageTemplate | None = None,
        *,
        date_locale: str = DEFAULT_LOCALE,
        date_format: str = DEFAULT_DATE_FORMAT,
        tz: _dt.tzinfo | None = None,
    ) -> None:
        self.template = template or PageTemplate.default()
        self.date_locale = date_locale
        self.date_format = date_format
        self.tz = tz

    def entry_values(self, entry: Entry) -> dict[str, str]:
        return {
            "ITEM_TITLE": escape(entry.title or "Untitled"),
            "ITEM_LINK": escape(entry.link, quote=True),
            "ITEM_DESCRIPTION": sanitize_description(entry.description),
            "ITEM_DATE": format_entry_date(entry.published_at, self.date_locale, self.date_format, self.tz),
            "ITEM_AUTHOR": escape(entry.author.strip()) if entry.has_author else "",
            "ITEM_CATEGORIES": escape(entry.categories_text) if entry.has_categories else "",
        }

    def render_entry(self, entry: Entry) -> str:
        values = self.entry_values(entry)
        html = apply_conditionals(self.template.entry_template, values)
        return substitute(html, values)

    def render_entries(self, entries: Iterable[Entry]) -> str:
        rendered = [self.render_entry(entry) for entry in entries]
        if not rendered:
            return NO_ITEMS_HTML
        return "\n\n".join(rendered)

    def page_values(
        self,
        feed: FeedMeta,
        key: str,
        entries: Sequence[Entry],
        adjacency: MonthAdjacency,
        now: _dt.datetime,
    ) -> dict[str, str]:
        utc_now = now if now.tzinfo else now.replace(tzinfo=_dt.timezone.utc)
        utc_now = utc_now.astimezone(_dt.timezone.utc)
        return {
            "FEED_TITLE": escape(feed.title or ""),
            "FEED_DESCRIPTION": sanitize_description(feed.description or ""),
            "FEED_LINK": escape(feed.link or "", quote=True),
            "FEED_LANGUAGE": escape(feed.language or "en"),
            "TOTAL_ITEMS": str(len(entries)),
            "YEAR_MONTH": key,
            "META_DATE": format_meta_date(now),
            "GENERATION_DATE": utc_now.strftime("%Y-%m-%d %H:%M:%S"),
            "MONTHLY_NAV": render_monthly_nav(key, adjacency),
            "ITEMS": self.render_entries(entries),
        }

    def render_page(
        self,
        feed: FeedMeta,
        key: str,
        entries: Sequence[Entry],
        adjacency: MonthAdjacency,
        now: _dt.datetime,
    ) -> str:
        values = self.page_values(feed, key, entries, adjacency, now)
        return substitute(self.template.page_content, values)
