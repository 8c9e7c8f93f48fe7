import datetime
import unittest

from feedarchive import page_reader
from feedarchive.models import Entry, FeedMeta, MonthAdjacency
from feedarchive.templating import PageRenderer

UTC = datetime.timezone.utc

PAGE = """<!DOCTYPE html>
<html>
<head>
    <meta name="date" content="2025-01-20T08:00:00.000Z">
    <title>Archive</title>
</head>
<body>
    <nav><a href="https://elsewhere.example.com/outside">outside</a></nav>
    <main>
        <article>
    <h2><a href="https://example.com/a?x=1&amp;y=2">A</a></h2>
    <div class="content"><a href="https://example.com/inline">inline</a></div>
</article>

<article>
    <p><a href="#top">top</a> <a href="https://example.com/b">B</a></p>
</article>

<article><p>No links at all</p></article>
    </main>
</body>
</html>"""


class MetaDateTests(unittest.TestCase):
    def test_name_first(self) -> None:
        self.assertEqual(
            page_reader.extract_meta_date(PAGE),
            datetime.datetime(2025, 1, 20, 8, 0, tzinfo=UTC),
        )

    def test_content_first(self) -> None:
        html = '<head><meta content="2025-02-01T00:00:00Z" name="date"></head>'
        self.assertEqual(
            page_reader.extract_meta_date(html),
            datetime.datetime(2025, 2, 1, tzinfo=UTC),
        )

    def test_missing_or_garbage(self) -> None:
        self.assertIsNone(page_reader.extract_meta_date("<head></head>"))
        self.assertIsNone(page_reader.extract_meta_date('<meta name="date" content="soon">'))

    def test_format_meta_date_uses_utc_milliseconds(self) -> None:
        when = datetime.datetime(2025, 3, 1, 13, 0, 5, 123456, tzinfo=datetime.timezone(datetime.timedelta(hours=1)))
        self.assertEqual(page_reader.format_meta_date(when), "2025-03-01T12:00:05.123Z")

    def test_update_existing_marker(self) -> None:
        when = datetime.datetime(2025, 3, 1, tzinfo=UTC)
        updated = page_reader.update_meta_date(PAGE, when)
        self.assertIn('<meta name="date" content="2025-03-01T00:00:00.000Z">', updated)
        self.assertEqual(updated.count('name="date"'), 1)

    def test_update_content_first_marker(self) -> None:
        html = '<head><meta content="old" name="date"></head>'
        updated = page_reader.update_meta_date(html, datetime.datetime(2025, 3, 1, tzinfo=UTC))
        self.assertEqual(updated, '<head><meta content="2025-03-01T00:00:00.000Z" name="date"></head>')

    def test_insert_marker_after_head(self) -> None:
        html = "<html><head><title>x</title></head><body></body></html>"
        updated = page_reader.update_meta_date(html, datetime.datetime(2025, 3, 1, tzinfo=UTC))
        self.assertTrue(updated.startswith('<html><head>\n    <meta name="date" content="2025-03-01T00:00:00.000Z">'))

    def test_no_head_leaves_page_alone(self) -> None:
        html = "<p>fragment</p>"
        self.assertEqual(page_reader.update_meta_date(html, datetime.datetime(2025, 3, 1, tzinfo=UTC)), html)


class KnownLinkTests(unittest.TestCase):
    def test_heading_link_preferred_and_unescaped(self) -> None:
        links = page_reader.extract_known_links(PAGE)
        self.assertEqual(links, {"https://example.com/a?x=1&y=2", "https://example.com/b"})

    def test_links_outside_main_ignored(self) -> None:
        self.assertNotIn("https://elsewhere.example.com/outside", page_reader.extract_known_links(PAGE))

    def test_no_main_region(self) -> None:
        html = "<body><article><h2><a href='https://example.com/x'>x</a></h2></article></body>"
        self.assertEqual(page_reader.extract_known_links(html), set())
        state = page_reader.read_page_state(html)
        self.assertFalse(state.has_content_region)
        self.assertEqual(state.known_links, frozenset())

    def test_nested_main_inside_entry_keeps_region(self) -> None:
        html = (
            "<body><main>\n"
            "<article><h2><a href=\"https://example.com/a\">A</a></h2>"
            "<div class=\"content\"><main><p>body</p></main></div></article>\n"
            "<article><h2><a href=\"https://example.com/b\">B</a></h2></article>\n"
            "</main><footer>f</footer></body>"
        )

        self.assertEqual(page_reader.extract_known_links(html), {"https://example.com/a", "https://example.com/b"})
        replaced = page_reader.replace_main_content(html, "new")
        self.assertTrue(replaced.endswith("</main><footer>f</footer></body>"))
        self.assertNotIn("example.com/b", replaced)

    def test_count_articles(self) -> None:
        self.assertEqual(page_reader.count_articles(PAGE), 3)

    def test_round_trip_with_renderer(self) -> None:
        entries = [
            Entry(
                title="One",
                link="https://example.com/1?q=a&r=b",
                description='<p><a href="https://other.example.com/">ref</a></p>',
                published_at=datetime.datetime(2025, 1, 10, tzinfo=UTC),
            ),
            Entry(
                title="Two",
                link="https://example.com/2",
                published_at=datetime.datetime(2025, 1, 9, tzinfo=UTC),
            ),
        ]
        now = datetime.datetime(2025, 1, 31, tzinfo=UTC)
        html = PageRenderer(tz=UTC).render_page(
            FeedMeta(title="Feed"), "2025-01", entries, MonthAdjacency(), now
        )

        state = page_reader.read_page_state(html, "2025/2025-01.html")

        self.assertEqual(state.known_links, frozenset({"https://example.com/1?q=a&r=b", "https://example.com/2"}))
        self.assertEqual(state.last_known_publish_time, now)
        self.assertEqual(state.path, "2025/2025-01.html")


class MainContentTests(unittest.TestCase):
    def test_replace_main_content(self) -> None:
        html = "<body><main class='x'>old</main></body>"
        self.assertEqual(
            page_reader.replace_main_content(html, "new"),
            "<body><main class='x'>\n        new\n    </main></body>",
        )

    def test_replace_without_region(self) -> None:
        self.assertIsNone(page_reader.replace_main_content("<body></body>", "new"))

    def test_extract_main_content(self) -> None:
        self.assertEqual(page_reader.extract_main_content("<main>\n  x \n</main>"), "x")
        self.assertIsNone(page_reader.extract_main_content("<div></div>"))


if __name__ == "__main__":
    unittest.main()
