import json
import pathlib
import tempfile
import unittest

from feedarchive.report import RunReport


class RunReportTests(unittest.TestCase):
    def test_warnings_deduplicated_in_order(self) -> None:
        report = RunReport("feed.xml")
        report.extend_warnings(["b", "a", "", "b", "  a  "])
        self.assertEqual(report.warnings, ["b", "a"])

    def test_summary_without_changes(self) -> None:
        report = RunReport("https://example.com/feed", pathlib.Path("/out"))

        lines = report.summary_lines()

        self.assertEqual(lines[0], "Source: https://example.com/feed")
        self.assertIn("Output directory: /out", lines)
        self.assertIn("No new items to add from: https://example.com/feed", lines)

    def test_summary_lists_files_relative_to_output(self) -> None:
        root = pathlib.Path("/out")
        report = RunReport("feed.xml", root)
        report.created.append(root / "2025" / "2025-02.html")
        report.updated.append(root / "2025" / "2025-01.html")
        report.patched.append(root / "2024" / "2024-12.html")
        report.new_entries = 3
        report.skipped_entries = 1

        lines = report.summary_lines()

        self.assertIn("  created 2025/2025-02.html", lines)
        self.assertIn("  updated 2025/2025-01.html", lines)
        self.assertIn("  linked  2024/2024-12.html", lines)
        self.assertIn("1 item(s) skipped without a publication date", lines)
        self.assertTrue(report.has_changes)
        self.assertEqual(report.files, [root / "2025" / "2025-02.html", root / "2025" / "2025-01.html"])

    def test_write_json(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            report = RunReport("feed.xml", pathlib.Path(tmpdir))
            report.record_bucket("2025-01", "create")
            report.record_page("2025/2025-01.html", 3)
            report.warn("careful")
            report.bytes_written = 42

            path = report.write(pathlib.Path(tmpdir) / "reports" / "run.json")

            payload = json.loads(path.read_text(encoding="utf-8"))
            self.assertEqual(payload["buckets"], {"2025-01": "create"})
            self.assertEqual(payload["pages"], {"2025/2025-01.html": 3})
            self.assertEqual(payload["warnings"], ["careful"])
            self.assertEqual(payload["bytes_written"], 42)
            self.assertTrue(payload["generated_at"].endswith("Z"))


if __name__ == "__main__":
    unittest.main()
