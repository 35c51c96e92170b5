"""Unit tests for draft export."""

import json
import os
import tempfile
import unittest
from datetime import date, datetime, timezone

from linkpost.core.article import DraftPost, DraftView
from linkpost.formatters.export import DraftExporter


def make_view(post_id, category="ai"):
    post = DraftPost(
        id=post_id,
        article_id=post_id,
        content=f"Post body {post_id}\n\n#AI #TechNews",
        hashtags=["#AI", "#TechNews"],
        created_at=datetime(2026, 10, 19, 13, 0, tzinfo=timezone.utc),
    )
    return DraftView(post=post, title=f"Story {post_id}", link=f"https://example.com/{post_id}",
                     source="Example", category=category)


class DraftExporterTests(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.exporter = DraftExporter(os.path.join(self.tmpdir.name, "drafts"))

    def tearDown(self):
        self.tmpdir.cleanup()

    def test_export_json(self):
        path = self.exporter.export_json([make_view(1), make_view(2)], day=date(2026, 10, 19))
        self.assertTrue(path.endswith("drafts_2026-10-19.json"))
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        self.assertEqual([item["id"] for item in data], [1, 2])
        self.assertEqual(data[0]["status"], "draft")
        self.assertEqual(data[0]["hashtags"], ["#AI", "#TechNews"])
        self.assertEqual(data[0]["created_at"], "2026-10-19T13:00:00+00:00")

    def test_export_markdown(self):
        path = self.exporter.export_markdown([make_view(1, "science")], day=date(2026, 10, 19))
        self.assertTrue(path.endswith("drafts_2026-10-19.md"))
        with open(path, encoding="utf-8") as f:
            text = f.read()
        self.assertTrue(text.startswith("# LinkedIn Drafts"))
        self.assertIn("## Post 1", text)
        self.assertIn("[Story 1](https://example.com/1) (Example, science)", text)
        self.assertIn("Post body 1", text)


if __name__ == "__main__":
    unittest.main()
