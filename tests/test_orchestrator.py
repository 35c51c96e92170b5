"""Tests for the daily job, using a real SQLite file and a stubbed retriever."""

import os
import random
import sqlite3
import tempfile
import unittest
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock, patch

from linkpost.config import Settings
from linkpost.core.article import Article, DraftPost, PostStatus
from linkpost.core.generator import DraftGenerator
from linkpost.core.orchestrator import DailyJob
from linkpost.core.store import ArticleStore, Database, PostStore

BODY = "Researchers unveiled a new model that improves reasoning across many benchmarks. " * 4
SUMMARY = "A new model improves reasoning across many benchmarks, according to the research team."


def make_article(n, content=BODY, hours_ago=0):
    now = datetime.now(timezone.utc)
    return Article(
        title=f"Story {n}",
        link=f"https://example.com/{n}",
        content=content,
        summary=SUMMARY,
        source="Example",
        category="ai",
        published_at=now - timedelta(hours=hours_ago),
        fetched_at=now,
    )


class DailyJobTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.settings = replace(
            Settings(),
            db_path=os.path.join(self.tmpdir.name, "articles.db"),
            schedule_timezone="UTC",
            max_posts_per_day=3,
            visuals_enabled=False,
        )
        db = Database(self.settings.db_path)
        self.articles = ArticleStore(db, self.settings)
        self.posts = PostStore(db, self.settings)
        self.retriever = MagicMock()
        self.retriever.fetch_all = AsyncMock(return_value=([], []))
        self.retriever.close_session = AsyncMock()
        self.sleep = AsyncMock()
        self.job = self.make_job(DraftGenerator(self.settings, rng=random.Random(0)))

    def tearDown(self):
        self.tmpdir.cleanup()

    def make_job(self, generator, enricher=None):
        return DailyJob(
            self.settings, self.articles, self.posts, self.retriever, generator,
            enricher=enricher, sleep=self.sleep,
        )

    def seed(self, count):
        for n in range(count):
            self.articles.insert_if_new(make_article(n, hours_ago=n))

    async def test_feed_with_short_entries_is_stored_once(self):
        candidates = [make_article(n) for n in range(3)] + [
            make_article(n, content="too short " * 10) for n in range(3, 5)
        ]
        self.retriever.fetch_all.return_value = (candidates, [])

        first = await self.job.run()
        self.assertEqual(first.fetched, 5)
        self.assertEqual(first.new_articles, 3)
        self.assertEqual(self.articles.count(), 3)

        self.retriever.fetch_all.return_value = ([make_article(n) for n in range(5)], [])
        second = await self.job.run()
        self.assertEqual(second.new_articles, 0)
        self.assertEqual(self.articles.count(), 3)

    async def test_quota_limits_drafts(self):
        self.seed(5)
        summary = await self.job.run()

        self.assertEqual(summary.drafts_generated, 3)
        self.assertEqual(self.articles.count(processed=True), 3)
        self.assertEqual(self.articles.count(processed=False), 2)
        self.assertEqual(summary.total_drafts, 3)

    async def test_freshest_articles_drafted_first(self):
        self.seed(5)
        await self.job.run()
        drafted = {a.title for a in self.articles.list_all() if a.processed}
        self.assertEqual(drafted, {"Story 0", "Story 1", "Story 2"})

    async def test_existing_drafts_count_against_quota(self):
        self.seed(4)
        for article in self.articles.list_unprocessed(2):
            self.posts.insert(DraftPost(article_id=article.id, content="Earlier draft", hashtags=[]))
            self.articles.mark_processed(article.id)

        summary = await self.job.run()

        self.assertEqual(summary.drafts_generated, 1)
        self.assertEqual(self.posts.count_created_today(), 3)

    async def test_quota_exhausted(self):
        self.seed(4)
        for article in self.articles.list_unprocessed(3):
            self.posts.insert(DraftPost(article_id=article.id, content="Earlier draft", hashtags=[]))
            self.articles.mark_processed(article.id)

        summary = await self.job.run()

        self.assertTrue(summary.quota_exhausted)
        self.assertEqual(summary.drafts_generated, 0)
        self.assertEqual(self.articles.count(processed=False), 1)

    async def test_failed_draft_leaves_article_unprocessed(self):
        self.seed(1)
        generator = MagicMock()
        generator.uses_summarizer = False
        generator.generate = AsyncMock(return_value=None)

        summary = await self.make_job(generator).run()

        self.assertEqual(summary.drafts_generated, 0)
        self.assertEqual(summary.failures, 1)
        self.assertEqual(self.articles.count(processed=False), 1)
        self.assertEqual(self.posts.counts_by_status()["draft"], 0)

        # The next run picks it up again
        summary = await self.job.run()
        self.assertEqual(summary.drafts_generated, 1)
        self.assertEqual(self.articles.count(processed=False), 0)

    async def test_failed_draft_save_leaves_no_partial_state(self):
        self.seed(1)
        with self.posts.db.connect() as conn:
            conn.execute(
                """
                CREATE TRIGGER block_processed BEFORE UPDATE OF processed ON articles
                BEGIN SELECT RAISE(ABORT, 'disk I/O error'); END
                """
            )

        summary = await self.job.run()

        self.assertEqual(summary.drafts_generated, 0)
        self.assertEqual(summary.failures, 1)
        self.assertEqual(self.posts.counts_by_status()["draft"], 0)
        self.assertEqual(self.articles.count(processed=False), 1)

        with self.posts.db.connect() as conn:
            conn.execute("DROP TRIGGER block_processed")
        summary = await self.job.run()

        self.assertEqual(summary.drafts_generated, 1)
        self.assertEqual(self.posts.counts_by_status()["draft"], 1)
        self.assertEqual(self.articles.count(processed=False), 0)

    async def test_storage_error_on_one_article_does_not_stop_run(self):
        self.retriever.fetch_all.return_value = ([make_article(1), make_article(2)], [])
        original = self.articles.insert_if_new
        calls = []

        def flaky(article):
            calls.append(article.title)
            if article.title == "Story 1":
                raise sqlite3.OperationalError("database is locked")
            return original(article)

        with patch.object(self.articles, "insert_if_new", side_effect=flaky):
            summary = await self.job.run()

        self.assertEqual(calls, ["Story 1", "Story 2"])
        self.assertEqual(summary.new_articles, 1)
        self.assertEqual(summary.failures, 1)

    async def test_failed_sources_reported(self):
        self.retriever.fetch_all.return_value = ([], ["Broken Feed"])
        summary = await self.job.run()
        self.assertEqual(summary.failed_sources, ["Broken Feed"])

    async def test_delay_between_summarizer_calls(self):
        self.seed(3)
        summarizer = AsyncMock()
        summarizer.summarize.return_value = "Reasoning models are getting much better at planning."
        job = self.make_job(DraftGenerator(self.settings, summarizer=summarizer, rng=random.Random(0)))

        await job.run()

        self.assertEqual(summarizer.summarize.await_count, 3)
        self.assertEqual(self.sleep.await_count, 2)
        self.sleep.assert_awaited_with(self.settings.generation_delay)

    async def test_no_delay_without_summarizer(self):
        self.seed(3)
        await self.job.run()
        self.sleep.assert_not_awaited()

    async def test_visual_failure_keeps_draft(self):
        self.seed(1)
        enricher = MagicMock()
        enricher.enrich = AsyncMock(side_effect=OSError("disk full"))
        job = self.make_job(DraftGenerator(self.settings, rng=random.Random(0)), enricher=enricher)

        summary = await job.run()

        self.assertEqual(summary.drafts_generated, 1)
        self.assertEqual(self.articles.count(processed=True), 1)
        self.assertIsNone(job.get_drafts()[0].post.infographic_path)

    async def test_visuals_attached(self):
        self.seed(1)
        enricher = MagicMock()
        enricher.enrich = AsyncMock(return_value=(None, "public/infographics/infographic_1.html"))
        job = self.make_job(DraftGenerator(self.settings, rng=random.Random(0)), enricher=enricher)

        await job.run()

        draft = job.get_drafts()[0]
        self.assertEqual(draft.post.infographic_path, "public/infographics/infographic_1.html")

    async def test_review_surface(self):
        self.seed(2)
        await self.job.run()
        drafts = self.job.get_drafts()
        self.assertEqual(len(drafts), 2)
        self.assertEqual(len(self.job.get_drafts_by_category("ai")), 2)
        self.assertEqual(self.job.get_drafts_by_category("science"), [])

        self.job.transition_status(drafts[0].post.id, PostStatus.APPROVED)
        self.job.transition_status(drafts[1].post.id, PostStatus.POSTED)
        stats = self.job.get_stats()
        self.assertEqual(stats["articles"], 2)
        self.assertEqual(stats["drafts"], 0)
        self.assertEqual(stats["approved"], 1)
        self.assertEqual(stats["posted"], 1)
        self.assertEqual(stats["today"], 2)

    async def test_close_releases_sessions(self):
        await self.job.close()
        self.retriever.close_session.assert_awaited_once()


if __name__ == "__main__":
    unittest.main()
