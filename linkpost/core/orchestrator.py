"""
Daily job: fetch feeds, store new articles and turn a few into drafts.
"""
import asyncio
import logging
import sqlite3
from typing import Dict, List, Optional

from tqdm import tqdm

from linkpost.config import Settings
from linkpost.core.article import Article, DraftPost, DraftView, PostStatus, RunSummary
from linkpost.core.generator import DraftGenerator
from linkpost.core.store import ArticleStore, Database, PostStore
from linkpost.core.summarizer import build_summarizer
from linkpost.core.visuals import VisualEnricher
from linkpost.fetchers.rss import FeedRetriever

logger = logging.getLogger(__name__)


class DailyJob:
    """
    Coordinates retrieval, storage and draft generation for one run.

    Safe to run several times a day: the per-day quota caps how many drafts
    are produced, and articles whose draft failed stay unprocessed so the
    next run retries them.
    """
    def __init__(self, settings: Settings, articles: ArticleStore, posts: PostStore,
                 retriever: FeedRetriever, generator: DraftGenerator,
                 enricher: Optional[VisualEnricher] = None, sleep=asyncio.sleep,
                 show_progress: bool = False):
        self.settings = settings
        self.articles = articles
        self.posts = posts
        self.retriever = retriever
        self.generator = generator
        self.enricher = enricher
        self.sleep = sleep
        self.show_progress = show_progress

    @classmethod
    def from_settings(cls, settings: Settings, show_progress: bool = False) -> "DailyJob":
        """
        Wire up the default collaborators.

        Raises:
            StorageError: If the database cannot be opened
        """
        db = Database(settings.db_path)
        return cls(
            settings,
            articles=ArticleStore(db, settings),
            posts=PostStore(db, settings),
            retriever=FeedRetriever(settings),
            generator=DraftGenerator(settings, summarizer=build_summarizer(settings)),
            enricher=VisualEnricher(settings) if settings.visuals_enabled else None,
            show_progress=show_progress,
        )

    async def close(self):
        """Release HTTP sessions held by the collaborators."""
        await self.retriever.close_session()
        summarizer = self.generator.summarizer
        if summarizer is not None:
            await summarizer.close()
        if self.enricher is not None:
            await self.enricher.close()

    def _known(self, key: str) -> bool:
        try:
            return self.articles.exists(key)
        except sqlite3.Error as e:
            logger.error("Existence check failed for %s: %s", key, e)
            return False

    def store_articles(self, candidates: List[Article], summary: RunSummary) -> None:
        for article in candidates:
            try:
                if self.articles.insert_if_new(article) is not None:
                    summary.new_articles += 1
            except sqlite3.Error as e:
                summary.failures += 1
                logger.error("Could not store article %r: %s", article.title[:60], e)
        logger.info("New articles stored: %d", summary.new_articles)

    async def _decorate(self, article: Article, post: DraftPost) -> None:
        try:
            image_path, infographic_path = await self.enricher.enrich(article, post)
            if image_path or infographic_path:
                self.posts.attach_visuals(post.id, image_path, infographic_path)
                post.image_url = image_path
                post.infographic_path = infographic_path
        except Exception as e:  # pylint: disable=broad-exception-caught
            logger.warning("Visual content generation failed for post %s: %s", post.id, e)

    async def _draft(self, article: Article, summary: RunSummary) -> None:
        try:
            post = await self.generator.generate(article)
        except Exception as e:  # pylint: disable=broad-exception-caught
            logger.error("Draft generation crashed for %r: %s", article.title[:60], e)
            post = None

        if post is None:
            summary.failures += 1
            logger.warning("No draft for %r, will retry next run", article.title[:60])
            return

        try:
            self.posts.insert_for_article(post)
        except sqlite3.Error as e:
            summary.failures += 1
            logger.error("Could not save draft for %r: %s", article.title[:60], e)
            return

        summary.drafts_generated += 1
        logger.info("Generated draft %s for %r", post.id, article.title[:60])

        if self.enricher is not None:
            await self._decorate(article, post)

    async def generate_drafts(self, summary: RunSummary) -> None:
        remaining = self.settings.max_posts_per_day - self.posts.count_created_today()
        if remaining <= 0:
            summary.quota_exhausted = True
            logger.info("Daily quota of %d drafts reached", self.settings.max_posts_per_day)
            return

        pending = self.articles.list_unprocessed(remaining)
        logger.info("Unprocessed articles selected: %d (quota left %d)", len(pending), remaining)

        with tqdm(total=len(pending), desc="Generating drafts", disable=not self.show_progress) as pbar:
            for index, article in enumerate(pending):
                if index and self.generator.uses_summarizer and self.settings.generation_delay > 0:
                    await self.sleep(self.settings.generation_delay)
                await self._draft(article, summary)
                pbar.update(1)

    async def run(self) -> RunSummary:
        """
        Execute one daily job.

        Returns:
            Counts for this run plus store totals
        """
        summary = RunSummary()
        logger.info("Daily job started")

        candidates, failed = await self.retriever.fetch_all(self.settings.sources, known=self._known)
        summary.fetched = len(candidates)
        summary.failed_sources = failed

        self.store_articles(candidates, summary)
        await self.generate_drafts(summary)

        stats = self.get_stats()
        summary.total_articles = stats['articles']
        summary.total_posts = stats['posts']
        summary.total_drafts = stats['drafts']

        logger.info(
            "Daily job finished: %d new articles, %d drafts, %d failures",
            summary.new_articles, summary.drafts_generated, summary.failures,
        )
        return summary

    # Review surface

    def get_drafts(self, limit: int = 10) -> List[DraftView]:
        return self.posts.list_drafts(limit)

    def get_drafts_by_category(self, category: str) -> List[DraftView]:
        return self.posts.list_drafts_by_category(category)

    def get_stats(self) -> Dict[str, int]:
        by_status = self.posts.counts_by_status()
        return {
            'articles': self.articles.count(),
            'unprocessed': self.articles.count(processed=False),
            'posts': sum(by_status.values()),
            'drafts': by_status[PostStatus.DRAFT.value],
            'approved': by_status[PostStatus.APPROVED.value],
            'posted': by_status[PostStatus.POSTED.value],
            'rejected': by_status[PostStatus.REJECTED.value],
            'today': self.posts.count_created_today(),
        }

    def transition_status(self, post_id: int, status: PostStatus) -> DraftPost:
        post = self.posts.transition(post_id, PostStatus(status))
        logger.info("Post %s is now %s", post_id, post.status.value)
        return post
