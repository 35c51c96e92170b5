"""
RSS/Atom feed retrieval for LinkPost.
"""
import asyncio
import calendar
import logging
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional, Tuple

import aiohttp
import async_timeout
import backoff
import feedparser

from linkpost.config import Settings
from linkpost.core.article import Article, external_key
from linkpost.fetchers.scraper import PageScraper
from linkpost.sources import Source, enabled_sources
from linkpost.utils.text import clean_content, make_summary

logger = logging.getLogger(__name__)


class FeedFetchError(Exception):
    """A feed could not be downloaded or parsed."""


def entry_published(entry) -> Optional[datetime]:
    """Publication time of a feedparser entry as an aware UTC datetime."""
    for key in ('published_parsed', 'updated_parsed', 'created_parsed'):
        parsed = entry.get(key)
        if parsed:
            return datetime.fromtimestamp(calendar.timegm(parsed), tz=timezone.utc)
    return None


def entry_body(entry) -> str:
    """
    Raw body of a feed entry.

    Full-content fields (content:encoded, atom content) win over the
    summary/description field.
    """
    for content in entry.get('content') or []:
        value = content.get('value') if hasattr(content, 'get') else None
        if value and value.strip():
            return value
    return entry.get('summary') or entry.get('description') or ''


class FeedRetriever:
    """
    Fetches feeds and normalizes their entries into candidate articles.
    """
    def __init__(self, settings: Settings, scraper: Optional[PageScraper] = None):
        self.settings = settings
        self.scraper = scraper or PageScraper(settings)
        self.headers = {'User-Agent': settings.user_agent}
        self._session = None

    @property
    def session(self) -> aiohttp.ClientSession:
        """
        Lazy initialization of aiohttp session.
        """
        if self._session is None:
            self._session = aiohttp.ClientSession(headers=self.headers)
        return self._session

    async def close_session(self):
        """Close the feed and scraper sessions."""
        if self._session is not None:
            await self._session.close()
            self._session = None
        await self.scraper.close_session()

    async def _get(self, url: str) -> bytes:
        async with async_timeout.timeout(self.settings.feed_timeout):
            async with self.session.get(url) as response:
                response.raise_for_status()
                return await response.read()

    async def download(self, url: str) -> bytes:
        """
        Download a feed document, retrying transient network errors.

        Raises:
            FeedFetchError: When every attempt failed
        """
        fetch = backoff.on_exception(
            backoff.expo,
            (aiohttp.ClientError, asyncio.TimeoutError),
            max_tries=self.settings.feed_max_tries,
            logger=logger,
        )(self._get)
        try:
            return await fetch(url)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise FeedFetchError(f"network error: {e or type(e).__name__}") from e

    def parse(self, document: bytes):
        """
        Parse a feed document.

        Raises:
            FeedFetchError: If the document is not a usable feed
        """
        feed = feedparser.parse(document)
        if feed.bozo and not feed.entries:
            raise FeedFetchError(f"parse error: {feed.get('bozo_exception')}")
        return feed

    async def normalize(self, entry, source: Source, fetched_at: datetime) -> Optional[Article]:
        """
        Turn one feed entry into a candidate article.

        Short bodies are backfilled by scraping the linked page once. The
        length gate itself is left to the article store.

        Returns:
            The candidate, or None if the entry has no title or link
        """
        title = clean_content(entry.get('title'))
        link = (entry.get('link') or '').strip()
        if not title or not link:
            return None

        content = clean_content(entry_body(entry))
        if len(content) < self.settings.min_article_length:
            scraped = await self.scraper.scrape(link)
            if len(scraped) > len(content):
                content = scraped
            else:
                logger.debug("No fuller text for %s, keeping feed content", link)

        summary = make_summary(entry.get('summary'), content, self.settings.summary_window)

        return Article(
            title=title,
            link=link,
            content=content[:self.settings.max_article_length],
            summary=summary,
            source=source.name,
            category=source.category,
            published_at=entry_published(entry) or fetched_at,
            fetched_at=fetched_at,
            guid=(entry.get('id') or None),
            processed=False,
        )

    async def _fetch_source(self, source: Source,
                            known: Optional[Callable[[str], bool]] = None) -> List[Article]:
        feed = self.parse(await self.download(source.url))
        entries = feed.entries[:self.settings.max_per_source]
        fetched_at = datetime.now(timezone.utc)

        articles = []
        for entry in entries:
            # Same key the store derives from the normalized article
            key = external_key(entry.get('id'), entry.get('link'), clean_content(entry.get('title')))
            if known is not None and key and known(key):
                logger.debug("Skipping already stored entry %s", key)
                continue
            article = await self.normalize(entry, source, fetched_at)
            if article is not None:
                articles.append(article)
        return articles

    async def fetch_source(self, source: Source,
                           known: Optional[Callable[[str], bool]] = None,
                           failed: Optional[List[str]] = None) -> List[Article]:
        """
        Fetch one source.

        Args:
            source: The feed to fetch
            known: Optional predicate telling whether an external key is
                already stored; such entries are skipped before any scraping
            failed: Optional list the source name is appended to on failure

        Returns:
            Candidate articles in feed order, empty if the feed failed
        """
        try:
            items = await self._fetch_source(source, known)
        except FeedFetchError as e:
            logger.warning("%s: failed to fetch feed (%s)", source.name, e)
            if failed is not None:
                failed.append(source.name)
            return []
        logger.info("%s: %d articles", source.name, len(items))
        return items

    async def fetch_all(self, sources: Iterable[Source],
                        known: Optional[Callable[[str], bool]] = None
                        ) -> Tuple[List[Article], List[str]]:
        """
        Fetch every enabled source, one after another in registry order.

        Returns:
            Tuple of (candidate articles, names of sources that failed)
        """
        active = enabled_sources(sources)
        logger.info("Fetching from %d feed sources", len(active))

        articles: List[Article] = []
        failed: List[str] = []
        for source in active:
            articles.extend(await self.fetch_source(source, known, failed))

        logger.info("Total candidate articles fetched: %d", len(articles))
        return articles, failed
