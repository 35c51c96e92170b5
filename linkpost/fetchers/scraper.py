"""
Article page scraping for LinkPost.
"""
import asyncio
import logging
from typing import Optional

import aiohttp
import async_timeout
import trafilatura
from bs4 import BeautifulSoup

from linkpost.config import Settings
from linkpost.utils.http import DEFAULT_HEADERS, RateLimiter, domain_of
from linkpost.utils.text import clean_content

logger = logging.getLogger(__name__)

# Tried in order when trafilatura finds no main text
CONTENT_SELECTORS = ['article', '[class*="article"]', '[class*="content"]', 'main', 'body']
BOILERPLATE_TAGS = ['script', 'style', 'nav', 'footer', 'header', 'aside']


def extract_text(page: str) -> str:
    """
    Extract the readable body text of an HTML page.

    Args:
        page: Raw HTML

    Returns:
        Cleaned text, empty if nothing usable was found
    """
    extracted = trafilatura.extract(
        page,
        include_comments=False,
        include_tables=False,
        favor_recall=True,
    )
    if extracted:
        return clean_content(extracted)

    soup = BeautifulSoup(page, 'html.parser')
    for elem in soup.find_all(BOILERPLATE_TAGS):
        elem.decompose()
    for selector in CONTENT_SELECTORS:
        node = soup.select_one(selector)
        if node is not None:
            text = node.get_text(separator=' ', strip=True)
            if text:
                return clean_content(text)
    return ""


class PageScraper:
    """
    Fetches an article page to backfill content that the feed left short.

    Scraping is best effort: every failure yields an empty string and is
    never retried.
    """
    def __init__(self, settings: Settings, rate_limiter: Optional[RateLimiter] = None):
        self.timeout = settings.scrape_timeout
        self.rate_limiter = rate_limiter or RateLimiter(settings.scrape_rate_limit)
        self.headers = dict(DEFAULT_HEADERS, **{'User-Agent': settings.user_agent})
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
        """Close aiohttp session."""
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def fetch_page(self, url: str) -> Optional[str]:
        """
        Download a page with the scrape timeout.

        Returns:
            The HTML, or None if the request failed
        """
        domain = domain_of(url)
        await self.rate_limiter.acquire(domain)
        try:
            async with async_timeout.timeout(self.timeout):
                async with self.session.get(url) as response:
                    response.raise_for_status()
                    page = await response.text()
        except (aiohttp.ClientError, asyncio.TimeoutError, UnicodeDecodeError) as e:
            self.rate_limiter.report_failure(domain)
            logger.warning("Scrape of %s failed: %s", url, e or type(e).__name__)
            return None
        self.rate_limiter.report_success(domain)
        return page

    async def scrape(self, url: str) -> str:
        """
        Fetch ``url`` and return its readable text.

        Returns:
            Extracted text, or an empty string on any failure
        """
        page = await self.fetch_page(url)
        if not page:
            return ""
        try:
            return extract_text(page)
        except Exception as e:  # pylint: disable=broad-exception-caught
            logger.warning("Could not extract text from %s: %s", url, e)
            return ""
