"""
Text cleanup helpers shared by the fetchers and the generator.
"""
import functools
import html
import logging
import re
from typing import List, Optional

import nltk
from nltk.tokenize import sent_tokenize

logger = logging.getLogger(__name__)

TAG_RE = re.compile(r'<[^>]*>')
WHITESPACE_RE = re.compile(r'\s+')
# Truncation markers such as "[+2043 chars]" left by some feed providers
TRUNCATION_RE = re.compile(r'\[\s*\+\s*\d+\s+chars\s*\]')

# Recent NLTK releases load punkt_tab, older ones punkt
PUNKT_RESOURCES = ('punkt_tab', 'punkt')


@functools.lru_cache(maxsize=None)
def ensure_punkt() -> None:
    """Download the punkt sentence models once if they are not installed."""
    for resource in PUNKT_RESOURCES:
        try:
            nltk.data.find(f'tokenizers/{resource}')
        except LookupError:
            logger.info("Downloading NLTK resource %s", resource)
            nltk.download(resource, quiet=True)


def split_sentences(text: str) -> List[str]:
    """Split plain text into sentences with NLTK's punkt tokenizer."""
    if not text:
        return []
    ensure_punkt()
    return [sentence.strip() for sentence in sent_tokenize(text) if sentence.strip()]


def clean_content(raw: Optional[str]) -> str:
    """
    Strip HTML tags, decode entities and collapse whitespace.

    Args:
        raw: Text or HTML fragment from a feed or page

    Returns:
        Single-line plain text
    """
    if not raw:
        return ""
    text = TAG_RE.sub(' ', raw)
    text = html.unescape(text).replace('\xa0', ' ')
    text = TRUNCATION_RE.sub('', text)
    return WHITESPACE_RE.sub(' ', text).strip()


def make_summary(snippet: Optional[str], content: str, window: int = 300) -> str:
    """
    Derive a short excerpt for an article.

    The feed's own snippet is preferred; otherwise the opening of the content
    is used. Excerpts longer than ``window`` keep as many whole sentences as
    fit in the window.

    Args:
        snippet: Summary or snippet field from the feed, may contain HTML
        content: Cleaned article body
        window: Maximum excerpt length in characters

    Returns:
        The cleaned excerpt
    """
    summary = clean_content(snippet) or clean_content(content[:window + 200])
    if len(summary) <= window:
        return summary

    kept: List[str] = []
    length = 0
    for sentence in split_sentences(summary):
        added = len(sentence) + (1 if kept else 0)
        if length + added > window:
            break
        kept.append(sentence)
        length += added
    if kept:
        return ' '.join(kept)

    # First sentence alone is longer than the window, cut at a word instead
    cut = summary[:window].rsplit(' ', 1)[0]
    return cut.rstrip(',;:') + '...'


def extract_key_points(content: str, max_points: int = 5) -> List[str]:
    """
    Pick the first few sentences of a post as key points.

    Args:
        content: Post text
        max_points: Maximum number of points to return

    Returns:
        Sentences between 20 and 200 characters, in order
    """
    points = []
    for sentence in split_sentences(clean_content(content)):
        if 20 < len(sentence) < 200:
            points.append(sentence)
        if len(points) >= max_points:
            break
    return points
