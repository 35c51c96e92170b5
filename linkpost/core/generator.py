"""
Post draft generation for LinkPost.
"""
import logging
import random
import re
from typing import List, Optional

from linkpost.config import Settings
from linkpost.core.article import Article, DraftPost, PostStatus
from linkpost.core.summarizer import SummarizerError

logger = logging.getLogger(__name__)

MAX_HASHTAGS = 8

HOOKS = [
    "🚀 Just came across something fascinating:",
    "💡 Interesting development in tech:",
    "🤔 Food for thought:",
    "⚡ Breaking:",
    "🔍 Worth watching:",
]

COMMENTARY = {
    "ai": [
        "This is another exciting step forward in AI. The implications for how we work and create are profound.",
        "AI continues to push boundaries in ways we couldn't have imagined just years ago.",
        "The rapid evolution of AI is reshaping industries at an unprecedented pace.",
        "These AI advancements remind us how quickly the technology landscape is transforming.",
    ],
    "tech": [
        "The pace of innovation in tech never ceases to amaze. This could change how we approach problems in this space.",
        "Technology evolves so rapidly that today's breakthrough becomes tomorrow's standard.",
        "We're witnessing another example of how tech continues to redefine what's possible.",
        "Innovation in this space moves fast, and this development proves it once again.",
    ],
    "science": [
        "Science continues to push the boundaries of what we know about our world.",
        "This discovery adds another piece to the puzzle of understanding our universe.",
        "Research like this reminds us how much more there is to learn.",
        "Science never ceases to amaze with its ability to reveal the unknown.",
    ],
}

QUESTIONS = [
    "What do you think about this development?",
    "How do you see this impacting your work?",
    "Would you use something like this?",
    "What's your take on this trend?",
    "Does this align with what you're seeing in the industry?",
    "How might this shape the future of our field?",
]

BASE_HASHTAGS = ["#TechNews", "#Innovation", "#Technology"]

CATEGORY_HASHTAGS = {
    "ai": ["#AI", "#ArtificialIntelligence", "#MachineLearning", "#FutureOfWork"],
    "tech": ["#Tech", "#DigitalTransformation", "#Startup"],
    "science": ["#Science", "#Research", "#Discovery"],
}


def category_key(category: str) -> str:
    """Known categories map to themselves, anything else to tech."""
    category = (category or "").lower()
    return category if category in COMMENTARY else "tech"


def generate_hashtags(article: Article) -> List[str]:
    """
    Build the hashtag list for an article.

    Base tags, then the category tags, then up to two tags made from title
    words longer than four characters. Duplicates (case-insensitive) are
    dropped and the list is capped at eight, keeping the first seen.
    """
    specific = CATEGORY_HASHTAGS.get((article.category or "").lower(), CATEGORY_HASHTAGS["tech"])

    words = re.sub(r'[^a-z0-9\s]', '', article.title.lower()).split()
    title_tags = ['#' + word[0].upper() + word[1:] for word in words if len(word) > 4][:2]

    tags: List[str] = []
    seen = set()
    for tag in BASE_HASHTAGS + specific + title_tags:
        if tag.lower() in seen:
            continue
        seen.add(tag.lower())
        tags.append(tag)
    return tags[:MAX_HASHTAGS]


def clean_model_text(text: str) -> str:
    """Drop a leading 'Summary:' label and collapse runs of blank lines."""
    text = re.sub(r'^\s*Summary:\s*', '', text, flags=re.IGNORECASE)
    text = re.sub(r'\n\s*\n', '\n\n', text)
    return text.strip()


def render_post(article: Article, hook: str, body: str, question: str,
                hashtags: List[str], excerpt: Optional[str] = None) -> str:
    """
    Assemble the post text.

    Layout: hook, title, source attribution of the summary, body, closing
    question, hashtags and the link.
    """
    quote = article.summary if excerpt is None else excerpt
    return (
        f"{hook}\n\n"
        f"{article.title}\n\n"
        f"As per the latest update from {article.source}: \"{quote}\"\n\n"
        f"{body}\n\n"
        f"{question}\n\n"
        f"{' '.join(hashtags)}\n\n"
        f"🔗 Read more: {article.link}"
    )


def fallback_post(article: Article, rng: random.Random, max_length: Optional[int] = None) -> str:
    """
    Templated post that needs no external service.

    The hook, commentary and question are drawn from fixed pools with ``rng``
    so a seeded source gives reproducible output. When ``max_length`` is
    given, the quoted summary is shortened until the post fits.
    """
    hook = rng.choice(HOOKS)
    commentary = rng.choice(COMMENTARY[category_key(article.category)])
    question = rng.choice(QUESTIONS)
    hashtags = generate_hashtags(article)

    post = render_post(article, hook, commentary, question, hashtags)
    if max_length is None or len(post) <= max_length:
        return post

    overflow = len(post) - max_length
    keep = max(0, len(article.summary) - overflow - 3)
    return render_post(article, hook, commentary, question, hashtags,
                       excerpt=article.summary[:keep].rstrip() + "...")


class DraftGenerator:
    """
    Turns an article into a draft post.

    An external summarizer is used when one is configured; any failure falls
    back to the templated post, which always succeeds.
    """
    def __init__(self, settings: Settings, summarizer=None, rng: Optional[random.Random] = None):
        self.settings = settings
        self.summarizer = summarizer
        self.rng = rng or random.Random()

    @property
    def uses_summarizer(self) -> bool:
        return self.summarizer is not None

    def build_prompt(self, article: Article) -> str:
        return (
            "Transform this article summary into an engaging LinkedIn post:\n\n"
            f"Title: {article.title}\n"
            f"Summary: {article.summary}\n"
            f"Source: {article.source}\n"
            f"Category: {article.category}\n\n"
            "Write a LinkedIn post that:\n"
            "1. Starts with a hook or thought-provoking question\n"
            "2. Mentions \"as per the latest update\" when referencing the article insights\n"
            "3. Expands on the key points from the summary\n"
            "4. Adds personal commentary on why this matters\n"
            "5. Ends with an engaging question for the community\n"
            "6. Keeps it under 300 words and conversational"
        )

    def is_valid(self, content: str) -> bool:
        length = len(content or "")
        if length < self.settings.post_min_length or length > self.settings.post_max_length:
            logger.warning(
                "Generated post failed validation (length=%d, allowed %d-%d)",
                length, self.settings.post_min_length, self.settings.post_max_length,
            )
            return False
        return True

    def format_model_post(self, text: str, article: Article) -> str:
        return render_post(
            article,
            hook=self.rng.choice(HOOKS),
            body=clean_model_text(text),
            question=self.rng.choice(QUESTIONS),
            hashtags=generate_hashtags(article),
        )

    async def compose(self, article: Article) -> str:
        """
        Produce the post text, from the summarizer if possible.
        """
        if self.summarizer is None:
            logger.debug("No summarizer configured, using fallback generation")
            return fallback_post(article, self.rng, self.settings.post_max_length)

        try:
            text = await self.summarizer.summarize(self.build_prompt(article))
        except SummarizerError as e:
            logger.warning("Summarizer failed for %r, using fallback: %s", article.title[:60], e)
            return fallback_post(article, self.rng, self.settings.post_max_length)

        post = self.format_model_post(text, article)
        if len(post) > self.settings.post_max_length or len(post) < self.settings.post_min_length:
            logger.warning("Summarizer output out of bounds for %r, using fallback", article.title[:60])
            return fallback_post(article, self.rng, self.settings.post_max_length)
        return post

    async def generate(self, article: Article) -> Optional[DraftPost]:
        """
        Generate a draft for a stored article.

        Persistence is left to the caller.

        Returns:
            The draft, or None if the result failed validation
        """
        if article.id is None:
            raise ValueError("Article must be stored before a draft is generated")

        logger.info("Generating draft for %r (%s)", article.title[:60], article.source)
        content = await self.compose(article)
        if not self.is_valid(content):
            return None

        return DraftPost(
            article_id=article.id,
            content=content,
            hashtags=generate_hashtags(article),
            status=PostStatus.DRAFT,
        )
