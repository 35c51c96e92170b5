"""
Data model for LinkPost.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional


class ConfigError(ValueError):
    """Raised at startup when the configuration cannot be used."""


class StorageError(RuntimeError):
    """Raised at startup when the local store cannot be opened."""


class PostNotFoundError(LookupError):
    """Raised when a post id does not exist."""


class InvalidTransitionError(ValueError):
    """Raised when a post status change is not an edge of the state machine."""


class PostStatus(str, Enum):
    DRAFT = "draft"
    APPROVED = "approved"
    POSTED = "posted"
    REJECTED = "rejected"


ALLOWED_TRANSITIONS = {
    PostStatus.DRAFT: {PostStatus.APPROVED, PostStatus.POSTED, PostStatus.REJECTED},
    PostStatus.APPROVED: {PostStatus.POSTED},
    PostStatus.POSTED: set(),
    PostStatus.REJECTED: set(),
}


def external_key(guid: Optional[str], link: Optional[str], title: Optional[str]) -> Optional[str]:
    """
    Derive the deduplication key for a feed entry.

    Feeds populate unique identifiers inconsistently, so the key is the
    feed GUID, else the link, else the title.

    Returns:
        The first non-blank candidate, stripped, or None if all are blank
    """
    for candidate in (guid, link, title):
        if candidate and candidate.strip():
            return candidate.strip()
    return None


@dataclass
class Article:
    """
    A fetched article, as produced by the feed retriever and stored by the
    article store.
    """
    title: str
    link: str
    content: str
    summary: str
    source: str
    category: str
    published_at: datetime
    fetched_at: datetime
    guid: Optional[str] = None
    processed: bool = False
    id: Optional[int] = None

    @property
    def external_key(self) -> Optional[str]:
        return external_key(self.guid, self.link, self.title)


@dataclass
class DraftPost:
    """
    A generated post and its review lifecycle.
    """
    article_id: int
    content: str
    hashtags: List[str]
    status: PostStatus = PostStatus.DRAFT
    created_at: Optional[datetime] = None
    posted_at: Optional[datetime] = None
    image_url: Optional[str] = None
    infographic_path: Optional[str] = None
    id: Optional[int] = None


@dataclass
class DraftView:
    """A draft joined with the article it was generated from."""
    post: DraftPost
    title: str
    link: str
    source: str
    category: str

    def to_dict(self) -> Dict:
        return {
            "id": self.post.id,
            "article_id": self.post.article_id,
            "title": self.title,
            "link": self.link,
            "source": self.source,
            "category": self.category,
            "content": self.post.content,
            "hashtags": list(self.post.hashtags),
            "status": self.post.status.value,
            "created_at": self.post.created_at.isoformat() if self.post.created_at else None,
            "image_url": self.post.image_url,
            "infographic_path": self.post.infographic_path,
        }


@dataclass
class RunSummary:
    """Counts reported at the end of one daily job run."""
    fetched: int = 0
    new_articles: int = 0
    drafts_generated: int = 0
    failures: int = 0
    quota_exhausted: bool = False
    failed_sources: List[str] = field(default_factory=list)
    total_articles: int = 0
    total_posts: int = 0
    total_drafts: int = 0
