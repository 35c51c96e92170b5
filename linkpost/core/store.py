"""
SQLite persistence for articles and post drafts.
"""
import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import date, datetime, time, timedelta, timezone
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple
from zoneinfo import ZoneInfo

from linkpost.config import Settings
from linkpost.core.article import (
    ALLOWED_TRANSITIONS,
    Article,
    DraftPost,
    DraftView,
    InvalidTransitionError,
    PostNotFoundError,
    PostStatus,
    StorageError,
)

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS articles (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    external_key TEXT UNIQUE NOT NULL,
    title TEXT NOT NULL,
    link TEXT NOT NULL,
    content TEXT,
    summary TEXT,
    source TEXT NOT NULL,
    category TEXT NOT NULL,
    published_at TEXT,
    fetched_at TEXT NOT NULL,
    processed INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS posts (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    article_id INTEGER NOT NULL,
    content TEXT NOT NULL,
    hashtags TEXT NOT NULL DEFAULT '[]',
    status TEXT NOT NULL DEFAULT 'draft'
        CHECK (status IN ('draft', 'approved', 'posted', 'rejected')),
    created_at TEXT NOT NULL,
    posted_at TEXT,
    image_url TEXT,
    infographic_path TEXT,
    FOREIGN KEY (article_id) REFERENCES articles(id)
);

CREATE INDEX IF NOT EXISTS idx_articles_processed ON articles(processed, published_at);
CREATE INDEX IF NOT EXISTS idx_articles_fetched ON articles(fetched_at);
CREATE INDEX IF NOT EXISTS idx_posts_status ON posts(status, created_at);
CREATE INDEX IF NOT EXISTS idx_posts_created ON posts(created_at);
"""


def to_db_time(value: Optional[datetime]) -> Optional[str]:
    """Serialize a datetime as a UTC ISO string; naive values are taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec='seconds')


def from_db_time(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def day_bounds(day: date, tz: ZoneInfo) -> Tuple[str, str]:
    """UTC ISO bounds [start, end) of a calendar day in ``tz``."""
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
    return to_db_time(start), to_db_time(end)


class Database:
    """
    Owns the SQLite file and its schema.

    Connections are opened per operation; the store has a single writer.
    """
    def __init__(self, path: str):
        self.path = Path(path)
        try:
            if str(self.path) != ':memory:':
                self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.connect() as conn:
                conn.executescript(SCHEMA)
        except (sqlite3.Error, OSError) as e:
            raise StorageError(f"Cannot open database at {self.path}: {e}") from e

    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        """
        Open a connection, commit on success, roll back on error, always close.
        """
        conn = sqlite3.connect(str(self.path))
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()


class ArticleStore:
    """
    Append-only article store that owns deduplication and the processed flag.
    """
    def __init__(self, db: Database, settings: Settings):
        self.db = db
        self.min_content = settings.min_article_length
        self.min_summary = settings.min_summary_length
        self.tz = ZoneInfo(settings.schedule_timezone)

    def passes_length_gate(self, article: Article) -> bool:
        return (len(article.content or '') >= self.min_content
                and len(article.summary or '') >= self.min_summary)

    def insert_if_new(self, article: Article) -> Optional[int]:
        """
        Store an article unless its external key is already known.

        Articles below the minimum content or summary length are never stored.

        Args:
            article: Candidate article

        Returns:
            The new row id, or None if nothing was inserted
        """
        key = article.external_key
        if not key:
            logger.debug("Article without guid, link or title skipped")
            return None
        if not self.passes_length_gate(article):
            logger.debug(
                "Article below length threshold skipped: %s (content=%d, summary=%d)",
                article.title[:60], len(article.content or ''), len(article.summary or ''),
            )
            return None

        with self.db.connect() as conn:
            cursor = conn.execute(
                """
                INSERT OR IGNORE INTO articles
                (external_key, title, link, content, summary, source, category,
                 published_at, fetched_at, processed)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    key,
                    article.title,
                    article.link,
                    article.content,
                    article.summary,
                    article.source,
                    article.category,
                    to_db_time(article.published_at),
                    to_db_time(article.fetched_at),
                    1 if article.processed else 0,
                ),
            )
            if cursor.rowcount == 0:
                return None
            article.id = cursor.lastrowid
            return cursor.lastrowid

    def exists(self, key: str) -> bool:
        with self.db.connect() as conn:
            row = conn.execute(
                "SELECT 1 FROM articles WHERE external_key = ?", (key.strip(),)
            ).fetchone()
        return row is not None

    def get(self, article_id: int) -> Optional[Article]:
        with self.db.connect() as conn:
            row = conn.execute("SELECT * FROM articles WHERE id = ?", (article_id,)).fetchone()
        return self._row_to_article(row) if row else None

    def list_unprocessed(self, limit: int = 10) -> List[Article]:
        """
        Unprocessed articles, most recently published first.
        """
        if limit <= 0:
            return []
        with self.db.connect() as conn:
            rows = conn.execute(
                """
                SELECT * FROM articles
                WHERE processed = 0
                ORDER BY published_at DESC, id DESC
                LIMIT ?
                """,
                (limit,),
            ).fetchall()
        return [self._row_to_article(row) for row in rows]

    def mark_processed(self, article_id: int) -> None:
        with self.db.connect() as conn:
            conn.execute(
                "UPDATE articles SET processed = 1 WHERE id = ? AND processed = 0",
                (article_id,),
            )

    def count_created_on(self, day: date) -> int:
        """Number of articles fetched on ``day`` in the configured timezone."""
        start, end = day_bounds(day, self.tz)
        with self.db.connect() as conn:
            row = conn.execute(
                "SELECT COUNT(*) FROM articles WHERE fetched_at >= ? AND fetched_at < ?",
                (start, end),
            ).fetchone()
        return row[0]

    def list_by_fetch_date(self, day: date) -> List[Article]:
        start, end = day_bounds(day, self.tz)
        with self.db.connect() as conn:
            rows = conn.execute(
                """
                SELECT * FROM articles
                WHERE fetched_at >= ? AND fetched_at < ?
                ORDER BY published_at DESC
                """,
                (start, end),
            ).fetchall()
        return [self._row_to_article(row) for row in rows]

    def list_all(self) -> List[Article]:
        with self.db.connect() as conn:
            rows = conn.execute("SELECT * FROM articles ORDER BY published_at DESC").fetchall()
        return [self._row_to_article(row) for row in rows]

    def count(self, processed: Optional[bool] = None) -> int:
        query = "SELECT COUNT(*) FROM articles"
        params: Tuple = ()
        if processed is not None:
            query += " WHERE processed = ?"
            params = (1 if processed else 0,)
        with self.db.connect() as conn:
            return conn.execute(query, params).fetchone()[0]

    def reset_processing(self) -> int:
        """
        Maintenance reset: mark every article unprocessed again.

        Returns:
            Number of rows changed
        """
        with self.db.connect() as conn:
            cursor = conn.execute("UPDATE articles SET processed = 0 WHERE processed = 1")
            return cursor.rowcount

    @staticmethod
    def _row_to_article(row: sqlite3.Row) -> Article:
        key = row['external_key']
        return Article(
            id=row['id'],
            title=row['title'],
            link=row['link'],
            content=row['content'] or '',
            summary=row['summary'] or '',
            source=row['source'],
            category=row['category'],
            published_at=from_db_time(row['published_at']) or from_db_time(row['fetched_at']),
            fetched_at=from_db_time(row['fetched_at']),
            # Only a key that differs from link and title came from the feed guid
            guid=key if key not in (row['link'], row['title']) else None,
            processed=bool(row['processed']),
        )


class PostStore:
    """
    Generated drafts and their review status.
    """
    def __init__(self, db: Database, settings: Settings):
        self.db = db
        self.tz = ZoneInfo(settings.schedule_timezone)

    def insert(self, post: DraftPost) -> int:
        """
        Persist a draft.

        Returns:
            The assigned post id
        """
        with self.db.connect() as conn:
            return self._insert(conn, post)

    def insert_for_article(self, post: DraftPost) -> int:
        """
        Persist a draft and mark its article processed in one transaction.

        Either both writes land or neither does, so a failed save leaves the
        article to be drafted again on the next run.

        Returns:
            The assigned post id
        """
        with self.db.connect() as conn:
            post_id = self._insert(conn, post)
            conn.execute(
                "UPDATE articles SET processed = 1 WHERE id = ? AND processed = 0",
                (post.article_id,),
            )
        return post_id

    @staticmethod
    def _insert(conn: sqlite3.Connection, post: DraftPost) -> int:
        if post.created_at is None:
            post.created_at = datetime.now(timezone.utc)
        cursor = conn.execute(
            """
            INSERT INTO posts
            (article_id, content, hashtags, status, created_at, posted_at,
             image_url, infographic_path)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                post.article_id,
                post.content,
                json.dumps(post.hashtags),
                PostStatus(post.status).value,
                to_db_time(post.created_at),
                to_db_time(post.posted_at),
                post.image_url,
                post.infographic_path,
            ),
        )
        post.id = cursor.lastrowid
        return cursor.lastrowid

    def get(self, post_id: int) -> Optional[DraftPost]:
        with self.db.connect() as conn:
            row = conn.execute("SELECT * FROM posts WHERE id = ?", (post_id,)).fetchone()
        return self._row_to_post(row) if row else None

    def list_by_status(self, status: PostStatus, limit: int = 10) -> List[DraftPost]:
        with self.db.connect() as conn:
            rows = conn.execute(
                """
                SELECT * FROM posts
                WHERE status = ?
                ORDER BY created_at DESC, id DESC
                LIMIT ?
                """,
                (PostStatus(status).value, limit),
            ).fetchall()
        return [self._row_to_post(row) for row in rows]

    def list_drafts(self, limit: int = 10) -> List[DraftView]:
        with self.db.connect() as conn:
            rows = conn.execute(
                """
                SELECT p.*, a.title, a.link, a.source, a.category
                FROM posts p
                JOIN articles a ON p.article_id = a.id
                WHERE p.status = 'draft'
                ORDER BY p.created_at DESC, p.id DESC
                LIMIT ?
                """,
                (limit,),
            ).fetchall()
        return [self._row_to_view(row) for row in rows]

    def list_drafts_by_category(self, category: str) -> List[DraftView]:
        with self.db.connect() as conn:
            rows = conn.execute(
                """
                SELECT p.*, a.title, a.link, a.source, a.category
                FROM posts p
                JOIN articles a ON p.article_id = a.id
                WHERE p.status = 'draft' AND a.category = ?
                ORDER BY p.created_at DESC, p.id DESC
                """,
                (category,),
            ).fetchall()
        return [self._row_to_view(row) for row in rows]

    def list_categories(self) -> List[str]:
        """Distinct categories that currently have drafts."""
        with self.db.connect() as conn:
            rows = conn.execute(
                """
                SELECT DISTINCT a.category
                FROM posts p
                JOIN articles a ON p.article_id = a.id
                WHERE p.status = 'draft'
                ORDER BY a.category
                """
            ).fetchall()
        return [row[0] for row in rows]

    def transition(self, post_id: int, new_status: PostStatus) -> DraftPost:
        """
        Move a post along the review state machine.

        Legal edges are draft->approved, draft->posted, draft->rejected and
        approved->posted. Reaching ``posted`` stamps posted_at.

        Raises:
            PostNotFoundError: If the post does not exist
            InvalidTransitionError: If the edge is not allowed

        Returns:
            The updated post
        """
        target = PostStatus(new_status)
        post = self.get(post_id)
        if post is None:
            raise PostNotFoundError(f"No post with id {post_id}")
        if target not in ALLOWED_TRANSITIONS[post.status]:
            raise InvalidTransitionError(
                f"Post {post_id} cannot move from {post.status.value} to {target.value}"
            )

        posted_at = datetime.now(timezone.utc) if target == PostStatus.POSTED else None
        with self.db.connect() as conn:
            cursor = conn.execute(
                """
                UPDATE posts SET status = ?, posted_at = COALESCE(?, posted_at)
                WHERE id = ? AND status = ?
                """,
                (target.value, to_db_time(posted_at), post_id, post.status.value),
            )
            if cursor.rowcount != 1:
                raise InvalidTransitionError(f"Post {post_id} changed status concurrently")

        post.status = target
        if posted_at is not None:
            post.posted_at = from_db_time(to_db_time(posted_at))
        return post

    def attach_visuals(self, post_id: int, image_url: Optional[str],
                       infographic_path: Optional[str]) -> None:
        with self.db.connect() as conn:
            conn.execute(
                """
                UPDATE posts
                SET image_url = COALESCE(?, image_url),
                    infographic_path = COALESCE(?, infographic_path)
                WHERE id = ?
                """,
                (image_url, infographic_path, post_id),
            )

    def count_created_on(self, day: date) -> int:
        start, end = day_bounds(day, self.tz)
        with self.db.connect() as conn:
            row = conn.execute(
                "SELECT COUNT(*) FROM posts WHERE created_at >= ? AND created_at < ?",
                (start, end),
            ).fetchone()
        return row[0]

    def count_created_today(self) -> int:
        return self.count_created_on(datetime.now(self.tz).date())

    def counts_by_status(self) -> Dict[str, int]:
        counts = {status.value: 0 for status in PostStatus}
        with self.db.connect() as conn:
            for row in conn.execute("SELECT status, COUNT(*) FROM posts GROUP BY status"):
                counts[row[0]] = row[1]
        return counts

    def delete(self, post_id: int) -> bool:
        with self.db.connect() as conn:
            return conn.execute("DELETE FROM posts WHERE id = ?", (post_id,)).rowcount > 0

    def delete_all(self) -> int:
        with self.db.connect() as conn:
            return conn.execute("DELETE FROM posts").rowcount

    @staticmethod
    def _row_to_post(row: sqlite3.Row) -> DraftPost:
        return DraftPost(
            id=row['id'],
            article_id=row['article_id'],
            content=row['content'],
            hashtags=json.loads(row['hashtags'] or '[]'),
            status=PostStatus(row['status']),
            created_at=from_db_time(row['created_at']),
            posted_at=from_db_time(row['posted_at']),
            image_url=row['image_url'],
            infographic_path=row['infographic_path'],
        )

    def _row_to_view(self, row: sqlite3.Row) -> DraftView:
        return DraftView(
            post=self._row_to_post(row),
            title=row['title'],
            link=row['link'],
            source=row['source'],
            category=row['category'],
        )
