"""Authoritative article collection owned by the server."""

import logging
from typing import Any, Callable

from ..models import Article, now_timestamp
from .blob_store import BlobStore

logger = logging.getLogger(__name__)

ARTICLES_KEY = "articles"


def _int_id(article_id: str) -> int | None:
    try:
        return int(article_id)
    except (TypeError, ValueError):
        return None


class ArticleStore:
    """Mapping of article id to Article with a monotonically increasing id counter.

    ``next_id`` is persisted alongside the articles and is recovered on
    startup as the larger of the stored counter and ``max(ids) + 1``, so an
    id is never issued twice, not even after its article was deleted and
    the process restarted.

    Persistence is best effort: a failed save keeps the in-memory change,
    logs a warning and marks the store ``dirty`` until a later save succeeds.
    """

    def __init__(
        self,
        blobs: BlobStore,
        clock: Callable[[], str] = now_timestamp,
    ):
        """Initialize the article store.

        Args:
            blobs: Persistence hook.
            clock: Returns the timestamp stamped on new articles.
        """
        self._blobs = blobs
        self._clock = clock
        self._articles: dict[str, Article] = {}
        self._next_id = 1
        self._dirty = False

    def load_or_init(self) -> int:
        """Load persisted state, or start empty if absent or corrupt.

        Returns:
            Number of articles loaded.
        """
        data = self._blobs.load(ARTICLES_KEY)
        self._articles = {}
        self._next_id = 1

        if data is None:
            logger.info("No stored articles, starting empty")
            return 0
        if not isinstance(data, dict) or not isinstance(data.get("articles"), dict):
            logger.warning("Stored articles are corrupt, starting empty")
            return 0

        for key, raw in data["articles"].items():
            try:
                article = Article.from_dict(raw)
            except ValueError as e:
                logger.warning(f"Skipping unreadable stored article {key!r}: {e}")
                continue
            self._articles[article.id] = article

        highest = max(
            (n for n in map(_int_id, self._articles) if n is not None),
            default=0,
        )
        stored_next = data.get("next_id")
        if not isinstance(stored_next, int) or isinstance(stored_next, bool):
            stored_next = 1
        self._next_id = max(stored_next, highest + 1, 1)

        logger.info(
            f"Loaded {len(self._articles)} articles, next id {self._next_id}"
        )
        return len(self._articles)

    def _persist(self) -> bool:
        payload: dict[str, Any] = {
            "next_id": self._next_id,
            "articles": {aid: a.to_dict() for aid, a in self._articles.items()},
        }
        saved = self._blobs.save(ARTICLES_KEY, payload)
        if saved:
            self._dirty = False
        else:
            self._dirty = True
            logger.warning("Could not save articles, continuing in memory")
        return saved

    def create(self, headline: str, content: str) -> Article:
        """Create, store and persist a new article.

        Args:
            headline: Article headline.
            content: Article body.

        Returns:
            The new Article. Check ``dirty`` to learn whether it was saved.
        """
        article = Article(
            id=str(self._next_id),
            headline=headline,
            content=content,
            timestamp=self._clock(),
        )
        self._next_id += 1
        self._articles[article.id] = article
        self._persist()

        logger.info(f"Created article {article.id}: {headline}")
        return article

    def delete(self, article_id: str) -> bool:
        """Remove an article. Unknown ids are a no-op.

        Returns:
            True if an article was removed.
        """
        if article_id not in self._articles:
            return False

        del self._articles[article_id]
        self._persist()

        logger.info(f"Deleted article {article_id}")
        return True

    def list_articles(self) -> list[Article]:
        """Snapshot of all current articles in insertion order."""
        return list(self._articles.values())

    def snapshot(self) -> dict[str, Article]:
        """Copy of the id to article mapping."""
        return dict(self._articles)

    def get(self, article_id: str) -> Article | None:
        return self._articles.get(article_id)

    @property
    def next_id(self) -> int:
        return self._next_id

    @property
    def dirty(self) -> bool:
        """True when in-memory state is ahead of the last successful save."""
        return self._dirty

    def __len__(self) -> int:
        return len(self._articles)

    def __contains__(self, article_id: object) -> bool:
        return article_id in self._articles
