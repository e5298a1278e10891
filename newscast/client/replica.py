"""Client-side replica of the server's article collection.

The replica converges on the server's state even though ``new_article``
and ``delete`` events may be lost, duplicated or reordered:

- ``new_article`` prepends the article unless its id is already present.
- ``delete`` removes the entry with that id; an absent id is a no-op.
- ``full_sync`` replaces everything and re-sorts by descending numeric id.

Every rule is idempotent, and a full sync erases whatever drift the
incremental events left behind.
"""

import logging
from typing import Callable, Iterable

from ..models import Article, sort_newest_first
from ..protocol import Delete, FullSync, Message, NewArticle
from ..storage import BlobStore

logger = logging.getLogger(__name__)

REPLICA_KEY = "replica"

ChangeCallback = Callable[[tuple[Article, ...]], None]


class ReplicaEngine:
    """Ordered, newest-first list of article copies, persisted on every change."""

    def __init__(self, blobs: BlobStore, on_change: ChangeCallback | None = None):
        """Initialize the replica.

        Args:
            blobs: Persistence hook for the local cache.
            on_change: Called with the new article tuple after each change.
        """
        self._blobs = blobs
        self.on_change = on_change
        self._articles: list[Article] = []

    def load(self) -> int:
        """Load the cached replica. Absent or corrupt caches start empty.

        Returns:
            Number of articles loaded.
        """
        data = self._blobs.load(REPLICA_KEY, [])
        self._articles = []
        if not isinstance(data, list):
            logger.warning("Cached replica is corrupt, starting empty")
            return 0

        seen: set[str] = set()
        for raw in data:
            try:
                article = Article.from_dict(raw)
            except ValueError as e:
                logger.warning(f"Skipping unreadable cached article: {e}")
                continue
            if article.id in seen:
                continue
            seen.add(article.id)
            self._articles.append(article)

        logger.info(f"Loaded {len(self._articles)} articles from cache")
        return len(self._articles)

    def apply(self, message: Message) -> bool:
        """Apply a server message.

        Returns:
            True if the replica changed. Messages that carry no article
            state are ignored.
        """
        match message:
            case NewArticle(article=article):
                return self.apply_new_article(article)
            case Delete(article_id=article_id):
                return self.apply_delete(article_id)
            case FullSync(articles=articles):
                return self.apply_full_sync(articles.values())
            case _:
                return False

    def apply_new_article(self, article: Article) -> bool:
        """Prepend an article unless one with its id is already present."""
        if self._index_of(article.id) is not None:
            logger.debug(f"Duplicate article {article.id}, ignoring")
            return False

        self._articles.insert(0, article)
        logger.info(f"New article received: {article.headline}")
        self._changed()
        return True

    def apply_delete(self, article_id: str) -> bool:
        """Remove the article with this id, if present."""
        index = self._index_of(article_id)
        if index is None:
            logger.debug(f"Delete for unknown article {article_id}, ignoring")
            return False

        del self._articles[index]
        logger.info(f"Article deleted: {article_id}")
        self._changed()
        return True

    def apply_full_sync(self, articles: Iterable[Article]) -> bool:
        """Replace the replica with a snapshot, newest first.

        Returns:
            True if the resulting replica differs from the previous one.
        """
        by_id: dict[str, Article] = {}
        for article in articles:
            by_id[article.id] = article

        previous = self._articles
        self._articles = sort_newest_first(list(by_id.values()))
        changed = self._articles != previous

        logger.info(f"Processed full sync: {len(self._articles)} articles")
        # The snapshot is the fixpoint; persist even when nothing changed
        self._persist()
        if changed and self.on_change:
            self.on_change(self.articles)
        return changed

    def _index_of(self, article_id: str) -> int | None:
        for index, article in enumerate(self._articles):
            if article.id == article_id:
                return index
        return None

    def _persist(self) -> bool:
        saved = self._blobs.save(REPLICA_KEY, [a.to_dict() for a in self._articles])
        if not saved:
            logger.warning("Could not save replica, continuing in memory")
        return saved

    def _changed(self) -> None:
        self._persist()
        if self.on_change:
            self.on_change(self.articles)

    @property
    def articles(self) -> tuple[Article, ...]:
        """Read-only view, newest first."""
        return tuple(self._articles)

    @property
    def ids(self) -> list[str]:
        return [a.id for a in self._articles]

    def __len__(self) -> int:
        return len(self._articles)
