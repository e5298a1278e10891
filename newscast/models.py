"""Article model shared by the server store and client replicas."""

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


@dataclass(frozen=True)
class Article:
    """A published news article.

    Articles are immutable once created. ``id`` is assigned by the server
    only and is a decimal string; ``timestamp`` is the server's local time
    at creation and is opaque to clients.
    """

    id: str
    headline: str
    content: str
    timestamp: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "headline": self.headline,
            "content": self.content,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Article":
        """Create from dictionary.

        Raises:
            ValueError: If a required field is missing or has the wrong type.
        """
        if not isinstance(data, dict):
            raise ValueError(f"Article must be a mapping, got {type(data).__name__}")

        article_id = data.get("id")
        # Numeric ids from older peers are kept as their decimal string
        if isinstance(article_id, int) and not isinstance(article_id, bool):
            article_id = str(article_id)
        if not isinstance(article_id, str) or not article_id:
            raise ValueError(f"Article id must be a non-empty string, got {article_id!r}")

        # Partial records are kept; the display shows placeholders for empty text
        headline = data.get("headline") or ""
        content = data.get("content") or ""
        if not isinstance(headline, str):
            raise ValueError(f"Article {article_id} headline must be a string")
        if not isinstance(content, str):
            raise ValueError(f"Article {article_id} content must be a string")

        timestamp = data.get("timestamp") or ""
        if not isinstance(timestamp, str):
            timestamp = str(timestamp)

        return cls(
            id=article_id,
            headline=headline,
            content=content,
            timestamp=timestamp,
        )

    @property
    def short_time(self) -> str:
        """The ``HH:MM`` part of the timestamp, or empty if absent."""
        return self.timestamp[11:16]


def now_timestamp() -> str:
    """Current server local time in article timestamp format."""
    return datetime.now().strftime(TIMESTAMP_FORMAT)


def numeric_rank(article_id: Any) -> float:
    """Ordering key for an article id.

    Ids that do not parse as a finite number rank as ``0``; they are never
    excluded.
    """
    try:
        value = float(str(article_id).strip())
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(value):
        return 0.0
    return value


def sort_newest_first(articles: list[Article]) -> list[Article]:
    """Sort articles by descending numeric id."""
    return sorted(articles, key=lambda a: numeric_rank(a.id), reverse=True)
