"""Durable storage for the server's article store and client replicas."""

from .article_store import ArticleStore
from .blob_store import BlobStore

__all__ = ["ArticleStore", "BlobStore"]
