"""Authoritative publisher: article store, distribution and its event loop."""

from .distribution import DistributionEngine, PublishResult
from .driver import (
    CreateArticle,
    DeleteArticle,
    NewsServer,
    OperatorIntent,
    ServerState,
    SyncAll,
)

__all__ = [
    "DistributionEngine",
    "PublishResult",
    "CreateArticle",
    "DeleteArticle",
    "NewsServer",
    "OperatorIntent",
    "ServerState",
    "SyncAll",
]
