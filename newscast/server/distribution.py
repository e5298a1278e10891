"""Turns store mutations and sync requests into outbound messages.

Store mutations always persist before they are announced. Broadcasts go
to every listener on the channel; answers to a single client's request
are unicast back to that client only.
"""

import logging
from dataclasses import dataclass

from ..models import Article
from ..protocol import (
    Delete,
    FullSync,
    HeartbeatResponse,
    Message,
    NewArticle,
    ServerHeartbeat,
    encode,
)
from ..storage import ArticleStore
from ..transport import Transport

logger = logging.getLogger(__name__)


@dataclass
class PublishResult:
    """Outcome of publishing a new article."""

    article: Article
    persisted: bool
    broadcast: bool


class DistributionEngine:
    """Server-side fan-out of store state to clients."""

    def __init__(self, store: ArticleStore, transport: Transport, channel: str):
        """Initialize the engine.

        Args:
            store: Authoritative article store.
            transport: Outbound transport.
            channel: Logical channel every frame is tagged with.
        """
        self.store = store
        self.transport = transport
        self.channel = channel

    async def _broadcast(self, message: Message) -> bool:
        sent = await self.transport.broadcast(encode(message), self.channel)
        if sent:
            logger.debug(f"Broadcasted {message.type}")
        else:
            logger.warning(f"Failed to broadcast {message.type}")
        return sent

    async def _send(self, client_id: str, message: Message) -> bool:
        sent = await self.transport.send(client_id, encode(message), self.channel)
        if sent:
            logger.debug(f"Sent {message.type} to {client_id}")
        else:
            logger.warning(f"Failed to send {message.type} to {client_id}")
        return sent

    async def publish(self, headline: str, content: str) -> PublishResult:
        """Create an article and broadcast it.

        The article is broadcast even if it could not be saved.
        """
        article = self.store.create(headline, content)
        persisted = not self.store.dirty
        if not persisted:
            logger.warning(f"Article {article.id} is not saved to disk")

        sent = await self._broadcast(NewArticle(article=article))
        return PublishResult(article=article, persisted=persisted, broadcast=sent)

    async def retract(self, article_id: str) -> bool:
        """Delete an article and broadcast the removal.

        Returns:
            False if the id was unknown; nothing is broadcast then.
        """
        if not self.store.delete(article_id):
            logger.info(f"Article {article_id} not found")
            return False

        await self._broadcast(Delete(article_id=article_id))
        return True

    async def answer_sync_request(self, client_id: str) -> bool:
        """Unicast the full article set to one client."""
        articles = self.store.snapshot()
        logger.info(f"Sending full sync to client {client_id} with {len(articles)} articles")
        return await self._send(client_id, FullSync(articles=articles))

    async def sync_all(self) -> int:
        """Broadcast the full article set to every client.

        Returns:
            Number of articles sent.
        """
        articles = self.store.snapshot()
        await self._broadcast(FullSync(articles=articles))
        logger.info(f"Full sync of {len(articles)} articles sent to all clients")
        return len(articles)

    async def answer_heartbeat(self, client_id: str) -> bool:
        return await self._send(client_id, HeartbeatResponse())

    async def beacon(self) -> bool:
        """Broadcast the periodic server heartbeat."""
        return await self._broadcast(ServerHeartbeat())
