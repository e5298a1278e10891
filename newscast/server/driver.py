"""Server protocol driver."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

from ..config import Config
from ..errors import MalformedMessage, TransportError, UnknownMessageType
from ..event_loop import EventLoop, Inbound, TimerFired
from ..liveness import ConnectionRegistry
from ..protocol import Heartbeat, RequestSync, decode
from ..storage import ArticleStore, BlobStore
from ..transport import Datagram, Transport
from .distribution import DistributionEngine

logger = logging.getLogger(__name__)

HEARTBEAT_TIMER = "server_heartbeat"


@dataclass
class OperatorIntent:
    """An operator action to run inside the event loop.

    ``result`` is resolved with the action's return value once handled.
    """

    result: asyncio.Future | None = field(
        default=None, compare=False, repr=False, kw_only=True
    )


@dataclass
class CreateArticle(OperatorIntent):
    headline: str
    content: str


@dataclass
class DeleteArticle(OperatorIntent):
    article_id: str


@dataclass
class SyncAll(OperatorIntent):
    pass


@dataclass
class ServerState:
    """Everything the server's handlers mutate."""

    store: ArticleStore
    registry: ConnectionRegistry = field(default_factory=ConnectionRegistry)


class NewsServer:
    """Authoritative publisher.

    Owns the article store and the connection registry and serves them to
    clients from a single event loop.
    """

    def __init__(
        self,
        config: Config,
        transport: Transport,
        blobs: BlobStore | None = None,
    ):
        self.config = config
        self.channel = config.protocol.channel
        self.transport = transport
        self._blobs = blobs or BlobStore(config.server.db_path)
        self.state = ServerState(store=ArticleStore(self._blobs))
        self.engine = DistributionEngine(self.state.store, transport, self.channel)
        self.events = EventLoop()

    async def start(self) -> None:
        """Load stored articles, connect the transport and arm the heartbeat."""
        logger.info(f"Starting Newscast server: {self.config.node.name}")
        self.events.bind()

        if not self._blobs.is_connected:
            self._blobs.connect()
        count = self.state.store.load_or_init()
        logger.info(f"Loaded {count} articles from storage")

        self.transport.set_receiver(self.events.post_datagram)
        if not await self.transport.connect():
            raise TransportError("Transport connection failed")

        self.events.add_timer(
            HEARTBEAT_TIMER, self.config.server.heartbeat_interval_seconds
        )
        logger.info(f"Server listening on channel {self.channel!r}")

    async def run(self) -> None:
        """Process events until stop() is called."""
        await self.events.run(self.handle_event)

    async def stop(self) -> None:
        """Stop the event loop and release resources."""
        logger.info("Shutting down server...")
        self.events.stop()
        self.transport.set_receiver(None)
        await self.transport.disconnect()
        self._blobs.close()
        logger.info("Server shutdown complete")

    async def submit(self, intent: OperatorIntent) -> Any:
        """Queue an operator intent and wait for its result."""
        intent.result = asyncio.get_running_loop().create_future()
        self.events.post(intent)
        return await intent.result

    async def handle_event(self, event: Any) -> None:
        """Handle exactly one event."""
        match event:
            case Inbound(datagram=datagram):
                await self._handle_datagram(datagram)
            case TimerFired(name=name) if name == HEARTBEAT_TIMER:
                await self.engine.beacon()
                logger.debug("Server heartbeat sent")
            case OperatorIntent():
                await self._handle_intent(event)
            case _:
                logger.warning(f"Unhandled event: {event!r}")

    async def _handle_datagram(self, datagram: Datagram) -> None:
        if datagram.protocol != self.channel:
            logger.debug(
                f"Ignoring frame from {datagram.sender} on channel {datagram.protocol!r}"
            )
            return

        try:
            message = decode(datagram.message)
        except UnknownMessageType as e:
            logger.warning(
                f"Unknown message type from client {datagram.sender}: {e.message_type!r}"
            )
            return
        except MalformedMessage as e:
            logger.warning(f"Malformed message from {datagram.sender}: {e}")
            return

        match message:
            case Heartbeat(client_id=client_id):
                self.state.registry.mark_seen(client_id)
                await self.engine.answer_heartbeat(datagram.sender)
            case RequestSync():
                await self.engine.answer_sync_request(datagram.sender)
            case _:
                # Server-to-client traffic, e.g. another publisher on the channel
                logger.debug(f"Ignoring {message.type} from {datagram.sender}")

    async def _handle_intent(self, intent: OperatorIntent) -> None:
        try:
            match intent:
                case CreateArticle(headline=headline, content=content):
                    result: Any = await self.engine.publish(headline, content)
                case DeleteArticle(article_id=article_id):
                    result = await self.engine.retract(article_id)
                case SyncAll():
                    result = await self.engine.sync_all()
                case _:
                    raise ValueError(f"Unknown operator intent: {intent!r}")
        except Exception as e:
            if intent.result is not None and not intent.result.done():
                intent.result.set_exception(e)
                return
            raise

        if intent.result is not None and not intent.result.done():
            intent.result.set_result(result)

    @property
    def connected_clients(self) -> list[str]:
        return self.state.registry.clients
