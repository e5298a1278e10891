"""Client protocol driver."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable

from ..config import Config
from ..errors import MalformedMessage, TransportError, UnknownMessageType
from ..event_loop import EventLoop, Inbound, TimerFired
from ..liveness import LivenessMonitor
from ..models import Article
from ..protocol import (
    CLIENT_MESSAGE_TYPES,
    Delete,
    FullSync,
    Heartbeat,
    HeartbeatResponse,
    Message,
    NewArticle,
    RequestSync,
    ServerHeartbeat,
    decode,
    encode,
)
from ..storage import BlobStore
from ..transport import Datagram, Transport
from .replica import ReplicaEngine

logger = logging.getLogger(__name__)

HEARTBEAT_TIMER = "client_heartbeat"


@dataclass(frozen=True)
class ReplicaView:
    """What the display layer is allowed to see."""

    articles: tuple[Article, ...]
    server_connected: bool


UpdateCallback = Callable[[ReplicaView], None]


@dataclass
class ClientState:
    """Everything the client's handlers mutate."""

    replica: ReplicaEngine
    liveness: LivenessMonitor

    def view(self) -> ReplicaView:
        return ReplicaView(
            articles=self.replica.articles,
            server_connected=self.liveness.server_connected,
        )


class NewsClient:
    """Display client keeping a local replica in step with the server."""

    def __init__(
        self,
        config: Config,
        transport: Transport,
        blobs: BlobStore | None = None,
        on_update: UpdateCallback | None = None,
        clock: Callable[[], float] | None = None,
    ):
        """Initialize the client.

        Args:
            config: Application configuration.
            transport: Transport bound to this client's node id.
            blobs: Local cache; defaults to ``config.client.db_path``.
            on_update: Display hook called after every visible change.
            clock: Monotonic time source for liveness (tests).
        """
        self.config = config
        self.client_id = transport.node_id
        self.channel = config.protocol.channel
        self.transport = transport
        self.on_update = on_update
        self._blobs = blobs or BlobStore(config.client.db_path)

        liveness_kwargs: dict[str, Any] = {}
        if clock is not None:
            liveness_kwargs["clock"] = clock

        self.state = ClientState(
            replica=ReplicaEngine(self._blobs, on_change=self._replica_changed),
            liveness=LivenessMonitor(
                config.client.heartbeat_interval_seconds,
                config.client.grace_seconds,
                **liveness_kwargs,
            ),
        )
        self.events = EventLoop()

    async def start(self) -> None:
        """Load the cache, connect, say hello and ask for a full sync."""
        logger.info(f"Starting Newscast client: {self.client_id}")
        self.events.bind()

        if not self._blobs.is_connected:
            self._blobs.connect()
        self.state.replica.load()
        self._notify()

        self.transport.set_receiver(self.events.post_datagram)
        if not await self.transport.connect():
            raise TransportError("Transport connection failed")

        await self.send_heartbeat()
        await asyncio.sleep(self.config.client.initial_sync_delay_seconds)
        await self.request_sync()

        self.events.add_timer(
            HEARTBEAT_TIMER, self.config.client.heartbeat_interval_seconds
        )
        logger.info("Heartbeat timer started, entering main loop")

    async def run(self) -> None:
        """Process events until stop() is called."""
        await self.events.run(self.handle_event)

    async def stop(self) -> None:
        """Stop the event loop and release resources."""
        logger.info("Stopping client...")
        self.events.stop()
        self.transport.set_receiver(None)
        await self.transport.disconnect()
        self._blobs.close()

    async def _send(self, message: Message) -> bool:
        # The server's address is not known up front; client traffic is broadcast
        sent = await self.transport.broadcast(encode(message), self.channel)
        if not sent:
            logger.warning(f"Failed to send {message.type}")
        return sent

    async def send_heartbeat(self) -> bool:
        sent = await self._send(Heartbeat(client_id=self.client_id))
        self.state.liveness.record_sent()
        logger.debug("Heartbeat sent")
        return sent

    async def request_sync(self) -> bool:
        logger.info("Requesting full sync")
        return await self._send(RequestSync(client_id=self.client_id))

    async def handle_event(self, event: Any) -> None:
        """Handle exactly one event."""
        match event:
            case Inbound(datagram=datagram):
                self._handle_datagram(datagram)
            case TimerFired(name=name) if name == HEARTBEAT_TIMER:
                await self._on_heartbeat_timer()
            case _:
                logger.warning(f"Unhandled event: {event!r}")

    async def _on_heartbeat_timer(self) -> None:
        await self.send_heartbeat()
        if self.state.liveness.check():
            self._notify()

    def _handle_datagram(self, datagram: Datagram) -> None:
        if datagram.protocol != self.channel:
            logger.debug(
                f"Ignoring frame from {datagram.sender} on channel {datagram.protocol!r}"
            )
            return

        try:
            message = decode(datagram.message)
        except UnknownMessageType as e:
            logger.warning(f"Unknown message type: {e.message_type!r}")
            return
        except MalformedMessage as e:
            logger.warning(f"Malformed message from {datagram.sender}: {e}")
            return

        if message.type in CLIENT_MESSAGE_TYPES:
            # Another client's heartbeat or sync request, not proof of server life
            logger.debug(f"Ignoring {message.type} from {datagram.sender}")
            return

        if self.state.liveness.record_traffic():
            self._notify()

        match message:
            case NewArticle() | Delete() | FullSync():
                self.state.replica.apply(message)
            case ServerHeartbeat():
                logger.debug("Server heartbeat received")
            case HeartbeatResponse():
                logger.debug("Heartbeat response received")
            case _:
                logger.warning(f"Unexpected message type: {message.type}")

    def _replica_changed(self, articles: tuple[Article, ...]) -> None:
        self._notify()

    def _notify(self) -> None:
        if self.on_update:
            self.on_update(self.state.view())

    def view(self) -> ReplicaView:
        return self.state.view()
