"""In-memory transport for tests and local simulation.

All endpoints of a hub share one broadcast domain. The hub can drop,
duplicate and hold back frames to model an unreliable radio channel.
"""

import logging
import random
from dataclasses import dataclass
from typing import Any

from .base import Datagram, Transport, decode_frame, encode_frame

logger = logging.getLogger(__name__)


@dataclass
class Delivery:
    """Record of one frame handed to one endpoint."""

    sender: str
    recipient: str
    message: dict[str, Any]
    unicast: bool


class LoopbackHub:
    """Shared medium connecting LoopbackTransport endpoints."""

    def __init__(
        self,
        loss: float = 0.0,
        duplicate: float = 0.0,
        seed: int | None = None,
    ):
        """Initialize the hub.

        Args:
            loss: Probability that a frame is dropped per recipient.
            duplicate: Probability that a delivered frame is delivered twice.
            seed: Random seed for reproducible loss patterns.
        """
        self.loss = loss
        self.duplicate = duplicate
        self._random = random.Random(seed)
        self._endpoints: dict[str, "LoopbackTransport"] = {}
        self.deliveries: list[Delivery] = []
        self.held = False
        self._pending: list[tuple["LoopbackTransport", str, bool]] = []

    def endpoint(self, node_id: str) -> "LoopbackTransport":
        """Create (or return) the endpoint for a node."""
        if node_id not in self._endpoints:
            self._endpoints[node_id] = LoopbackTransport(self, node_id)
        return self._endpoints[node_id]

    def hold(self) -> None:
        """Queue frames instead of delivering them until release()."""
        self.held = True

    def release(self, shuffle: bool = False) -> int:
        """Deliver held frames, optionally in random order.

        Returns:
            Number of frames delivered.
        """
        pending, self._pending = self._pending, []
        self.held = False
        if shuffle:
            self._random.shuffle(pending)
        for target, frame, unicast in pending:
            self._hand_off(target, frame, unicast)
        return len(pending)

    def deliveries_to(self, node_id: str) -> list[Delivery]:
        return [d for d in self.deliveries if d.recipient == node_id]

    def _transmit(
        self,
        sender: str,
        recipients: list["LoopbackTransport"],
        frame: str,
        unicast: bool,
    ) -> None:
        for target in recipients:
            if not target.is_connected:
                continue
            if self._random.random() < self.loss:
                logger.debug(f"Loopback dropped frame {sender} -> {target.node_id}")
                continue
            copies = 2 if self._random.random() < self.duplicate else 1
            for _ in range(copies):
                if self.held:
                    self._pending.append((target, frame, unicast))
                else:
                    self._hand_off(target, frame, unicast)

    def _hand_off(self, target: "LoopbackTransport", frame: str, unicast: bool) -> None:
        datagram = decode_frame(frame, unicast=unicast)
        if datagram is None:
            return
        self.deliveries.append(
            Delivery(
                sender=datagram.sender,
                recipient=target.node_id,
                message=datagram.message,
                unicast=unicast,
            )
        )
        target._deliver(datagram)


class LoopbackTransport(Transport):
    """Endpoint attached to a LoopbackHub."""

    def __init__(self, hub: LoopbackHub, node_id: str):
        super().__init__(node_id)
        self._hub = hub
        self._connected = False

    async def connect(self) -> bool:
        self._connected = True
        return True

    async def disconnect(self) -> None:
        self._connected = False

    async def broadcast(self, message: dict[str, Any], protocol: str) -> bool:
        if not self._connected:
            logger.error("Cannot broadcast: loopback endpoint not connected")
            return False
        others = [
            ep for node_id, ep in self._hub._endpoints.items() if node_id != self.node_id
        ]
        frame = encode_frame(self.node_id, protocol, message)
        self._hub._transmit(self.node_id, others, frame, unicast=False)
        return True

    async def send(self, recipient: str, message: dict[str, Any], protocol: str) -> bool:
        if not self._connected:
            logger.error("Cannot send: loopback endpoint not connected")
            return False
        target = self._hub._endpoints.get(recipient)
        if target is None:
            # Radio semantics: nobody is listening, the frame is lost
            return True
        frame = encode_frame(self.node_id, protocol, message)
        self._hub._transmit(self.node_id, [target], frame, unicast=True)
        return True

    def inject(self, datagram: Datagram) -> None:
        """Deliver a datagram to this endpoint as if it came off the air."""
        self._deliver(datagram)

    @property
    def is_connected(self) -> bool:
        return self._connected
