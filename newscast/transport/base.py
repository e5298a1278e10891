"""Abstract transport and the frame format shared by all transports.

A frame wraps one protocol record with the sender's node id and the
logical channel (``protocol``) it was sent on:

    {"protocol": "poggish_news", "sender": "kiosk-1", "message": {...}}
"""

import json
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable

logger = logging.getLogger(__name__)


@dataclass
class Datagram:
    """One frame received from the transport."""

    sender: str
    protocol: str | None
    message: Any
    unicast: bool = False
    timestamp: float = field(default_factory=time.time)


DatagramCallback = Callable[[Datagram], None]


def encode_frame(sender: str, protocol: str, message: dict[str, Any]) -> str:
    """Serialize a protocol record into a frame."""
    return json.dumps({"protocol": protocol, "sender": sender, "message": message})


def decode_frame(raw: bytes | str, unicast: bool = False) -> Datagram | None:
    """Parse a frame.

    Args:
        raw: Frame bytes or text as received.
        unicast: Whether the frame arrived on a unicast topic.

    Returns:
        Datagram, or None if the bytes are not a frame at all (noise from
        an unrelated application sharing the transport).
    """
    try:
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        data = json.loads(raw)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.debug(f"Dropping undecodable frame: {e}")
        return None

    if not isinstance(data, dict) or "message" not in data:
        logger.debug("Dropping frame without envelope")
        return None

    protocol = data.get("protocol")
    return Datagram(
        sender=str(data.get("sender", "")),
        protocol=protocol if isinstance(protocol, str) else None,
        message=data["message"],
        unicast=unicast,
    )


class Transport(ABC):
    """Broadcast + unicast send/receive for one node."""

    def __init__(self, node_id: str):
        """Initialize the transport.

        Args:
            node_id: This node's address for unicast delivery.
        """
        self.node_id = node_id
        self._receiver: DatagramCallback | None = None

    def set_receiver(self, callback: DatagramCallback | None) -> None:
        """Set the callback invoked for every received datagram.

        The callback may run on a transport-owned thread.
        """
        self._receiver = callback

    def _deliver(self, datagram: Datagram) -> None:
        if datagram.sender == self.node_id:
            # Our own broadcast echoed back
            return
        if self._receiver is not None:
            self._receiver(datagram)

    @abstractmethod
    async def connect(self) -> bool:
        """Connect the transport. Returns True on success."""

    @abstractmethod
    async def disconnect(self) -> None:
        """Disconnect the transport."""

    @abstractmethod
    async def broadcast(self, message: dict[str, Any], protocol: str) -> bool:
        """Send a record to every listener. Returns True if handed off."""

    @abstractmethod
    async def send(self, recipient: str, message: dict[str, Any], protocol: str) -> bool:
        """Send a record to one node. Returns True if handed off."""

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """Whether the transport can currently send."""
