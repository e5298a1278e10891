"""Heartbeat-driven liveness on both ends of the channel.

The server keeps a registry of every client it has ever heard a heartbeat
from. Clients are never expired; the registry only grows.

The client keeps a single ``server_connected`` flag. It turns true as soon
as any server traffic arrives and turns false only when the heartbeat
timer fires and no server traffic was seen within
``interval + grace`` seconds.
"""

import logging
import time
from typing import Callable

logger = logging.getLogger(__name__)

MIN_GRACE_SECONDS = 10.0


class ConnectionRegistry:
    """Ordered, duplicate-free set of client ids seen by the server."""

    def __init__(self):
        self._clients: list[str] = []

    def mark_seen(self, client_id: str) -> bool:
        """Register a client.

        Returns:
            True if the client was not known before.
        """
        if client_id in self._clients:
            return False
        self._clients.append(client_id)
        logger.info(f"New client connected: {client_id}")
        return True

    @property
    def clients(self) -> list[str]:
        """Known client ids in order of first contact."""
        return list(self._clients)

    def __len__(self) -> int:
        return len(self._clients)

    def __contains__(self, client_id: object) -> bool:
        return client_id in self._clients


class LivenessMonitor:
    """Client-side belief about whether the server is reachable."""

    def __init__(
        self,
        interval_seconds: float,
        grace_seconds: float = MIN_GRACE_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the monitor.

        Args:
            interval_seconds: Client heartbeat period.
            grace_seconds: Extra slack before declaring the server gone.
            clock: Monotonic time source.

        Raises:
            ValueError: If grace is shorter than 10 seconds.
        """
        if grace_seconds < MIN_GRACE_SECONDS:
            raise ValueError(
                f"grace_seconds must be at least {MIN_GRACE_SECONDS}, got {grace_seconds}"
            )
        self.interval_seconds = interval_seconds
        self.grace_seconds = grace_seconds
        self._clock = clock
        self._server_connected = False
        self._last_heartbeat_sent_at: float | None = None
        # A fresh monitor gets one full window before the deadline applies
        self._last_traffic_at = clock()

    @property
    def deadline_seconds(self) -> float:
        return self.interval_seconds + self.grace_seconds

    def record_sent(self) -> None:
        """Note that a heartbeat was just sent."""
        self._last_heartbeat_sent_at = self._clock()

    def record_traffic(self) -> bool:
        """Note that server traffic was just received.

        Returns:
            True if this flipped the flag from offline to live.
        """
        self._last_traffic_at = self._clock()
        if self._server_connected:
            return False
        self._server_connected = True
        logger.info("Server is LIVE")
        return True

    def check(self) -> bool:
        """Evaluate the deadline. Call only from the heartbeat-timer handler.

        Returns:
            True if this flipped the flag from live to offline.
        """
        silent_for = self._clock() - self._last_traffic_at
        if silent_for <= self.deadline_seconds or not self._server_connected:
            return False
        self._server_connected = False
        logger.warning(f"Server OFFLINE: no traffic for {silent_for:.0f}s")
        return True

    @property
    def server_connected(self) -> bool:
        return self._server_connected

    @property
    def last_heartbeat_sent_at(self) -> float | None:
        return self._last_heartbeat_sent_at

    @property
    def last_traffic_at(self) -> float:
        return self._last_traffic_at
