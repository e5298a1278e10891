"""MQTT transport: broadcast and unicast over a pub/sub broker.

Every node subscribes to two topics under the configured root:

    <root>/broadcast        frames for every listener
    <root>/to/<node_id>     frames addressed to this node only
"""

import asyncio
import logging
from typing import Any

import paho.mqtt.client as mqtt

from ..config import MQTTConfig
from .base import Transport, decode_frame, encode_frame

logger = logging.getLogger(__name__)


class MQTTTransport(Transport):
    """Transport backed by a paho MQTT client."""

    def __init__(self, config: MQTTConfig, node_id: str):
        super().__init__(node_id)
        self.config = config

        # Paho MQTT client
        self._client = mqtt.Client(
            mqtt.CallbackAPIVersion.VERSION2,
            client_id=f"newscast-{node_id}",
        )
        self._client.on_connect = self._handle_connect
        self._client.on_message = self._handle_message
        self._client.on_disconnect = self._handle_disconnect

        self._connected = False

    @property
    def broadcast_topic(self) -> str:
        return f"{self.config.topic_root}/broadcast"

    def unicast_topic(self, node_id: str) -> str:
        return f"{self.config.topic_root}/to/{node_id}"

    def _handle_connect(
        self,
        client: mqtt.Client,
        userdata: Any,
        flags: Any,
        reason_code: Any,
        properties: Any = None,
    ) -> None:
        """Handle connection to broker."""
        if reason_code == 0:
            self._connected = True
            logger.info(f"Connected to MQTT broker at {self.config.broker}:{self.config.port}")

            # Resubscribe on every (re)connect
            for topic in (self.broadcast_topic, self.unicast_topic(self.node_id)):
                client.subscribe(topic)
                logger.info(f"Subscribed to topic: {topic}")
        else:
            logger.error(f"Failed to connect to MQTT broker: {reason_code}")

    def _handle_message(
        self,
        client: mqtt.Client,
        userdata: Any,
        msg: mqtt.MQTTMessage,
    ) -> None:
        """Handle incoming message. Runs on the paho network thread."""
        unicast = msg.topic != self.broadcast_topic
        datagram = decode_frame(msg.payload, unicast=unicast)
        if datagram is None:
            return

        logger.debug(f"Received frame on {msg.topic} from {datagram.sender}")
        self._deliver(datagram)

    def _handle_disconnect(
        self,
        client: mqtt.Client,
        userdata: Any,
        disconnect_flags: Any,
        reason_code: Any,
        properties: Any = None,
    ) -> None:
        """Handle disconnection from broker."""
        self._connected = False
        logger.warning(f"Disconnected from MQTT broker: {reason_code}")

    async def connect(self) -> bool:
        """Connect to the MQTT broker.

        Returns:
            True if connection successful.
        """
        if self.config.username and self.config.password:
            self._client.username_pw_set(self.config.username, self.config.password)

        try:
            self._client.connect(
                self.config.broker, self.config.port, keepalive=self.config.keepalive
            )
            self._client.loop_start()

            # Wait for connection
            for _ in range(50):  # 5 second timeout
                if self._connected:
                    return True
                await asyncio.sleep(0.1)

            logger.error("Timeout waiting for MQTT connection")
            return False

        except Exception as e:
            logger.error(f"Failed to connect to MQTT broker: {e}")
            return False

    async def disconnect(self) -> None:
        """Disconnect from the MQTT broker."""
        self._client.loop_stop()
        self._client.disconnect()
        self._connected = False

    async def _publish(self, topic: str, frame: str) -> bool:
        if not self._connected:
            logger.error("Cannot publish: not connected to broker")
            return False

        result = self._client.publish(topic, frame)
        return result.rc == mqtt.MQTT_ERR_SUCCESS

    async def broadcast(self, message: dict[str, Any], protocol: str) -> bool:
        """Publish a record on the broadcast topic."""
        frame = encode_frame(self.node_id, protocol, message)
        return await self._publish(self.broadcast_topic, frame)

    async def send(self, recipient: str, message: dict[str, Any], protocol: str) -> bool:
        """Publish a record on one node's unicast topic."""
        frame = encode_frame(self.node_id, protocol, message)
        return await self._publish(self.unicast_topic(recipient), frame)

    @property
    def is_connected(self) -> bool:
        """Check if connected to broker."""
        return self._connected

    async def check_connection(self) -> bool:
        """Check if broker is reachable."""
        if self._connected:
            return True

        try:
            test_client = mqtt.Client(mqtt.CallbackAPIVersion.VERSION2)
            test_client.connect(self.config.broker, self.config.port, keepalive=5)
            test_client.disconnect()
            return True
        except Exception:
            return False
