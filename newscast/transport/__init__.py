"""Broadcast and unicast transports carrying protocol frames."""

from .base import Datagram, DatagramCallback, Transport, decode_frame, encode_frame
from .loopback import LoopbackHub, LoopbackTransport
from .mqtt_client import MQTTTransport

__all__ = [
    "Datagram",
    "DatagramCallback",
    "Transport",
    "decode_frame",
    "encode_frame",
    "LoopbackHub",
    "LoopbackTransport",
    "MQTTTransport",
]
