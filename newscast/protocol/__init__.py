"""Wire protocol: message types and the record codec."""

from .messages import (
    CLIENT_MESSAGE_TYPES,
    SERVER_MESSAGE_TYPES,
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

__all__ = [
    "CLIENT_MESSAGE_TYPES",
    "SERVER_MESSAGE_TYPES",
    "Delete",
    "FullSync",
    "Heartbeat",
    "HeartbeatResponse",
    "Message",
    "NewArticle",
    "RequestSync",
    "ServerHeartbeat",
    "decode",
    "encode",
]
