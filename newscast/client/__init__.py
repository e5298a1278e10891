"""Display client: local replica, reconciliation and liveness."""

from .driver import ClientState, NewsClient, ReplicaView
from .replica import ReplicaEngine

__all__ = ["ClientState", "NewsClient", "ReplicaEngine", "ReplicaView"]
