"""Configuration loading for Newscast."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml


@dataclass
class NodeConfig:
    name: str = "newscast-node"


@dataclass
class MQTTConfig:
    broker: str = "localhost"
    port: int = 1883
    username: str | None = None
    password: str | None = None
    topic_root: str = "newscast"
    keepalive: int = 60


@dataclass
class ProtocolConfig:
    """Logical channel shared by every participant.

    Frames tagged with any other channel are ignored.
    """

    channel: str = "poggish_news"


@dataclass
class ServerConfig:
    """Configuration for the authoritative publisher."""

    db_path: str = "~/.newscast/server.db"
    heartbeat_interval_seconds: float = 30
    api_host: str = "127.0.0.1"
    api_port: int = 8080


@dataclass
class ClientConfig:
    """Configuration for a display client."""

    title: str = "PoggishTown Times"
    db_path: str = "~/.newscast/client.db"
    heartbeat_interval_seconds: float = 35
    grace_seconds: float = 10
    initial_sync_delay_seconds: float = 1.0
    dashboard_enabled: bool = True
    dashboard_host: str = "0.0.0.0"
    dashboard_port: int = 8081


@dataclass
class Config:
    node: NodeConfig = field(default_factory=NodeConfig)
    mqtt: MQTTConfig = field(default_factory=MQTTConfig)
    protocol: ProtocolConfig = field(default_factory=ProtocolConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    client: ClientConfig = field(default_factory=ClientConfig)


def _get_env(key: str, default: Any = None) -> Any:
    """Get environment variable with NEWSCAST_ prefix."""
    return os.environ.get(f"NEWSCAST_{key}", default)


def _apply_env_overrides(config: Config) -> Config:
    """Apply environment variable overrides to config."""
    # Node overrides
    if name := _get_env("NODE_NAME"):
        config.node.name = name

    # MQTT overrides
    if broker := _get_env("MQTT_BROKER"):
        config.mqtt.broker = broker
    if port := _get_env("MQTT_PORT"):
        config.mqtt.port = int(port)
    if username := _get_env("MQTT_USERNAME"):
        config.mqtt.username = username
    if password := _get_env("MQTT_PASSWORD"):
        config.mqtt.password = password
    if topic_root := _get_env("MQTT_TOPIC_ROOT"):
        config.mqtt.topic_root = topic_root

    # Protocol overrides
    if channel := _get_env("CHANNEL"):
        config.protocol.channel = channel

    # Server overrides
    if db_path := _get_env("SERVER_DB_PATH"):
        config.server.db_path = db_path
    if interval := _get_env("SERVER_HEARTBEAT_INTERVAL"):
        config.server.heartbeat_interval_seconds = float(interval)
    if api_port := _get_env("SERVER_API_PORT"):
        config.server.api_port = int(api_port)

    # Client overrides
    if db_path := _get_env("CLIENT_DB_PATH"):
        config.client.db_path = db_path
    if interval := _get_env("CLIENT_HEARTBEAT_INTERVAL"):
        config.client.heartbeat_interval_seconds = float(interval)
    if grace := _get_env("CLIENT_GRACE"):
        config.client.grace_seconds = float(grace)
    if dashboard := _get_env("CLIENT_DASHBOARD_ENABLED"):
        config.client.dashboard_enabled = dashboard.lower() in ("true", "1", "yes")
    if dashboard_port := _get_env("CLIENT_DASHBOARD_PORT"):
        config.client.dashboard_port = int(dashboard_port)

    return config


def load_config(config_path: str | Path | None = None) -> Config:
    """Load configuration from YAML file with environment variable overrides.

    Args:
        config_path: Path to YAML config file. If None, uses default config.

    Returns:
        Loaded Config object.
    """
    config = Config()

    if config_path:
        path = Path(config_path)
        if path.exists():
            with open(path) as f:
                data = yaml.safe_load(f) or {}

            # Parse node config
            if "node" in data:
                config.node = NodeConfig(
                    name=data["node"].get("name", config.node.name)
                )

            # Parse MQTT config
            if "mqtt" in data:
                mqtt_data = data["mqtt"]
                config.mqtt = MQTTConfig(
                    broker=mqtt_data.get("broker", config.mqtt.broker),
                    port=mqtt_data.get("port", config.mqtt.port),
                    username=mqtt_data.get("username"),
                    password=mqtt_data.get("password"),
                    topic_root=mqtt_data.get("topic_root", config.mqtt.topic_root),
                    keepalive=mqtt_data.get("keepalive", config.mqtt.keepalive),
                )

            # Parse protocol config
            if "protocol" in data:
                config.protocol = ProtocolConfig(
                    channel=data["protocol"].get("channel", config.protocol.channel)
                )

            # Parse server config
            if "server" in data:
                server_data = data["server"]
                config.server = ServerConfig(
                    db_path=server_data.get("db_path", config.server.db_path),
                    heartbeat_interval_seconds=server_data.get(
                        "heartbeat_interval_seconds",
                        config.server.heartbeat_interval_seconds,
                    ),
                    api_host=server_data.get("api_host", config.server.api_host),
                    api_port=server_data.get("api_port", config.server.api_port),
                )

            # Parse client config
            if "client" in data:
                client_data = data["client"]
                config.client = ClientConfig(
                    title=client_data.get("title", config.client.title),
                    db_path=client_data.get("db_path", config.client.db_path),
                    heartbeat_interval_seconds=client_data.get(
                        "heartbeat_interval_seconds",
                        config.client.heartbeat_interval_seconds,
                    ),
                    grace_seconds=client_data.get(
                        "grace_seconds", config.client.grace_seconds
                    ),
                    initial_sync_delay_seconds=client_data.get(
                        "initial_sync_delay_seconds",
                        config.client.initial_sync_delay_seconds,
                    ),
                    dashboard_enabled=client_data.get(
                        "dashboard_enabled", config.client.dashboard_enabled
                    ),
                    dashboard_host=client_data.get(
                        "dashboard_host", config.client.dashboard_host
                    ),
                    dashboard_port=client_data.get(
                        "dashboard_port", config.client.dashboard_port
                    ),
                )

    # Apply environment variable overrides
    config = _apply_env_overrides(config)

    return config
