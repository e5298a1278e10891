"""CLI entry point for Newscast."""

import argparse
import asyncio
import json
import logging
import sys
import traceback
from datetime import datetime
from pathlib import Path

import httpx

from .client import NewsClient, ReplicaView
from .config import Config, load_config
from .errors import TransportError
from .operator_client import OperatorClient
from .server import NewsServer
from .transport import MQTTTransport

logger = logging.getLogger(__name__)


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "component": record.name,
            "message": record.getMessage(),
        }

        # Add exception info if present
        if record.exc_info:
            log_data["exception"] = "".join(traceback.format_exception(*record.exc_info))

        # Safe JSON serialization
        try:
            return json.dumps(log_data)
        except (TypeError, ValueError):
            log_data["message"] = str(log_data["message"])
            if "exception" in log_data:
                log_data["exception"] = str(log_data["exception"])
            return json.dumps(log_data)


def setup_logging(verbose: bool = False, log_level: str | None = None, json_output: bool = False) -> None:
    """Configure logging.

    Args:
        verbose: Enable debug logging (ignored if log_level is set).
        log_level: Explicit log level (warning, info, debug).
        json_output: Output logs as JSON lines for machine parsing.
    """
    if log_level:
        level_map = {
            "warning": logging.WARNING,
            "info": logging.INFO,
            "debug": logging.DEBUG,
        }
        level = level_map.get(log_level, logging.INFO)
    else:
        level = logging.DEBUG if verbose else logging.INFO

    handler = logging.StreamHandler()
    if json_output:
        handler.setFormatter(JSONFormatter())
    else:
        formatter = logging.Formatter(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        handler.setFormatter(formatter)

    logging.basicConfig(
        level=level,
        handlers=[handler],
    )


def _api_url(args: argparse.Namespace, config: Config) -> str:
    if getattr(args, "api_url", None):
        return args.api_url
    return f"http://{config.server.api_host}:{config.server.api_port}"


def _read_multiline(prompt: str) -> str:
    """Read lines from stdin until a line reading 'done' or EOF."""
    if sys.stdin.isatty():
        print(prompt)
        print("Type 'done' on a new line when you are finished.")
    lines = []
    for line in sys.stdin:
        line = line.rstrip("\n")
        if line.strip().lower() == "done":
            break
        lines.append(line)
    return "\n".join(lines)


def print_board(view: ReplicaView) -> None:
    """Log the headline board after each visible change."""
    status = "LIVE" if view.server_connected else "OFFLINE"
    logger.info(f"[{status}] {len(view.articles)} articles")
    for index, article in enumerate(view.articles, start=1):
        suffix = f" ({article.short_time})" if article.short_time else ""
        logger.info(f"  {index}. {article.headline or 'No headline'}{suffix}")


async def cmd_server(args: argparse.Namespace) -> int:
    """Run the authoritative publisher."""
    config = load_config(args.config)

    print(f"Starting Newscast server: {config.node.name}")
    print(f"MQTT: {config.mqtt.broker}:{config.mqtt.port} (root: {config.mqtt.topic_root})")
    print(f"Channel: {config.protocol.channel}")

    transport = MQTTTransport(config.mqtt, config.node.name)
    server = NewsServer(config, transport)

    api_server = None
    if not args.no_api:
        try:
            import uvicorn

            from .dashboard import create_server_app
        except ImportError as e:
            print(f"Operator API dependencies not installed: {e}", file=sys.stderr)
            print("Install with: pip install newscast[dashboard]", file=sys.stderr)
            return 1

        api_server = uvicorn.Server(
            uvicorn.Config(
                create_server_app(server),
                host=config.server.api_host,
                port=config.server.api_port,
                log_level="info" if args.verbose else "warning",
            )
        )
        print(f"Operator API: http://{config.server.api_host}:{config.server.api_port}")

    try:
        await server.start()
        if api_server:
            await asyncio.gather(server.run(), api_server.serve())
        else:
            await server.run()
    except TransportError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except (KeyboardInterrupt, asyncio.CancelledError):
        print("\nShutting down...")
    finally:
        await server.stop()

    return 0


async def cmd_client(args: argparse.Namespace) -> int:
    """Run a display client."""
    config = load_config(args.config)

    print(f"Starting Newscast client: {config.node.name}")
    print(f"MQTT: {config.mqtt.broker}:{config.mqtt.port} (root: {config.mqtt.topic_root})")

    transport = MQTTTransport(config.mqtt, config.node.name)
    client = NewsClient(config, transport, on_update=print_board)

    board_server = None
    if config.client.dashboard_enabled and not args.no_board:
        try:
            import uvicorn

            from .dashboard import create_client_app
        except ImportError as e:
            print(f"Board dependencies not installed, running headless: {e}", file=sys.stderr)
        else:
            board_server = uvicorn.Server(
                uvicorn.Config(
                    create_client_app(client),
                    host=config.client.dashboard_host,
                    port=config.client.dashboard_port,
                    log_level="info" if args.verbose else "warning",
                )
            )
            print(f"Board: http://{config.client.dashboard_host}:{config.client.dashboard_port}")

    try:
        await client.start()
        if board_server:
            await asyncio.gather(client.run(), board_server.serve())
        else:
            await client.run()
    except TransportError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except (KeyboardInterrupt, asyncio.CancelledError):
        print("\nShutting down...")
    finally:
        await client.stop()

    return 0


async def cmd_publish(args: argparse.Namespace) -> int:
    """Write a new article and send it to all clients."""
    config = load_config(args.config)
    content = args.content if args.content is not None else _read_multiline("Enter the content:")

    operator = OperatorClient(_api_url(args, config))
    try:
        result = await operator.publish(args.headline, content)
    except httpx.HTTPError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        await operator.close()

    article = result["article"]
    print(f"Article {article['id']} created: {article['headline']}")
    if not result.get("persisted", True):
        print("Warning: Could not save to file!")
    print("Article sent to all clients!" if result.get("broadcast") else "Warning: broadcast failed")
    return 0


async def cmd_articles(args: argparse.Namespace) -> int:
    """List all articles on the server."""
    config = load_config(args.config)
    operator = OperatorClient(_api_url(args, config))
    try:
        articles = await operator.list_articles()
    except httpx.HTTPError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        await operator.close()

    if args.json:
        print(json.dumps(articles, indent=2))
        return 0

    print("=== All Articles ===")
    if not articles:
        print("No articles found.")
    for article in articles:
        print(f"ID: {article['id']}")
        print(f"Headline: {article['headline']}")
        print(f"Content preview: {article['content'][:50]}...")
        print(f"Timestamp: {article.get('timestamp') or 'Unknown'}")
        print("---")
    return 0


async def cmd_delete(args: argparse.Namespace) -> int:
    """Delete an article and notify clients."""
    config = load_config(args.config)
    operator = OperatorClient(_api_url(args, config))
    try:
        deleted = await operator.delete(args.article_id)
    except httpx.HTTPError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        await operator.close()

    if not deleted:
        print("Article not found.")
        return 1
    print("Article deleted and clients notified.")
    return 0


async def cmd_sync_all(args: argparse.Namespace) -> int:
    """Broadcast a full sync to every client."""
    config = load_config(args.config)
    operator = OperatorClient(_api_url(args, config))
    try:
        count = await operator.sync_all()
    except httpx.HTTPError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        await operator.close()

    print(f"Full sync of {count} articles sent to all clients.")
    return 0


async def cmd_clients(args: argparse.Namespace) -> int:
    """Show clients the server has heard from."""
    config = load_config(args.config)
    operator = OperatorClient(_api_url(args, config))
    try:
        clients = await operator.list_clients()
    except httpx.HTTPError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        await operator.close()

    print("=== Connected Clients ===")
    if not clients:
        print("No clients connected.")
    for client_id in clients:
        print(f"Client ID: {client_id}")
    return 0


async def cmd_status(args: argparse.Namespace) -> int:
    """Check broker and operator API reachability."""
    config = load_config(args.config)

    transport = MQTTTransport(config.mqtt, config.node.name)
    mqtt_reachable = await transport.check_connection()

    operator = OperatorClient(_api_url(args, config))
    api_reachable = await operator.health_check()
    server_status = await operator.status() if api_reachable else None
    await operator.close()

    status_data = {
        "timestamp": datetime.now().isoformat(),
        "node": {"name": config.node.name},
        "channel": config.protocol.channel,
        "mqtt": {
            "broker": config.mqtt.broker,
            "port": config.mqtt.port,
            "topic_root": config.mqtt.topic_root,
            "reachable": mqtt_reachable,
        },
        "operator_api": {
            "url": operator.api_url,
            "reachable": api_reachable,
            "server": server_status,
        },
    }

    if args.json:
        print(json.dumps(status_data, indent=2))
        return 0

    print("Newscast Status Check")
    print("=====================")
    print(f"Node: {config.node.name}")
    print(f"Channel: {config.protocol.channel}")
    print()
    print(f"MQTT ({config.mqtt.broker}:{config.mqtt.port}):")
    if mqtt_reachable:
        print("  Status: Reachable")
    else:
        print("  Status: Not reachable")
        print("  Make sure the MQTT broker is running")
    print()
    print(f"Operator API ({operator.api_url}):")
    if server_status:
        print("  Status: Reachable")
        print(f"  Articles: {server_status['articles']} (next id {server_status['next_id']})")
        print(f"  Connected clients: {server_status['connected_clients']}")
        if server_status.get("unsaved_changes"):
            print("  Warning: server has unsaved changes")
    else:
        print("  Status: Not reachable")
    return 0


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="newscast",
        description="Broadcast news to display clients over MQTT",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Path to config file (default: built-in defaults)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["warning", "info", "debug"],
        default=None,
        help="Set log level explicitly (overrides -v/--verbose)",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Output logs as JSON for machine parsing",
    )
    parser.add_argument(
        "--api-url",
        type=str,
        default=None,
        help="Operator API URL (default: from server config)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    server_parser = subparsers.add_parser("server", help="Run the publisher")
    server_parser.add_argument(
        "--no-api",
        action="store_true",
        help="Do not start the operator API",
    )
    server_parser.set_defaults(func=cmd_server)

    client_parser = subparsers.add_parser("client", help="Run a display client")
    client_parser.add_argument(
        "--no-board",
        action="store_true",
        help="Do not start the web headline board",
    )
    client_parser.set_defaults(func=cmd_client)

    publish_parser = subparsers.add_parser("publish", help="Write a new article")
    publish_parser.add_argument("headline", help="Article headline")
    publish_parser.add_argument(
        "--content",
        default=None,
        help="Article body (default: read from stdin until a 'done' line)",
    )
    publish_parser.set_defaults(func=cmd_publish)

    articles_parser = subparsers.add_parser("articles", help="List all articles")
    articles_parser.add_argument("--json", action="store_true", help="Output as JSON")
    articles_parser.set_defaults(func=cmd_articles)

    delete_parser = subparsers.add_parser("delete", help="Delete an article")
    delete_parser.add_argument("article_id", help="Article id")
    delete_parser.set_defaults(func=cmd_delete)

    sync_parser = subparsers.add_parser("sync-all", help="Send a full sync to all clients")
    sync_parser.set_defaults(func=cmd_sync_all)

    clients_parser = subparsers.add_parser("clients", help="Show connected clients")
    clients_parser.set_defaults(func=cmd_clients)

    status_parser = subparsers.add_parser("status", help="Check connectivity status")
    status_parser.add_argument("--json", action="store_true", help="Output status as JSON")
    status_parser.set_defaults(func=cmd_status)

    args = parser.parse_args()

    setup_logging(args.verbose, args.log_level, args.json_logs)

    if not args.command:
        parser.print_help()
        return 1

    try:
        return asyncio.run(args.func(args))
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    sys.exit(main())
