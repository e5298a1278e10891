"""Web surfaces for Newscast nodes.

The server exposes an operator API for authoring and deleting articles.
Clients expose a read-only headline board and status.
"""

from .app import create_client_app, create_server_app

__all__ = ["create_client_app", "create_server_app"]
