"""FastAPI applications for the operator console and the display board."""

import logging
from datetime import datetime
from pathlib import Path
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates
from pydantic import BaseModel, Field

from ..client import NewsClient
from ..server import CreateArticle, DeleteArticle, NewsServer, SyncAll

logger = logging.getLogger(__name__)

# Template directory
TEMPLATE_DIR = Path(__file__).parent / "templates"


class ArticleIn(BaseModel):
    """Operator input for a new article."""

    headline: str = Field(min_length=1)
    content: str = ""


def create_server_app(server: NewsServer) -> FastAPI:
    """Create the operator API for a running server.

    Reads go straight to server state. Mutations are posted to the
    server's event loop and awaited, so they run in turn with protocol
    traffic.

    Args:
        server: The NewsServer whose event loop is running.

    Returns:
        Configured FastAPI application.
    """
    app = FastAPI(
        title="Newscast Operator",
        description="Author, list and delete articles; inspect connected clients",
        version="0.1.0",
    )
    app.state.server = server

    @app.get("/api/articles")
    async def api_articles() -> dict[str, Any]:
        """List all current articles."""
        articles = server.state.store.list_articles()
        return {
            "count": len(articles),
            "articles": [a.to_dict() for a in articles],
        }

    @app.post("/api/articles", status_code=201)
    async def api_create_article(body: ArticleIn) -> dict[str, Any]:
        """Write a new article and send it to all clients."""
        result = await server.submit(
            CreateArticle(headline=body.headline, content=body.content)
        )
        return {
            "article": result.article.to_dict(),
            "persisted": result.persisted,
            "broadcast": result.broadcast,
        }

    @app.delete("/api/articles/{article_id}")
    async def api_delete_article(article_id: str) -> dict[str, Any]:
        """Delete an article and notify clients."""
        deleted = await server.submit(DeleteArticle(article_id=article_id))
        if not deleted:
            raise HTTPException(status_code=404, detail="Article not found")
        return {"deleted": article_id}

    @app.post("/api/sync")
    async def api_sync_all() -> dict[str, Any]:
        """Send a full sync to every client."""
        count = await server.submit(SyncAll())
        return {"articles": count}

    @app.get("/api/clients")
    async def api_clients() -> dict[str, Any]:
        """Clients that have sent at least one heartbeat."""
        clients = server.connected_clients
        return {"count": len(clients), "clients": clients}

    @app.get("/api/status")
    async def api_status() -> dict[str, Any]:
        store = server.state.store
        return {
            "node_name": server.config.node.name,
            "channel": server.channel,
            "timestamp": datetime.now().isoformat(),
            "transport_connected": server.transport.is_connected,
            "articles": len(store),
            "next_id": store.next_id,
            "unsaved_changes": store.dirty,
            "connected_clients": len(server.connected_clients),
        }

    return app


def create_client_app(client: NewsClient) -> FastAPI:
    """Create the read-only display board for a client.

    Args:
        client: The NewsClient whose replica is shown.

    Returns:
        Configured FastAPI application.
    """
    app = FastAPI(
        title="Newscast Board",
        description="Headlines from the local replica",
        version="0.1.0",
    )
    app.state.client = client

    templates = Jinja2Templates(directory=str(TEMPLATE_DIR))

    @app.get("/", response_class=HTMLResponse)
    async def index(request: Request):
        """Headline board with the LIVE/OFFLINE indicator."""
        view = client.view()
        context = {
            "title": client.config.client.title,
            "articles": view.articles,
            "server_connected": view.server_connected,
        }
        return templates.TemplateResponse(request, "board.html", context)

    @app.get("/articles/{article_id}", response_class=HTMLResponse)
    async def article_page(request: Request, article_id: str):
        """Full article view; the next link steps through the board in order."""
        view = client.view()
        ids = [a.id for a in view.articles]
        if article_id not in ids:
            raise HTTPException(status_code=404, detail="Article not found")

        index = ids.index(article_id)
        # Past the last article the board cycles back to the headlines
        next_id = ids[index + 1] if index + 1 < len(ids) else None
        context = {
            "title": client.config.client.title,
            "article": view.articles[index],
            "position": index + 1,
            "total": len(ids),
            "next_id": next_id,
            "server_connected": view.server_connected,
        }
        return templates.TemplateResponse(request, "article.html", context)

    @app.get("/api/articles")
    async def api_articles() -> dict[str, Any]:
        """Replica contents, newest first."""
        view = client.view()
        return {
            "count": len(view.articles),
            "articles": [a.to_dict() for a in view.articles],
        }

    @app.get("/api/status")
    async def api_status() -> dict[str, Any]:
        view = client.view()
        return {
            "client_id": client.client_id,
            "channel": client.channel,
            "timestamp": datetime.now().isoformat(),
            "server_connected": view.server_connected,
            "articles": len(view.articles),
        }

    return app
