"""HTTP client for a running server's operator API."""

import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)


class OperatorClient:
    """Client for the operator endpoints of a NewsServer.

    Used by the command line to write, list and delete articles, push a
    full sync and list connected clients.
    """

    def __init__(self, api_url: str = "http://127.0.0.1:8080", timeout: float = 10.0):
        """Initialize the operator client.

        Args:
            api_url: Base URL of the server's operator API.
            timeout: Request timeout in seconds.
        """
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.api_url,
                timeout=self.timeout,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def health_check(self) -> bool:
        """Check whether the operator API answers."""
        try:
            client = await self._get_client()
            response = await client.get("/api/status")
            return response.status_code == 200
        except httpx.HTTPError as e:
            logger.debug(f"Health check failed: {e}")
            return False

    async def publish(self, headline: str, content: str) -> dict[str, Any]:
        """Write a new article.

        Returns:
            Server response with the created article and whether it was
            persisted and broadcast.
        """
        client = await self._get_client()
        response = await client.post(
            "/api/articles", json={"headline": headline, "content": content}
        )
        response.raise_for_status()
        return response.json()

    async def list_articles(self) -> list[dict[str, Any]]:
        client = await self._get_client()
        response = await client.get("/api/articles")
        response.raise_for_status()
        return response.json().get("articles", [])

    async def delete(self, article_id: str) -> bool:
        """Delete an article.

        Returns:
            False if the server does not know the id.
        """
        client = await self._get_client()
        response = await client.delete(f"/api/articles/{article_id}")
        if response.status_code == 404:
            return False
        response.raise_for_status()
        return True

    async def sync_all(self) -> int:
        """Broadcast a full sync. Returns the number of articles sent."""
        client = await self._get_client()
        response = await client.post("/api/sync")
        response.raise_for_status()
        return response.json().get("articles", 0)

    async def list_clients(self) -> list[str]:
        client = await self._get_client()
        response = await client.get("/api/clients")
        response.raise_for_status()
        return response.json().get("clients", [])

    async def status(self) -> dict[str, Any]:
        client = await self._get_client()
        response = await client.get("/api/status")
        response.raise_for_status()
        return response.json()
