"""GIF search backed by the Tenor v2 API."""

from typing import Any, Dict, List, Optional

import httpx

from app.core.config import settings
from app.core.exceptions import APIClientError, ConfigurationError
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)


class GifService:
    """Thin proxy over Tenor search and featured endpoints."""

    def __init__(self, api_key: Optional[str] = None):
        self.api_key = api_key if api_key is not None else settings.gifs.tenor_api_key
        self.base_url = settings.gifs.tenor_api_url.rstrip("/")
        self.limit = settings.gifs.limit

    async def search(self, query: str) -> List[Dict[str, Any]]:
        return await self._fetch("search", {"q": query}, "Failed to search GIFs")

    async def trending(self) -> List[Dict[str, Any]]:
        return await self._fetch("featured", {}, "Failed to fetch GIFs")

    async def _fetch(self, endpoint: str, params: Dict[str, Any], failure: str) -> List[Dict[str, Any]]:
        if not self.api_key:
            LOGGER.error("TENOR_API_KEY is not configured")
            raise ConfigurationError("GIF service not configured")

        query = {"key": self.api_key, "limit": self.limit, "media_filter": "gif,tinygif", **params}
        try:
            async with httpx.AsyncClient() as client:
                response = await client.get(f"{self.base_url}/{endpoint}", params=query, timeout=settings.http_timeout)
        except httpx.HTTPError as e:
            LOGGER.error(f"Tenor request failed: {str(e)}", exc_info=True)
            raise APIClientError(failure, original_error=e) from e

        if response.status_code != 200:
            LOGGER.error(f"Tenor API error: {response.status_code} {response.text}")
            raise APIClientError(failure)

        return [self._to_gif(item) for item in response.json().get("results", [])]

    @staticmethod
    def _to_gif(item: Dict[str, Any]) -> Dict[str, Any]:
        formats = item.get("media_formats", {})
        gif = formats.get("gif", {})
        tiny = formats.get("tinygif") or gif
        dims = gif.get("dims") or [0, 0]
        return {
            "id": item.get("id"),
            "title": item.get("title") or "GIF",
            "url": gif.get("url"),
            "preview": tiny.get("url"),
            "width": dims[0],
            "height": dims[1],
        }
