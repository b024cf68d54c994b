import logging
from typing import Any

import httpx

from ..config import TAVILY_API_KEY, WEB_SEARCH_RESULT_LIMIT, WEB_SEARCH_TIMEOUT_SECS

logger = logging.getLogger(__name__)

TAVILY_SEARCH_URL = "https://api.tavily.com/search"


def _failure(error: str) -> dict[str, Any]:
    return {"success": False, "results": [], "answer": None, "error": error}


class WebSearchService:
    """Thin Tavily search client returning a normalized result dict."""

    def __init__(self, api_key: str | None = TAVILY_API_KEY, client: httpx.AsyncClient | None = None):
        self.api_key = api_key
        self.client = client or httpx.AsyncClient(timeout=WEB_SEARCH_TIMEOUT_SECS)

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    async def search(self, query: str, limit: int = WEB_SEARCH_RESULT_LIMIT) -> dict[str, Any]:
        if not self.enabled:
            return _failure("Tavily API key not configured")

        payload = {
            "api_key": self.api_key,
            "query": query,
            "search_depth": "basic",
            "max_results": limit,
            "include_answer": True,
            "include_raw_content": False,
        }
        try:
            resp = await self.client.post(TAVILY_SEARCH_URL, json=payload)
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPStatusError as e:
            logger.warning(
                "Web search request failed: %s %s", e.response.status_code, e.response.text[:200]
            )
            return _failure(f"Search request failed: {e.response.status_code}")
        except httpx.RequestError as e:
            logger.warning("Web search request error: %s", e)
            return _failure(str(e))

        results = [
            {
                "title": item.get("title") or "Untitled",
                "url": item.get("url") or "",
                "content": item.get("content") or "",
            }
            for item in data.get("results") or []
        ]
        return {"success": True, "results": results, "answer": data.get("answer"), "error": None}

    async def close(self) -> None:
        if not self.client.is_closed:
            await self.client.aclose()
