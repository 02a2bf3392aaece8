import logging
from typing import Any

import httpx

from app.core.config import settings

logger = logging.getLogger(__name__)

SEARCH_TIMEOUT_SECONDS = 15.0


def _normalise_result(item: dict[str, Any]) -> dict[str, str] | None:
    url = str(item.get("url") or "").strip()
    if not url:
        return None
    return {
        "title": str(item.get("title") or url).strip(),
        "url": url,
        "content": str(item.get("content") or item.get("raw_content") or "").strip(),
    }


class TavilyClient:
    """Thin async wrapper over the Tavily search and extract endpoints."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key if api_key is not None else settings.TAVILY_API_KEY
        self.base_url = (base_url or settings.TAVILY_BASE_URL).rstrip("/")
        self._transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    async def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        async with httpx.AsyncClient(
            timeout=SEARCH_TIMEOUT_SECONDS, transport=self._transport
        ) as client:
            response = await client.post(
                f"{self.base_url}{path}", json={"api_key": self.api_key, **payload}
            )
            response.raise_for_status()
            try:
                data = response.json()
            except ValueError:
                logger.warning(
                    "Tavily %s returned a non-JSON body (%s)",
                    path,
                    response.headers.get("content-type", "unknown content type"),
                )
                return {}
        return data if isinstance(data, dict) else {}

    async def search(
        self,
        query: str,
        *,
        max_results: int | None = None,
        search_depth: str = "basic",
        include_domains: list[str] | None = None,
    ) -> list[dict[str, str]]:
        """Search the web; returns [] when search is not configured or the provider fails."""
        if not self.enabled or not query.strip():
            return []
        payload: dict[str, Any] = {
            "query": query,
            "max_results": max_results or settings.TAVILY_MAX_RESULTS,
            "search_depth": search_depth,
        }
        if include_domains:
            payload["include_domains"] = include_domains
        try:
            data = await self._post("/search", payload)
        except httpx.HTTPStatusError as exc:
            logger.warning("Tavily search failed with %s", exc.response.status_code)
            return []
        except httpx.HTTPError as exc:
            logger.warning("Tavily search request failed: %s", exc)
            return []

        results = data.get("results")
        if not isinstance(results, list):
            return []
        normalised = [_normalise_result(item) for item in results if isinstance(item, dict)]
        return [item for item in normalised if item]

    async def extract(self, urls: list[str]) -> list[dict[str, str]]:
        """Fetch readable page content for each URL."""
        if not self.enabled or not urls:
            return []
        try:
            data = await self._post("/extract", {"urls": urls})
        except httpx.HTTPError as exc:
            logger.warning("Tavily extract request failed: %s", exc)
            return []
        results = data.get("results")
        if not isinstance(results, list):
            return []
        normalised = [_normalise_result(item) for item in results if isinstance(item, dict)]
        return [item for item in normalised if item]


def format_search_results(results: list[dict[str, str]], *, max_chars_per_result: int = 1200) -> str:
    if not results:
        return ""
    sections = []
    for index, item in enumerate(results, start=1):
        content = item.get("content", "")[:max_chars_per_result]
        sections.append(f"[Source {index}] {item.get('title', '')}\nURL: {item.get('url', '')}\n{content}")
    return "\n\n".join(sections)


_tavily_client: TavilyClient | None = None


def get_tavily_client() -> TavilyClient:
    global _tavily_client
    if _tavily_client is None:
        _tavily_client = TavilyClient()
    return _tavily_client
