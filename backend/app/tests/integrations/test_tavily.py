import json

import httpx
import pytest

from app.integrations.tavily import TavilyClient, format_search_results


def _client(handler) -> TavilyClient:
    return TavilyClient(
        api_key="tvly-test", base_url="https://tavily.test", transport=httpx.MockTransport(handler)
    )


@pytest.mark.asyncio
async def test_search_normalises_results():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(json.loads(request.content))
        return httpx.Response(
            200,
            json={
                "results": [
                    {"title": "Changelogs", "url": "https://a.example", "content": " Tips "},
                    {"url": "https://b.example", "raw_content": "Raw page"},
                    {"title": "No url"},
                ]
            },
        )

    results = await _client(handler).search("weekly changelogs", include_domains=["a.example"])

    assert results == [
        {"title": "Changelogs", "url": "https://a.example", "content": "Tips"},
        {"title": "https://b.example", "url": "https://b.example", "content": "Raw page"},
    ]
    assert requests[0]["api_key"] == "tvly-test"
    assert requests[0]["include_domains"] == ["a.example"]


@pytest.mark.asyncio
async def test_search_failure_returns_empty_list():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, json={"detail": "bad gateway"})

    assert await _client(handler).search("weekly changelogs") == []


@pytest.mark.asyncio
async def test_non_json_response_returns_empty_list():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>gateway</html>", headers={"content-type": "text/html"})

    client = _client(handler)
    assert await client.search("content marketing") == []
    assert await client.extract(["https://a.example"]) == []


@pytest.mark.asyncio
async def test_search_is_skipped_without_api_key():
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    client = TavilyClient(api_key="", transport=httpx.MockTransport(handler))
    assert await client.search("weekly changelogs") == []
    assert await client.extract(["https://a.example"]) == []


@pytest.mark.asyncio
async def test_extract_posts_urls():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/extract"
        assert json.loads(request.content)["urls"] == ["https://a.example"]
        return httpx.Response(200, json={"results": [{"url": "https://a.example", "raw_content": "Landing"}]})

    pages = await _client(handler).extract(["https://a.example"])
    assert pages[0]["content"] == "Landing"


def test_format_search_results_numbers_sources():
    text = format_search_results(
        [{"title": "A", "url": "https://a.example", "content": "x" * 50}], max_chars_per_result=10
    )
    assert text == "[Source 1] A\nURL: https://a.example\n" + "x" * 10
    assert format_search_results([]) == ""
