"""
Tests for the cached news proxy against a local fake of the news source.
"""
import pytest
from httpx import AsyncClient

from core.errors import ServiceUnavailableError
from services.news_service import CATEGORY_KEYWORDS, HEADLINES_QUERY, NewsClient
from utils.cache import TTLCache


def _article(title: str, image: str = None) -> dict:
    return {
        "title": title,
        "url": f"https://news.test/{title.lower().replace(' ', '-')}",
        "urlToImage": image,
        "source": {"id": None, "name": "Test Wire"},
    }


@pytest.mark.api
class TestHeadlines:

    @pytest.mark.asyncio
    async def test_filters_removed_and_imageless(self, async_client: AsyncClient, news_upstream):
        news_upstream.payload = {
            "status": "ok",
            "totalResults": 3,
            "articles": [
                _article("Kept", image="https://img.test/1.png"),
                _article("No Image"),
                _article("[Removed]", image="https://img.test/2.png"),
            ],
        }
        response = await async_client.get("/api/news")
        assert response.status_code == 200
        data = response.json()
        assert [a["title"] for a in data["articles"]] == ["Kept"]
        assert data["totalResults"] == 3
        assert data["page"] == 1
        assert data["pageSize"] == 20
        assert data["sortBy"] == "publishedAt"

    @pytest.mark.asyncio
    async def test_upstream_query_parameters(self, async_client: AsyncClient, news_upstream):
        await async_client.get("/api/news", params={"page": 2, "pageSize": 5, "sortBy": "popularity"})
        request = news_upstream.requests[-1]
        assert request.path.endswith("/everything")
        params = request.query
        assert params["q"] == HEADLINES_QUERY
        assert params["page"] == "2"
        assert params["pageSize"] == "5"
        assert params["sortBy"] == "popularity"
        assert params["language"] == "en"
        assert params["apiKey"] == "test-news-key"
        assert params["from"] == NewsClient.from_date()

    @pytest.mark.asyncio
    async def test_page_size_is_capped(self, async_client: AsyncClient, news_upstream):
        response = await async_client.get("/api/news", params={"pageSize": 500})
        assert response.json()["pageSize"] == 100
        assert news_upstream.requests[-1].query["pageSize"] == "100"

    @pytest.mark.asyncio
    async def test_second_identical_request_is_served_from_cache(self, async_client: AsyncClient, news_upstream):
        news_upstream.payload = {"status": "ok", "totalResults": 1, "articles": [_article("One", "https://img.test/1.png")]}
        first = await async_client.get("/api/news")
        second = await async_client.get("/api/news")
        assert first.json() == second.json()
        assert len(news_upstream.requests) == 1

        await async_client.get("/api/news", params={"page": 2})
        assert len(news_upstream.requests) == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize("params", [{"page": 0}, {"pageSize": -1}])
    async def test_rejects_non_positive_paging(self, async_client: AsyncClient, news_upstream, params):
        response = await async_client.get("/api/news", params=params)
        assert response.status_code == 400
        assert response.json()["error"] == "page and pageSize must be positive integers."
        assert news_upstream.requests == []


@pytest.mark.api
class TestSearchAndCategories:

    @pytest.mark.asyncio
    async def test_search_requires_query(self, async_client: AsyncClient):
        response = await async_client.get("/api/news/search", params={"q": "   "})
        assert response.status_code == 400
        assert response.json() == {"error": 'Parameter "q" is required.'}

    @pytest.mark.asyncio
    async def test_search_keeps_imageless_articles(self, async_client: AsyncClient, news_upstream):
        news_upstream.payload = {
            "status": "ok",
            "totalResults": 2,
            "articles": [_article("Plain"), _article("[Removed]")],
        }
        response = await async_client.get("/api/news/search", params={"q": " python "})
        data = response.json()
        assert data["query"] == "python"
        assert [a["title"] for a in data["articles"]] == ["Plain"]
        assert news_upstream.requests[-1].query["q"] == "python"

    @pytest.mark.asyncio
    async def test_category_uses_keyword_query(self, async_client: AsyncClient, news_upstream):
        response = await async_client.get("/api/news/category/Science")
        assert response.status_code == 200
        assert response.json()["category"] == "science"
        assert news_upstream.requests[-1].query["q"] == CATEGORY_KEYWORDS["science"]

    @pytest.mark.asyncio
    async def test_unknown_category(self, async_client: AsyncClient, news_upstream):
        response = await async_client.get("/api/news/category/politics")
        assert response.status_code == 400
        assert response.json()["error"] == (
            "Invalid category. Choose one of: technology, business, health, entertainment, sports, science"
        )
        assert news_upstream.requests == []

    @pytest.mark.asyncio
    async def test_categories_listing(self, async_client: AsyncClient):
        response = await async_client.get("/api/news/categories")
        assert response.json() == {
            "categories": ["technology", "business", "health", "entertainment", "sports", "science"]
        }


@pytest.mark.api
class TestUpstreamErrors:

    @pytest.mark.asyncio
    async def test_bad_api_key(self, async_client: AsyncClient, news_upstream):
        news_upstream.status_code = 401
        news_upstream.payload = {"status": "error", "code": "apiKeyInvalid", "message": "Your API key is invalid."}
        response = await async_client.get("/api/news")
        assert response.status_code == 500
        assert response.json() == {"error": "News API key is invalid or not set."}

    @pytest.mark.asyncio
    async def test_upstream_rate_limit(self, async_client: AsyncClient, news_upstream):
        news_upstream.status_code = 429
        response = await async_client.get("/api/news")
        assert response.status_code == 503
        assert response.json()["error"] == "News API rate limit reached. Try again later."

    @pytest.mark.asyncio
    async def test_other_status_passes_message_through(self, async_client: AsyncClient, news_upstream):
        news_upstream.status_code = 400
        news_upstream.payload = {"status": "error", "message": "The from parameter is too far in the past."}
        response = await async_client.get("/api/news/search", params={"q": "x"})
        assert response.status_code == 400
        assert response.json()["error"] == "The from parameter is too far in the past."

    @pytest.mark.asyncio
    async def test_errors_are_not_cached(self, async_client: AsyncClient, news_upstream):
        news_upstream.status_code = 429
        assert (await async_client.get("/api/news")).status_code == 503
        news_upstream.status_code = 200
        assert (await async_client.get("/api/news")).status_code == 200
        assert len(news_upstream.requests) == 2


@pytest.mark.unit
class TestNewsClient:

    @pytest.mark.asyncio
    async def test_api_key_omitted_when_unset(self, news_upstream):
        client = NewsClient(api_key="", base_url=news_upstream.base_url, cache=TTLCache())
        try:
            await client.search("rust")
        finally:
            await client.aclose()
        assert "apiKey" not in news_upstream.requests[0].query

    @pytest.mark.asyncio
    async def test_slow_upstream_is_unavailable(self, news_upstream):
        news_upstream.delay = 0.5
        client = NewsClient(api_key="k", base_url=news_upstream.base_url, timeout=0.05)
        try:
            with pytest.raises(ServiceUnavailableError) as exc:
                await client.headlines()
        finally:
            await client.aclose()
        assert exc.value.message == "Unable to reach the news service. Check your connection."

    @pytest.mark.asyncio
    async def test_closed_port_is_unavailable(self, unused_tcp_port):
        client = NewsClient(api_key="k", base_url=f"http://127.0.0.1:{unused_tcp_port}/v2")
        try:
            with pytest.raises(ServiceUnavailableError):
                await client.headlines()
        finally:
            await client.aclose()

    @pytest.mark.asyncio
    async def test_aclose_is_safe_before_first_request(self):
        client = NewsClient(api_key="k")
        await client.aclose()
