import asyncio
import logging
from datetime import timedelta
from typing import Any, Callable, Dict, List, Optional

import aiohttp

from core.config import settings
from core.errors import NewsSourceError, ServiceError, ServiceUnavailableError, ValidationError
from utils.cache import TTLCache
from utils.clock import utcnow

logger = logging.getLogger(__name__)

SUPPORTED_CATEGORIES = ["technology", "business", "health", "entertainment", "sports", "science"]

CATEGORY_KEYWORDS = {
    "technology": "technology OR tech OR AI OR software",
    "business": "business OR economy OR market OR finance",
    "health": "health OR medicine OR covid OR wellness",
    "entertainment": "entertainment OR movie OR music OR celebrity",
    "sports": "sports OR football OR basketball OR soccer",
    "science": "science OR space OR nasa OR research",
}

HEADLINES_QUERY = "world OR global OR news OR breaking"
REMOVED_TITLE = "[Removed]"
MAX_PAGE_SIZE = 100
LOOKBACK_DAYS = 30


def _is_listed(article: Dict[str, Any]) -> bool:
    return article.get("title") != REMOVED_TITLE


def _has_image(article: Dict[str, Any]) -> bool:
    return _is_listed(article) and bool(article.get("urlToImage"))


class NewsClient:
    """Cached proxy in front of the newsapi.org `/everything` endpoint.

    Owns its aiohttp session and TTL cache; create one per application and
    close it on shutdown.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        cache: Optional[TTLCache] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.NEWSAPI_KEY
        self.base_url = (base_url or settings.NEWSAPI_BASE_URL).rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout or settings.NEWS_HTTP_TIMEOUT)
        self.cache = cache or TTLCache(
            ttl_seconds=settings.NEWS_CACHE_TTL_SECONDS,
            max_entries=settings.NEWS_CACHE_MAX_ENTRIES,
        )
        self._session: Optional[aiohttp.ClientSession] = None

    def _get_session(self) -> aiohttp.ClientSession:
        # Created lazily so it binds to the running event loop
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
        return self._session

    async def aclose(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()

    @staticmethod
    def from_date() -> str:
        return (utcnow() - timedelta(days=LOOKBACK_DAYS)).date().isoformat()

    async def _everything(self, query: str, page: int, page_size: int, sort_by: str) -> Dict[str, Any]:
        params = {
            "q": query,
            "from": self.from_date(),
            "sortBy": sort_by,
            "language": "en",
            "page": str(page),
            "pageSize": str(page_size),
        }
        if self.api_key:
            params["apiKey"] = self.api_key

        url = f"{self.base_url}/everything"
        try:
            async with self._get_session().get(url, params=params) as resp:
                try:
                    data = await resp.json(content_type=None)
                except ValueError:
                    data = None
                if resp.status >= 400:
                    raise self._map_status_error(resp.status, data)
                return data or {}
        except ServiceError:
            raise
        except (aiohttp.ClientConnectionError, asyncio.TimeoutError) as e:
            logger.warning(f"News source unreachable: {e!r}")
            raise ServiceUnavailableError("Unable to reach the news service. Check your connection.") from e
        except aiohttp.ClientError as e:
            logger.error(f"News source request failed: {e}")
            raise NewsSourceError("Failed to fetch news.", status_code=500) from e

    @staticmethod
    def _map_status_error(status: int, data: Optional[Dict[str, Any]]) -> ServiceError:
        logger.warning(f"News source returned {status}")
        if status == 401:
            return NewsSourceError("News API key is invalid or not set.", status_code=500)
        if status == 429:
            return ServiceUnavailableError("News API rate limit reached. Try again later.")
        message = data.get("message") if isinstance(data, dict) else None
        return NewsSourceError(message or "News API error.", status_code=status)

    async def _cached(
        self,
        key: tuple,
        query: str,
        page: int,
        page_size: int,
        sort_by: str,
        keep: Callable[[Dict[str, Any]], bool],
        extra: Dict[str, Any],
    ) -> Dict[str, Any]:
        if page < 1 or page_size < 1:
            raise ValidationError("page and pageSize must be positive integers.")
        page_size = min(page_size, MAX_PAGE_SIZE)
        key = key + (page, page_size, sort_by)

        cached = self.cache.get(key)
        if cached is not None:
            logger.debug(f"News cache hit: {key}")
            return cached

        data = await self._everything(query, page, page_size, sort_by)
        articles: List[Dict[str, Any]] = [a for a in data.get("articles") or [] if keep(a)]
        result = {
            "totalResults": data.get("totalResults", 0),
            "page": page,
            "pageSize": page_size,
            **extra,
            "articles": articles,
        }
        self.cache.set(key, result)
        return result

    async def headlines(self, page: int = 1, page_size: int = 20, sort_by: str = "publishedAt") -> Dict[str, Any]:
        return await self._cached(
            ("everything",), HEADLINES_QUERY, page, page_size, sort_by, _has_image, {"sortBy": sort_by}
        )

    async def search(self, q: Optional[str], page: int = 1, page_size: int = 20, sort_by: str = "publishedAt") -> Dict[str, Any]:
        query = (q or "").strip()
        if not query:
            raise ValidationError('Parameter "q" is required.')
        return await self._cached(
            ("search", query), query, page, page_size, sort_by, _is_listed, {"query": query}
        )

    async def by_category(self, category: str, page: int = 1, page_size: int = 20, sort_by: str = "publishedAt") -> Dict[str, Any]:
        cat = (category or "").lower()
        if cat not in CATEGORY_KEYWORDS:
            raise ValidationError(f"Invalid category. Choose one of: {', '.join(SUPPORTED_CATEGORIES)}")
        return await self._cached(
            ("category", cat), CATEGORY_KEYWORDS[cat], page, page_size, sort_by, _is_listed, {"category": cat}
        )

    @staticmethod
    def categories() -> Dict[str, List[str]]:
        return {"categories": list(SUPPORTED_CATEGORIES)}
