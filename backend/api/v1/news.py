from fastapi import APIRouter, Depends, Query

from api.dependencies import get_news_client
from services.news_service import NewsClient

router = APIRouter(prefix="/api/news")


@router.get("")
async def headlines(
    page: int = 1,
    page_size: int = Query(20, alias="pageSize"),
    sort_by: str = Query("publishedAt", alias="sortBy"),
    news: NewsClient = Depends(get_news_client),
):
    return await news.headlines(page, page_size, sort_by)


@router.get("/search")
async def search(
    q: str = "",
    page: int = 1,
    page_size: int = Query(20, alias="pageSize"),
    sort_by: str = Query("publishedAt", alias="sortBy"),
    news: NewsClient = Depends(get_news_client),
):
    return await news.search(q, page, page_size, sort_by)


@router.get("/categories")
async def categories():
    return NewsClient.categories()


@router.get("/category/{category}")
async def by_category(
    category: str,
    page: int = 1,
    page_size: int = Query(20, alias="pageSize"),
    sort_by: str = Query("publishedAt", alias="sortBy"),
    news: NewsClient = Depends(get_news_client),
):
    return await news.by_category(category, page, page_size, sort_by)
