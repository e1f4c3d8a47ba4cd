from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_current_user
from db.session import get_db_session
from schemas.user_schema import CurrentUser
from services.bookmark_service import add_bookmark, list_bookmarks, remove_bookmark, remove_bookmark_by_url
from utils.responses import no_store_json

router = APIRouter(prefix="/api/bookmarks")


@router.get("")
async def get_bookmarks(current_user: CurrentUser = Depends(get_current_user), db: AsyncSession = Depends(get_db_session)):
    return no_store_json(await list_bookmarks(current_user.id, db))


@router.post("")
async def create_bookmark(payload: dict, current_user: CurrentUser = Depends(get_current_user), db: AsyncSession = Depends(get_db_session)):
    result = await add_bookmark(current_user.id, payload.get("article_url"), payload.get("article_data"), db)
    return no_store_json(result, status_code=201)


# Declared before /{bookmark_id} so "by-url" is not parsed as an id
@router.delete("/by-url")
async def delete_bookmark_by_url(payload: dict, current_user: CurrentUser = Depends(get_current_user), db: AsyncSession = Depends(get_db_session)):
    return no_store_json(await remove_bookmark_by_url(current_user.id, payload.get("article_url"), db))


@router.delete("/{bookmark_id}")
async def delete_bookmark(bookmark_id: int, current_user: CurrentUser = Depends(get_current_user), db: AsyncSession = Depends(get_db_session)):
    return no_store_json(await remove_bookmark(current_user.id, bookmark_id, db))
