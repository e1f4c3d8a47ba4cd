from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_current_user
from db.session import get_db_session
from schemas.user_schema import CurrentUser
from services.comment_service import add_comment, delete_comment, list_comments, update_comment
from utils.responses import no_store_json

router = APIRouter(prefix="/api/comments")


@router.get("")
async def get_comments(
    article_url: str = "",
    page: int = 1,
    page_size: int = Query(20, alias="pageSize"),
    db: AsyncSession = Depends(get_db_session),
):
    # Public: no session required to read comments
    return await list_comments(article_url, page, page_size, db)


@router.post("")
async def create_comment(payload: dict, current_user: CurrentUser = Depends(get_current_user), db: AsyncSession = Depends(get_db_session)):
    result = await add_comment(current_user.id, payload.get("article_url"), payload.get("content"), db)
    return no_store_json(result, status_code=201)


@router.put("/{comment_id}")
async def edit_comment(comment_id: int, payload: dict, current_user: CurrentUser = Depends(get_current_user), db: AsyncSession = Depends(get_db_session)):
    return no_store_json(await update_comment(current_user.id, comment_id, payload.get("content"), db))


@router.delete("/{comment_id}")
async def remove_comment(comment_id: int, current_user: CurrentUser = Depends(get_current_user), db: AsyncSession = Depends(get_db_session)):
    return no_store_json(await delete_comment(current_user.id, comment_id, db))
