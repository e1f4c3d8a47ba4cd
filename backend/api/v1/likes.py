from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_current_user
from db.session import get_db_session
from schemas.user_schema import CurrentUser
from services.like_service import get_like_status, toggle_like
from utils.responses import no_store_json

router = APIRouter(prefix="/api/likes")


@router.get("")
async def like_status(article_url: str = "", current_user: CurrentUser = Depends(get_current_user), db: AsyncSession = Depends(get_db_session)):
    return no_store_json(await get_like_status(current_user.id, article_url, db))


@router.post("")
async def toggle(payload: dict, current_user: CurrentUser = Depends(get_current_user), db: AsyncSession = Depends(get_db_session)):
    body, liked = await toggle_like(current_user.id, payload.get("article_url"), db)
    return no_store_json(body, status_code=201 if liked else 200)
