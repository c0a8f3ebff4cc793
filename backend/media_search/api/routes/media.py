from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from media_search.core.config import settings
from media_search.core.database import get_db
from media_search.core.errors import NotFoundError
from media_search.api.dependencies import get_current_user, get_optional_user, get_openverse_service
from media_search.models.user import User
from media_search.schemas.media import MediaType, SearchPage, SearchParams, SearchRecordResponse
from media_search.services.openverse_service import OpenverseService
from media_search.services.search_history_service import search_history_service
from media_search.services.search_service import handle_search

router = APIRouter(prefix="/media", tags=["media"])

SEARCH_NOT_FOUND_MESSAGE = "Search not found"


@router.get("/search", response_model=SearchPage)
async def search_media(
    q: str = Query(..., max_length=255, description="Search query"),
    media_type: MediaType = Query("image"),
    license: Optional[str] = Query(None, description="Comma-separated license codes"),
    extension: Optional[str] = Query(None, description="File extension filter"),
    page: int = Query(1),
    page_size: int = Query(20),
    current_user: Optional[User] = Depends(get_optional_user),
    openverse: OpenverseService = Depends(get_openverse_service),
    db: Session = Depends(get_db)
):
    """Search Openverse; searches by signed-in users are added to their history"""
    params = SearchParams(
        query=q,
        media_type=media_type,
        license=license,
        extension=extension,
        page=page,
        page_size=page_size,
    )
    return await handle_search(db, params, openverse, current_user)


@router.get("/searches", response_model=List[SearchRecordResponse])
async def list_recent_searches(
    limit: int = Query(settings.SEARCH_HISTORY_LIMIT, ge=1, le=settings.SEARCH_HISTORY_MAX_LIMIT),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """List the current user's most recent searches"""
    return search_history_service.get_recent(db, current_user.id, limit)


@router.delete("/searches/{search_id}")
async def delete_search(
    search_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Delete one of the current user's searches"""
    if not search_history_service.delete(db, current_user.id, search_id):
        raise NotFoundError(SEARCH_NOT_FOUND_MESSAGE)
    return {"message": "Search deleted successfully"}


@router.delete("/searches")
async def clear_searches(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Delete all of the current user's searches"""
    deleted = search_history_service.clear_all(db, current_user.id)
    return {"message": "Search history cleared", "deleted": deleted}
