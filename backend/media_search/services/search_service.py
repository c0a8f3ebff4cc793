import logging
from typing import Optional
from sqlalchemy.orm import Session
from media_search.core.errors import PersistenceError
from media_search.models.user import User
from media_search.schemas.media import SearchPage, SearchParams
from media_search.services.openverse_service import OpenverseService
from media_search.services.search_history_service import search_history_service

logger = logging.getLogger(__name__)


async def handle_search(
    db: Session,
    params: SearchParams,
    openverse: OpenverseService,
    current_user: Optional[User] = None,
) -> SearchPage:
    """
    Run a search and record it for authenticated callers.

    Steps run in order: validate and call Openverse (both inside
    OpenverseService.search), then write history. Validation and upstream
    errors propagate and nothing is recorded. The history write happens only
    after a successful search and its failure is logged, never raised, so the
    caller still gets their results.
    """
    page = await openverse.search(params)

    if current_user is not None:
        try:
            search_history_service.save(
                db, current_user.id, params.query.strip(), params.media_type)
        except PersistenceError:
            logger.exception(f"Search succeeded but history was not saved: user_id={current_user.id}")

    return page
