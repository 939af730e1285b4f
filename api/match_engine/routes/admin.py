import logging

from fastapi import APIRouter, Depends

from ..deps import get_cache, get_orchestrator, require_admin
from ..schemas import RefreshSummaryResponse, UserRefreshResponse

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(require_admin)])


@router.post("/admin/matches/refresh", response_model=RefreshSummaryResponse)
def run_daily_refresh() -> RefreshSummaryResponse:
    summary = get_orchestrator().run_daily_refresh()
    return RefreshSummaryResponse(**summary.as_dict())


@router.post("/admin/matches/refresh/{user_id}", response_model=UserRefreshResponse)
def run_refresh_for_user(user_id: int) -> UserRefreshResponse:
    ok = get_orchestrator().run_for_user(user_id)
    return UserRefreshResponse(user_id=user_id, ok=ok)


@router.delete("/admin/matches/cache/{user_id}")
def drop_cache_entry(user_id: int) -> dict[str, str]:
    get_cache().delete(user_id)
    logger.info("[MATCH_CACHE] admin dropped cache entry user_id=%s", user_id)
    return {"status": "deleted"}
