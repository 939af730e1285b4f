from dataclasses import asdict

from fastapi import APIRouter, Depends, Query

from ..config import MATCH_DEFAULT_PAGE_SIZE, MATCH_MAX_PAGE_SIZE
from ..deps import get_reader, require_viewer_id
from ..schemas import MatchListResponse, MatchSummary
from ..services.reader import CacheReader

router = APIRouter()


@router.get("/matches/new", response_model=MatchListResponse)
def get_new_matches(
    page: int = Query(default=0, ge=0),
    size: int = Query(default=MATCH_DEFAULT_PAGE_SIZE, ge=1, le=MATCH_MAX_PAGE_SIZE),
    user_id: int = Depends(require_viewer_id),
    reader: CacheReader = Depends(get_reader),
) -> MatchListResponse:
    result = reader.read(user_id, offset=page * size, limit=size)
    return MatchListResponse(
        total_count=result.total_count,
        matches=[MatchSummary(**asdict(m)) for m in result.matches],
        page=page,
        size=size,
        has_next=(page + 1) * size < result.total_count,
    )
