from functools import lru_cache

from fastapi import Header, HTTPException

from .config import ADMIN_TOKEN
from .services.cache_store import RankedCache, build_cache
from .services.materializer import CacheMaterializer
from .services.orchestrator import BatchOrchestrator
from .services.reader import CacheReader
from .services.scoring import CandidateScorer


def validate_admin_token(token: str | None, admin_token: str | None) -> None:
    if not admin_token or not token or token != admin_token:
        raise HTTPException(status_code=401, detail="Invalid admin token")


def require_admin(x_admin_token: str | None = Header(default=None)) -> None:
    validate_admin_token(x_admin_token, ADMIN_TOKEN)


def require_viewer_id(x_user_id: str | None = Header(default=None)) -> int:
    value = (x_user_id or "").strip()
    if not value:
        raise HTTPException(status_code=401, detail="X-User-Id header is required")
    try:
        return int(value)
    except ValueError:
        raise HTTPException(status_code=400, detail="X-User-Id must be an integer")


@lru_cache(maxsize=1)
def get_cache() -> RankedCache:
    return build_cache()


def get_reader() -> CacheReader:
    return CacheReader(get_cache())


def get_orchestrator() -> BatchOrchestrator:
    cache = get_cache()
    return BatchOrchestrator(CandidateScorer(), CacheMaterializer(cache))


def on_user_registered(user_id: int) -> bool:
    """Hook for the registration workflow, called after the user row commits."""
    return get_orchestrator().run_for_user(user_id)
