import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .config import LOG_LEVEL
from .errors import CacheUnavailable, CacheWriteFailed, ProfileStoreUnavailable
from .routes import include_modular_routers

logger = logging.getLogger(__name__)

app = FastAPI(title="Punarmilan Match Engine")
include_modular_routers(app)


@app.on_event("startup")
def on_startup() -> None:
    logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s %(message)s")


@app.exception_handler(CacheUnavailable)
def cache_unavailable_handler(request: Request, exc: CacheUnavailable) -> JSONResponse:
    logger.warning("[MATCH_CACHE] read failed user_id=%s: %s", exc.user_id, exc)
    return JSONResponse(status_code=503, content={"detail": "Match cache unavailable"})


@app.exception_handler(CacheWriteFailed)
def cache_write_failed_handler(request: Request, exc: CacheWriteFailed) -> JSONResponse:
    logger.warning("[MATCH_CACHE] write failed user_id=%s: %s", exc.user_id, exc)
    return JSONResponse(status_code=503, content={"detail": "Match cache unavailable"})


@app.exception_handler(ProfileStoreUnavailable)
def profile_store_unavailable_handler(request: Request, exc: ProfileStoreUnavailable) -> JSONResponse:
    logger.warning("[MATCH_CACHE] profile lookup failed user_id=%s: %s", exc.user_id, exc)
    return JSONResponse(status_code=503, content={"detail": "Match profiles unavailable"})


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
