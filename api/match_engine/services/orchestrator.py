from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Callable

from sqlalchemy import text

from ..config import MATCH_REFRESH_PAGE_SIZE, MATCH_TASK_TIMEOUT_SECONDS
from ..database import SessionLocal
from .materializer import CacheMaterializer
from .scoring import CandidateScorer

logger = logging.getLogger(__name__)


@dataclass
class RefreshSummary:
    pages: int = 0
    users_seen: int = 0
    users_processed: int = 0
    users_failed: int = 0
    users_timed_out: int = 0
    elapsed_seconds: float = 0.0

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


def fetch_user_page(db, after_id: int, limit: int) -> list[dict[str, Any]]:
    rows = db.execute(
        text(
            """
            SELECT id, is_active
            FROM users
            WHERE id > :after_id
            ORDER BY id
            LIMIT :limit
            """
        ),
        {"after_id": after_id, "limit": limit},
    ).mappings().all()
    return [{"id": int(r["id"]), "is_active": bool(r["is_active"])} for r in rows]


class BatchOrchestrator:
    """Refreshes ranked caches one page of users at a time.

    Every task in a page is joined before the next page is fetched, so at most
    one page of scoring and cache writes is in flight against the stores.
    """

    def __init__(
        self,
        scorer: CandidateScorer,
        materializer: CacheMaterializer,
        session_factory=SessionLocal,
        *,
        page_size: int = MATCH_REFRESH_PAGE_SIZE,
        task_timeout_seconds: float = MATCH_TASK_TIMEOUT_SECONDS,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if page_size <= 0:
            raise ValueError("page_size must be > 0")
        self.scorer = scorer
        self.materializer = materializer
        self._session_factory = session_factory
        self.page_size = page_size
        self.task_timeout_seconds = task_timeout_seconds
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def _refresh_one(self, user_id: int) -> int:
        computed_at = self._clock().timestamp()
        context = self.scorer.load_context(user_id)
        if context is None:
            logger.info("[MATCH_REFRESH] user_id=%s has no profile; skipped", user_id)
            return 0
        candidates = self.scorer.score(
            user_id,
            context.preferred_gender,
            context.criteria.age_range(),
            context.criteria,
        )
        return self.materializer.materialize(
            user_id,
            candidates,
            user_is_premium=context.is_premium,
            computed_at=computed_at,
        )

    def run_for_user(self, user_id: int) -> bool:
        """Single-user pass for the registration flow; never raises."""
        try:
            written = self._refresh_one(user_id)
        except Exception as exc:
            logger.error("[MATCH_REFRESH] failed to compute initial matches for user_id=%s: %s", user_id, exc, exc_info=exc)
            return False
        logger.info("[MATCH_REFRESH] initial matches for user_id=%s cached=%s", user_id, written)
        return True

    def run_daily_refresh(self) -> RefreshSummary:
        started = time.monotonic()
        summary = RefreshSummary()
        timeout = self.task_timeout_seconds if self.task_timeout_seconds > 0 else None
        pool = ThreadPoolExecutor(max_workers=self.page_size, thread_name_prefix="match-refresh")
        hung = False
        logger.info("[MATCH_REFRESH] starting daily refresh page_size=%s", self.page_size)
        try:
            after_id = 0
            while True:
                with self._session_factory() as db:
                    page = fetch_user_page(db, after_id, self.page_size)
                if not page:
                    break
                summary.pages += 1
                summary.users_seen += len(page)
                after_id = page[-1]["id"]

                futures = {pool.submit(self._refresh_one, u["id"]): u["id"] for u in page if u["is_active"]}
                done, not_done = wait(futures, timeout=timeout)
                for fut in done:
                    uid = futures[fut]
                    exc = fut.exception()
                    if exc is not None:
                        summary.users_failed += 1
                        logger.error("[MATCH_REFRESH] error calculating matches for user_id=%s: %s", uid, exc, exc_info=exc)
                    else:
                        summary.users_processed += 1
                for fut in not_done:
                    hung = True
                    summary.users_timed_out += 1
                    logger.error("[MATCH_REFRESH] user_id=%s still running after %ss; page advancing", futures[fut], timeout)

                logger.info(
                    "[MATCH_REFRESH] page %s complete active=%s processed_total=%s failed_total=%s",
                    summary.pages,
                    len(futures),
                    summary.users_processed,
                    summary.users_failed,
                )
                if len(page) < self.page_size:
                    break
        finally:
            pool.shutdown(wait=not hung, cancel_futures=hung)

        summary.elapsed_seconds = round(time.monotonic() - started, 3)
        logger.info("[MATCH_REFRESH] daily refresh completed %s", summary.as_dict())
        return summary
