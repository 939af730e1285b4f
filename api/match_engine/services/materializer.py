from __future__ import annotations

import logging
import random
from datetime import timedelta
from typing import Iterable

from sqlalchemy import bindparam, text
from sqlalchemy.exc import SQLAlchemyError

from ..config import MATCH_CACHE_TTL_HOURS, MATCH_PREMIUM_BOOST, MATCH_PREMIUM_QUOTA, MATCH_STANDARD_QUOTA
from ..database import SessionLocal
from ..errors import CacheWriteFailed
from .cache_store import RankedCache, RankedMember
from .scoring import CandidateScore

logger = logging.getLogger(__name__)


def fetch_premium_flags(db, user_ids: Iterable[int]) -> dict[int, bool]:
    ids = [int(uid) for uid in user_ids]
    if not ids:
        return {}
    rows = db.execute(
        text("SELECT id, is_premium FROM users WHERE id IN :ids").bindparams(bindparam("ids", expanding=True)),
        {"ids": ids},
    ).mappings().all()
    return {int(r["id"]): bool(r["is_premium"]) for r in rows}


def fetch_is_premium(db, user_id: int) -> bool:
    return fetch_premium_flags(db, [user_id]).get(int(user_id), False)


class CacheMaterializer:
    """Turns a scored candidate list into a user's ranked cache entry.

    The candidate's premium flag is read again here and adds a visibility
    boost on top of the raw score, which already carries a premium weight.
    Both terms are kept.
    """

    def __init__(
        self,
        cache: RankedCache,
        session_factory=SessionLocal,
        *,
        premium_quota: int = MATCH_PREMIUM_QUOTA,
        standard_quota: int = MATCH_STANDARD_QUOTA,
        premium_boost: float = MATCH_PREMIUM_BOOST,
        ttl: timedelta = timedelta(hours=MATCH_CACHE_TTL_HOURS),
        rng: random.Random | None = None,
    ) -> None:
        self.cache = cache
        self._session_factory = session_factory
        self.premium_quota = premium_quota
        self.standard_quota = standard_quota
        self.premium_boost = premium_boost
        self.ttl = ttl
        self._rng = rng or random.Random()

    def quota_for(self, user_is_premium: bool) -> int:
        return self.premium_quota if user_is_premium else self.standard_quota

    def select(self, candidates: list[CandidateScore], user_is_premium: bool) -> list[CandidateScore]:
        shuffled = list(candidates)
        self._rng.shuffle(shuffled)
        return shuffled[: self.quota_for(user_is_premium)]

    def materialize(
        self,
        user_id: int,
        candidates: list[CandidateScore],
        *,
        user_is_premium: bool | None = None,
        computed_at: float | None = None,
    ) -> int:
        """Overwrite the user's ranked entry; returns the number of members written."""
        if not candidates:
            # Drop any earlier entry; its members may since have been contacted or viewed.
            if self.cache.replace(user_id, [], self.ttl, stamp=computed_at):
                logger.info("[MATCH_CACHE] no candidates for user_id=%s; entry cleared", user_id)
            else:
                logger.warning("[MATCH_CACHE] skipped stale clear for user_id=%s; a newer entry exists", user_id)
            return 0

        try:
            with self._session_factory() as db:
                if user_is_premium is None:
                    user_is_premium = fetch_is_premium(db, user_id)
                selected = self.select(candidates, bool(user_is_premium))
                premium_flags = fetch_premium_flags(db, [c.candidate_user_id for c in selected])
        except SQLAlchemyError as exc:
            raise CacheWriteFailed(f"could not read premium flags: {exc}", user_id=user_id) from exc

        members = [
            RankedMember(
                candidate_user_id=c.candidate_user_id,
                final_score=c.raw_score + (self.premium_boost if premium_flags.get(c.candidate_user_id) else 0.0),
            )
            for c in selected
        ]
        members.sort(key=lambda m: -m.final_score)

        written = self.cache.replace(user_id, members, self.ttl, stamp=computed_at)
        if not written:
            logger.warning("[MATCH_CACHE] skipped stale write for user_id=%s; a newer entry exists", user_id)
            return 0
        logger.info("[MATCH_CACHE] cached %s matches for user_id=%s", len(members), user_id)
        return len(members)
