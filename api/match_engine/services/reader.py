from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Callable, Iterable

from sqlalchemy import bindparam, text
from sqlalchemy.exc import SQLAlchemyError

from ..database import SessionLocal
from ..errors import ProfileStoreUnavailable
from .cache_store import RankedCache


@dataclass(frozen=True)
class CandidateSummary:
    user_id: int
    full_name: str | None
    age: int | None
    city: str | None
    occupation: str | None
    is_premium: bool
    photo_url: str | None
    score: float


@dataclass(frozen=True)
class MatchPage:
    matches: list[CandidateSummary] = field(default_factory=list)
    total_count: int = 0


def _to_date(value: Any) -> date | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def age_on(date_of_birth: Any, today: date) -> int | None:
    dob = _to_date(date_of_birth)
    if dob is None:
        return None
    return today.year - dob.year - ((today.month, today.day) < (dob.month, dob.day))


def fetch_display_profiles(db, user_ids: Iterable[int]) -> dict[int, dict[str, Any]]:
    ids = [int(uid) for uid in user_ids]
    if not ids:
        return {}
    rows = db.execute(
        text(
            """
            SELECT p.user_id, p.full_name, p.date_of_birth, p.city, p.occupation, p.profile_photo_url, u.is_premium
            FROM profiles p
            JOIN users u ON u.id = p.user_id
            WHERE p.user_id IN :ids
            """
        ).bindparams(bindparam("ids", expanding=True)),
        {"ids": ids},
    ).mappings().all()
    return {int(r["user_id"]): dict(r) for r in rows}


class CacheReader:
    """Paginated reads of a user's ranked candidates, highest score first.

    Ties keep whatever order the store returns, which may differ between
    reads. Missing or expired entries read as an empty page.
    """

    def __init__(self, cache: RankedCache, session_factory=SessionLocal, clock: Callable[[], datetime] | None = None) -> None:
        self.cache = cache
        self._session_factory = session_factory
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def read(self, user_id: int, offset: int, limit: int) -> MatchPage:
        if offset < 0:
            raise ValueError("offset must be >= 0")
        if limit <= 0:
            raise ValueError("limit must be > 0")

        members, total = self.cache.read_page(user_id, offset, limit)
        if not members:
            return MatchPage(matches=[], total_count=total)

        try:
            with self._session_factory() as db:
                profiles = fetch_display_profiles(db, [m.candidate_user_id for m in members])
        except SQLAlchemyError as exc:
            raise ProfileStoreUnavailable(f"profile lookup failed: {exc}", user_id=user_id) from exc

        today = self._clock().date()
        out: list[CandidateSummary] = []
        for m in members:
            row = profiles.get(m.candidate_user_id)
            if row is None:
                continue
            out.append(
                CandidateSummary(
                    user_id=m.candidate_user_id,
                    full_name=row.get("full_name"),
                    age=age_on(row.get("date_of_birth"), today),
                    city=row.get("city"),
                    occupation=row.get("occupation"),
                    is_premium=bool(row.get("is_premium")),
                    photo_url=row.get("profile_photo_url"),
                    score=m.final_score,
                )
            )
        return MatchPage(matches=out, total_count=total)
