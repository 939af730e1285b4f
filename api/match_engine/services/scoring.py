from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Callable

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from ..config import (
    DEFAULT_SCORE_WEIGHTS,
    MATCH_CANDIDATE_LIMIT,
    MATCH_DEFAULT_MAX_AGE,
    MATCH_DEFAULT_MIN_AGE,
)
from ..database import SessionLocal
from ..errors import ScoringUnavailable

logger = logging.getLogger(__name__)

NO_PREFERENCE = "No Preference"


@dataclass(frozen=True)
class PreferenceCriteria:
    min_age: int | None = None
    max_age: int | None = None
    religion: str | None = None
    education_level: str | None = None
    marital_status: str | None = None
    city: str | None = None
    career_sector: str | None = None

    def age_range(self) -> tuple[int, int]:
        lo = MATCH_DEFAULT_MIN_AGE if self.min_age is None else int(self.min_age)
        hi = MATCH_DEFAULT_MAX_AGE if self.max_age is None else int(self.max_age)
        return lo, hi


@dataclass(frozen=True)
class CandidateScore:
    candidate_user_id: int
    raw_score: float


@dataclass(frozen=True)
class ScoringContext:
    user_id: int
    is_premium: bool
    preferred_gender: str | None
    criteria: PreferenceCriteria = field(default_factory=PreferenceCriteria)


def preferred_gender_for(gender: Any) -> str | None:
    value = str(gender or "").strip().lower()
    if value == "male":
        return "Female"
    if value == "female":
        return "Male"
    return None


def _preference_value(value: Any) -> str | None:
    if value is None:
        return None
    v = str(value).strip()
    if not v or v.lower() == NO_PREFERENCE.lower():
        return None
    return v


def birth_date_window(today: date, min_age: int, max_age: int) -> tuple[date, date]:
    # Age is counted by calendar year: YEAR(today) - YEAR(date_of_birth).
    return date(today.year - max_age, 1, 1), date(today.year - min_age, 12, 31)


CANDIDATE_QUERY = text(
    """
    SELECT
      p.user_id AS candidate_user_id,
      (
        (CASE WHEN :religion IS NOT NULL AND p.religion = :religion THEN :w_religion ELSE 0 END)
        + (CASE WHEN :education IS NOT NULL AND p.education_level = :education THEN :w_education ELSE 0 END)
        + (CASE WHEN :marital IS NOT NULL AND p.marital_status = :marital THEN :w_marital ELSE 0 END)
        + (CASE WHEN :city IS NOT NULL AND p.city = :city THEN :w_city ELSE 0 END)
        + (CASE WHEN :career IS NOT NULL AND p.working_with = :career THEN :w_career ELSE 0 END)
        + (CASE WHEN u.is_premium THEN :w_premium ELSE 0 END)
      ) AS raw_score
    FROM profiles p
    JOIN users u ON u.id = p.user_id
    WHERE u.is_active
      AND u.id <> :user_id
      AND p.gender = :preferred_gender
      AND p.date_of_birth BETWEEN :dob_from AND :dob_to
      AND (:religion IS NULL OR p.religion = :religion)
      AND (:marital IS NULL OR p.marital_status = :marital)
      AND (:career IS NULL OR p.working_with = :career)
      AND NOT EXISTS (
        SELECT 1 FROM connection_requests cr
        WHERE (cr.sender_id = :user_id AND cr.receiver_id = p.user_id)
           OR (cr.sender_id = p.user_id AND cr.receiver_id = :user_id)
      )
      AND NOT EXISTS (
        SELECT 1 FROM user_view_history uvh
        WHERE uvh.viewer_id = :user_id AND uvh.viewed_user_id = p.user_id
      )
    ORDER BY raw_score DESC, p.user_id ASC
    LIMIT :limit
    """
)


def fetch_scored_candidates(
    db,
    user_id: int,
    preferred_gender: str,
    age_range: tuple[int, int],
    criteria: PreferenceCriteria,
    *,
    today: date,
    weights: dict[str, Any],
    limit: int,
) -> list[CandidateScore]:
    dob_from, dob_to = birth_date_window(today, age_range[0], age_range[1])
    rows = db.execute(
        CANDIDATE_QUERY,
        {
            "user_id": user_id,
            "preferred_gender": preferred_gender,
            "dob_from": dob_from.isoformat(),
            "dob_to": dob_to.isoformat(),
            "religion": _preference_value(criteria.religion),
            "education": _preference_value(criteria.education_level),
            "marital": _preference_value(criteria.marital_status),
            "city": _preference_value(criteria.city),
            "career": _preference_value(criteria.career_sector),
            "w_religion": float(weights["RELIGION_W"]),
            "w_education": float(weights["EDUCATION_W"]),
            "w_marital": float(weights["MARITAL_W"]),
            "w_city": float(weights["CITY_W"]),
            "w_career": float(weights["CAREER_W"]),
            "w_premium": float(weights["PREMIUM_W"]),
            "limit": limit,
        },
    ).mappings().all()
    return [CandidateScore(candidate_user_id=int(r["candidate_user_id"]), raw_score=float(r["raw_score"] or 0)) for r in rows]


def load_scoring_context(db, user_id: int) -> ScoringContext | None:
    row = db.execute(
        text(
            """
            SELECT
              u.id AS user_id,
              u.is_premium,
              p.gender,
              pref.min_age,
              pref.max_age,
              pref.preferred_religion,
              pref.min_education_level,
              pref.marital_status,
              pref.preferred_city,
              pref.working_with
            FROM users u
            JOIN profiles p ON p.user_id = u.id
            LEFT JOIN partner_preferences pref ON pref.profile_id = p.id
            WHERE u.id = :user_id
            """
        ),
        {"user_id": user_id},
    ).mappings().first()
    if not row:
        return None
    return ScoringContext(
        user_id=int(row["user_id"]),
        is_premium=bool(row.get("is_premium")),
        preferred_gender=preferred_gender_for(row.get("gender")),
        criteria=PreferenceCriteria(
            min_age=row.get("min_age"),
            max_age=row.get("max_age"),
            religion=row.get("preferred_religion"),
            education_level=row.get("min_education_level"),
            marital_status=row.get("marital_status"),
            city=row.get("preferred_city"),
            career_sector=row.get("working_with"),
        ),
    )


class CandidateScorer:
    """Queries the profile store for a user's top weighted candidates.

    Each call opens its own session so scorers can run side by side on
    worker threads.
    """

    def __init__(
        self,
        session_factory=SessionLocal,
        *,
        weights: dict[str, Any] | None = None,
        limit: int = MATCH_CANDIDATE_LIMIT,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._session_factory = session_factory
        self.weights = {**DEFAULT_SCORE_WEIGHTS, **(weights or {})}
        self.limit = limit
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def load_context(self, user_id: int) -> ScoringContext | None:
        try:
            with self._session_factory() as db:
                return load_scoring_context(db, user_id)
        except SQLAlchemyError as exc:
            raise ScoringUnavailable(f"could not load scoring context: {exc}", user_id=user_id) from exc

    def score(
        self,
        user_id: int,
        preferred_gender: str | None,
        age_range: tuple[int, int],
        criteria: PreferenceCriteria,
    ) -> list[CandidateScore]:
        if not preferred_gender:
            logger.info("[MATCH_SCORER] user_id=%s has no resolvable preferred gender; no candidates", user_id)
            return []
        today = self._clock().date()
        try:
            min_age, max_age = int(age_range[0]), int(age_range[1])
            if min_age < 0:
                raise ValueError("negative minimum age")
            # Rejects ages whose birth year falls outside the calendar.
            birth_date_window(today, min_age, max_age)
        except (TypeError, ValueError, IndexError, OverflowError) as exc:
            raise ScoringUnavailable(f"malformed age range {age_range!r}", user_id=user_id) from exc

        try:
            with self._session_factory() as db:
                out = fetch_scored_candidates(
                    db,
                    user_id,
                    preferred_gender,
                    (min_age, max_age),
                    criteria,
                    today=today,
                    weights=self.weights,
                    limit=self.limit,
                )
        except SQLAlchemyError as exc:
            raise ScoringUnavailable(f"candidate query failed: {exc}", user_id=user_id) from exc

        logger.debug("[MATCH_SCORER] user_id=%s candidates=%s", user_id, len(out))
        return out
