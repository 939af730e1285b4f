from datetime import date

import pytest
from sqlalchemy.exc import OperationalError

from conftest import FIXED_NOW, add_connection, add_member, add_preference, add_view
from match_engine.errors import ScoringUnavailable
from match_engine.services.scoring import (
    CandidateScorer,
    PreferenceCriteria,
    birth_date_window,
    preferred_gender_for,
)


def _scorer(session_factory, **kwargs) -> CandidateScorer:
    return CandidateScorer(session_factory, clock=lambda: FIXED_NOW, **kwargs)


def _score(scorer: CandidateScorer, user_id: int, criteria: PreferenceCriteria, gender: str = "Female"):
    return scorer.score(user_id, gender, criteria.age_range(), criteria)


def test_preferred_gender_is_opposite_and_unknown_has_none():
    assert preferred_gender_for("Male") == "Female"
    assert preferred_gender_for("female") == "Male"
    assert preferred_gender_for("Other") is None
    assert preferred_gender_for(None) is None


def test_birth_date_window_counts_age_by_calendar_year():
    lo, hi = birth_date_window(date(2026, 6, 1), 18, 70)
    assert lo == date(1956, 1, 1)
    assert hi == date(2008, 12, 31)


def test_religion_city_marital_match_scores_sixty(session_factory):
    with session_factory() as db:
        add_member(db, 1, "Male")
        add_member(db, 2, "Female", religion="Hindu", marital_status="Single", city="Pune",
                   education_level="Bachelors", working_with="Government")
        db.commit()

    criteria = PreferenceCriteria(religion="Hindu", marital_status="Single", city="Pune",
                                  education_level="Masters", career_sector="No Preference")
    out = _score(_scorer(session_factory), 1, criteria)
    assert [(c.candidate_user_id, c.raw_score) for c in out] == [(2, 60.0)]


def test_all_criteria_and_premium_scores_one_hundred_fifteen(session_factory):
    with session_factory() as db:
        add_member(db, 1, "Male")
        add_member(db, 2, "Female", premium=True, religion="Hindu", marital_status="Single", city="Pune",
                   education_level="Masters", working_with="Private Sector")
        db.commit()

    criteria = PreferenceCriteria(religion="Hindu", marital_status="Single", city="Pune",
                                  education_level="Masters", career_sector="Private Sector")
    out = _score(_scorer(session_factory), 1, criteria)
    assert out[0].raw_score == 115.0


def test_unset_preferences_filter_nothing_and_award_nothing(session_factory):
    with session_factory() as db:
        add_member(db, 1, "Male")
        add_member(db, 2, "Female", religion="Jain", marital_status="Divorced", working_with="Business")
        add_member(db, 3, "Female", religion="Hindu", premium=True)
        db.commit()

    out = _score(_scorer(session_factory), 1, PreferenceCriteria(religion="No Preference"))
    scores = {c.candidate_user_id: c.raw_score for c in out}
    assert scores == {2: 0.0, 3: 20.0}


def test_eligibility_filters_exclude_ineligible_candidates(session_factory):
    with session_factory() as db:
        add_member(db, 1, "Male")
        add_member(db, 2, "Female", religion="Hindu")
        add_member(db, 3, "Female", religion="Hindu", active=False)
        add_member(db, 4, "Male", religion="Hindu")
        add_member(db, 5, "Female", religion="Hindu", dob=date(1950, 1, 1))
        add_member(db, 6, "Female", religion="Muslim")
        add_member(db, 7, "Female", religion="Hindu")
        add_member(db, 8, "Female", religion="Hindu")
        add_member(db, 9, "Female", religion="Hindu")
        add_connection(db, 1, 7)
        add_connection(db, 8, 1)
        add_view(db, 1, 9)
        add_view(db, 2, 1)
        db.commit()

    out = _score(_scorer(session_factory), 1, PreferenceCriteria(religion="Hindu"))
    assert [c.candidate_user_id for c in out] == [2]


def test_age_range_override_bounds_candidates(session_factory):
    with session_factory() as db:
        add_member(db, 1, "Female")
        add_member(db, 2, "Male", dob=date(1996, 12, 31))
        add_member(db, 3, "Male", dob=date(1990, 1, 1))
        add_member(db, 4, "Male", dob=date(2001, 1, 1))
        db.commit()

    out = _score(_scorer(session_factory), 1, PreferenceCriteria(min_age=26, max_age=30), gender="Male")
    assert sorted(c.candidate_user_id for c in out) == [2]


def test_results_descend_by_score_and_truncate(session_factory):
    with session_factory() as db:
        add_member(db, 1, "Male")
        add_member(db, 2, "Female", city="Pune")
        add_member(db, 3, "Female", city="Pune", education_level="Masters")
        add_member(db, 4, "Female")
        add_member(db, 5, "Female", premium=True, city="Pune", education_level="Masters")
        db.commit()

    criteria = PreferenceCriteria(city="Pune", education_level="Masters")
    out = _score(_scorer(session_factory, limit=3), 1, criteria)
    assert [(c.candidate_user_id, c.raw_score) for c in out] == [(5, 55.0), (3, 35.0), (2, 15.0)]


def test_no_eligible_candidates_returns_empty_list(session_factory):
    with session_factory() as db:
        add_member(db, 1, "Male")
        db.commit()
    assert _score(_scorer(session_factory), 1, PreferenceCriteria()) == []


def test_unknown_gender_returns_empty_without_query():
    def _boom():
        raise AssertionError("no session should be opened")

    scorer = CandidateScorer(_boom)
    assert scorer.score(1, None, (18, 70), PreferenceCriteria()) == []


def test_load_context_defaults_when_preferences_missing(session_factory):
    with session_factory() as db:
        add_member(db, 1, "Male", premium=True)
        add_member(db, 2, "Female")
        add_preference(db, 2, min_age=25, max_age=35, preferred_religion="Hindu", working_with="Private Sector")
        db.commit()

    scorer = _scorer(session_factory)
    ctx = scorer.load_context(1)
    assert ctx.is_premium is True
    assert ctx.preferred_gender == "Female"
    assert ctx.criteria.age_range() == (18, 70)

    other = scorer.load_context(2)
    assert other.preferred_gender == "Male"
    assert other.criteria.age_range() == (25, 35)
    assert other.criteria.religion == "Hindu"
    assert other.criteria.career_sector == "Private Sector"

    assert scorer.load_context(404) is None


class _FailingSession:
    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False

    def execute(self, *args, **kwargs):
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))


def test_store_failure_raises_scoring_unavailable():
    scorer = CandidateScorer(lambda: _FailingSession(), clock=lambda: FIXED_NOW)
    with pytest.raises(ScoringUnavailable) as err:
        scorer.score(7, "Female", (18, 70), PreferenceCriteria())
    assert err.value.user_id == 7
    with pytest.raises(ScoringUnavailable):
        scorer.load_context(7)


def test_malformed_age_range_raises_scoring_unavailable(session_factory):
    scorer = _scorer(session_factory)
    with pytest.raises(ScoringUnavailable):
        scorer.score(1, "Female", ("old", 70), PreferenceCriteria())


@pytest.mark.parametrize("age_range", [(18, 2026), (18, 5000), (-1, 70), (-20000, 70)])
def test_out_of_range_ages_raise_scoring_unavailable(session_factory, age_range):
    scorer = _scorer(session_factory)
    with pytest.raises(ScoringUnavailable) as err:
        scorer.score(1, "Female", age_range, PreferenceCriteria())
    assert err.value.user_id == 1
