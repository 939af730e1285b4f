from pydantic import BaseModel, Field


class MatchSummary(BaseModel):
    user_id: int
    full_name: str | None = None
    age: int | None = None
    city: str | None = None
    occupation: str | None = None
    is_premium: bool = False
    photo_url: str | None = None
    score: float


class MatchListResponse(BaseModel):
    category: str = "new"
    title: str = "New Matches"
    total_count: int
    matches: list[MatchSummary] = Field(default_factory=list)
    page: int
    size: int
    has_next: bool


class RefreshSummaryResponse(BaseModel):
    pages: int
    users_seen: int
    users_processed: int
    users_failed: int
    users_timed_out: int
    elapsed_seconds: float


class UserRefreshResponse(BaseModel):
    user_id: int
    ok: bool
