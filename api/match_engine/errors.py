class MatchEngineError(Exception):
    """Base class for failures inside the match discovery engine."""

    def __init__(self, message: str, user_id: int | None = None) -> None:
        super().__init__(message)
        self.user_id = user_id


class ScoringUnavailable(MatchEngineError):
    """The candidate query could not be executed."""


class CacheWriteFailed(MatchEngineError):
    """A ranked cache entry could not be committed."""


class CacheUnavailable(MatchEngineError):
    """The ranked cache store could not be reached on the read path."""


class ProfileStoreUnavailable(MatchEngineError):
    """Display profiles for cached candidates could not be loaded."""
