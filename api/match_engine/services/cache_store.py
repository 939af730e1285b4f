from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable

import redis
from redis.exceptions import RedisError, WatchError

from ..config import MATCH_CACHE_BACKEND, MATCH_CACHE_KEY_PREFIX, REDIS_URL
from ..errors import CacheUnavailable, CacheWriteFailed

logger = logging.getLogger(__name__)

MAX_WATCH_RETRIES = 5


@dataclass(frozen=True)
class RankedMember:
    candidate_user_id: int
    final_score: float


class RankedCache:
    """Per-user rank-ordered candidate sets with a time-to-live."""

    def __init__(self, key_prefix: str = MATCH_CACHE_KEY_PREFIX) -> None:
        self.key_prefix = key_prefix

    def key_for(self, user_id: int) -> str:
        return f"{self.key_prefix}{user_id}"

    def stamp_key_for(self, user_id: int) -> str:
        return f"{self.key_for(user_id)}:stamp"

    def replace(self, user_id: int, members: list[RankedMember], ttl: timedelta, stamp: float | None = None) -> bool:
        raise NotImplementedError

    def expire(self, user_id: int, ttl: timedelta) -> None:
        raise NotImplementedError

    def range_desc(self, user_id: int, offset: int, limit: int) -> list[RankedMember]:
        raise NotImplementedError

    def cardinality(self, user_id: int) -> int:
        raise NotImplementedError

    def read_page(self, user_id: int, offset: int, limit: int) -> tuple[list[RankedMember], int]:
        """One page of members plus the entry's total size."""
        raise NotImplementedError

    def delete(self, user_id: int) -> None:
        raise NotImplementedError


class RedisRankedCache(RankedCache):
    def __init__(self, client, key_prefix: str = MATCH_CACHE_KEY_PREFIX) -> None:
        super().__init__(key_prefix)
        self._client = client

    @classmethod
    def from_url(cls, url: str, key_prefix: str = MATCH_CACHE_KEY_PREFIX) -> RedisRankedCache:
        return cls(redis.Redis.from_url(url, decode_responses=True), key_prefix=key_prefix)

    def replace(self, user_id: int, members: list[RankedMember], ttl: timedelta, stamp: float | None = None) -> bool:
        key = self.key_for(user_id)
        stamp_key = self.stamp_key_for(user_id)
        ttl_seconds = max(1, int(ttl.total_seconds()))
        mapping = {str(m.candidate_user_id): float(m.final_score) for m in members}
        try:
            with self._client.pipeline(transaction=True) as pipe:
                for _attempt in range(MAX_WATCH_RETRIES):
                    try:
                        pipe.watch(stamp_key)
                        if stamp is not None:
                            current = pipe.get(stamp_key)
                            if current is not None and float(current) > stamp:
                                pipe.unwatch()
                                return False
                        pipe.multi()
                        pipe.delete(key)
                        if mapping:
                            pipe.zadd(key, mapping)
                            pipe.expire(key, ttl_seconds)
                        if stamp is not None:
                            pipe.set(stamp_key, repr(stamp), ex=ttl_seconds)
                        pipe.execute()
                        return True
                    except WatchError:
                        logger.debug("[MATCH_CACHE] concurrent write on %s; retrying", key)
        except RedisError as exc:
            raise CacheWriteFailed(f"could not replace {key}: {exc}", user_id=user_id) from exc
        raise CacheWriteFailed(
            f"could not replace {key}: still contended after {MAX_WATCH_RETRIES} attempts", user_id=user_id
        )

    def expire(self, user_id: int, ttl: timedelta) -> None:
        try:
            self._client.expire(self.key_for(user_id), max(1, int(ttl.total_seconds())))
        except RedisError as exc:
            raise CacheWriteFailed(f"could not set expiry: {exc}", user_id=user_id) from exc

    def range_desc(self, user_id: int, offset: int, limit: int) -> list[RankedMember]:
        try:
            rows = self._client.zrevrange(self.key_for(user_id), offset, offset + limit - 1, withscores=True)
        except RedisError as exc:
            raise CacheUnavailable(f"could not read ranked cache: {exc}", user_id=user_id) from exc
        return [RankedMember(candidate_user_id=int(member), final_score=float(score)) for member, score in rows or []]

    def cardinality(self, user_id: int) -> int:
        try:
            return int(self._client.zcard(self.key_for(user_id)) or 0)
        except RedisError as exc:
            raise CacheUnavailable(f"could not read ranked cache size: {exc}", user_id=user_id) from exc

    def read_page(self, user_id: int, offset: int, limit: int) -> tuple[list[RankedMember], int]:
        key = self.key_for(user_id)
        try:
            with self._client.pipeline(transaction=False) as pipe:
                pipe.zrevrange(key, offset, offset + limit - 1, withscores=True)
                pipe.zcard(key)
                rows, total = pipe.execute()
        except RedisError as exc:
            raise CacheUnavailable(f"could not read ranked cache: {exc}", user_id=user_id) from exc
        members = [RankedMember(candidate_user_id=int(member), final_score=float(score)) for member, score in rows or []]
        return members, int(total or 0)

    def ttl_seconds(self, user_id: int) -> int:
        try:
            return int(self._client.ttl(self.key_for(user_id)))
        except RedisError as exc:
            raise CacheUnavailable(f"could not read ttl: {exc}", user_id=user_id) from exc

    def delete(self, user_id: int) -> None:
        try:
            self._client.delete(self.key_for(user_id), self.stamp_key_for(user_id))
        except RedisError as exc:
            raise CacheWriteFailed(f"could not delete ranked cache: {exc}", user_id=user_id) from exc


@dataclass
class _Entry:
    members: list[RankedMember]
    expires_at: datetime
    stamp: float | None = None


class InMemoryRankedCache(RankedCache):
    """Process-local ranked cache for development and tests.

    Expiry is checked against the injected clock on every access.
    """

    def __init__(self, clock: Callable[[], datetime] | None = None, key_prefix: str = MATCH_CACHE_KEY_PREFIX) -> None:
        super().__init__(key_prefix)
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._entries: dict[str, _Entry] = {}
        self._lock = threading.Lock()

    def _live(self, key: str) -> _Entry | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() >= entry.expires_at:
            del self._entries[key]
            return None
        return entry

    def replace(self, user_id: int, members: list[RankedMember], ttl: timedelta, stamp: float | None = None) -> bool:
        key = self.key_for(user_id)
        with self._lock:
            current = self._live(key)
            if stamp is not None and current is not None and current.stamp is not None and current.stamp > stamp:
                return False
            if not members and stamp is None:
                self._entries.pop(key, None)
                return True
            ordered = sorted(members, key=lambda m: -m.final_score)
            self._entries[key] = _Entry(members=ordered, expires_at=self._clock() + ttl, stamp=stamp)
            return True

    def expire(self, user_id: int, ttl: timedelta) -> None:
        with self._lock:
            entry = self._live(self.key_for(user_id))
            if entry is not None:
                entry.expires_at = self._clock() + ttl

    def range_desc(self, user_id: int, offset: int, limit: int) -> list[RankedMember]:
        with self._lock:
            entry = self._live(self.key_for(user_id))
            if entry is None:
                return []
            return list(entry.members[offset:offset + limit])

    def cardinality(self, user_id: int) -> int:
        with self._lock:
            entry = self._live(self.key_for(user_id))
            return len(entry.members) if entry else 0

    def read_page(self, user_id: int, offset: int, limit: int) -> tuple[list[RankedMember], int]:
        with self._lock:
            entry = self._live(self.key_for(user_id))
            if entry is None:
                return [], 0
            return list(entry.members[offset:offset + limit]), len(entry.members)

    def delete(self, user_id: int) -> None:
        with self._lock:
            self._entries.pop(self.key_for(user_id), None)


def build_cache(backend: str = MATCH_CACHE_BACKEND, redis_url: str = REDIS_URL) -> RankedCache:
    if backend == "memory":
        logger.warning("[MATCH_CACHE] using in-memory ranked cache; entries are not shared between processes")
        return InMemoryRankedCache()
    if backend != "redis":
        raise ValueError(f"Unknown MATCH_CACHE_BACKEND: {backend}")
    return RedisRankedCache.from_url(redis_url)
