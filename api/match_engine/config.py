import json
import os
from typing import Any

DATABASE_URL = os.getenv("DATABASE_URL", "postgresql+psycopg2://postgres:postgres@db:5432/punarmilan")
DB_POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "20"))
DB_MAX_OVERFLOW = int(os.getenv("DB_MAX_OVERFLOW", "80"))
DB_POOL_TIMEOUT_SECONDS = int(os.getenv("DB_POOL_TIMEOUT_SECONDS", "60"))

REDIS_URL = os.getenv("REDIS_URL", "redis://redis:6379/0")
MATCH_CACHE_BACKEND = os.getenv("MATCH_CACHE_BACKEND", "redis").strip().lower()
MATCH_CACHE_KEY_PREFIX = os.getenv("MATCH_CACHE_KEY_PREFIX", "user:matches:new:")
MATCH_CACHE_TTL_HOURS = int(os.getenv("MATCH_CACHE_TTL_HOURS", "24"))

MATCH_CANDIDATE_LIMIT = int(os.getenv("MATCH_CANDIDATE_LIMIT", "100"))
MATCH_PREMIUM_QUOTA = int(os.getenv("MATCH_PREMIUM_QUOTA", "40"))
MATCH_STANDARD_QUOTA = int(os.getenv("MATCH_STANDARD_QUOTA", "20"))
MATCH_PREMIUM_BOOST = float(os.getenv("MATCH_PREMIUM_BOOST", "20"))
MATCH_DEFAULT_MIN_AGE = int(os.getenv("MATCH_DEFAULT_MIN_AGE", "18"))
MATCH_DEFAULT_MAX_AGE = int(os.getenv("MATCH_DEFAULT_MAX_AGE", "70"))

MATCH_REFRESH_PAGE_SIZE = int(os.getenv("MATCH_REFRESH_PAGE_SIZE", "100"))
MATCH_TASK_TIMEOUT_SECONDS = float(os.getenv("MATCH_TASK_TIMEOUT_SECONDS", "0"))

MATCH_DEFAULT_PAGE_SIZE = int(os.getenv("MATCH_DEFAULT_PAGE_SIZE", "20"))
MATCH_MAX_PAGE_SIZE = int(os.getenv("MATCH_MAX_PAGE_SIZE", "100"))

DEFAULT_SCORE_WEIGHTS: dict[str, Any] = {
    "RELIGION_W": float(os.getenv("RELIGION_W", "30")),
    "EDUCATION_W": float(os.getenv("EDUCATION_W", "20")),
    "MARITAL_W": float(os.getenv("MARITAL_W", "15")),
    "CITY_W": float(os.getenv("CITY_W", "15")),
    "CAREER_W": float(os.getenv("CAREER_W", "15")),
    "PREMIUM_W": float(os.getenv("PREMIUM_W", "20")),
}

if os.getenv("MATCH_SCORE_WEIGHTS_JSON"):
    try:
        DEFAULT_SCORE_WEIGHTS.update(json.loads(os.getenv("MATCH_SCORE_WEIGHTS_JSON", "{}")))
    except json.JSONDecodeError:
        pass

ADMIN_TOKEN = os.getenv("ADMIN_TOKEN", "")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
