from datetime import date, datetime, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from match_engine.database import Base
from match_engine.models import ConnectionRequest, PartnerPreference, Profile, User, UserViewHistory

FIXED_NOW = datetime(2026, 6, 1, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    yield factory
    engine.dispose()


def add_member(
    db,
    user_id: int,
    gender: str,
    *,
    premium: bool = False,
    active: bool = True,
    dob: date = date(1998, 3, 14),
    **profile,
):
    db.add(User(id=user_id, email=f"user{user_id}@example.com", is_active=active, is_premium=premium))
    db.add(
        Profile(
            id=user_id,
            user_id=user_id,
            gender=gender,
            date_of_birth=dob,
            full_name=profile.pop("full_name", f"Member {user_id}"),
            **profile,
        )
    )


def add_preference(db, user_id: int, **prefs):
    db.add(PartnerPreference(id=user_id, profile_id=user_id, **prefs))


def add_connection(db, sender_id: int, receiver_id: int):
    db.add(ConnectionRequest(sender_id=sender_id, receiver_id=receiver_id))


def add_view(db, viewer_id: int, viewed_user_id: int):
    db.add(UserViewHistory(viewer_id=viewer_id, viewed_user_id=viewed_user_id))
