from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Index, Integer, String, UniqueConstraint, func

from .database import Base

# Tables owned by the account, profile and connection subsystems. The match
# engine only reads them.


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    email = Column(String, nullable=False, unique=True)
    is_active = Column(Boolean, nullable=False, default=True)
    is_premium = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    last_login_at = Column(DateTime(timezone=True), nullable=True)


class Profile(Base):
    __tablename__ = "profiles"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    full_name = Column(String, nullable=True)
    gender = Column(String, nullable=True)
    date_of_birth = Column(Date, nullable=True)
    religion = Column(String, nullable=True)
    education_level = Column(String, nullable=True)
    marital_status = Column(String, nullable=True)
    city = Column(String, nullable=True)
    working_with = Column(String, nullable=True)
    occupation = Column(String, nullable=True)
    profile_photo_url = Column(String, nullable=True)

    __table_args__ = (
        Index("idx_profiles_gender_dob", "gender", "date_of_birth"),
    )


class PartnerPreference(Base):
    __tablename__ = "partner_preferences"

    id = Column(Integer, primary_key=True)
    profile_id = Column(Integer, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, unique=True)
    min_age = Column(Integer, nullable=True)
    max_age = Column(Integer, nullable=True)
    preferred_religion = Column(String, nullable=True)
    min_education_level = Column(String, nullable=True)
    marital_status = Column(String, nullable=True)
    preferred_city = Column(String, nullable=True)
    working_with = Column(String, nullable=True)


class ConnectionRequest(Base):
    __tablename__ = "connection_requests"

    id = Column(Integer, primary_key=True)
    sender_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    receiver_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    status = Column(String, nullable=False, default="PENDING")
    sent_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("sender_id", "receiver_id", name="uq_connection_sender_receiver"),
        Index("idx_connection_receiver_sender", "receiver_id", "sender_id"),
    )


class UserViewHistory(Base):
    __tablename__ = "user_view_history"

    id = Column(Integer, primary_key=True)
    viewer_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    viewed_user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    viewed_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        Index("idx_viewer_viewed", "viewer_id", "viewed_user_id"),
    )
