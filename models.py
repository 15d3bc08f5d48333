# models.py
from datetime import datetime, timezone

from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime,
    CheckConstraint, ForeignKey
)

from db import Base


def utcnow():
    return datetime.now(timezone.utc)


class User(Base):
    __tablename__ = "users"
    id            = Column(Integer, primary_key=True)
    username      = Column(String(100), unique=True, index=True, nullable=False)
    email         = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)   # nunca se serializa
    level         = Column(Integer, nullable=False, default=1)
    experience    = Column(Integer, nullable=False, default=0)
    streak_days   = Column(Integer, nullable=False, default=0)  # solo lectura
    created_at    = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        CheckConstraint("level >= 1", name="ck_users_level_min"),
        CheckConstraint("experience >= 0 AND experience < 1000", name="ck_users_experience_range"),
        CheckConstraint("streak_days >= 0", name="ck_users_streak_min"),
    )


class Quest(Base):
    __tablename__ = "quests"
    id               = Column(Integer, primary_key=True)
    owner_id         = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    name             = Column(String(200), nullable=False)
    description      = Column(String(1000), nullable=True)
    is_daily         = Column(Boolean, nullable=False, default=False)
    completed        = Column(Boolean, nullable=False, default=False)
    experience_value = Column(Integer, nullable=False, default=100)
    created_at       = Column(DateTime(timezone=True), nullable=False, default=utcnow)


class SessionToken(Base):
    __tablename__ = "sessions"
    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    token = Column(String(255), unique=True, index=True, nullable=False)
    expires_at = Column(DateTime, index=True, nullable=False)
