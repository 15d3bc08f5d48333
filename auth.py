# auth.py
import hashlib
import hmac
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, Header
from sqlalchemy import or_
from sqlalchemy.orm import Session

from config import SESSION_TTL_DAYS
from db import get_db, write_lock
from errors import AuthError, ValidationError
from models import User, SessionToken, utcnow

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
PBKDF2_ITERATIONS = 200_000


def _now_naive() -> datetime:
    # expires_at se guarda sin zona horaria (UTC)
    return datetime.now(timezone.utc).replace(tzinfo=None)


# ── Contraseñas ────────────────────────────────────────────────────────────────
def hash_password(password: str) -> str:
    salt = secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), PBKDF2_ITERATIONS)
    return f"pbkdf2_sha256${PBKDF2_ITERATIONS}${salt}${digest.hex()}"


def verify_password(password: str, stored: str) -> bool:
    try:
        _, iterations, salt, expected = stored.split("$")
    except ValueError:
        return False
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), int(iterations))
    return hmac.compare_digest(digest.hex(), expected)


# ── Helpers de sesión ──────────────────────────────────────────────────────────
def create_session(db: Session, user_id: int) -> str:
    token = secrets.token_urlsafe(32)
    sess = SessionToken(
        user_id=user_id,
        token=token,
        expires_at=_now_naive() + timedelta(days=SESSION_TTL_DAYS)
    )
    db.add(sess)
    db.commit()
    return token


def user_by_token(db: Session, token: str) -> Optional[User]:
    sess = db.query(SessionToken).filter(
        SessionToken.token == token,
        SessionToken.expires_at > _now_naive()
    ).first()
    if not sess:
        return None
    return db.get(User, sess.user_id)


def delete_session(db: Session, token: str) -> int:
    deleted = db.query(SessionToken).filter_by(token=token).delete()
    db.commit()
    return deleted


def bearer_token(authorization: Optional[str] = Header(None)) -> str:
    if not authorization or not authorization.startswith("Bearer "):
        raise AuthError("Missing or malformed token")
    token = authorization[len("Bearer "):].strip()
    if not token:
        raise AuthError("Missing or malformed token")
    return token


def require_auth(
        db: Session = Depends(get_db),
        token: str = Depends(bearer_token),
) -> User:
    user = user_by_token(db, token)
    if not user:
        raise AuthError("Invalid or expired token")
    return user


# ── Alta y login ───────────────────────────────────────────────────────────────
def signup(db: Session, username: Optional[str], email: Optional[str],
           password: Optional[str]) -> tuple[User, str]:
    if not username or not email or not password:
        raise ValidationError("All fields are required")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

    with write_lock:
        exists = db.query(User).filter(
            or_(User.username == username, User.email == email)
        ).first()
        if exists:
            if exists.username == username:
                raise ValidationError("Username already taken")
            raise ValidationError("Email already registered")

        user = User(
            username=username,
            email=email,
            password_hash=hash_password(password),
            level=1,
            experience=0,
            streak_days=0,
            created_at=utcnow(),
        )
        db.add(user)
        db.commit()
        db.refresh(user)

    logger.info("User created: %s", user.username)
    return user, create_session(db, user.id)


def login(db: Session, username: Optional[str], password: Optional[str]) -> tuple[User, str]:
    if not username or not password:
        raise ValidationError("Username and password are required")
    if len(password) < MIN_PASSWORD_LENGTH:
        logger.warning("Login rejected for %s: short password", username)
        raise AuthError("Invalid credentials")

    user = db.query(User).filter_by(username=username).first()
    if not user or not verify_password(password, user.password_hash):
        logger.warning("Login rejected for %s: bad credentials", username)
        raise AuthError("Invalid credentials")

    logger.info("Login successful: %s", user.username)
    return user, create_session(db, user.id)
