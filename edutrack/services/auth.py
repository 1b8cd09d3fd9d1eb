"""Authentication service - bearer token encoding/decoding + user lookup."""

import logging
from datetime import datetime, timedelta, timezone

import jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from edutrack.config import settings
from edutrack.exceptions import AuthenticationError, ConflictError
from edutrack.models.user import User

logger = logging.getLogger(__name__)


def create_access_token(user_id: int, expires_minutes: int | None = None) -> str:
    """Sign a bearer token for a user id."""
    minutes = expires_minutes if expires_minutes is not None else settings.JWT_EXPIRE_MINUTES
    payload = {
        "sub": str(user_id),
        "exp": datetime.now(timezone.utc) + timedelta(minutes=minutes),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> int:
    """Return the user id carried by a bearer token."""
    try:
        payload = jwt.decode(
            token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM]
        )
    except jwt.ExpiredSignatureError as e:
        raise AuthenticationError("Token expired.") from e
    except jwt.InvalidTokenError as e:
        raise AuthenticationError("Invalid token.") from e

    try:
        return int(payload["sub"])
    except (KeyError, TypeError, ValueError) as e:
        raise AuthenticationError("Invalid token.") from e


def get_bearer_token(headers) -> str | None:
    """Extract the token from an ``Authorization: Bearer ...`` header."""
    auth = headers.get("authorization")
    if not auth or not auth.startswith("Bearer "):
        return None
    return auth[len("Bearer "):].strip() or None


async def get_user_by_id(db: AsyncSession, user_id: int) -> User | None:
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    """Look up a registered user by email."""
    result = await db.execute(select(User).where(User.email == email))
    return result.scalar_one_or_none()


async def create_user(
    db: AsyncSession,
    name: str,
    email: str,
    role: str = "student",
    parent_email: str | None = None,
) -> User:
    """Register a new user account; emails are unique."""
    if await get_user_by_email(db, email.lower()) is not None:
        raise ConflictError(f"User with email {email.lower()} already exists")
    user = User(
        name=name,
        email=email.lower(),
        role=role,
        parent_email=parent_email.lower() if parent_email else None,
        class_ids=[],
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    logger.info("Created %s account %s", role, user.email)
    return user
