"""Authentication: register, login, logout, passwords, get_current_user.

Session-based auth with bcrypt password hashing. The session token is accepted
from the X-Session-Token header or the session cookie.
All auth events logged to audit.
"""

import hashlib
import logging
import secrets
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta, timezone

import bcrypt
from fastapi import Depends, HTTPException, Request, status
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from coachshare.config import settings
from coachshare.core.errors import Conflict, Internal, InvalidInput, NotFound
from coachshare.dependencies import get_db
from coachshare.models.base import as_utc
from coachshare.models.session import Session
from coachshare.models.user import User, UserRole, UserStatus
from coachshare.services import audit_service

logger = logging.getLogger("coachshare.auth")

SESSION_TOKEN_HEADER = "X-Session-Token"

# Delivers a raw reset token to its user, e.g. by email
TokenSender = Callable[[User, str], Awaitable[None]]


def hash_password(password: str) -> str:
    """Hash a password with bcrypt."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against a bcrypt hash."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Placeholder hashes (invited accounts) are not valid bcrypt strings
        return False


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _generate_token() -> str:
    """Generate a cryptographically secure session token."""
    return secrets.token_hex(32)


def _hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def issue_password_token(user: User, ttl: timedelta) -> str:
    """Store a fresh reset token on the user and return the raw value.

    Only the sha256 is persisted. Issuing again replaces any earlier token.
    """
    token = _generate_token()
    user.reset_password_token = _hash_token(token)
    user.reset_password_expires = datetime.now(timezone.utc) + ttl
    return token


def clear_password_token(user: User) -> None:
    user.reset_password_token = None
    user.reset_password_expires = None


async def log_reset_token(user: User, token: str) -> None:
    """Default sender. Mail delivery lives outside this service."""
    logger.debug("password reset token for user %s: %s", user.id, token)


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    result = await db.execute(select(User).where(User.email == normalize_email(email)))
    return result.scalar_one_or_none()


async def register_user(
    db: AsyncSession,
    *,
    email: str,
    password: str,
    first_name: str = "",
    last_name: str = "",
    role: UserRole = UserRole.athlete,
    ip_address: str | None = None,
) -> User:
    """Register a new user. Raises Conflict if the email is taken."""
    email = normalize_email(email)
    if not email:
        raise InvalidInput("Email is required")

    if await get_user_by_email(db, email) is not None:
        raise Conflict("User with that email already exists")

    user = User(
        email=email,
        password_hash=hash_password(password),
        first_name=first_name.strip(),
        last_name=last_name.strip(),
        role=role,
        status=UserStatus.active,
    )
    db.add(user)
    await db.flush()

    await audit_service.log_event(
        db,
        user_id=user.id,
        event_type="auth.register",
        entity_type="User",
        entity_id=user.id,
        action="register",
        detail={"email": email, "role": role.value},
        ip_address=ip_address,
    )

    return user


def _ensure_active(user: User) -> None:
    if user.status != UserStatus.active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is not active",
        )


async def _start_session(db: AsyncSession, user: User, ip_address: str | None) -> str:
    """Create a session for an authenticated user and return its token."""
    token = _generate_token()
    now = datetime.now(timezone.utc)
    session = Session(
        user_id=user.id,
        token=token,
        expires_at=now + timedelta(hours=settings.session_duration_hours),
    )
    db.add(session)
    user.last_login_at = now
    await db.flush()

    await audit_service.log_event(
        db,
        user_id=user.id,
        event_type="auth.login",
        entity_type="Session",
        entity_id=session.id,
        action="login",
        ip_address=ip_address,
    )
    return token


async def _revoke_sessions(db: AsyncSession, user: User) -> None:
    await db.execute(update(Session).where(Session.user_id == user.id).values(revoked=True))


async def login_user(
    db: AsyncSession,
    *,
    email: str,
    password: str,
    ip_address: str | None = None,
) -> tuple[User, str]:
    """Authenticate user, create session, return (user, token).

    Raises HTTPException on invalid credentials or inactive account.
    """
    user = await get_user_by_email(db, email)

    if user is None or not verify_password(password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
        )

    _ensure_active(user)
    token = await _start_session(db, user, ip_address)
    return user, token


async def logout_user(
    db: AsyncSession,
    *,
    token: str,
    ip_address: str | None = None,
) -> None:
    """Revoke a session token."""
    result = await db.execute(select(Session).where(Session.token == token))
    session = result.scalar_one_or_none()
    if session is None:
        return

    session.revoked = True
    await db.flush()

    await audit_service.log_event(
        db,
        user_id=session.user_id,
        event_type="auth.logout",
        entity_type="Session",
        entity_id=session.id,
        action="logout",
        ip_address=ip_address,
    )


async def update_password(
    db: AsyncSession,
    *,
    user: User,
    current_password: str,
    new_password: str,
    ip_address: str | None = None,
) -> str:
    """Change a password after checking the current one.

    Every existing session is revoked; returns the token of a fresh one.
    """
    if not verify_password(current_password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Current password is incorrect",
        )

    user.password_hash = hash_password(new_password)
    clear_password_token(user)
    await _revoke_sessions(db, user)
    await db.flush()

    await audit_service.log_event(
        db,
        user_id=user.id,
        event_type="auth.password_updated",
        entity_type="User",
        entity_id=user.id,
        action="update_password",
        ip_address=ip_address,
    )
    return await _start_session(db, user, ip_address)


async def request_password_reset(
    db: AsyncSession,
    *,
    email: str,
    send: TokenSender | None = None,
    ip_address: str | None = None,
) -> None:
    """Issue a short-lived reset token and hand it to ``send``.

    If delivery fails the token fields are cleared again, so the user can
    simply retry.
    """
    user = await get_user_by_email(db, email)
    if user is None:
        raise NotFound("No user found with that email")

    token = issue_password_token(user, timedelta(minutes=settings.password_reset_minutes))
    await db.flush()

    try:
        await (send or log_reset_token)(user, token)
    except Exception as exc:
        logger.exception("reset token delivery failed for user %s", user.id)
        clear_password_token(user)
        await db.flush()
        raise Internal("There was an error sending the reset email. Try again later.") from exc

    await audit_service.log_event(
        db,
        user_id=user.id,
        event_type="auth.password_reset_requested",
        entity_type="User",
        entity_id=user.id,
        action="request_reset",
        ip_address=ip_address,
    )


async def reset_password(
    db: AsyncSession,
    *,
    token: str,
    new_password: str,
    ip_address: str | None = None,
) -> tuple[User, str]:
    """Redeem a reset or invitation token, then log the user in.

    Returns (user, session_token). The token is single-use.
    """
    result = await db.execute(select(User).where(User.reset_password_token == _hash_token(token)))
    user = result.scalar_one_or_none()
    if (
        user is None
        or user.reset_password_expires is None
        or as_utc(user.reset_password_expires) < datetime.now(timezone.utc)
    ):
        raise InvalidInput("Token is invalid or has expired")
    _ensure_active(user)

    user.password_hash = hash_password(new_password)
    clear_password_token(user)
    await _revoke_sessions(db, user)
    await db.flush()

    await audit_service.log_event(
        db,
        user_id=user.id,
        event_type="auth.password_reset",
        entity_type="User",
        entity_id=user.id,
        action="reset_password",
        ip_address=ip_address,
    )
    return user, await _start_session(db, user, ip_address)


def extract_token(request: Request) -> str | None:
    return request.headers.get(SESSION_TOKEN_HEADER) or request.cookies.get(
        settings.session_cookie_name
    )


async def resolve_session_user(db: AsyncSession, token: str | None) -> User:
    """Validate a session token and return its user.

    Raises HTTPException 401 if token is missing, invalid, expired, or revoked.
    """
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )

    result = await db.execute(select(Session).where(Session.token == token))
    session = result.scalar_one_or_none()

    if session is None or session.revoked:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or revoked session",
        )

    if as_utc(session.expires_at) < datetime.now(timezone.utc):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Session expired",
        )

    result = await db.execute(select(User).where(User.id == session.user_id))
    user = result.scalar_one_or_none()

    if user is None or user.status != UserStatus.active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive",
        )

    return user


async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> User:
    """FastAPI dependency: the authenticated user for this request."""
    user = await resolve_session_user(db, extract_token(request))
    request.state.user_id = str(user.id)
    return user


def require_role(*roles: UserRole):
    """Dependency factory restricting a route to the given roles."""

    async def _check(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You do not have permission to perform this action",
            )
        return current_user

    return _check
