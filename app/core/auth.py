# app/core/auth.py
import logging
import uuid
from typing import Any, Iterable

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from app.core.config import get_settings
from app.core.log_utils import mask_email, mask_uid
from app.database import get_session
from app.models.user import User

settings = get_settings()
logger = logging.getLogger(__name__)

ROLE_ADMIN = "admin"
ROLE_USER = "user"

# HTTP Bearer scheme:
# - auto_error=False => missing Authorization header will NOT raise immediately
#   so require_auth can answer with a proper 401.
bearer_scheme = HTTPBearer(auto_error=False)


def decode_access_token(token: str) -> dict[str, Any]:
    """
    Decode and verify a Supabase access token (JWT).

    Verification:
      - signature (HS256 using SUPABASE_JWT_SECRET)
      - expiration time (exp)
      - audience is NOT verified (Supabase 'aud' may vary)

    Args:
        token: raw JWT from the Authorization header.

    Returns:
        Decoded JWT claims.

    Raises:
        HTTPException(401): if token is invalid/expired.
    """
    try:
        return jwt.decode(
            token,
            settings.SUPABASE_JWT_SECRET,
            algorithms=[settings.SUPABASE_JWT_ALG],
            options={"verify_aud": False},
        )
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )


def _load_or_provision_profile(
    session: Session,
    identity_id: uuid.UUID,
    email: str,
) -> User:
    user = session.exec(select(User).where(User.id == identity_id)).first()
    if user is not None:
        return user

    # First sign-in: default role = "user" (admin must be granted out of band).
    user = User(id=identity_id, email=email, role=ROLE_USER)
    session.add(user)
    try:
        session.commit()
    except IntegrityError:
        # Two first requests raced; the other one created the row.
        session.rollback()
        return session.exec(select(User).where(User.id == identity_id)).one()

    session.refresh(user)
    logger.info("Provisioned profile %s (%s)", mask_uid(identity_id), mask_email(email))
    return user


def resolve_role(session: Session, identity_id: uuid.UUID, email: str) -> str:
    """
    Return the application role for an identity.

    Auto-provisions a 'user' profile when none exists yet.
    """
    return _load_or_provision_profile(session, identity_id, email).role


def resolve_identity(session: Session, token: str) -> User:
    """
    Token -> profile.

    Flow:
      1. Decode JWT => extract 'sub' (auth user id) and 'email'.
      2. Convert 'sub' to UUID to match User.id type.
      3. Find profile in public.users, auto-provision if missing.

    Raises:
        HTTPException(401): if token is malformed or missing required claims.
    """
    payload = decode_access_token(token)
    sub = payload.get("sub")
    email = payload.get("email")

    if not sub or not email:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token missing sub/email",
        )

    # Supabase provides sub as a string; enforce UUID
    try:
        sub_uuid = uuid.UUID(sub)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid sub in token",
        )

    return _load_or_provision_profile(session, sub_uuid, email)


def authorize(user: User | None, required_roles: Iterable[str]) -> bool:
    """True if the caller is authenticated and holds one of `required_roles`."""
    return user is not None and user.role in set(required_roles)


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    session: Session = Depends(get_session),
) -> User | None:
    """
    Resolve the current user from a Supabase JWT.

    Returns:
        User instance if authenticated, else None (no Authorization header).
    """
    if credentials is None:
        return None
    return resolve_identity(session, credentials.credentials)


def require_auth(user: User | None = Depends(get_current_user)) -> User:
    """
    Enforce authentication.

    Deposit, pickup and every listing require at least this.

    Raises:
        HTTPException(401): if user is None.
    """
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    return user


def require_admin(user: User = Depends(require_auth)) -> User:
    """
    Enforce admin role.

    Raises:
        HTTPException(403): if role is not admin.
    """
    if not authorize(user, {ROLE_ADMIN}):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return user


def authenticate_websocket(
    session: Session,
    token: str | None,
    required_roles: Iterable[str] = (ROLE_USER, ROLE_ADMIN),
) -> User | None:
    """
    Same resolution as require_auth, for WebSocket `?token=` params.

    Returns None instead of raising; the caller closes the socket.
    """
    if not token:
        return None
    try:
        user = resolve_identity(session, token)
    except HTTPException:
        return None
    return user if authorize(user, required_roles) else None
