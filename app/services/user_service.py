# app/services/user_service.py
import logging
import re
import uuid

from fastapi import HTTPException, status
from sqlmodel import Session

from app.core.auth import ROLE_ADMIN
from app.core.log_utils import mask_email, mask_uid
from app.models.user import User
from app.repositories.user_repo import UserRepository
from app.schemas.user import UserRoleUpdate

logger = logging.getLogger(__name__)

MIN_ADMIN_PASSWORD_LENGTH = 8


def check_password_strength(password: str) -> str | None:
    """
    Password policy for admin accounts created by create_admin.py.

    Returns:
        None if the password is acceptable, else the reason it is not.
    """
    if len(password) < MIN_ADMIN_PASSWORD_LENGTH:
        return f"Password must be at least {MIN_ADMIN_PASSWORD_LENGTH} characters"
    if not re.search(r"[A-Z]", password):
        return "Password must contain an uppercase letter"
    if not re.search(r"[a-z]", password):
        return "Password must contain a lowercase letter"
    if not re.search(r"[0-9]", password):
        return "Password must contain a digit"
    return None


class UserService:
    """
    Business logic for User profiles and roles.

    Responsibilities:
      - role constraints (no self-promotion, keep at least one admin)
      - orchestrate repository operations
      - map domain errors to HTTP errors
    """

    def __init__(self, repo: UserRepository):
        self.repo = repo

    # ----- Self profile -----

    def get_me(self, current_user: User) -> User:
        """Return the current authenticated user."""
        return current_user

    # ----- Admin operations -----

    def list_users(self, session: Session, skip: int, limit: int) -> list[User]:
        """List users with pagination (admin only)."""
        return self.repo.list(session, skip=skip, limit=limit)

    def get_user(self, session: Session, user_id: uuid.UUID) -> User:
        """
        Get a user by id (admin only).

        Raises:
            HTTPException(404): if not found.
        """
        user = self.repo.get_by_id(session, user_id)
        if not user:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="User not found",
            )
        return user

    def update_role(
        self,
        session: Session,
        current_user: User,
        user_id: uuid.UUID,
        payload: UserRoleUpdate,
    ) -> User:
        """
        Change a user's role (admin only).

        An admin cannot demote themselves, so the system is never
        left without an admin by accident.
        """
        user = self.get_user(session, user_id)
        if user.id == current_user.id and payload.role != ROLE_ADMIN:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Admins cannot demote themselves",
            )

        user.role = payload.role
        user = self.repo.update(session, user)
        logger.info("Role of %s set to %s", mask_uid(user.id), user.role)
        return user

    # ----- Out-of-band provisioning (create_admin.py) -----

    def provision_admin(
        self,
        session: Session,
        user_id: uuid.UUID,
        email: str,
    ) -> User:
        """
        Create or promote the profile of a freshly created auth account.
        """
        user = self.repo.get_by_id(session, user_id)
        if user is None:
            user = self.repo.create(session, User(id=user_id, email=email, role=ROLE_ADMIN))
        else:
            user.role = ROLE_ADMIN
            user = self.repo.update(session, user)

        logger.info("Admin profile ready for %s", mask_email(email))
        return user
