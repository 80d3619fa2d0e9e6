# app/schemas/user.py
import uuid
from datetime import datetime
from typing import Literal

from pydantic import ConfigDict
from sqlmodel import SQLModel

# App-level roles. Unauthenticated callers have no row at all.
Role = Literal["user", "admin"]


class UserRead(SQLModel):
    """Response schema returned to clients."""

    id: uuid.UUID
    email: str
    role: Role
    created_at: datetime


class UserRoleUpdate(SQLModel):
    """
    Admin-only role update schema.

    This is the only way a role changes through the API;
    sign-up never carries a role.
    """

    model_config = ConfigDict(extra="forbid")
    role: Role
