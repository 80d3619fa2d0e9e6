# app/schemas/deposit.py
import re
import uuid
from datetime import datetime
from typing import Literal

from pydantic import ConfigDict, HttpUrl, field_validator
from sqlmodel import SQLModel, Field

from app.models.deposit import TOTAL_SLOTS

DepositStatus = Literal["active", "picked_up"]
LookupState = Literal["active", "picked_up", "not_found"]

# 08xx..., 628xx..., +628xx... followed by 9-12 digits
PHONE_PATTERN = re.compile(r"^(?:\+62|62|0)\d{9,12}$")

MIN_NAME_LENGTH = 2


class DepositCreate(SQLModel):
    """
    Payload for registering an item into a slot.

    User provides:
      - owner_name, owner_phone
      - slot (1..50)
      - photo_url (optional, from POST /deposits/photo)

    Backend derives:
      - pickup_code
      - status = 'active'
      - deposited_at
      - deposited_by_user_id from token
    """

    model_config = ConfigDict(extra="forbid")

    owner_name: str = Field(max_length=100)
    owner_phone: str
    slot: int = Field(ge=1, le=TOTAL_SLOTS)
    photo_url: HttpUrl | None = None

    @field_validator("owner_name")
    @classmethod
    def normalize_name(cls, v: str) -> str:
        v = v.strip()
        if len(v) < MIN_NAME_LENGTH:
            raise ValueError(f"owner_name must be at least {MIN_NAME_LENGTH} characters")
        return v

    @field_validator("owner_phone")
    @classmethod
    def normalize_phone(cls, v: str) -> str:
        v = re.sub(r"[\s.\-]", "", v)
        if not PHONE_PATTERN.match(v):
            raise ValueError("owner_phone must be an Indonesian mobile number (08..., 62... or +62...)")
        return v


class DepositRead(SQLModel):
    """Full representation of a deposit record."""

    id: uuid.UUID
    owner_name: str
    owner_phone: str
    slot: int
    photo_url: str | None
    pickup_code: str
    status: DepositStatus
    deposited_at: datetime
    picked_up_at: datetime | None
    deposited_by_user_id: uuid.UUID
    created_by_email: str | None = None


class LookupResult(SQLModel):
    """
    Outcome of a pickup-code lookup.

    A miss is a normal answer (state='not_found'), not an error.
    """

    state: LookupState
    message: str
    deposit: DepositRead | None = None


class PhotoUploadRead(SQLModel):
    url: str


class ShareLinkRead(SQLModel):
    url: str
    detail_url: str


class SlotAvailability(SQLModel):
    """Occupancy view over the 50 physical slots."""

    total: int
    occupied: list[int]
    available: list[int]
    occupied_count: int
    available_count: int
    usage_percent: int
