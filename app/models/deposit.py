# app/models/deposit.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import Index, text
from sqlmodel import SQLModel, Field

# Physical storage: slots 1..TOTAL_SLOTS
TOTAL_SLOTS = 50

STATUS_ACTIVE = "active"
STATUS_PICKED_UP = "picked_up"

_ACTIVE_ONLY = text("status = 'active'")


class Deposit(SQLModel, table=True):
    """
    One physical item left at the counter.

    Lifecycle:
      active  -> picked_up (once, irreversible)

    Picked-up rows are kept forever as history.

    Uniqueness among *active* rows only:
      - one active deposit per slot
      - one active deposit per pickup code
    Both are enforced by partial unique indexes, so a picked-up row
    never blocks its slot or code from being reused.
    """

    __tablename__ = "deposits"
    __table_args__ = (
        Index(
            "uq_deposits_active_slot",
            "slot",
            unique=True,
            postgresql_where=_ACTIVE_ONLY,
            sqlite_where=_ACTIVE_ONLY,
        ),
        Index(
            "uq_deposits_active_pickup_code",
            "pickup_code",
            unique=True,
            postgresql_where=_ACTIVE_ONLY,
            sqlite_where=_ACTIVE_ONLY,
        ),
    )

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    owner_name: str = Field(
        max_length=100,
        description="Name of the person who left the item",
    )
    owner_phone: str = Field(
        max_length=20,
        description="Contact number (Indonesian mobile format)",
    )

    slot: int = Field(
        ge=1,
        le=TOTAL_SLOTS,
        index=True,
        description="Storage slot number",
    )

    photo_url: str | None = Field(
        default=None,
        description="Public URL of the item photo, if one was taken",
    )

    pickup_code: str = Field(
        max_length=6,
        index=True,
        description="6-char code [A-Z0-9] handed to the owner",
    )

    # active | picked_up
    status: str = Field(
        default=STATUS_ACTIVE,
        index=True,
        description="Deposit lifecycle status",
    )

    deposited_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        index=True,
        description="Check-in timestamp (UTC)",
    )
    picked_up_at: datetime | None = Field(
        default=None,
        index=True,
        description="Check-out timestamp (UTC); null while active",
    )

    deposited_by_user_id: uuid.UUID = Field(
        foreign_key="users.id",
        index=True,
    )
    created_by_email: str | None = Field(
        default=None,
        description="Email of the attendant who registered the item",
    )
