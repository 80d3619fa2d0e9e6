# app/schemas/stats.py
from typing import Literal

from pydantic import ConfigDict
from sqlmodel import SQLModel

from app.schemas.deposit import DepositRead

# all | today (local calendar day) | week (last 7 days) | month (local calendar month)
HistoryPeriod = Literal["all", "today", "week", "month"]


class HistoryEntry(DepositRead):
    """
    Picked-up deposit plus how long it stayed at the counter.
    """

    storage_seconds: int | None = None


class HistoryStats(SQLModel):
    """
    Counter figures for the admin history page.
    """
    model_config = ConfigDict(extra="forbid")

    active_count: int
    picked_up_total: int
    picked_up_today: int
    picked_up_this_week: int
    picked_up_this_month: int
    average_storage_seconds: int | None
    longest_storage_seconds: int | None
