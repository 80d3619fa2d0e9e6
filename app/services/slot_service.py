# app/services/slot_service.py
from typing import Iterable

from sqlmodel import Session

from app.models.deposit import Deposit, TOTAL_SLOTS, STATUS_ACTIVE
from app.repositories.deposit_repo import DepositRepository
from app.schemas.deposit import SlotAvailability


def occupied_slots(records: Iterable[Deposit]) -> set[int]:
    """Slots held by active deposits. Picked-up rows never count."""
    return {r.slot for r in records if r.status == STATUS_ACTIVE}


def build_availability(records: Iterable[Deposit]) -> SlotAvailability:
    occupied = occupied_slots(records)
    available = [s for s in range(1, TOTAL_SLOTS + 1) if s not in occupied]

    return SlotAvailability(
        total=TOTAL_SLOTS,
        occupied=sorted(occupied),
        available=available,
        occupied_count=len(occupied),
        available_count=len(available),
        usage_percent=round(len(occupied) / TOTAL_SLOTS * 100),
    )


class SlotService:
    """
    Read-only occupancy view over the physical slots.

    Derived from active deposits on every call; nothing is stored.
    """

    def __init__(self, repo: DepositRepository):
        self.repo = repo

    def availability(self, session: Session) -> SlotAvailability:
        return build_availability(self.repo.list_active(session))
