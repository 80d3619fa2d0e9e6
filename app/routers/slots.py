# app/routers/slots.py
from fastapi import APIRouter, Depends
from sqlmodel import Session

from app.core.auth import require_auth
from app.database import get_session
from app.repositories.deposit_repo import DepositRepository
from app.schemas.deposit import SlotAvailability
from app.services.slot_service import SlotService

router = APIRouter(prefix="/slots", tags=["Slots"])

repo = DepositRepository()
service = SlotService(repo)


@router.get(
    "",
    response_model=SlotAvailability,
    dependencies=[Depends(require_auth)],
)
def get_availability(session: Session = Depends(get_session)):
    """
    Occupied / available slots, derived from active deposits.

    For a live view use the /slots/ws WebSocket.
    """
    return service.availability(session)
