# app/routers/admin_stats.py
from fastapi import APIRouter, Depends
from sqlmodel import Session

from app.core.auth import require_admin
from app.database import get_session
from app.repositories.stats_repo import StatsRepository
from app.schemas.stats import HistoryStats
from app.services.stats_service import StatsService

router = APIRouter(prefix="/admin/stats", tags=["Admin Stats"])

repo = StatsRepository()
service = StatsService(repo)


@router.get(
    "",
    response_model=HistoryStats,
    dependencies=[Depends(require_admin)],
)
def get_history_stats(session: Session = Depends(get_session)):
    """
    Counter figures for the history page.

      - active_count: items currently stored
      - picked_up_today / _this_week / _this_month / _total
      - average and longest storage duration, in seconds

    Only accessible to users with role='admin'.
    """
    return service.get_history_stats(session)
