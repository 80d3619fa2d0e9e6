# app/repositories/stats_repo.py
from datetime import datetime

from sqlalchemy import func
from sqlmodel import Session, select

from app.models.deposit import Deposit, STATUS_ACTIVE, STATUS_PICKED_UP


class StatsRepository:
    """
    Read-only aggregated queries for the admin history page.

    `since` bounds are naive UTC, matching how timestamps are stored.
    """

    def count_active(self, session: Session) -> int:
        stmt = (
            select(func.count())
            .select_from(Deposit)
            .where(Deposit.status == STATUS_ACTIVE)
        )
        value = session.exec(stmt).one()
        return int(value or 0)

    def count_picked_up(self, session: Session, since: datetime | None = None) -> int:
        stmt = (
            select(func.count())
            .select_from(Deposit)
            .where(Deposit.status == STATUS_PICKED_UP)
        )
        if since is not None:
            stmt = stmt.where(Deposit.picked_up_at >= since)
        value = session.exec(stmt).one()
        return int(value or 0)

    def storage_intervals(self, session: Session) -> list[tuple]:
        """
        (deposited_at, picked_up_at) for every picked-up deposit.

        Durations are computed in Python; interval arithmetic differs
        between Postgres and SQLite.
        """
        stmt = select(Deposit.deposited_at, Deposit.picked_up_at).where(
            Deposit.status == STATUS_PICKED_UP
        )
        return list(session.exec(stmt).all())
