# app/repositories/deposit_repo.py
import uuid
from datetime import datetime

from sqlalchemy import update
from sqlmodel import Session, select

from app.models.deposit import Deposit, STATUS_ACTIVE, STATUS_PICKED_UP


class DepositRepository:
    """
    Data access layer for deposits.

    Listing order:
      - active rows: newest check-in first (deposited_at desc)
      - history rows: newest check-out first (picked_up_at desc)
    """

    # ---- Single rows ----

    def get_by_id(self, session: Session, deposit_id: uuid.UUID) -> Deposit | None:
        return session.get(Deposit, deposit_id)

    def get_active_by_slot(self, session: Session, slot: int) -> Deposit | None:
        stmt = select(Deposit).where(
            Deposit.slot == slot,
            Deposit.status == STATUS_ACTIVE,
        )
        return session.exec(stmt).first()

    def get_active_by_code(self, session: Session, code: str) -> Deposit | None:
        stmt = select(Deposit).where(
            Deposit.pickup_code == code,
            Deposit.status == STATUS_ACTIVE,
        )
        return session.exec(stmt).first()

    def list_by_code(self, session: Session, code: str) -> list[Deposit]:
        """All rows ever issued this code, newest first."""
        stmt = (
            select(Deposit)
            .where(Deposit.pickup_code == code)
            .order_by(Deposit.deposited_at.desc())
        )
        return session.exec(stmt).all()

    # ---- Listings ----

    def list_active(self, session: Session) -> list[Deposit]:
        stmt = (
            select(Deposit)
            .where(Deposit.status == STATUS_ACTIVE)
            .order_by(Deposit.deposited_at.desc())
        )
        return session.exec(stmt).all()

    def list_active_for_user(
        self,
        session: Session,
        user_id: uuid.UUID,
    ) -> list[Deposit]:
        stmt = (
            select(Deposit)
            .where(
                Deposit.deposited_by_user_id == user_id,
                Deposit.status == STATUS_ACTIVE,
            )
            .order_by(Deposit.deposited_at.desc())
        )
        return session.exec(stmt).all()

    def list_history(
        self,
        session: Session,
        skip: int = 0,
        limit: int | None = 50,
        since: datetime | None = None,
    ) -> list[Deposit]:
        """
        Picked-up rows, optionally only those picked up at or after
        `since` (naive UTC). `limit=None` returns every row.
        """
        stmt = select(Deposit).where(Deposit.status == STATUS_PICKED_UP)
        if since is not None:
            stmt = stmt.where(Deposit.picked_up_at >= since)
        stmt = stmt.order_by(Deposit.picked_up_at.desc()).offset(skip)
        if limit is not None:
            stmt = stmt.limit(limit)
        return session.exec(stmt).all()

    def list_all(
        self,
        session: Session,
        skip: int = 0,
        limit: int = 50,
        status: str | None = None,
    ) -> list[Deposit]:
        stmt = select(Deposit)
        if status is not None:
            stmt = stmt.where(Deposit.status == status)
        stmt = stmt.order_by(Deposit.deposited_at.desc()).offset(skip).limit(limit)
        return session.exec(stmt).all()

    # ---- Writes ----

    def create(self, session: Session, deposit: Deposit) -> Deposit:
        """
        Insert and commit a new deposit.

        Raises sqlalchemy IntegrityError when the active-slot or
        active-code unique index rejects the row; caller rolls back.
        """
        session.add(deposit)
        session.commit()
        session.refresh(deposit)
        return deposit

    def mark_picked_up(
        self,
        session: Session,
        deposit_id: uuid.UUID,
        picked_up_at: datetime,
    ) -> bool:
        """
        Conditional close-out: only an active row is touched.

        Returns:
            True if this call performed the transition, False if the row
            was missing or already picked up.
        """
        stmt = (
            update(Deposit)
            .where(
                Deposit.id == deposit_id,
                Deposit.status == STATUS_ACTIVE,
            )
            .values(status=STATUS_PICKED_UP, picked_up_at=picked_up_at)
        )
        result = session.exec(stmt)  # type: ignore[call-overload]
        session.commit()
        return result.rowcount == 1
