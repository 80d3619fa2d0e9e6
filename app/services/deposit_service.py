# app/services/deposit_service.py
import logging
import uuid
from datetime import datetime, timezone

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from app.core.auth import ROLE_ADMIN
from app.core.live import ChangeNotifier
from app.core.log_utils import mask_uid
from app.models.deposit import Deposit, STATUS_ACTIVE, STATUS_PICKED_UP
from app.models.user import User
from app.repositories.deposit_repo import DepositRepository
from app.schemas.deposit import DepositCreate, LookupResult, DepositRead
from app.schemas.stats import HistoryEntry, HistoryPeriod
from app.services.code_generator import generate_pickup_code, normalize_code
from app.services.share_link import build_whatsapp_link, detail_url
from app.services.stats_service import period_start, to_history_entry

logger = logging.getLogger(__name__)

# Fresh codes tried per insert before giving up
MAX_CODE_ATTEMPTS = 10

# Inserts rejected by the unique indexes (lost races) before giving up
MAX_COMMIT_ATTEMPTS = 5


class DepositService:
    """
    Business logic for deposits (check-in / lookup / check-out).

    Responsibilities:
      - allocate a slot + pickup code without double booking
      - close out a deposit exactly once
      - owner / admin scoping of listings
      - wake live feeds after every committed change
    """

    def __init__(self, repo: DepositRepository, notifier: ChangeNotifier):
        self.repo = repo
        self.notifier = notifier

    # -------- Check-in --------

    def deposit(
        self,
        session: Session,
        current_user: User,
        payload: DepositCreate,
    ) -> Deposit:
        """
        Register an item into a slot and issue its pickup code.

        Optimistic allocation:
          1. Re-read the target slot; 409 if an active deposit holds it.
          2. Draw codes until one is not held by an active deposit.
          3. Insert. If the unique indexes reject the row, a concurrent
             writer won: roll back and start over from step 1.
        """
        for _ in range(MAX_COMMIT_ATTEMPTS):
            if self.repo.get_active_by_slot(session, payload.slot) is not None:
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail=f"Slot {payload.slot} is already occupied",
                )

            deposit = Deposit(
                owner_name=payload.owner_name,
                owner_phone=payload.owner_phone,
                slot=payload.slot,
                photo_url=str(payload.photo_url) if payload.photo_url else None,
                pickup_code=self._allocate_code(session),
                status=STATUS_ACTIVE,
                deposited_at=datetime.now(timezone.utc),
                deposited_by_user_id=current_user.id,
                created_by_email=current_user.email,
            )

            try:
                deposit = self.repo.create(session, deposit)
            except IntegrityError:
                session.rollback()
                logger.warning(
                    "Deposit insert for slot %s lost a race, retrying", payload.slot
                )
                continue

            logger.info(
                "Deposit %s stored in slot %s by %s",
                deposit.id,
                deposit.slot,
                mask_uid(current_user.id),
            )
            self.notifier.notify()
            return deposit

        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Could not register the item, please try again",
        )

    def _allocate_code(self, session: Session) -> str:
        for _ in range(MAX_CODE_ATTEMPTS):
            code = generate_pickup_code()
            if self.repo.get_active_by_code(session, code) is None:
                return code
            logger.warning("Pickup code collision, drawing a new one")

        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Could not allocate a pickup code, please try again",
        )

    # -------- Lookup --------

    def lookup_by_code(self, session: Session, code: str) -> LookupResult:
        """
        Find a deposit by pickup code, regardless of who deposited it.

        Codes are only unique among active deposits, so when history rows
        share the code the active one wins, then the newest.
        """
        normalized = normalize_code(code)
        if not normalized:
            return LookupResult(state="not_found", message="Enter a pickup code")

        matches = self.repo.list_by_code(session, normalized)
        if not matches:
            return LookupResult(
                state="not_found",
                message="Code not found, please check it again",
            )

        active = next((d for d in matches if d.status == STATUS_ACTIVE), None)
        if active is not None:
            return LookupResult(
                state="active",
                message="Item is ready for pickup",
                deposit=DepositRead.model_validate(active),
            )

        return LookupResult(
            state="picked_up",
            message="The item with this code has already been collected",
            deposit=DepositRead.model_validate(matches[0]),
        )

    # -------- Check-out --------

    def pickup(self, session: Session, deposit_id: uuid.UUID) -> Deposit:
        """
        Close out an active deposit.

        - 404 if the deposit does not exist
        - 409 if it was already picked up; picked_up_at is left untouched
        """
        deposit = self.repo.get_by_id(session, deposit_id)
        if not deposit:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Deposit not found",
            )

        if deposit.status != STATUS_ACTIVE or not self.repo.mark_picked_up(
            session, deposit_id, datetime.now(timezone.utc)
        ):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Item has already been picked up",
            )

        session.refresh(deposit)
        logger.info("Deposit %s picked up from slot %s", deposit.id, deposit.slot)
        self.notifier.notify()
        return deposit

    # -------- Reads --------

    def get_deposit(
        self,
        session: Session,
        current_user: User,
        deposit_id: uuid.UUID,
    ) -> Deposit:
        """
        Detail view. Users see their own deposits, admins see all.

        - 404 if not found or not visible to this user.
        """
        deposit = self.repo.get_by_id(session, deposit_id)
        if not deposit or (
            current_user.role != ROLE_ADMIN
            and deposit.deposited_by_user_id != current_user.id
        ):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Deposit not found",
            )
        return deposit

    def list_active(self, session: Session) -> list[Deposit]:
        return self.repo.list_active(session)

    def list_history(
        self,
        session: Session,
        skip: int = 0,
        limit: int | None = 50,
        period: HistoryPeriod = "all",
    ) -> list[HistoryEntry]:
        """
        Picked-up deposits, latest pickup first, each with its storage
        duration. `period` narrows by pickup time; see `period_start`.
        """
        rows = self.repo.list_history(
            session,
            skip=skip,
            limit=limit,
            since=period_start(period),
        )
        return [to_history_entry(r) for r in rows]

    def list_all(
        self,
        session: Session,
        skip: int = 0,
        limit: int = 50,
        status_filter: str | None = None,
    ) -> list[Deposit]:
        return self.repo.list_all(session, skip=skip, limit=limit, status=status_filter)

    def list_for_owner(
        self,
        session: Session,
        current_user: User,
        owner_id: uuid.UUID | None = None,
    ) -> list[Deposit]:
        """
        "My items": active deposits registered by `owner_id`
        (defaults to the caller). Only admins may look at someone else's.
        """
        owner_id = owner_id or current_user.id
        if owner_id != current_user.id and current_user.role != ROLE_ADMIN:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You can only list your own items",
            )
        return self.repo.list_active_for_user(session, owner_id)

    # -------- Outbound messaging --------

    def share_link(
        self,
        session: Session,
        deposit_id: uuid.UUID,
        public_app_url: str,
    ) -> dict[str, str]:
        """
        WhatsApp link pre-filled with slot + pickup code for the owner.

        Only meaningful while the item is still stored.
        """
        deposit = self.repo.get_by_id(session, deposit_id)
        if not deposit:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Deposit not found",
            )
        if deposit.status == STATUS_PICKED_UP:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Item has already been picked up",
            )

        return {
            "url": build_whatsapp_link(deposit, public_app_url),
            "detail_url": detail_url(public_app_url, deposit.pickup_code),
        }
