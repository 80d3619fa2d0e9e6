# app/routers/deposits.py
import uuid

from fastapi import (
    APIRouter,
    Depends,
    File,
    HTTPException,
    UploadFile,
    status,
)
from sqlmodel import Session

from app.core.auth import require_auth, require_admin
from app.core.config import get_settings
from app.core.live import deposit_changes
from app.database import get_session
from app.models.user import User
from app.repositories.deposit_repo import DepositRepository
from app.schemas.deposit import (
    DepositCreate,
    DepositRead,
    DepositStatus,
    LookupResult,
    PhotoUploadRead,
    ShareLinkRead,
)
from app.schemas.stats import HistoryEntry, HistoryPeriod
from app.services.deposit_service import DepositService
from app.services.photo_service import MAX_IMAGE_BYTES, PhotoService

router = APIRouter(prefix="/deposits", tags=["Deposits"])

settings = get_settings()

repo = DepositRepository()
service = DepositService(repo, deposit_changes)
photo_service = PhotoService()


# -------- Attendant endpoints --------


@router.post(
    "",
    response_model=DepositRead,
    status_code=status.HTTP_201_CREATED,
)
def create_deposit(
    payload: DepositCreate,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    """
    Register an item into a free slot and issue a pickup code.

    - 409 if the slot is already occupied.
    """
    return service.deposit(session, current_user, payload)


@router.post(
    "/photo",
    response_model=PhotoUploadRead,
    status_code=status.HTTP_201_CREATED,
    summary="Upload an item photo before registering the deposit",
)
def upload_photo(
    file: UploadFile = File(...),
    current_user: User = Depends(require_auth),
):
    """
    Upload a photo of the item.

    - Accepts JPEG, PNG, WEBP up to 5MB.
    - Returns the public URL to send as `photo_url`.
    """
    if not file.content_type:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing content-type for uploaded file",
        )

    # One byte past the limit is enough to reject an oversized upload
    file_bytes = file.file.read(MAX_IMAGE_BYTES + 1)
    url = photo_service.upload_item_photo(
        user_id=current_user.id,
        content_type=file.content_type,
        file_bytes=file_bytes,
    )
    return PhotoUploadRead(url=url)


@router.get(
    "/lookup",
    response_model=LookupResult,
    dependencies=[Depends(require_auth)],
)
def lookup_by_code(
    code: str,
    session: Session = Depends(get_session),
):
    """
    Find a deposit by pickup code (case and whitespace insensitive).

    Not owner-scoped: whoever collects the item need not be the
    attendant who registered it. A miss answers 200 with
    state='not_found'.
    """
    return service.lookup_by_code(session, code)


@router.post(
    "/{deposit_id}/pickup",
    response_model=DepositRead,
    dependencies=[Depends(require_auth)],
)
def pickup(
    deposit_id: uuid.UUID,
    session: Session = Depends(get_session),
):
    """
    Mark a deposit as picked up.

    - 404 if unknown, 409 if already picked up.
    """
    return service.pickup(session, deposit_id)


@router.get(
    "/active",
    response_model=list[DepositRead],
    dependencies=[Depends(require_auth)],
)
def list_active(session: Session = Depends(get_session)):
    """
    All items currently stored, newest first.
    """
    return service.list_active(session)


@router.get(
    "/mine",
    response_model=list[DepositRead],
)
def list_my_items(
    owner_id: uuid.UUID | None = None,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    """
    Active items registered by the caller.

    Admins may pass `owner_id` to see another attendant's items.
    """
    return service.list_for_owner(session, current_user, owner_id)


# -------- Admin endpoints --------


@router.get(
    "/history",
    response_model=list[HistoryEntry],
    dependencies=[Depends(require_admin)],
)
def list_history(
    session: Session = Depends(get_session),
    skip: int = 0,
    limit: int = 50,
    period: HistoryPeriod = "all",
):
    """
    Picked-up items, most recent pickup first (admin only).

    - period: all | today | week (last 7 days) | month
    - each entry carries `storage_seconds` (pickup minus check-in)
    """
    return service.list_history(session, skip, limit, period)


@router.get(
    "",
    response_model=list[DepositRead],
    dependencies=[Depends(require_admin)],
)
def list_all_deposits(
    session: Session = Depends(get_session),
    skip: int = 0,
    limit: int = 50,
    status_filter: DepositStatus | None = None,
):
    """
    Every deposit, optionally filtered by status (admin only).
    """
    return service.list_all(session, skip, limit, status_filter)


@router.get(
    "/{deposit_id}/share-link",
    response_model=ShareLinkRead,
    dependencies=[Depends(require_admin)],
)
def get_share_link(
    deposit_id: uuid.UUID,
    session: Session = Depends(get_session),
):
    """
    WhatsApp link with slot + pickup code for the owner (admin only).
    """
    return service.share_link(session, deposit_id, settings.PUBLIC_APP_URL)


@router.get(
    "/{deposit_id}",
    response_model=DepositRead,
)
def get_deposit(
    deposit_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    """
    Deposit detail. Owners see their own, admins see all.
    """
    return service.get_deposit(session, current_user, deposit_id)
