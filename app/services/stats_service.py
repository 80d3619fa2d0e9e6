# app/services/stats_service.py
from datetime import datetime, timedelta, timezone

from sqlmodel import Session

from app.core.config import get_settings
from app.models.deposit import Deposit
from app.repositories.stats_repo import StatsRepository
from app.schemas.deposit import DepositRead
from app.schemas.stats import HistoryEntry, HistoryPeriod, HistoryStats

ROLLING_WEEK = timedelta(days=7)


def local_timezone(offset_hours: int | None = None) -> timezone:
    if offset_hours is None:
        offset_hours = get_settings().LOCAL_UTC_OFFSET_HOURS
    return timezone(timedelta(hours=offset_hours))


def period_start(
    period: HistoryPeriod,
    now: datetime | None = None,
    tz: timezone | None = None,
) -> datetime | None:
    """
    Lower bound on picked_up_at for a history period, as naive UTC.

      all    -> None (no bound)
      today  -> local midnight
      week   -> now - 7 days
      month  -> local first day of the month, midnight

    `now` must be timezone-aware; defaults to the current time.
    """
    if period == "all":
        return None

    tz = tz or local_timezone()
    local_now = (now or datetime.now(timezone.utc)).astimezone(tz)
    midnight = local_now.replace(hour=0, minute=0, second=0, microsecond=0)

    if period == "today":
        start = midnight
    elif period == "week":
        start = local_now - ROLLING_WEEK
    elif period == "month":
        start = midnight.replace(day=1)
    else:
        raise ValueError(f"Unknown history period: {period}")

    return start.astimezone(timezone.utc).replace(tzinfo=None)


def _as_utc(value: datetime) -> datetime:
    # SQLite and `timestamp without time zone` hand back naive UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def storage_seconds(
    deposited_at: datetime | None,
    picked_up_at: datetime | None,
) -> int | None:
    """Whole seconds between check-in and check-out; None while active."""
    if deposited_at is None or picked_up_at is None:
        return None
    delta = _as_utc(picked_up_at) - _as_utc(deposited_at)
    return max(0, int(delta.total_seconds()))


def to_history_entry(deposit: Deposit) -> HistoryEntry:
    return HistoryEntry(
        **DepositRead.model_validate(deposit).model_dump(),
        storage_seconds=storage_seconds(deposit.deposited_at, deposit.picked_up_at),
    )


class StatsService:
    """
    Pickup counts per period and storage durations for the admin page.
    """

    def __init__(self, repo: StatsRepository):
        self.repo = repo

    def get_history_stats(
        self,
        session: Session,
        now: datetime | None = None,
    ) -> HistoryStats:
        now = now or datetime.now(timezone.utc)
        tz = local_timezone()

        durations = [
            seconds
            for seconds in (
                storage_seconds(deposited_at, picked_up_at)
                for deposited_at, picked_up_at in self.repo.storage_intervals(session)
            )
            if seconds is not None
        ]

        return HistoryStats(
            active_count=self.repo.count_active(session),
            picked_up_total=self.repo.count_picked_up(session),
            picked_up_today=self.repo.count_picked_up(
                session, since=period_start("today", now, tz)
            ),
            picked_up_this_week=self.repo.count_picked_up(
                session, since=period_start("week", now, tz)
            ),
            picked_up_this_month=self.repo.count_picked_up(
                session, since=period_start("month", now, tz)
            ),
            average_storage_seconds=(
                sum(durations) // len(durations) if durations else None
            ),
            longest_storage_seconds=max(durations) if durations else None,
        )
