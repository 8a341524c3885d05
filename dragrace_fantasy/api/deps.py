from datetime import datetime, timezone

from fastapi import Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from dragrace_fantasy.core.database import get_db
from dragrace_fantasy.models.models import League


async def get_league_or_404(
    league_id: int,
    db: AsyncSession = Depends(get_db),
) -> League:
    league = await db.get(League, league_id)
    if league is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="League not found")
    return league


def _aware(dt: datetime) -> datetime:
    # SQLite hands back naive datetimes; treat them as UTC
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=timezone.utc)


def league_has_started(league: League, now: datetime | None = None) -> bool:
    if league.started_at is not None:
        return True
    if league.starts_at is None:
        return False
    now = now or datetime.now(timezone.utc)
    return _aware(now) >= _aware(league.starts_at)


async def require_started_league(
    league: League = Depends(get_league_or_404),
) -> League:
    if not league_has_started(league):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="League not started")
    return league
