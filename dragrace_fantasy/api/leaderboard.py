from fastapi import APIRouter, Depends, HTTPException, Path
from sqlalchemy.ext.asyncio import AsyncSession

from dragrace_fantasy.api.deps import get_league_or_404
from dragrace_fantasy.core.database import get_db
from dragrace_fantasy.models.models import League
from dragrace_fantasy.schemas.leaderboard import (
    LeaderboardResponse, LeaderboardEntry, PickBreakdownItem,
    WeeklyRecapResponse, WeeklyRecapEntryItem,
)
from dragrace_fantasy.services.leaderboard import get_leaderboard, get_weekly_recap

router = APIRouter(prefix="/api/leagues/{league_id}", tags=["Leaderboard"])


@router.get("/leaderboard", response_model=LeaderboardResponse)
async def leaderboard(
    league: League = Depends(get_league_or_404),
    db: AsyncSession = Depends(get_db),
):
    raw = await get_leaderboard(db, league.id) or []
    entries = [
        LeaderboardEntry(
            rank=e["rank"],
            entry_id=e["entry_id"],
            user_id=e["user_id"],
            total_points=float(e["total_points"]),
            last_week_rank=e["last_week_rank"],
            delta_rank=e["delta_rank"],
            picks=[
                PickBreakdownItem(**{**p, "multiplier": None if p["multiplier"] is None else float(p["multiplier"])})
                for p in e["picks"]
            ],
        )
        for e in raw
    ]
    return LeaderboardResponse(league_id=league.id, entries=entries)


@router.get("/weekly-recap/{week}", response_model=WeeklyRecapResponse)
async def weekly_recap(
    week: int = Path(..., ge=1),
    league: League = Depends(get_league_or_404),
    db: AsyncSession = Depends(get_db),
):
    recap = await get_weekly_recap(db, league.id, week)
    if recap is None:
        raise HTTPException(status_code=404, detail="Episode not found")

    return WeeklyRecapResponse(
        league_id=league.id,
        episode_id=recap["episode_id"],
        week=recap["week"],
        episode_type=recap["episode_type"],
        standings=[
            WeeklyRecapEntryItem(
                rank=s["rank"],
                entry_id=s["entry_id"],
                user_id=s["user_id"],
                week_points=float(s["week_points"]),
                season_total=float(s["season_total"]),
            )
            for s in recap["standings"]
        ],
    )
