"""
Leaderboard: cumulative standings with competition ranking ("1224") and
rank movement between the two most recent scored weeks.
"""

from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from dragrace_fantasy.models.models import League, LeagueEntry, EntryPick, Episode, LeagueEntryScore
from dragrace_fantasy.services.eliminations import eliminated_in_league

ZERO = Decimal(0)


def rank_standings(entries, totals: dict[int, Decimal]) -> list[dict]:
    """
    Sort entries by total descending, earlier entries first on a tie, and
    assign competition ranks: equal totals share a rank, and the next
    distinct total resumes at its position (10, 10, 8 -> 1, 1, 3).
    """
    ordered = sorted(entries, key=lambda e: (-totals.get(e.id, ZERO), e.created_at, e.id))

    standings = []
    current_rank = 0
    last_total = None
    for idx, entry in enumerate(ordered):
        total = totals.get(entry.id, ZERO)
        if last_total is None or total != last_total:
            current_rank = idx + 1
            last_total = total
        standings.append({"entry": entry, "total_points": total, "rank": current_rank})
    return standings


def cumulative_totals(weekly_points: dict[int, dict[int, Decimal]], through_week: int | None = None) -> dict[int, Decimal]:
    """Sum each entry's weekly points, optionally only up to and including `through_week`."""
    totals = {}
    for entry_id, by_week in weekly_points.items():
        totals[entry_id] = sum(
            (pts for week, pts in by_week.items() if through_week is None or week <= through_week),
            ZERO,
        )
    return totals


def build_leaderboard(entries, weekly_points: dict[int, dict[int, Decimal]]) -> list[dict]:
    """
    Standings over all scored weeks with movement.

    Args:
        entries: League entries (need id and created_at)
        weekly_points: {entry_id: {week: points}} from stored score rows

    Returns:
        Ordered rows of {entry, total_points, rank, last_week_rank, delta_rank}.
        Movement is None for everyone until two distinct weeks are scored.
    """
    standings = rank_standings(entries, cumulative_totals(weekly_points))

    weeks = sorted({week for by_week in weekly_points.values() for week in by_week})
    if len(weeks) < 2:
        for row in standings:
            row["last_week_rank"] = None
            row["delta_rank"] = None
        return standings

    this_week, last_week = weeks[-1], weeks[-2]
    this_ranks = {
        r["entry"].id: r["rank"]
        for r in rank_standings(entries, cumulative_totals(weekly_points, this_week))
    }
    last_ranks = {
        r["entry"].id: r["rank"]
        for r in rank_standings(entries, cumulative_totals(weekly_points, last_week))
    }

    for row in standings:
        entry_id = row["entry"].id
        row["last_week_rank"] = last_ranks[entry_id]
        # Positive means the entry moved up
        row["delta_rank"] = last_ranks[entry_id] - this_ranks[entry_id]
    return standings


async def get_weekly_points(db: AsyncSession, league_id: int) -> dict[int, dict[int, Decimal]]:
    result = await db.execute(
        select(LeagueEntryScore.entry_id, Episode.week, LeagueEntryScore.points)
        .join(Episode, LeagueEntryScore.episode_id == Episode.id)
        .where(Episode.league_id == league_id)
    )
    weekly = {}
    for entry_id, week, points in result.all():
        weekly.setdefault(entry_id, {})[week] = Decimal(points)
    return weekly


async def _entries_with_picks(db: AsyncSession, league_id: int) -> list[LeagueEntry]:
    result = await db.execute(
        select(LeagueEntry)
        .where(LeagueEntry.league_id == league_id)
        .options(selectinload(LeagueEntry.picks).selectinload(EntryPick.queen))
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def get_leaderboard(db: AsyncSession, league_id: int) -> list[dict] | None:
    """Full leaderboard for a league, or None if the league doesn't exist."""
    league = await db.get(League, league_id)
    if league is None:
        return None

    entries = await _entries_with_picks(db, league_id)
    weekly_points = await get_weekly_points(db, league_id)
    eliminated = await eliminated_in_league(db, league_id)

    rows = []
    for row in build_leaderboard(entries, weekly_points):
        entry = row["entry"]
        rows.append({
            "entry_id": entry.id,
            "user_id": entry.user_id,
            "total_points": row["total_points"],
            "rank": row["rank"],
            "last_week_rank": row["last_week_rank"],
            "delta_rank": row["delta_rank"],
            "picks": [
                {
                    "slot": p.slot,
                    "multiplier": p.multiplier,
                    "queen_id": p.queen_id,
                    "queen_name": p.queen.name if p.queen else None,
                    "eliminated": p.queen_id in eliminated,
                }
                for p in sorted(entry.picks, key=lambda p: p.slot)
            ],
        })
    return rows


async def get_weekly_recap(db: AsyncSession, league_id: int, week: int) -> dict | None:
    """One week's points per entry alongside standings through that week."""
    ep_result = await db.execute(
        select(Episode).where(Episode.league_id == league_id, Episode.week == week)
    )
    episode = ep_result.scalar_one_or_none()
    if episode is None:
        return None

    entries = await _entries_with_picks(db, league_id)
    weekly_points = await get_weekly_points(db, league_id)

    standings = rank_standings(entries, cumulative_totals(weekly_points, week))
    return {
        "episode_id": episode.id,
        "week": episode.week,
        "episode_type": episode.episode_type.value,
        "standings": [
            {
                "entry_id": row["entry"].id,
                "user_id": row["entry"].user_id,
                "week_points": weekly_points.get(row["entry"].id, {}).get(week, ZERO),
                "season_total": row["total_points"],
                "rank": row["rank"],
            }
            for row in standings
        ],
    }
