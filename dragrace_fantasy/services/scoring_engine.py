"""
Scoring Engine: turns a week's results into per-entry points.

Regular weeks pay each surviving picked queen for surviving and for any
challenge she won; finale weeks pay stacked placement tiers plus bonus win
counts. Every queen's base points are multiplied by the pick's stored slot
multiplier and summed per entry. All arithmetic is Decimal.

Scores are never patched: recompute_week wipes an episode's score rows and
writes a fresh one for every entry in the league.
"""

import logging
from decimal import Decimal

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from dragrace_fantasy.core.database import AsyncSessionLocal
from dragrace_fantasy.models.models import (
    League, LeagueEntry, Episode, EpisodeType, ResultType,
    LeagueEntryScore,
)
from dragrace_fantasy.services.eliminations import permanently_eliminated
from dragrace_fantasy.services.ruleset import (
    DRAG_RACE_POINTS, finale_placement_points, get_season_queen_ids,
)
from dragrace_fantasy.services.validation import (
    as_decimal, validate_picks, validate_regular_results,
    validate_finale_placements, validate_finale_extras,
)

logger = logging.getLogger(__name__)

ZERO = Decimal(0)


def week_outcomes(results) -> dict:
    """Split a regular week's result rows into winner sets and the eliminated queen."""
    mini, main = set(), set()
    lipsync_winner = None
    eliminated = None
    for r in results:
        if r.queen_id is None:
            continue
        if r.type == ResultType.MINI:
            mini.add(r.queen_id)
        elif r.type == ResultType.MAIN:
            main.add(r.queen_id)
        elif r.type == ResultType.LIPSYNC and lipsync_winner is None:
            lipsync_winner = r.queen_id
        elif r.type == ResultType.ELIMINATION and eliminated is None:
            eliminated = r.queen_id
    return {
        "mini_winners": frozenset(mini),
        "main_winners": frozenset(main),
        "lipsync_winner": lipsync_winner,
        "eliminated": eliminated,
    }


def regular_base_points(queen_id: int, outcomes: dict) -> int:
    base = DRAG_RACE_POINTS["survived"]
    if queen_id in outcomes["mini_winners"]:
        base += DRAG_RACE_POINTS["mini_win"]
    if queen_id in outcomes["main_winners"]:
        base += DRAG_RACE_POINTS["main_win"]
    if queen_id == outcomes["lipsync_winner"]:
        base += DRAG_RACE_POINTS["lipsync_win"]
    return base


def score_regular_week(episode: Episode, entries: list[LeagueEntry], eliminated: frozenset[int]) -> dict[int, Decimal]:
    """
    Points per entry for a regular week.

    Args:
        episode: The week, with its results loaded
        entries: Every entry in the league, with picks loaded
        eliminated: Queens out as of this week, this week's elimination included

    Returns:
        {entry_id: points}, one key per entry (0 for entries without picks)
    """
    outcomes = week_outcomes(episode.results)

    totals = {}
    for entry in entries:
        total = ZERO
        for pick in entry.picks:
            # Eliminated queens earn nothing, winner or not
            if pick.queen_id in eliminated:
                continue
            base = regular_base_points(pick.queen_id, outcomes)
            total += Decimal(base) * as_decimal(pick.multiplier)
        totals[entry.id] = total
    return totals


def finale_base_points(queen_id: int, placements: dict[int, int], extras: dict[int, tuple]) -> int:
    base = finale_placement_points(placements.get(queen_id))
    mini_wins, main_wins, lipsync_wins = extras.get(queen_id, (0, 0, 0))
    base += mini_wins * DRAG_RACE_POINTS["mini_win"]
    base += main_wins * DRAG_RACE_POINTS["main_win"]
    base += lipsync_wins * DRAG_RACE_POINTS["lipsync_win"]
    return base


def score_finale_week(episode: Episode, entries: list[LeagueEntry]) -> dict[int, Decimal]:
    """Points per entry for the finale: stacked placement tiers plus bonus win counts."""
    placements = {p.queen_id: p.place for p in episode.finale_placements}
    extras = {
        e.queen_id: (e.mini_wins or 0, e.main_wins or 0, e.lipsync_wins or 0)
        for e in episode.finale_extras
    }

    totals = {}
    for entry in entries:
        total = ZERO
        for pick in entry.picks:
            base = finale_base_points(pick.queen_id, placements, extras)
            total += Decimal(base) * as_decimal(pick.multiplier)
        totals[entry.id] = total
    return totals


async def load_episode_for_scoring(db: AsyncSession, episode_id: int) -> Episode | None:
    """Fetch the episode and its child rows, locking the episode row until the transaction ends."""
    result = await db.execute(
        select(Episode)
        .where(Episode.id == episode_id)
        .options(
            selectinload(Episode.results),
            selectinload(Episode.finale_placements),
            selectinload(Episode.finale_extras),
        )
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def load_entries_with_picks(db: AsyncSession, league_id: int) -> list[LeagueEntry]:
    result = await db.execute(
        select(LeagueEntry)
        .where(LeagueEntry.league_id == league_id)
        .options(selectinload(LeagueEntry.picks))
        .order_by(LeagueEntry.id)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def recompute_week(db: AsyncSession, league_id: int, episode_id: int) -> dict[int, Decimal] | None:
    """
    (Re)calculate every entry's score for one episode and replace its score rows.

    Runs inside the caller's transaction. Everything is validated and scored
    before the old rows are deleted, so a failure leaves them as they were
    once the transaction rolls back.

    Returns {entry_id: points}, or None when the league or episode doesn't exist.
    """
    league = await db.get(League, league_id)
    if league is None:
        logger.warning("Recompute skipped: league %s not found", league_id)
        return None

    episode = await load_episode_for_scoring(db, episode_id)
    if episode is None or episode.league_id != league_id:
        logger.warning("Recompute skipped: episode %s not found in league %s", episode_id, league_id)
        return None

    entries = await load_entries_with_picks(db, league_id)
    for entry in entries:
        validate_picks(entry)

    known_queens = await get_season_queen_ids(db, league.season_key)

    if episode.episode_type == EpisodeType.FINALE:
        validate_finale_placements(episode.finale_placements, known_queens)
        validate_finale_extras(episode.finale_extras, known_queens)

        already_out = await permanently_eliminated(db, league_id, episode.week)
        placed_but_out = sorted(already_out & {p.queen_id for p in episode.finale_placements})
        if placed_but_out:
            logger.warning(
                "Finale week %s of league %s places eliminated queen(s) %s; scoring anyway",
                episode.week, league_id, placed_but_out,
            )

        totals = score_finale_week(episode, entries)
    else:
        validate_regular_results(episode.results, known_queens)
        outcomes = week_outcomes(episode.results)
        eliminated = await permanently_eliminated(db, league_id, episode.week, outcomes["eliminated"])
        totals = score_regular_week(episode, entries, eliminated)

    # Clear previous scores for this episode so edits are clean
    await db.execute(delete(LeagueEntryScore).where(LeagueEntryScore.episode_id == episode.id))
    db.add_all([
        LeagueEntryScore(entry_id=entry_id, episode_id=episode.id, points=points)
        for entry_id, points in totals.items()
    ])
    await db.flush()

    logger.info(
        "Recomputed %s week %s of league %s for %d entries",
        episode.episode_type.value, episode.week, league_id, len(totals),
    )
    return totals


async def recompute_week_atomic(league_id: int, episode_id: int, session_factory=AsyncSessionLocal) -> dict[int, Decimal] | None:
    """recompute_week in its own session, committed as one transaction."""
    async with session_factory() as db:
        async with db.begin():
            return await recompute_week(db, league_id, episode_id)


async def recompute_from_week(db: AsyncSession, league_id: int, week: int) -> dict[int, dict[int, Decimal]]:
    """
    Recompute every regular week of the league from `week` onward, in week order.

    Later regular weeks read the eliminations of earlier ones, so an edit to
    week N has to be carried through N+1, N+2, ... in the same transaction.

    Returns {episode_id: {entry_id: points}} for the weeks that were rescored.
    """
    result = await db.execute(
        select(Episode.id)
        .where(
            Episode.league_id == league_id,
            Episode.week >= week,
            Episode.episode_type == EpisodeType.REGULAR,
        )
        .order_by(Episode.week)
    )

    recomputed = {}
    for episode_id in result.scalars().all():
        totals = await recompute_week(db, league_id, episode_id)
        if totals is not None:
            recomputed[episode_id] = totals

    logger.info("Recomputed %d regular week(s) of league %s from week %s", len(recomputed), league_id, week)
    return recomputed
