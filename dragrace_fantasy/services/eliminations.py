"""Tracks which queens are out of the competition as of a given week."""

from typing import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dragrace_fantasy.models.models import Episode, EpisodeResult, EpisodeType, ResultType


def collect_eliminated(prior_eliminated_ids: Iterable[int | None], this_week_eliminated: int | None = None) -> frozenset[int]:
    ids = {qid for qid in prior_eliminated_ids if qid is not None}
    if this_week_eliminated is not None:
        ids.add(this_week_eliminated)
    return frozenset(ids)


async def get_prior_eliminations(db: AsyncSession, league_id: int, upto_week_exclusive: int) -> list[int]:
    """Queen ids eliminated in any regular episode of the league before the given week."""
    result = await db.execute(
        select(EpisodeResult.queen_id)
        .join(Episode, EpisodeResult.episode_id == Episode.id)
        .where(
            Episode.league_id == league_id,
            Episode.episode_type == EpisodeType.REGULAR,
            Episode.week < upto_week_exclusive,
            EpisodeResult.type == ResultType.ELIMINATION,
            EpisodeResult.queen_id.is_not(None),
        )
    )
    return [row[0] for row in result.all()]


async def permanently_eliminated(
    db: AsyncSession,
    league_id: int,
    upto_week_exclusive: int,
    this_week_eliminated: int | None = None,
) -> frozenset[int]:
    """
    Every queen eliminated before `upto_week_exclusive`, plus this week's
    elimination if there is one. Elimination is permanent: these queens
    score nothing in the current week or any later regular week.
    """
    prior = await get_prior_eliminations(db, league_id, upto_week_exclusive)
    return collect_eliminated(prior, this_week_eliminated)


async def eliminated_in_league(db: AsyncSession, league_id: int) -> frozenset[int]:
    """All eliminations recorded so far, any week."""
    result = await db.execute(
        select(EpisodeResult.queen_id)
        .join(Episode, EpisodeResult.episode_id == Episode.id)
        .where(
            Episode.league_id == league_id,
            EpisodeResult.type == ResultType.ELIMINATION,
            EpisodeResult.queen_id.is_not(None),
        )
    )
    return collect_eliminated(row[0] for row in result.all())
