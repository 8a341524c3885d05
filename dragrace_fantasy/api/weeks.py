import logging

from fastapi import APIRouter, Depends, HTTPException, Path
from sqlalchemy import select, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from dragrace_fantasy.api.deps import get_league_or_404, require_started_league
from dragrace_fantasy.core.database import get_db
from dragrace_fantasy.core.exceptions import InvalidResultsError
from dragrace_fantasy.models.models import (
    League, LeagueStatus, Episode, EpisodeType, EpisodeResult, ResultType,
    FinalePlacement, FinaleExtra, LeagueEntryScore,
)
from dragrace_fantasy.schemas.weeks import (
    RegularWeekSubmit, FinaleSubmit, EpisodeResponse, WeekSaveResponse,
)
from dragrace_fantasy.services.ruleset import get_season_queen_ids
from dragrace_fantasy.services.scoring_engine import recompute_week, recompute_from_week
from dragrace_fantasy.services.validation import validate_finale_placements, validate_finale_extras

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/leagues/{league_id}/weeks", tags=["Weeks"])


async def _find_episode(db: AsyncSession, league_id: int, week: int, lock: bool = False) -> Episode | None:
    stmt = (
        select(Episode)
        .where(Episode.league_id == league_id, Episode.week == week)
        .options(
            selectinload(Episode.results),
            selectinload(Episode.finale_placements),
            selectinload(Episode.finale_extras),
        )
    )
    if lock:
        stmt = stmt.with_for_update()
    result = await db.execute(stmt.execution_options(populate_existing=True))
    return result.scalar_one_or_none()


async def _lock_or_create_episode(db: AsyncSession, league_id: int, week: int, episode_type: EpisodeType) -> Episode:
    """
    Row-lock the week's episode for the rest of the transaction, inserting it
    first when it doesn't exist yet. Children are only touched after this.
    """
    episode = await _find_episode(db, league_id, week, lock=True)
    if episode is not None:
        return episode

    try:
        async with db.begin_nested():
            db.add(Episode(league_id=league_id, week=week, episode_type=episode_type))
            await db.flush()
    except IntegrityError:
        # Lost the insert race on uq_episode_league_week; lock the winner's row instead
        logger.info("Week %s of league %s was created concurrently", week, league_id)

    return await _find_episode(db, league_id, week, lock=True)


async def _recompute(db: AsyncSession, league_id: int, episode: Episode, cascade: bool = False) -> WeekSaveResponse:
    try:
        if cascade:
            scores = (await recompute_from_week(db, league_id, episode.week)).get(episode.id)
        else:
            scores = await recompute_week(db, league_id, episode.id)
    except InvalidResultsError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return WeekSaveResponse(
        episode_id=episode.id,
        scores={entry_id: float(points) for entry_id, points in (scores or {}).items()},
    )


@router.get("/{week}", response_model=EpisodeResponse | None)
async def get_week(
    week: int = Path(..., ge=1),
    league: League = Depends(get_league_or_404),
    db: AsyncSession = Depends(get_db),
):
    return await _find_episode(db, league.id, week)


@router.put("/{week}", response_model=WeekSaveResponse)
async def save_regular_week(
    body: RegularWeekSubmit,
    week: int = Path(..., ge=1),
    league: League = Depends(require_started_league),
    db: AsyncSession = Depends(get_db),
):
    # Every submitted queen must belong to the league's season
    submitted = {*body.mini_winners, *body.main_winners, body.lipsync_winner}
    if body.eliminated_queen_id is not None:
        submitted.add(body.eliminated_queen_id)
    valid = await get_season_queen_ids(db, league.season_key)
    if not submitted <= valid:
        raise HTTPException(status_code=400, detail="Invalid queen in payload")

    episode = await _lock_or_create_episode(db, league.id, week, EpisodeType.REGULAR)
    if episode.episode_type == EpisodeType.FINALE:
        raise HTTPException(status_code=400, detail="Episode is marked as FINALE")

    # Results are replaced wholesale on every save
    await db.execute(delete(EpisodeResult).where(EpisodeResult.episode_id == episode.id))
    rows = [EpisodeResult(episode_id=episode.id, type=ResultType.MINI, queen_id=qid) for qid in dict.fromkeys(body.mini_winners)]
    rows += [EpisodeResult(episode_id=episode.id, type=ResultType.MAIN, queen_id=qid) for qid in dict.fromkeys(body.main_winners)]
    rows.append(EpisodeResult(episode_id=episode.id, type=ResultType.LIPSYNC, queen_id=body.lipsync_winner))
    rows.append(EpisodeResult(episode_id=episode.id, type=ResultType.ELIMINATION, queen_id=body.eliminated_queen_id))
    db.add_all(rows)
    await db.flush()

    logger.info("Saved week %s results for league %s", week, league.id)
    return await _recompute(db, league.id, episode, cascade=True)


@router.post("/{week}/finale", response_model=EpisodeResponse)
async def mark_finale(
    week: int = Path(..., ge=1),
    league: League = Depends(get_league_or_404),
    db: AsyncSession = Depends(get_db),
):
    episode = await _lock_or_create_episode(db, league.id, week, EpisodeType.FINALE)
    if episode.episode_type != EpisodeType.FINALE:
        # Regular results and their scores no longer apply to this week
        await db.execute(delete(EpisodeResult).where(EpisodeResult.episode_id == episode.id))
        await db.execute(delete(LeagueEntryScore).where(LeagueEntryScore.episode_id == episode.id))
        episode.episode_type = EpisodeType.FINALE
        await db.flush()

        # Its elimination no longer counts for later weeks
        try:
            await recompute_from_week(db, league.id, week + 1)
        except InvalidResultsError as e:
            raise HTTPException(status_code=400, detail=str(e))

    return await _find_episode(db, league.id, week)


@router.put("/{week}/finale", response_model=WeekSaveResponse)
async def save_finale(
    body: FinaleSubmit,
    week: int = Path(..., ge=1),
    league: League = Depends(get_league_or_404),
    db: AsyncSession = Depends(get_db),
):
    valid = await get_season_queen_ids(db, league.season_key)
    try:
        validate_finale_placements(body.placements, valid)
        validate_finale_extras(body.extras, valid)
    except InvalidResultsError as e:
        raise HTTPException(status_code=400, detail=str(e))

    episode = await _find_episode(db, league.id, week, lock=True)
    if episode is None:
        raise HTTPException(status_code=404, detail="Episode not found. Convert to finale first.")
    if episode.episode_type != EpisodeType.FINALE:
        raise HTTPException(status_code=400, detail="Episode is not marked as FINALE")

    await db.execute(delete(FinalePlacement).where(FinalePlacement.episode_id == episode.id))
    await db.execute(delete(FinaleExtra).where(FinaleExtra.episode_id == episode.id))
    db.add_all([
        FinalePlacement(episode_id=episode.id, queen_id=p.queen_id, place=p.place)
        for p in body.placements
    ])
    db.add_all([
        FinaleExtra(
            episode_id=episode.id,
            queen_id=e.queen_id,
            mini_wins=e.mini_wins,
            main_wins=e.main_wins,
            lipsync_wins=e.lipsync_wins,
        )
        for e in body.extras
    ])
    await db.flush()

    response = await _recompute(db, league.id, episode)

    if body.finalize:
        league.status = LeagueStatus.COMPLETE
        await db.flush()
        logger.info("League %s marked complete", league.id)

    return response
