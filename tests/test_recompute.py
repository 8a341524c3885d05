from decimal import Decimal

import pytest
from sqlalchemy import select, update

from dragrace_fantasy.core.exceptions import InvalidResultsError, ScoringIntegrityError
from dragrace_fantasy.models.models import (
    League, EntryPick, EpisodeResult, ResultType, FinalePlacement, LeagueEntryScore,
)
from dragrace_fantasy.services.scoring_engine import recompute_week, recompute_week_atomic, recompute_from_week


@pytest.fixture
def cast(queens):
    return {
        "X": queens["Athena Dion"],
        "Y": queens["Briar Blush"],
        "Z": queens["Ciara Myst"],
        "W": queens["Darlene Mitchell"],
        "V": queens["DD Fuego"],
        "U": queens["Discord Addams"],
        # Bench queens that never win anything below
        "T": queens["Jane Don't"],
        "S": queens["Juicy Love Dion"],
        "R": queens["Kenya Pleaser"],
    }


@pytest.fixture
def with_bench(cast):
    """Fill a draft up to four picks with bench queens (survival only: 2.0 + 1.5 + 1.0 in slots 2-4)."""
    def _fill(*queen_ids):
        bench = [cast["T"], cast["S"], cast["R"]]
        return list(queen_ids) + bench[: 4 - len(queen_ids)]
    return _fill


async def test_regular_week_scores_every_entry(db, league, cast, make_entry, make_regular_week, read_scores):
    full = await make_entry("alaska", [cast["X"], cast["Y"], cast["Z"], cast["W"]])
    empty = await make_entry("latrice", [])
    episode = await make_regular_week(3, mini=[cast["X"]], main=[cast["Y"]], lipsync=cast["Z"], eliminated=cast["W"])

    totals = await recompute_week(db, league.id, episode.id)
    await db.commit()

    assert totals == {full.id: Decimal("108.5"), empty.id: Decimal(0)}
    assert await read_scores(episode.id) == {full.id: Decimal("108.5"), empty.id: Decimal(0)}


async def test_recompute_is_idempotent(db, league, cast, make_entry, make_regular_week):
    await make_entry("alaska", [cast["X"], cast["Y"], cast["Z"], cast["W"]])
    await make_entry("jinkx", [cast["V"], cast["U"], cast["X"], cast["Y"]])
    episode = await make_regular_week(1, mini=[cast["X"], cast["V"]], main=[cast["U"]], lipsync=cast["Y"], eliminated=cast["W"])

    async def snapshot():
        result = await db.execute(
            select(LeagueEntryScore.entry_id, LeagueEntryScore.episode_id, LeagueEntryScore.points)
            .order_by(LeagueEntryScore.entry_id)
        )
        return [tuple(row) for row in result.all()]

    await recompute_week(db, league.id, episode.id)
    await db.commit()
    first = await snapshot()

    await recompute_week(db, league.id, episode.id)
    await db.commit()
    assert await snapshot() == first
    assert len(first) == 2


async def test_earlier_elimination_beats_later_win(db, league, cast, with_bench, make_entry, make_regular_week, read_scores):
    entry = await make_entry("alaska", with_bench(cast["W"]))
    week2 = await make_regular_week(2, mini=[cast["X"]], main=[cast["X"]], lipsync=cast["X"], eliminated=cast["W"])
    # Data error: W shows up as a winner after going home
    week5 = await make_regular_week(5, mini=[cast["W"]], main=[cast["W"]], lipsync=cast["W"], eliminated=None)

    await recompute_week(db, league.id, week2.id)
    await recompute_week(db, league.id, week5.id)
    await db.commit()

    # W earns nothing either week; only the bench's survival points count
    assert await read_scores(week2.id) == {entry.id: Decimal("4.5")}
    assert await read_scores(week5.id) == {entry.id: Decimal("4.5")}


async def test_later_week_edit_reflects_new_results(db, league, cast, with_bench, make_entry, make_regular_week, read_scores):
    entry = await make_entry("alaska", with_bench(cast["X"]))
    episode = await make_regular_week(1, mini=[cast["X"]], main=[cast["Y"]], lipsync=cast["Y"])
    await recompute_week(db, league.id, episode.id)
    await db.commit()
    # X 16*2.5 + bench 4.5
    assert await read_scores(episode.id) == {entry.id: Decimal("44.5")}

    # Commissioner moves the mini win to Y
    await db.execute(
        update(EpisodeResult)
        .where(EpisodeResult.episode_id == episode.id, EpisodeResult.type == ResultType.MINI)
        .values(queen_id=cast["Y"])
    )
    await db.commit()

    await recompute_week(db, league.id, episode.id)
    await db.commit()
    assert await read_scores(episode.id) == {entry.id: Decimal("7.0")}


async def test_recompute_from_week_carries_an_earlier_elimination_forward(
    db, league, cast, with_bench, make_entry, make_regular_week, read_scores,
):
    entry = await make_entry("alaska", with_bench(cast["X"]))
    week2 = await make_regular_week(2, mini=[cast["Y"]], main=[cast["Y"]], lipsync=cast["Y"])
    week3 = await make_regular_week(3, mini=[cast["X"]], main=[cast["X"]], lipsync=cast["X"])
    await recompute_from_week(db, league.id, 2)
    await db.commit()
    assert await read_scores(week3.id) == {entry.id: Decimal("132.0")}

    # X turns out to have gone home in week 2
    await db.execute(
        update(EpisodeResult)
        .where(EpisodeResult.episode_id == week2.id, EpisodeResult.type == ResultType.ELIMINATION)
        .values(queen_id=cast["X"])
    )
    await db.commit()

    recomputed = await recompute_from_week(db, league.id, 2)
    await db.commit()

    assert set(recomputed) == {week2.id, week3.id}
    assert await read_scores(week2.id) == {entry.id: Decimal("4.5")}
    assert await read_scores(week3.id) == {entry.id: Decimal("4.5")}


async def test_recompute_from_week_leaves_earlier_weeks_alone(db, league, cast, with_bench, make_entry, make_regular_week, read_scores):
    await make_entry("alaska", with_bench(cast["X"]))
    week1 = await make_regular_week(1, mini=[cast["X"]], main=[cast["X"]], lipsync=cast["X"])
    week2 = await make_regular_week(2, mini=[cast["Y"]], main=[cast["Y"]], lipsync=cast["Y"])

    recomputed = await recompute_from_week(db, league.id, 2)
    await db.commit()

    assert set(recomputed) == {week2.id}
    assert await read_scores(week1.id) == {}


async def test_missing_episode_or_league_is_a_no_op(db, league, make_entry, read_scores, cast, with_bench):
    await make_entry("alaska", with_bench(cast["X"]))
    assert await recompute_week(db, league.id, 9999) is None
    assert await recompute_week(db, 9999, 1) is None
    result = await db.execute(select(LeagueEntryScore))
    assert result.scalars().all() == []


async def test_episode_from_another_league_is_ignored(db, league, cast, make_regular_week):
    other = League(name="Other", season_key=league.season_key)
    db.add(other)
    await db.commit()
    episode = await make_regular_week(1, mini=[cast["X"]], main=[cast["X"]], lipsync=cast["X"])

    assert await recompute_week(db, other.id, episode.id) is None


async def test_partial_draft_aborts(db, league, cast, make_entry, make_regular_week, read_scores):
    await make_entry("alaska", [cast["X"], cast["Y"]])
    episode = await make_regular_week(1, mini=[cast["X"]], main=[cast["Y"]], lipsync=cast["Z"])
    episode_id = episode.id

    with pytest.raises(ScoringIntegrityError):
        await recompute_week(db, league.id, episode.id)
    await db.rollback()

    assert await read_scores(episode_id) == {}


async def test_bad_multiplier_leaves_previous_scores(db, league, cast, make_entry, make_regular_week, read_scores):
    entry = await make_entry("alaska", [cast["X"], cast["Y"], cast["Z"], cast["W"]])
    episode = await make_regular_week(1, mini=[cast["X"]], main=[cast["Y"]], lipsync=cast["Z"])
    await recompute_week(db, league.id, episode.id)
    await db.commit()
    episode_id = episode.id
    before = await read_scores(episode_id)

    await db.execute(
        update(EntryPick).where(EntryPick.entry_id == entry.id, EntryPick.slot == 1).values(multiplier=Decimal("3.0"))
    )
    await db.commit()

    with pytest.raises(ScoringIntegrityError):
        await recompute_week(db, league.id, episode.id)
    await db.rollback()

    assert await read_scores(episode_id) == before


async def test_missing_multiplier_is_fatal(db, league, cast, with_bench, make_entry, make_regular_week):
    entry = await make_entry("alaska", with_bench(cast["X"]))
    episode = await make_regular_week(1, mini=[cast["X"]], main=[cast["Y"]], lipsync=cast["Z"])
    await db.execute(update(EntryPick).where(EntryPick.entry_id == entry.id).values(multiplier=None))
    await db.commit()

    with pytest.raises(InvalidResultsError):
        await recompute_week(db, league.id, episode.id)


async def test_finale_week(db, league, cast, make_entry, make_finale, read_scores):
    entry = await make_entry("alaska", [cast["V"], cast["Y"], cast["Z"], cast["U"]])
    finale = await make_finale(
        12,
        {cast["X"]: 1, cast["Y"]: 2, cast["Z"]: 3, cast["W"]: 4},
        extras={cast["Y"]: {"main_wins": 1}, cast["V"]: {"mini_wins": 1}},
    )

    await recompute_week(db, league.id, finale.id)
    await db.commit()

    # V 15*2.5 + Y (40+25)*2.0 + Z 15*1.5 + U 0
    assert await read_scores(finale.id) == {entry.id: Decimal("190.0")}


async def test_finale_with_three_placements_aborts(db, league, cast, with_bench, make_entry, make_finale, read_scores):
    await make_entry("alaska", with_bench(cast["X"]))
    finale = await make_finale(12, {cast["X"]: 1, cast["Y"]: 2, cast["Z"]: 3, cast["W"]: 4})
    await recompute_week(db, league.id, finale.id)
    await db.commit()
    finale_id = finale.id
    before = await read_scores(finale_id)

    placement = (await db.execute(
        select(FinalePlacement).where(FinalePlacement.episode_id == finale.id, FinalePlacement.place == 4)
    )).scalar_one()
    await db.delete(placement)
    await db.commit()

    with pytest.raises(InvalidResultsError):
        await recompute_week(db, league.id, finale.id)
    await db.rollback()
    assert await read_scores(finale_id) == before


async def test_finale_still_scores_an_eliminated_finalist(
    db, league, cast, with_bench, make_entry, make_regular_week, make_finale, read_scores, caplog,
):
    entry = await make_entry("alaska", with_bench(cast["W"]))
    await make_regular_week(2, mini=[cast["X"]], main=[cast["X"]], lipsync=cast["X"], eliminated=cast["W"])
    finale = await make_finale(12, {cast["X"]: 1, cast["Y"]: 2, cast["Z"]: 3, cast["W"]: 4})

    await recompute_week(db, league.id, finale.id)
    await db.commit()

    # W 15*2.5; unplaced bench queens earn nothing in the finale
    assert await read_scores(finale.id) == {entry.id: Decimal("37.5")}
    assert "places eliminated queen" in caplog.text


async def test_atomic_recompute_commits(session_factory, db, league, cast, with_bench, make_entry, make_regular_week, read_scores):
    entry = await make_entry("alaska", with_bench(cast["X"]))
    episode = await make_regular_week(1, mini=[cast["X"]], main=[cast["X"]], lipsync=cast["Y"])

    totals = await recompute_week_atomic(league.id, episode.id, session_factory=session_factory)

    # X 41*2.5 + bench 4.5
    assert totals == {entry.id: Decimal("107.0")}
    assert await read_scores(episode.id) == {entry.id: Decimal("107.0")}
