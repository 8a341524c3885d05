import os

# Point the app at SQLite before any module builds the engine
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from dragrace_fantasy.core.database import Base
from dragrace_fantasy.models.models import (
    League, LeagueEntry, EntryPick, Episode, EpisodeType, EpisodeResult, ResultType,
    FinalePlacement, FinaleExtra, LeagueEntryScore, Queen,
)
from dragrace_fantasy.services.ruleset import SLOT_MULTIPLIERS, seed_season_queens

SEASON_KEY = "RPDR_S18"
ENTRY_EPOCH = datetime(2026, 1, 1, 12, 0)


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def league(db):
    await seed_season_queens(db, SEASON_KEY)
    league = League(
        name="Werk Room",
        season_key=SEASON_KEY,
        starts_at=datetime(2026, 1, 3, 1, 0, tzinfo=timezone.utc),
        started_at=datetime(2026, 1, 3, 1, 0, tzinfo=timezone.utc),
    )
    db.add(league)
    await db.commit()
    return league


@pytest.fixture
async def queens(db, league):
    result = await db.execute(select(Queen).where(Queen.season_key == SEASON_KEY))
    return {q.name: q.id for q in result.scalars().all()}


@pytest.fixture
def make_entry(db, league):
    created = []

    async def _make(user_id, queen_ids, multipliers=None, created_at=None):
        entry = LeagueEntry(
            league_id=league.id,
            user_id=user_id,
            created_at=created_at or ENTRY_EPOCH + timedelta(minutes=len(created)),
        )
        db.add(entry)
        await db.flush()
        multipliers = multipliers or SLOT_MULTIPLIERS
        for slot, queen_id in enumerate(queen_ids, 1):
            db.add(EntryPick(entry_id=entry.id, slot=slot, queen_id=queen_id, multiplier=multipliers[slot]))
        await db.commit()
        created.append(entry)
        return entry

    return _make


@pytest.fixture
def make_regular_week(db, league):
    async def _make(week, mini=(), main=(), lipsync=None, eliminated=None):
        episode = Episode(league_id=league.id, week=week, episode_type=EpisodeType.REGULAR)
        db.add(episode)
        await db.flush()
        rows = [EpisodeResult(episode_id=episode.id, type=ResultType.MINI, queen_id=q) for q in mini]
        rows += [EpisodeResult(episode_id=episode.id, type=ResultType.MAIN, queen_id=q) for q in main]
        rows.append(EpisodeResult(episode_id=episode.id, type=ResultType.LIPSYNC, queen_id=lipsync))
        rows.append(EpisodeResult(episode_id=episode.id, type=ResultType.ELIMINATION, queen_id=eliminated))
        db.add_all(rows)
        await db.commit()
        return episode

    return _make


@pytest.fixture
def make_finale(db, league):
    async def _make(week, placements, extras=None):
        episode = Episode(league_id=league.id, week=week, episode_type=EpisodeType.FINALE)
        db.add(episode)
        await db.flush()
        db.add_all([
            FinalePlacement(episode_id=episode.id, queen_id=queen_id, place=place)
            for queen_id, place in placements.items()
        ])
        db.add_all([
            FinaleExtra(episode_id=episode.id, queen_id=queen_id, **counts)
            for queen_id, counts in (extras or {}).items()
        ])
        await db.commit()
        return episode

    return _make


@pytest.fixture
def read_scores(db):
    async def _read(episode_id) -> dict[int, Decimal]:
        result = await db.execute(
            select(LeagueEntryScore.entry_id, LeagueEntryScore.points)
            .where(LeagueEntryScore.episode_id == episode_id)
        )
        return {entry_id: Decimal(points) for entry_id, points in result.all()}

    return _read
