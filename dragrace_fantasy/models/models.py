from sqlalchemy import (
    Column, Integer, String, DateTime, ForeignKey, Numeric,
    UniqueConstraint, CheckConstraint, Enum as SAEnum,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from dragrace_fantasy.core.database import Base
import enum


# --- Enums ---

class LeagueStatus(str, enum.Enum):
    ACTIVE = "active"
    COMPLETE = "complete"


class EpisodeType(str, enum.Enum):
    REGULAR = "regular"
    FINALE = "finale"


class ResultType(str, enum.Enum):
    MINI = "mini"
    MAIN = "main"
    LIPSYNC = "lipsync"
    ELIMINATION = "elimination"


# --- Models ---

class Queen(Base):
    __tablename__ = "queens"

    id = Column(Integer, primary_key=True, index=True)
    season_key = Column(String(50), nullable=False, index=True)  # e.g. "RPDR_S18"
    name = Column(String(100), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("season_key", "name", name="uq_queen_season_name"),
    )


class League(Base):
    __tablename__ = "leagues"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    season_key = Column(String(50), nullable=False)
    starts_at = Column(DateTime(timezone=True))  # Premiere
    submission_deadline = Column(DateTime(timezone=True))
    started_at = Column(DateTime(timezone=True))  # Commissioner early-start override
    status = Column(SAEnum(LeagueStatus), default=LeagueStatus.ACTIVE, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    entries = relationship("LeagueEntry", back_populates="league", cascade="all, delete-orphan")
    episodes = relationship("Episode", back_populates="league", cascade="all, delete-orphan", order_by="Episode.week")


class LeagueEntry(Base):
    __tablename__ = "league_entries"

    id = Column(Integer, primary_key=True, index=True)
    league_id = Column(Integer, ForeignKey("leagues.id"), nullable=False)
    user_id = Column(String(100), nullable=False)  # Owned by the auth layer
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Relationships
    league = relationship("League", back_populates="entries")
    picks = relationship("EntryPick", back_populates="entry", cascade="all, delete-orphan", order_by="EntryPick.slot")
    scores = relationship("LeagueEntryScore", back_populates="entry", cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint("league_id", "user_id", name="uq_entry_league_user"),
    )


class EntryPick(Base):
    """
    One draft slot of an entry. The multiplier is copied from the ruleset
    when the pick is made and is never recomputed afterwards.
    """
    __tablename__ = "entry_picks"

    id = Column(Integer, primary_key=True, index=True)
    entry_id = Column(Integer, ForeignKey("league_entries.id"), nullable=False)
    slot = Column(Integer, nullable=False)  # 1..4
    queen_id = Column(Integer, ForeignKey("queens.id"), nullable=False)
    multiplier = Column(Numeric(3, 1))

    # Relationships
    entry = relationship("LeagueEntry", back_populates="picks")
    queen = relationship("Queen")

    __table_args__ = (
        UniqueConstraint("entry_id", "slot", name="uq_pick_entry_slot"),
        UniqueConstraint("entry_id", "queen_id", name="uq_pick_entry_queen"),
    )


class Episode(Base):
    __tablename__ = "episodes"

    id = Column(Integer, primary_key=True, index=True)
    league_id = Column(Integer, ForeignKey("leagues.id"), nullable=False)
    week = Column(Integer, nullable=False)
    episode_type = Column(SAEnum(EpisodeType), default=EpisodeType.REGULAR, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    league = relationship("League", back_populates="episodes")
    results = relationship("EpisodeResult", back_populates="episode", cascade="all, delete-orphan")
    finale_placements = relationship("FinalePlacement", back_populates="episode", cascade="all, delete-orphan", order_by="FinalePlacement.place")
    finale_extras = relationship("FinaleExtra", back_populates="episode", cascade="all, delete-orphan")
    scores = relationship("LeagueEntryScore", back_populates="episode", cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint("league_id", "week", name="uq_episode_league_week"),
    )


class EpisodeResult(Base):
    """One outcome of a regular week. queen_id is null for a week with no elimination."""
    __tablename__ = "episode_results"

    id = Column(Integer, primary_key=True, index=True)
    episode_id = Column(Integer, ForeignKey("episodes.id"), nullable=False)
    type = Column(SAEnum(ResultType), nullable=False)
    queen_id = Column(Integer, ForeignKey("queens.id"))

    # Relationships
    episode = relationship("Episode", back_populates="results")


class FinalePlacement(Base):
    __tablename__ = "finale_placements"

    id = Column(Integer, primary_key=True, index=True)
    episode_id = Column(Integer, ForeignKey("episodes.id"), nullable=False)
    queen_id = Column(Integer, ForeignKey("queens.id"), nullable=False)
    place = Column(Integer, nullable=False)  # 1 = winner

    # Relationships
    episode = relationship("Episode", back_populates="finale_placements")

    __table_args__ = (
        UniqueConstraint("episode_id", "place", name="uq_placement_episode_place"),
        UniqueConstraint("episode_id", "queen_id", name="uq_placement_episode_queen"),
    )


class FinaleExtra(Base):
    """Bonus challenge wins earned during the finale episode, stored as counts."""
    __tablename__ = "finale_extras"

    id = Column(Integer, primary_key=True, index=True)
    episode_id = Column(Integer, ForeignKey("episodes.id"), nullable=False)
    queen_id = Column(Integer, ForeignKey("queens.id"), nullable=False)
    mini_wins = Column(Integer, default=0, nullable=False)
    main_wins = Column(Integer, default=0, nullable=False)
    lipsync_wins = Column(Integer, default=0, nullable=False)

    # Relationships
    episode = relationship("Episode", back_populates="finale_extras")

    __table_args__ = (
        UniqueConstraint("episode_id", "queen_id", name="uq_extra_episode_queen"),
        CheckConstraint("mini_wins >= 0 AND main_wins >= 0 AND lipsync_wins >= 0", name="ck_extra_counts"),
    )


class LeagueEntryScore(Base):
    """
    Derived table. One row per entry per episode, deleted and regenerated
    whenever that episode's results are saved. Never edited by hand.
    """
    __tablename__ = "league_entry_scores"

    id = Column(Integer, primary_key=True, index=True)
    entry_id = Column(Integer, ForeignKey("league_entries.id"), nullable=False)
    episode_id = Column(Integer, ForeignKey("episodes.id"), nullable=False)
    points = Column(Numeric(10, 2), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    entry = relationship("LeagueEntry", back_populates="scores")
    episode = relationship("Episode", back_populates="scores")

    __table_args__ = (
        UniqueConstraint("entry_id", "episode_id", name="uq_score_entry_episode"),
    )
