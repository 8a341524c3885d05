from pydantic import BaseModel


class PickBreakdownItem(BaseModel):
    slot: int
    multiplier: float | None  # None when the stored pick has no multiplier
    queen_id: int
    queen_name: str | None = None
    eliminated: bool = False


class LeaderboardEntry(BaseModel):
    rank: int
    entry_id: int
    user_id: str
    total_points: float
    last_week_rank: int | None = None
    delta_rank: int | None = None
    picks: list[PickBreakdownItem]


class LeaderboardResponse(BaseModel):
    league_id: int
    entries: list[LeaderboardEntry]


class WeeklyRecapEntryItem(BaseModel):
    rank: int
    entry_id: int
    user_id: str
    week_points: float
    season_total: float


class WeeklyRecapResponse(BaseModel):
    league_id: int
    episode_id: int
    week: int
    episode_type: str
    standings: list[WeeklyRecapEntryItem]
