from pydantic import BaseModel, Field

from dragrace_fantasy.models.models import EpisodeType, ResultType


class RegularWeekSubmit(BaseModel):
    mini_winners: list[int] = Field(..., min_length=1)
    main_winners: list[int] = Field(..., min_length=1)
    lipsync_winner: int
    eliminated_queen_id: int | None = None  # None = nobody went home


class FinalePlacementInput(BaseModel):
    queen_id: int
    place: int = Field(..., ge=1, le=4)


class FinaleExtraInput(BaseModel):
    queen_id: int
    mini_wins: int = Field(0, ge=0)
    main_wins: int = Field(0, ge=0)
    lipsync_wins: int = Field(0, ge=0)


class FinaleSubmit(BaseModel):
    placements: list[FinalePlacementInput]
    extras: list[FinaleExtraInput] = []
    finalize: bool = False


class EpisodeResultResponse(BaseModel):
    type: ResultType
    queen_id: int | None

    model_config = {"from_attributes": True}


class FinalePlacementResponse(BaseModel):
    queen_id: int
    place: int

    model_config = {"from_attributes": True}


class FinaleExtraResponse(BaseModel):
    queen_id: int
    mini_wins: int
    main_wins: int
    lipsync_wins: int

    model_config = {"from_attributes": True}


class EpisodeResponse(BaseModel):
    id: int
    league_id: int
    week: int
    episode_type: EpisodeType
    results: list[EpisodeResultResponse] = []
    finale_placements: list[FinalePlacementResponse] = []
    finale_extras: list[FinaleExtraResponse] = []

    model_config = {"from_attributes": True}


class WeekSaveResponse(BaseModel):
    ok: bool = True
    episode_id: int
    scores: dict[int, float] = {}
