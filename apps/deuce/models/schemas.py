"""
Pydantic models for API request/response validation.
"""

from typing import Optional, List
from pydantic import BaseModel, ConfigDict, model_validator


class StandingResponse(BaseModel):
    """One ranked row of a division's standings."""

    model_config = ConfigDict(from_attributes=True)

    rank: int
    player_id: int
    player_name: str
    total_points: int
    record: str
    matches_played: int
    results_counted: str
    sets_won: int
    sets_lost: int
    set_win_pct: str
    games_won: int
    games_lost: int
    game_win_pct: str


class Best6ResultResponse(BaseModel):
    """A single match result in a Best 6 composition."""

    match_id: int
    opponent_id: Optional[int] = None
    opponent_name: str
    is_win: bool
    match_points: int
    margin: int
    date_played: str
    sequence: Optional[int] = None
    counted: bool


class PlayerSummaryResponse(BaseModel):
    """Headline figures for a player's standing."""

    record: str
    league_points: int
    best_possible: int
    results_counted: str
    matches_remaining: int


class Best6CompositionResponse(BaseModel):
    """Best 6 composition of one player in a division+season."""

    player_id: int
    division_id: int
    season_id: int
    total_matches: int
    total_wins: int
    total_losses: int
    counted_wins: int
    counted_losses: int
    total_points: int
    results: List[Best6ResultResponse]
    summary: PlayerSummaryResponse


class RecalculateRequest(BaseModel):
    """Request to recalculate one division+season, or every division when empty."""

    division_id: Optional[int] = None
    season_id: Optional[int] = None

    @model_validator(mode="after")
    def validate_division_key(self):
        """Ensure division_id and season_id are given together."""
        if (self.division_id is None) != (self.season_id is None):
            raise ValueError("division_id and season_id must be provided together")
        return self


class RecalculateResponse(BaseModel):
    """Queued recalculation job."""

    job_id: int
    status: str
    calc_type: str
    division_id: Optional[int] = None
    season_id: Optional[int] = None


class MatchEventResponse(BaseModel):
    """Outcome of a match lifecycle hook."""

    match_id: int
    results_created: Optional[int] = None
    results_deleted: Optional[int] = None
    job_id: Optional[int] = None
