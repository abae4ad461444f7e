"""
Match result creation.

Turns a completed match into one match_results row per participant. Rows are
created with counts_for_standings = False; Best 6 flags and sequences are only
assigned by a standings recalculation.
"""

import logging
from typing import List, Optional

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from deuce.database.models import (
    Match,
    MatchResult,
    MatchStatus,
    MatchType,
    Season,
    SportType,
)
from deuce.services.match_points import (
    GameScore,
    MatchOutcome,
    Participant,
    SetScore,
    StandingsError,
    calculate_for_match,
    parse_game_outcome,
    parse_set_outcome,
    walkover_outcome,
)
from deuce.utils.constants import DEFAULT_STANDINGS_CONFIG, StandingsConfig

logger = logging.getLogger(__name__)


class MatchNotFoundError(StandingsError):
    """Raised when a match does not exist."""


class MatchNotCompletedError(StandingsError):
    """Raised when results are requested for a match that is not completed."""


async def get_match(session: AsyncSession, match_id: int) -> Optional[Match]:
    """Load a match with its participants and scores."""
    result = await session.execute(
        select(Match)
        .where(Match.id == match_id)
        .options(
            selectinload(Match.participants),
            selectinload(Match.set_scores),
            selectinload(Match.game_scores),
        )
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_season_config(session: AsyncSession, season_id: Optional[int]) -> StandingsConfig:
    """
    Get the standings configuration for a season.

    Falls back to the default configuration when the season has no overrides.

    Raises:
        ValueError: If the season's standings_config JSON is invalid
    """
    if season_id is None:
        return DEFAULT_STANDINGS_CONFIG
    result = await session.execute(
        select(Season.standings_config).where(Season.id == season_id)
    )
    return StandingsConfig.from_json(result.scalar_one_or_none())


def match_participants(match: Match) -> List[Participant]:
    """
    Participants in listed order.

    Singles ignore stored labels: the first participant is team 1 and the
    second team 2. Doubles use the stored labels.
    """
    if match.match_type == MatchType.SINGLES:
        return [Participant(player_id=p.player_id) for p in match.participants]
    return [Participant(player_id=p.player_id, team=p.team) for p in match.participants]


def match_outcome(match: Match, config: StandingsConfig = DEFAULT_STANDINGS_CONFIG) -> MatchOutcome:
    """
    Derive the team-level outcome of a match from its stored scores.

    Raises:
        InvalidScoreError: If the scores do not resolve a winner
    """
    if match.is_walkover:
        return walkover_outcome(match.team1_score, match.team2_score, config)

    if match.sport == SportType.PICKLEBALL:
        return parse_game_outcome([
            GameScore(
                game_number=g.game_number,
                team1_points=g.team1_points,
                team2_points=g.team2_points,
            )
            for g in match.game_scores
        ])

    return parse_set_outcome(
        [
            SetScore(
                set_number=s.set_number,
                team1_games=s.team1_games,
                team2_games=s.team2_games,
                team1_tiebreak=s.team1_tiebreak,
                team2_tiebreak=s.team2_tiebreak,
            )
            for s in match.set_scores
        ],
        match.set3_format.value,
    )


async def create_match_results(
    session: AsyncSession,
    match_id: int,
    config: Optional[StandingsConfig] = None,
) -> List[MatchResult]:
    """
    Create match_results rows for a completed match.

    No-op when rows already exist for the match. Matches without a division or
    season are skipped. The caller owns the transaction; rows are flushed, not
    committed.

    Args:
        session: Database session
        match_id: Match ID
        config: Scoring configuration (defaults to the season's configuration)

    Returns:
        List of created MatchResult rows (empty when nothing was created)

    Raises:
        MatchNotFoundError: If the match does not exist
        MatchNotCompletedError: If the match is not completed
        InvalidTeamAssignmentError: If the participants cannot form two teams
        InvalidScoreError: If the scores do not resolve a winner
    """
    match = await get_match(session, match_id)
    if not match:
        raise MatchNotFoundError(f"Match {match_id} not found")
    if match.status != MatchStatus.COMPLETED:
        raise MatchNotCompletedError(
            f"Match {match_id} is {match.status.value}, not completed"
        )
    if match.division_id is None or match.season_id is None:
        logger.warning(f"Match {match_id} has no division/season, skipping result creation")
        return []

    existing = await session.execute(
        select(MatchResult.id).where(MatchResult.match_id == match_id).limit(1)
    )
    if existing.scalar_one_or_none() is not None:
        logger.debug(f"Results already exist for match {match_id}")
        return []

    if config is None:
        config = await get_season_config(session, match.season_id)

    # Validate everything before touching the session
    outcome = match_outcome(match, config)
    points = calculate_for_match(outcome, match_participants(match), config)

    rows = [
        MatchResult(
            match_id=match.id,
            player_id=p.player_id,
            opponent_id=p.opponent_id,
            division_id=match.division_id,
            season_id=match.season_id,
            date_played=match.match_date,
            is_win=p.is_win,
            participation_points=p.participation_points,
            sets_won_points=p.sets_won_points,
            win_bonus_points=p.win_bonus_points,
            match_points=p.match_points,
            margin=p.margin,
            sets_won=p.sets_won,
            sets_lost=p.sets_lost,
            games_won=p.games_won,
            games_lost=p.games_lost,
            counts_for_standings=False,
            result_sequence=None,
        )
        for p in points
    ]
    session.add_all(rows)
    await session.flush()

    logger.info(f"Created {len(rows)} match results for match {match_id}")
    return rows


async def delete_match_results(session: AsyncSession, match_id: int) -> int:
    """
    Delete all match_results rows of a match. The caller owns the transaction.

    Returns:
        Number of rows deleted
    """
    result = await session.execute(
        delete(MatchResult).where(MatchResult.match_id == match_id)
    )
    deleted = result.rowcount or 0
    logger.info(f"Deleted {deleted} match results for match {match_id}")
    return deleted
