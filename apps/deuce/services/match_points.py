"""
Match points calculation service.
Turns a completed match outcome into a per-player points breakdown.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from deuce.utils.constants import DEFAULT_STANDINGS_CONFIG, StandingsConfig

TEAM1 = "team1"
TEAM2 = "team2"
MATCH_TIEBREAK = "match_tiebreak"
FULL_SET = "full_set"
DECIDING_SET_NUMBER = 3


class StandingsError(Exception):
    """Base class for standings engine errors."""


class InvalidTeamAssignmentError(StandingsError, ValueError):
    """Raised when participants cannot be split into two non-empty teams."""


class InvalidScoreError(StandingsError, ValueError):
    """Raised when a score structure does not resolve a winner."""


# ============================================================================
# Data Structures
# ============================================================================

@dataclass(frozen=True)
class Participant:
    """A match participant with an optional team label."""

    player_id: int
    team: Optional[str] = None


@dataclass(frozen=True)
class SetScore:
    """Games (and optional tiebreak points) for one set of a set-based match."""

    set_number: int
    team1_games: int
    team2_games: int
    team1_tiebreak: Optional[int] = None
    team2_tiebreak: Optional[int] = None


@dataclass(frozen=True)
class GameScore:
    """Rally points for one game of a point-based match."""

    game_number: int
    team1_points: int
    team2_points: int


@dataclass(frozen=True)
class MatchOutcome:
    """Team-level won units of a match. Games hold rally points for point-based formats."""

    team1_sets_won: int
    team2_sets_won: int
    team1_games_won: int
    team2_games_won: int

    def __post_init__(self):
        counts = (self.team1_sets_won, self.team2_sets_won, self.team1_games_won, self.team2_games_won)
        if any(count < 0 for count in counts):
            raise InvalidScoreError("Won sets and games cannot be negative")
        if self.team1_sets_won == self.team2_sets_won:
            raise InvalidScoreError(
                f"Outcome {self.team1_sets_won}-{self.team2_sets_won} does not resolve a winner"
            )

    @property
    def winner(self) -> str:
        """Winning team label."""
        return TEAM1 if self.team1_sets_won > self.team2_sets_won else TEAM2


@dataclass(frozen=True)
class PlayerMatchPoints:
    """Points breakdown for one player in one match."""

    player_id: int
    opponent_id: int
    is_win: bool
    participation_points: int
    sets_won_points: int
    win_bonus_points: int
    match_points: int
    margin: int
    sets_won: int
    sets_lost: int
    games_won: int
    games_lost: int


# ============================================================================
# Team Assignment
# ============================================================================

def assign_teams(participants: Sequence[Participant]) -> Tuple[List[int], List[int]]:
    """
    Split participants into two teams.

    Uses the team labels when every participant has one. When none has a
    label the list is split by order: the first half is team 1, the second
    half team 2. A mix of labelled and unlabelled participants is rejected.

    Args:
        participants: Participants in listed order

    Returns:
        Tuple of (team1 player IDs, team2 player IDs)

    Raises:
        InvalidTeamAssignmentError: If either team would be empty, a label is
            unknown, only some participants are labelled, or a player appears twice
    """
    player_ids = [p.player_id for p in participants]
    if len(set(player_ids)) != len(player_ids):
        raise InvalidTeamAssignmentError("Invalid team assignment: duplicate participant")

    labels = [p.team for p in participants]
    if participants and all(label is not None for label in labels):
        unknown = {label for label in labels if label not in (TEAM1, TEAM2)}
        if unknown:
            raise InvalidTeamAssignmentError(
                f"Invalid team assignment: unknown team label(s) {sorted(unknown)}"
            )
        team1 = [p.player_id for p in participants if p.team == TEAM1]
        team2 = [p.player_id for p in participants if p.team == TEAM2]
    elif any(label is not None for label in labels):
        raise InvalidTeamAssignmentError(
            "Invalid team assignment: only some participants have a team label"
        )
    else:
        half = len(participants) // 2
        team1 = player_ids[:half]
        team2 = player_ids[half:]

    if not team1 or not team2:
        raise InvalidTeamAssignmentError(
            f"Invalid team assignment: teams of size {len(team1)} and {len(team2)}"
        )
    return team1, team2


# ============================================================================
# Points Calculation
# ============================================================================

def calculate_for_player(
    player_id: int,
    opponent_id: int,
    is_win: bool,
    player_sets_won: int,
    opponent_sets_won: int,
    player_games_won: int,
    opponent_games_won: int,
    config: StandingsConfig = DEFAULT_STANDINGS_CONFIG,
) -> PlayerMatchPoints:
    """
    Calculate match points for a single player.

    WIN:  participation + sets won + win bonus (5 with default weights)
    LOSS: participation + sets won (1-2 with default weights)
    """
    participation_points = config.participation_points
    sets_won_points = player_sets_won
    win_bonus_points = config.win_bonus_points if is_win else 0

    return PlayerMatchPoints(
        player_id=player_id,
        opponent_id=opponent_id,
        is_win=is_win,
        participation_points=participation_points,
        sets_won_points=sets_won_points,
        win_bonus_points=win_bonus_points,
        match_points=participation_points + sets_won_points + win_bonus_points,
        margin=player_games_won - opponent_games_won,
        sets_won=player_sets_won,
        sets_lost=opponent_sets_won,
        games_won=player_games_won,
        games_lost=opponent_games_won,
    )


def calculate_for_match(
    outcome: MatchOutcome,
    participants: Sequence[Participant],
    config: StandingsConfig = DEFAULT_STANDINGS_CONFIG,
) -> List[PlayerMatchPoints]:
    """
    Calculate match points for all participants (one entry per player).

    Each player's opponent is the first-listed player of the opposing team;
    doubles matches are not cross-paired.

    Args:
        outcome: Parsed team-level outcome
        participants: 2 (singles) or 4 (doubles) participants
        config: Point weights

    Returns:
        List of PlayerMatchPoints, team 1 players first

    Raises:
        InvalidTeamAssignmentError: If the participants cannot form two teams
        InvalidScoreError: If a team won more sets than a match can hold
    """
    team1, team2 = assign_teams(participants)
    if max(outcome.team1_sets_won, outcome.team2_sets_won) > config.sets_to_win:
        raise InvalidScoreError(
            f"Outcome {outcome.team1_sets_won}-{outcome.team2_sets_won} exceeds "
            f"{config.sets_to_win} sets to win"
        )
    team1_won = outcome.winner == TEAM1

    results = []
    for player_id in team1:
        results.append(calculate_for_player(
            player_id,
            team2[0],
            team1_won,
            outcome.team1_sets_won,
            outcome.team2_sets_won,
            outcome.team1_games_won,
            outcome.team2_games_won,
            config,
        ))
    for player_id in team2:
        results.append(calculate_for_player(
            player_id,
            team1[0],
            not team1_won,
            outcome.team2_sets_won,
            outcome.team1_sets_won,
            outcome.team2_games_won,
            outcome.team1_games_won,
            config,
        ))
    return results


# ============================================================================
# Outcome Parsing
# ============================================================================

def _set_winner(set_score: SetScore) -> str:
    if set_score.team1_games != set_score.team2_games:
        return TEAM1 if set_score.team1_games > set_score.team2_games else TEAM2

    # Level on games: the tiebreak decides
    tb1, tb2 = set_score.team1_tiebreak, set_score.team2_tiebreak
    if tb1 is None or tb2 is None or tb1 == tb2:
        raise InvalidScoreError(f"Set {set_score.set_number} is level with no deciding tiebreak")
    return TEAM1 if tb1 > tb2 else TEAM2


def parse_set_outcome(set_scores: Sequence[SetScore], set3_format: str = MATCH_TIEBREAK) -> MatchOutcome:
    """
    Parse a tennis/padel match outcome from set scores.

    In MATCH_TIEBREAK mode the deciding set's tiebreak points count as games;
    if no tiebreak points were recorded the game fields are taken to hold them.
    In FULL_SET mode every set counts its games.

    Raises:
        InvalidScoreError: If there are no sets or the sets do not resolve a winner
    """
    if not set_scores:
        raise InvalidScoreError("Set scores not found")

    team1_sets = team2_sets = 0
    team1_games = team2_games = 0

    for set_score in sorted(set_scores, key=lambda s: s.set_number):
        if _set_winner(set_score) == TEAM1:
            team1_sets += 1
        else:
            team2_sets += 1

        is_match_tiebreak = set_score.set_number == DECIDING_SET_NUMBER and set3_format == MATCH_TIEBREAK
        if is_match_tiebreak and set_score.team1_tiebreak is not None and set_score.team2_tiebreak is not None:
            team1_games += set_score.team1_tiebreak
            team2_games += set_score.team2_tiebreak
        else:
            team1_games += set_score.team1_games
            team2_games += set_score.team2_games

    return MatchOutcome(
        team1_sets_won=team1_sets,
        team2_sets_won=team2_sets,
        team1_games_won=team1_games,
        team2_games_won=team2_games,
    )


def parse_game_outcome(game_scores: Sequence[GameScore]) -> MatchOutcome:
    """
    Parse a pickleball match outcome from game scores.

    Games won fill the "sets" slots and rally points fill the "games" slots.

    Raises:
        InvalidScoreError: If there are no games, a game is level, or the games
            do not resolve a winner
    """
    if not game_scores:
        raise InvalidScoreError("Game scores not found")

    team1_games = team2_games = 0
    team1_points = team2_points = 0

    for game in game_scores:
        if game.team1_points == game.team2_points:
            raise InvalidScoreError(f"Game {game.game_number} is level")
        if game.team1_points > game.team2_points:
            team1_games += 1
        else:
            team2_games += 1
        team1_points += game.team1_points
        team2_points += game.team2_points

    return MatchOutcome(
        team1_sets_won=team1_games,
        team2_sets_won=team2_games,
        team1_games_won=team1_points,
        team2_games_won=team2_points,
    )


def walkover_outcome(
    team1_score: Optional[int],
    team2_score: Optional[int],
    config: StandingsConfig = DEFAULT_STANDINGS_CONFIG,
) -> MatchOutcome:
    """
    Build the outcome of a walkover: the winner is credited a straight-sets win.

    Raises:
        InvalidScoreError: If the walkover scores do not name a winner
    """
    score1, score2 = team1_score or 0, team2_score or 0
    if score1 == score2:
        raise InvalidScoreError("Walkover scores do not name a winner")

    team1_won = score1 > score2
    return MatchOutcome(
        team1_sets_won=config.sets_to_win if team1_won else 0,
        team2_sets_won=0 if team1_won else config.sets_to_win,
        team1_games_won=config.walkover_games if team1_won else 0,
        team2_games_won=0 if team1_won else config.walkover_games,
    )
