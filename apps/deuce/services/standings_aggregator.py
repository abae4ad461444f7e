"""
Standings aggregation.
Summarizes a player's results into record, totals and head-to-head tallies.
"""

from dataclasses import dataclass, field
from functools import reduce
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Sequence

from deuce.services.result_selection import ResultEntry


@dataclass(frozen=True)
class HeadToHeadRecord:
    """Wins and losses against one opponent."""

    wins: int = 0
    losses: int = 0

    def add(self, is_win: bool) -> "HeadToHeadRecord":
        if is_win:
            return HeadToHeadRecord(self.wins + 1, self.losses)
        return HeadToHeadRecord(self.wins, self.losses + 1)


def _percentage(won: int, total: int) -> float:
    return (won / total) * 100 if total > 0 else 0.0


@dataclass(frozen=True)
class PlayerAggregate:
    """
    Aggregated standings figures for one player.

    Record and set/game totals cover all matches; counted totals and the
    best6_* fields cover only the counted subset. Head-to-head always covers
    all matches.
    """

    wins: int = 0
    losses: int = 0
    matches_played: int = 0
    counted_wins: int = 0
    counted_losses: int = 0
    total_points: int = 0
    sets_won: int = 0
    sets_lost: int = 0
    games_won: int = 0
    games_lost: int = 0
    best6_sets_won: int = 0
    best6_sets_total: int = 0
    best6_games_won: int = 0
    best6_games_total: int = 0
    head_to_head: Mapping[int, HeadToHeadRecord] = field(default_factory=lambda: MappingProxyType({}))

    @property
    def set_win_pct(self) -> float:
        """Set win percentage (0-100) over counted results."""
        return _percentage(self.best6_sets_won, self.best6_sets_total)

    @property
    def game_win_pct(self) -> float:
        """Game win percentage (0-100) over counted results."""
        return _percentage(self.best6_games_won, self.best6_games_total)

    def head_to_head_json(self) -> Dict[str, Dict[str, int]]:
        """Head-to-head map in the shape stored on the standings row."""
        return {
            str(opponent_id): {"wins": record.wins, "losses": record.losses}
            for opponent_id, record in sorted(self.head_to_head.items())
        }


def _tally(h2h: Mapping[int, HeadToHeadRecord], result: ResultEntry) -> Mapping[int, HeadToHeadRecord]:
    if result.opponent_id is None:
        return h2h
    record = h2h.get(result.opponent_id, HeadToHeadRecord())
    return {**h2h, result.opponent_id: record.add(result.is_win)}


def build_head_to_head(results: Sequence[ResultEntry]) -> Mapping[int, HeadToHeadRecord]:
    """Per-opponent record over the given results, as a read-only mapping."""
    return MappingProxyType(dict(reduce(_tally, results, {})))


def aggregate_player(
    all_results: Sequence[ResultEntry],
    counted_results: Optional[Sequence[ResultEntry]] = None,
) -> PlayerAggregate:
    """
    Aggregate one player's results.

    Args:
        all_results: Every completed result for the player in the division+season
        counted_results: The Best 6 subset (defaults to none counted)

    Returns:
        PlayerAggregate
    """
    counted_results = counted_results or []
    wins = sum(1 for r in all_results if r.is_win)
    counted_wins = sum(1 for r in counted_results if r.is_win)

    return PlayerAggregate(
        wins=wins,
        losses=len(all_results) - wins,
        matches_played=len(all_results),
        counted_wins=counted_wins,
        counted_losses=len(counted_results) - counted_wins,
        total_points=sum(r.match_points for r in counted_results),
        sets_won=sum(r.sets_won for r in all_results),
        sets_lost=sum(r.sets_lost for r in all_results),
        games_won=sum(r.games_won for r in all_results),
        games_lost=sum(r.games_lost for r in all_results),
        best6_sets_won=sum(r.sets_won for r in counted_results),
        best6_sets_total=sum(r.sets_won + r.sets_lost for r in counted_results),
        best6_games_won=sum(r.games_won for r in counted_results),
        best6_games_total=sum(r.games_won + r.games_lost for r in counted_results),
        head_to_head=build_head_to_head(all_results),
    )
