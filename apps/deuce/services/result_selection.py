"""
Best 6 result selection.

Decides which of a player's results count toward standings:
1. Sort all results chronologically
2. Take the first N wins (N = max_counted_results, 6 by default); these are locked
3. If fewer than N wins, fill with the strongest losses (points, then margin, then date)
4. Counted results get sequence 1..N, everything else is uncounted
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from deuce.utils.constants import DEFAULT_STANDINGS_CONFIG, StandingsConfig
from deuce.utils.datetime_utils import ensure_utc


@dataclass(frozen=True)
class ResultEntry:
    """One completed match result for a player, as stored."""

    result_id: int
    match_id: int
    opponent_id: Optional[int]
    date_played: datetime
    is_win: bool
    match_points: int
    margin: int
    sets_won: int = 0
    sets_lost: int = 0
    games_won: int = 0
    games_lost: int = 0


@dataclass(frozen=True)
class CountedResult:
    """A result selected to count toward standings."""

    result: ResultEntry
    sequence: int

    @property
    def result_id(self) -> int:
        return self.result.result_id


@dataclass(frozen=True)
class Best6Selection:
    """Outcome of Best 6 selection for one player."""

    counted: Tuple[CountedResult, ...] = ()
    uncounted: Tuple[ResultEntry, ...] = ()

    @property
    def counted_results(self) -> List[ResultEntry]:
        """Counted results in sequence order."""
        return [c.result for c in self.counted]

    @property
    def counted_wins(self) -> int:
        return sum(1 for c in self.counted if c.result.is_win)

    @property
    def counted_losses(self) -> int:
        return sum(1 for c in self.counted if not c.result.is_win)

    @property
    def total_points(self) -> int:
        return sum(c.result.match_points for c in self.counted)

    def sequences(self) -> Dict[int, Optional[int]]:
        """Map every result ID to its sequence (None when not counted)."""
        mapping: Dict[int, Optional[int]] = {c.result_id: c.sequence for c in self.counted}
        mapping.update({r.result_id: None for r in self.uncounted})
        return mapping


def chronological_key(result: ResultEntry) -> Tuple[datetime, int, int]:
    """Play date ascending, then match and result ID for determinism."""
    return (ensure_utc(result.date_played), result.match_id, result.result_id)


def loss_strength_key(result: ResultEntry) -> Tuple[int, int, float, int, int]:
    """
    Sort key putting the strongest loss first.

    Higher match points, then higher margin, then more recent play date.
    Match and result IDs settle anything still tied.
    """
    return (
        -result.match_points,
        -result.margin,
        -ensure_utc(result.date_played).timestamp(),
        result.match_id,
        result.result_id,
    )


def sort_chronologically(results: Iterable[ResultEntry]) -> List[ResultEntry]:
    return sorted(results, key=chronological_key)


def select_best6(
    results: Sequence[ResultEntry],
    config: StandingsConfig = DEFAULT_STANDINGS_CONFIG,
) -> Best6Selection:
    """
    Select the results that count toward a player's standing.

    Wins beyond the cap are dropped entirely; they never take a slot that a
    loss could have filled.

    Args:
        results: All of the player's completed results in one division+season
        config: Supplies the cap (max_counted_results)

    Returns:
        Best6Selection with counted results in sequence order
    """
    cap = config.max_counted_results
    ordered = sort_chronologically(results)

    wins = [r for r in ordered if r.is_win]
    losses = [r for r in ordered if not r.is_win]

    # First wins by play date are locked: a later win never displaces them
    counted_wins = wins[:cap]

    slots_remaining = cap - len(counted_wins)
    counted_losses = sorted(losses, key=loss_strength_key)[:slots_remaining] if slots_remaining > 0 else []

    counted = tuple(
        CountedResult(result=r, sequence=index)
        for index, r in enumerate(counted_wins + counted_losses, start=1)
    )
    counted_ids = {c.result_id for c in counted}
    uncounted = tuple(r for r in ordered if r.result_id not in counted_ids)

    return Best6Selection(counted=counted, uncounted=uncounted)
