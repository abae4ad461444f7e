"""
Tiebreak ranking for division standings.

TIEBREAKER ORDER:
1. Total points (from counted results)
2. Head-to-head (2-way tie: direct record; 3+ way tie: wins within the tied group)
3. Set win % (counted results only)
4. Game win % (counted results only)
5. Name (alphabetical)

The pipeline is group_by_points -> resolve_group -> flatten, and every stage
works on plain metrics so it can be tested without a database.
"""

import unicodedata
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, List, Mapping, Sequence, Tuple

from deuce.services.standings_aggregator import HeadToHeadRecord


@dataclass(frozen=True)
class PlayerMetrics:
    """Precomputed tiebreak inputs for one player."""

    player_id: int
    name: str
    total_points: int
    set_win_pct: float = 0.0
    game_win_pct: float = 0.0
    head_to_head: Mapping[int, HeadToHeadRecord] = field(default_factory=lambda: MappingProxyType({}))

    def wins_against(self, opponent_id: int) -> int:
        record = self.head_to_head.get(opponent_id)
        return record.wins if record else 0


@dataclass(frozen=True)
class RankedPlayer:
    """A player with their final dense rank."""

    rank: int
    metrics: PlayerMetrics

    @property
    def player_id(self) -> int:
        return self.metrics.player_id


def name_sort_key(name: str) -> Tuple[str, str]:
    """
    Alphabetical key that ignores case and accents, so "élise" sorts with "Elise".
    The raw name breaks ties between names that only differ in case or accents.
    """
    decomposed = unicodedata.normalize("NFKD", name or "")
    base = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return (base.casefold(), name or "")


def _fallback_key(player: PlayerMetrics) -> Tuple[float, float, Tuple[str, str], int]:
    return (-player.set_win_pct, -player.game_win_pct, name_sort_key(player.name), player.player_id)


# ============================================================================
# Pipeline Stages
# ============================================================================

def group_by_points(players: Sequence[PlayerMetrics]) -> List[List[PlayerMetrics]]:
    """Group players by exact total points, groups ordered by points descending."""
    groups: Dict[int, List[PlayerMetrics]] = {}
    for player in players:
        groups.setdefault(player.total_points, []).append(player)
    return [groups[points] for points in sorted(groups, reverse=True)]


def resolve_two_way_tie(a: PlayerMetrics, b: PlayerMetrics) -> List[PlayerMetrics]:
    """Order a pair tied on points: direct head-to-head wins, then the fallback cascade."""
    a_wins = a.wins_against(b.player_id)
    b_wins = b.wins_against(a.player_id)
    if a_wins != b_wins:
        return [a, b] if a_wins > b_wins else [b, a]
    return sorted([a, b], key=_fallback_key)


def wins_within_group(player: PlayerMetrics, group: Sequence[PlayerMetrics]) -> int:
    """Head-to-head wins against the other members of a tied group only."""
    return sum(
        player.wins_against(other.player_id)
        for other in group
        if other.player_id != player.player_id
    )


def resolve_multi_way_tie(group: Sequence[PlayerMetrics]) -> List[PlayerMetrics]:
    """
    Order a group of 3+ players tied on points.

    Sorted by wins against other group members, then the fallback cascade.
    Cyclic results (A beat B, B beat C, C beat A) give equal group wins and
    fall through to set win %, game win % and name.
    """
    group_wins = {p.player_id: wins_within_group(p, group) for p in group}
    return sorted(group, key=lambda p: (-group_wins[p.player_id],) + _fallback_key(p))


def resolve_group(group: Sequence[PlayerMetrics]) -> List[PlayerMetrics]:
    """Order one points group according to its size."""
    if len(group) == 1:
        return list(group)
    if len(group) == 2:
        return resolve_two_way_tie(group[0], group[1])
    return resolve_multi_way_tie(group)


def rank_players(players: Sequence[PlayerMetrics]) -> List[RankedPlayer]:
    """
    Produce the total ordering of a division.

    Ranks are dense 1..N; the cascade always breaks ties so no two players
    share a rank.
    """
    ordered = [player for group in group_by_points(players) for player in resolve_group(group)]
    return [RankedPlayer(rank=index, metrics=player) for index, player in enumerate(ordered, start=1)]
