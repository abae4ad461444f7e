"""
Tests for the tiebreak ranking pipeline.
Pure metric tables, no database.
"""

from types import MappingProxyType

from deuce.services.standings_aggregator import HeadToHeadRecord
from deuce.services.tiebreak_service import (
    PlayerMetrics,
    group_by_points,
    name_sort_key,
    rank_players,
    resolve_group,
    resolve_multi_way_tie,
    resolve_two_way_tie,
    wins_within_group,
)


def metrics(player_id, name, points, set_pct=50.0, game_pct=50.0, wins_against=None):
    """wins_against maps opponent_id -> (wins, losses)."""
    h2h = {
        opponent_id: HeadToHeadRecord(wins=w, losses=l)
        for opponent_id, (w, l) in (wins_against or {}).items()
    }
    return PlayerMetrics(
        player_id=player_id,
        name=name,
        total_points=points,
        set_win_pct=set_pct,
        game_win_pct=game_pct,
        head_to_head=MappingProxyType(h2h),
    )


def order(ranked):
    return [r.player_id for r in ranked]


# ============================================================================
# group_by_points
# ============================================================================

def test_groups_ordered_by_points_descending():
    players = [metrics(1, "A", 10), metrics(2, "B", 20), metrics(3, "C", 10)]
    groups = group_by_points(players)
    assert [[p.player_id for p in g] for g in groups] == [[2], [1, 3]]


def test_empty_division():
    assert group_by_points([]) == []
    assert rank_players([]) == []


# ============================================================================
# Two-way ties
# ============================================================================

def test_two_way_tie_head_to_head_winner_first():
    """The head-to-head winner ranks ahead even with worse percentages."""
    a = metrics(1, "Alice", 18, set_pct=90.0, game_pct=90.0, wins_against={2: (0, 1)})
    b = metrics(2, "Bob", 18, set_pct=10.0, game_pct=10.0, wins_against={1: (1, 0)})
    assert [p.player_id for p in resolve_two_way_tie(a, b)] == [2, 1]


def test_two_way_tie_without_meeting_uses_set_pct():
    a = metrics(1, "Alice", 18, set_pct=40.0)
    b = metrics(2, "Bob", 18, set_pct=60.0)
    assert [p.player_id for p in resolve_two_way_tie(a, b)] == [2, 1]


def test_two_way_tie_split_head_to_head_uses_game_pct():
    a = metrics(1, "Alice", 18, game_pct=55.0, wins_against={2: (1, 1)})
    b = metrics(2, "Bob", 18, game_pct=65.0, wins_against={1: (1, 1)})
    assert [p.player_id for p in resolve_two_way_tie(a, b)] == [2, 1]


def test_two_way_tie_falls_back_to_name():
    a = metrics(1, "Zoe", 18)
    b = metrics(2, "adam", 18)
    assert [p.player_id for p in resolve_two_way_tie(a, b)] == [2, 1]


def test_two_way_tie_one_sided_record():
    """A record held by only one player still decides the tie."""
    a = metrics(1, "Alice", 18, wins_against={2: (2, 0)})
    b = metrics(2, "Bob", 18, set_pct=100.0)
    assert [p.player_id for p in resolve_two_way_tie(a, b)] == [1, 2]


# ============================================================================
# Multi-way ties
# ============================================================================

def test_three_way_tie_ordered_by_group_wins():
    """Three players on 18 points with 2, 1 and 0 wins inside the group."""
    a = metrics(1, "Cara", 18, set_pct=10.0, wins_against={2: (1, 0), 3: (1, 0)})
    b = metrics(2, "Beth", 18, set_pct=50.0, wins_against={1: (0, 1), 3: (1, 0)})
    c = metrics(3, "Anna", 18, set_pct=90.0, wins_against={1: (0, 1), 2: (0, 1)})

    ranked = rank_players([c, b, a])

    assert order(ranked) == [1, 2, 3]
    assert [r.rank for r in ranked] == [1, 2, 3]


def test_group_wins_ignore_players_outside_the_group():
    outsider = 99
    a = metrics(1, "Alice", 12, wins_against={outsider: (5, 0)})
    b = metrics(2, "Bob", 12, wins_against={1: (1, 0)})
    c = metrics(3, "Cleo", 12)
    group = [a, b, c]

    assert wins_within_group(a, group) == 0
    assert wins_within_group(b, group) == 1
    assert [p.player_id for p in resolve_multi_way_tie(group)] == [2, 1, 3]


def test_cyclic_three_way_tie_falls_through_to_percentages():
    """A beat B, B beat C, C beat A: equal group wins, so set % decides."""
    a = metrics(1, "Alice", 15, set_pct=50.0, wins_against={2: (1, 0), 3: (0, 1)})
    b = metrics(2, "Bob", 15, set_pct=70.0, wins_against={3: (1, 0), 1: (0, 1)})
    c = metrics(3, "Cleo", 15, set_pct=60.0, wins_against={1: (1, 0), 2: (0, 1)})

    assert [p.player_id for p in resolve_multi_way_tie([a, b, c])] == [2, 3, 1]


def test_cyclic_three_way_tie_with_equal_percentages_uses_name():
    a = metrics(1, "Cleo", 15, wins_against={2: (1, 0), 3: (0, 1)})
    b = metrics(2, "Alice", 15, wins_against={3: (1, 0), 1: (0, 1)})
    c = metrics(3, "Bob", 15, wins_against={1: (1, 0), 2: (0, 1)})

    assert [p.player_id for p in resolve_multi_way_tie([a, b, c])] == [2, 3, 1]


def test_resolve_group_dispatches_by_size():
    solo = metrics(1, "Solo", 9)
    assert resolve_group([solo]) == [solo]


# ============================================================================
# rank_players
# ============================================================================

def test_ranks_are_dense_and_unique():
    players = [
        metrics(1, "Ann", 20),
        metrics(2, "Ben", 18),
        metrics(3, "Cat", 18),
        metrics(4, "Dan", 18),
        metrics(5, "Eve", 5),
        metrics(6, "Eve", 5),
    ]
    ranked = rank_players(players)
    assert [r.rank for r in ranked] == [1, 2, 3, 4, 5, 6]
    assert sorted(order(ranked)) == [1, 2, 3, 4, 5, 6]
    assert ranked[0].player_id == 1
    # Identical names fall back to player ID
    assert order(ranked)[-2:] == [5, 6]


def test_points_dominate_tiebreaks():
    leader = metrics(1, "Zed", 21, set_pct=0.0)
    chaser = metrics(2, "Amy", 20, set_pct=100.0, wins_against={1: (3, 0)})
    assert order(rank_players([chaser, leader])) == [1, 2]


def test_ranking_is_deterministic_across_input_order():
    players = [
        metrics(1, "Ann", 12, set_pct=40.0),
        metrics(2, "Ben", 12, set_pct=40.0, game_pct=60.0),
        metrics(3, "Cat", 12, set_pct=70.0),
        metrics(4, "Dan", 8),
    ]
    assert order(rank_players(players)) == order(rank_players(list(reversed(players))))
    assert order(rank_players(players)) == [3, 2, 1, 4]


# ============================================================================
# name_sort_key
# ============================================================================

def test_name_key_ignores_case_and_accents():
    names = ["zoë", "Émile", "adam", "Eva"]
    assert sorted(names, key=name_sort_key) == ["adam", "Émile", "Eva", "zoë"]


def test_name_key_handles_missing_name():
    assert name_sort_key(None) == ("", "")
