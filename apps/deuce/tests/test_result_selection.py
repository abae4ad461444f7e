"""
Tests for Best 6 result selection.
"""

from datetime import datetime, timedelta

import pytest
import pytz

from deuce.services.result_selection import (
    ResultEntry,
    loss_strength_key,
    select_best6,
    sort_chronologically,
)
from deuce.utils.constants import StandingsConfig

START = datetime(2025, 3, 1, 18, 0, tzinfo=pytz.UTC)


def win(result_id, day, points=5, margin=6):
    return ResultEntry(
        result_id=result_id,
        match_id=result_id,
        opponent_id=100 + result_id,
        date_played=START + timedelta(days=day),
        is_win=True,
        match_points=points,
        margin=margin,
    )


def loss(result_id, day, points=1, margin=-6):
    return ResultEntry(
        result_id=result_id,
        match_id=result_id,
        opponent_id=100 + result_id,
        date_played=START + timedelta(days=day),
        is_win=False,
        match_points=points,
        margin=margin,
    )


def test_no_results_is_empty_selection():
    selection = select_best6([])
    assert selection.counted == ()
    assert selection.uncounted == ()
    assert selection.total_points == 0


def test_five_wins_and_strongest_loss():
    """5 wins plus loss B (2 points, +1 margin, more recent); loss A (1 point, -8) is left out."""
    wins = [win(i, day=i) for i in range(1, 6)]
    loss_a = loss(6, day=6, points=1, margin=-8)
    loss_b = loss(7, day=7, points=2, margin=1)

    selection = select_best6(wins + [loss_a, loss_b])

    sequences = selection.sequences()
    assert [sequences[i] for i in range(1, 6)] == [1, 2, 3, 4, 5]
    assert sequences[7] == 6
    assert sequences[6] is None
    assert selection.counted_wins == 5
    assert selection.counted_losses == 1
    assert selection.total_points == 5 * 5 + 2


def test_earliest_wins_are_locked():
    """A later, higher-value win never displaces an earlier win."""
    early = [win(i, day=i, points=4) for i in range(1, 7)]
    late_big_win = win(7, day=20, points=5)

    selection = select_best6([late_big_win] + early)

    assert [c.result_id for c in selection.counted] == [1, 2, 3, 4, 5, 6]
    assert selection.uncounted == (late_big_win,)
    assert selection.total_points == 24


def test_excess_wins_never_fill_loss_slots():
    """Seven wins and no losses: six counted, the seventh dropped."""
    results = [win(i, day=i) for i in range(1, 8)]
    selection = select_best6(results)
    assert len(selection.counted) == 6
    assert selection.counted_losses == 0
    assert [r.result_id for r in selection.uncounted] == [7]


def test_wins_sequenced_chronologically_regardless_of_input_order():
    results = [win(3, day=3), win(1, day=1), win(2, day=2)]
    selection = select_best6(results)
    assert [c.result_id for c in selection.counted] == [1, 2, 3]
    assert [c.sequence for c in selection.counted] == [1, 2, 3]


def test_losses_ordered_by_strength_not_date():
    results = [
        win(1, day=1),
        loss(2, day=2, points=1, margin=-3),
        loss(3, day=3, points=2, margin=-2),
        loss(4, day=4, points=2, margin=-1),
    ]
    selection = select_best6(results)
    assert [c.result_id for c in selection.counted] == [1, 4, 3, 2]
    assert [c.sequence for c in selection.counted] == [1, 2, 3, 4]


def test_more_recent_loss_wins_full_tie():
    results = [loss(1, day=1, points=2, margin=-1), loss(2, day=5, points=2, margin=-1)]
    selection = select_best6(results, StandingsConfig(max_counted_results=1))
    assert [c.result_id for c in selection.counted] == [2]
    assert [r.result_id for r in selection.uncounted] == [1]


def test_fewer_than_six_results_all_counted():
    results = [win(1, day=1), loss(2, day=2), loss(3, day=3)]
    selection = select_best6(results)
    assert len(selection.counted) == 3
    assert selection.uncounted == ()


def test_same_day_results_ordered_by_match_id():
    same_day = START + timedelta(days=1)
    first = ResultEntry(1, 50, 2, same_day, True, 5, 6)
    second = ResultEntry(2, 40, 3, same_day, True, 5, 6)
    assert sort_chronologically([first, second]) == [second, first]


def test_naive_and_aware_dates_compare():
    naive = ResultEntry(1, 1, 2, datetime(2025, 3, 2, 12, 0), True, 5, 6)
    aware = ResultEntry(2, 2, 3, START, True, 5, 6)
    assert sort_chronologically([naive, aware]) == [aware, naive]


def test_loss_strength_key_prefers_points_then_margin():
    strong = loss(1, day=1, points=2, margin=-4)
    close = loss(2, day=1, points=1, margin=-1)
    assert loss_strength_key(strong) < loss_strength_key(close)


def test_configurable_cap():
    results = [win(i, day=i) for i in range(1, 10)]
    selection = select_best6(results, StandingsConfig(max_counted_results=8))
    assert len(selection.counted) == 8


def test_selection_is_idempotent():
    results = [win(1, day=3), loss(2, day=1, points=2), win(3, day=2), loss(4, day=4)]
    assert select_best6(results) == select_best6(list(reversed(results)))


@pytest.mark.parametrize("wins_count,losses_count", [(0, 9), (3, 5), (6, 3), (9, 0)])
def test_counted_results_never_exceed_cap(wins_count, losses_count):
    results = [win(i, day=i) for i in range(wins_count)]
    results += [loss(100 + i, day=50 + i, points=1 + i % 2, margin=-i) for i in range(losses_count)]
    selection = select_best6(results)

    assert len(selection.counted) <= 6
    assert len(selection.counted) + len(selection.uncounted) == len(results)
    assert [c.sequence for c in selection.counted] == list(range(1, len(selection.counted) + 1))

    counted_wins = [c.result for c in selection.counted if c.result.is_win]
    assert counted_wins == sort_chronologically(counted_wins)
    # Wins occupy the earliest sequence numbers
    assert all(c.result.is_win for c in selection.counted[:len(counted_wins)])
