from types import SimpleNamespace

import pytest

from pingpong.services.stats import (
    compute_streaks,
    head_to_head,
    rating_extremes,
    rolling_win_percentage,
    win_rate,
)


def _m(p1, p2, winner, change):
    return SimpleNamespace(player1_id=p1, player2_id=p2, winner_id=winner, rating_change=change)


def test_rolling_win_percentage():
    assert rolling_win_percentage([True, False, True, True], 2) == [1.0, 0.5, 0.5, 1.0]
    with pytest.raises(ValueError):
        rolling_win_percentage([True], 0)


def test_compute_streaks():
    assert compute_streaks([True, True, False, True, True, True]) == {
        "current": 3,
        "longestWin": 3,
        "longestLoss": 1,
    }
    assert compute_streaks([True, False, False])["current"] == -2
    assert compute_streaks([])["current"] == 0


def test_rating_extremes_and_head_to_head():
    matches = [
        _m("a", "b", "a", 12.5),
        _m("c", "a", "c", 20.1),
        _m("a", "b", "b", 3.2),
    ]

    assert rating_extremes("a", matches) == (12.5, -20.1)
    assert rating_extremes("a", []) == (0.0, 0.0)
    records = head_to_head("a", matches, {"b": "Bob", "c": "Cat"})
    assert [(r["opponentName"], r["wins"], r["losses"]) for r in records] == [
        ("Bob", 1, 1),
        ("Cat", 0, 1),
    ]


def test_win_rate():
    assert win_rate(0, 0) == 0.0
    assert win_rate(2, 3) == 66.7
