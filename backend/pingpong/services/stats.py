from __future__ import annotations

from collections import deque
from typing import Any, Dict, Iterable, List, Sequence, Tuple


def rolling_win_percentage(results: Sequence[bool], span: int) -> list[float]:
    """Return rolling win percentage for a sequence of results.

    Args:
        results: Sequence where ``True`` represents a win and ``False`` a loss.
        span: Size of the rolling window.
    """
    if span <= 0:
        raise ValueError("span must be positive")
    wins = 0
    window: deque[bool] = deque()
    percentages: list[float] = []
    for r in results:
        window.append(r)
        if r:
            wins += 1
        if len(window) > span:
            old = window.popleft()
            if old:
                wins -= 1
        percentages.append(wins / len(window))
    return percentages


def compute_streaks(results: Sequence[bool]) -> Dict[str, int]:
    """Compute current, longest win, and longest loss streaks.

    ``current`` is positive for a win streak and negative for a loss streak.
    """
    longest_win = longest_loss = 0
    curr_win = curr_loss = 0
    for r in results:
        if r:
            curr_win += 1
            curr_loss = 0
            longest_win = max(longest_win, curr_win)
        else:
            curr_loss += 1
            curr_win = 0
            longest_loss = max(longest_loss, curr_loss)
    current = curr_win if curr_win else -curr_loss
    return {
        "current": current,
        "longestWin": longest_win,
        "longestLoss": longest_loss,
    }


def signed_rating_change(player_id: str, match: Any) -> float:
    """The match's rating change from ``player_id``'s point of view."""
    change = float(match.rating_change or 0.0)
    return change if match.winner_id == player_id else -change


def rating_extremes(player_id: str, matches: Iterable[Any]) -> Tuple[float, float]:
    """Return ``(biggest_gain, biggest_loss)``; both are ``0`` without matches."""
    changes = [signed_rating_change(player_id, m) for m in matches]
    if not changes:
        return 0.0, 0.0
    return max(changes), min(changes)


def head_to_head(
    player_id: str, matches: Iterable[Any], names: Dict[str, str]
) -> List[Dict[str, Any]]:
    """Aggregate wins and losses against each opponent, most played first."""
    records: Dict[str, Dict[str, Any]] = {}
    for m in matches:
        opponent = m.player2_id if m.player1_id == player_id else m.player1_id
        rec = records.setdefault(
            opponent,
            {
                "opponentId": opponent,
                "opponentName": names.get(opponent, "Unknown"),
                "totalGames": 0,
                "wins": 0,
                "losses": 0,
            },
        )
        rec["totalGames"] += 1
        if m.winner_id == player_id:
            rec["wins"] += 1
        else:
            rec["losses"] += 1
    return sorted(
        records.values(), key=lambda r: (-r["totalGames"], r["opponentName"])
    )


def win_rate(wins: int, games_played: int) -> float:
    """Win percentage rounded to one decimal, ``0`` when nothing was played."""
    if games_played <= 0:
        return 0.0
    return round(wins * 100.0 / games_played, 1)
