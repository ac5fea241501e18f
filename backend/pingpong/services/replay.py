"""Deterministic full-history rating replay.

The replay is a pure function of the ordered match log and the roster. It
never touches the database; :mod:`.recording` loads the inputs and persists
the result in a single transaction.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, Sequence

from ..time_utils import coerce_utc
from .rating import RatingFormula, compute_rating_change, get_formula

logger = logging.getLogger(__name__)

_EPOCH = datetime.min


class ReplayIntegrityError(Exception):
    """The match log is inconsistent with the roster; nothing was replayed."""


class UnknownParticipantError(ReplayIntegrityError):
    def __init__(self, match_id: str, player_id: str) -> None:
        super().__init__(
            f"match '{match_id}' references player '{player_id}' missing from the roster"
        )
        self.match_id = match_id
        self.player_id = player_id


@dataclass(frozen=True)
class ReplayMatch:
    id: str
    player1_id: str
    player2_id: str
    winner_id: str
    sets: Any = None
    played_at: datetime | None = None
    created_at: datetime | None = None


@dataclass
class PlayerTally:
    played: int = 0
    wins: int = 0
    losses: int = 0


@dataclass(frozen=True)
class MatchSnapshot:
    player1_before: float
    player2_before: float
    player1_after: float
    player2_after: float
    rating_change: float


@dataclass
class ReplayResult:
    formula_id: str
    ratings: dict[str, float] = field(default_factory=dict)
    stats: dict[str, PlayerTally] = field(default_factory=dict)
    snapshots: dict[str, MatchSnapshot] = field(default_factory=dict)


def chronological_key(match: Any) -> tuple[datetime, datetime, str]:
    """Total order used for replay: ``played_at``, then ``created_at``, then ``id``."""
    played = coerce_utc(match.played_at)
    created = coerce_utc(match.created_at)
    return (
        played.replace(tzinfo=None) if played else _EPOCH,
        created.replace(tzinfo=None) if created else _EPOCH,
        str(match.id),
    )


def parse_stored_sets(raw: Any) -> list[tuple[int, int]]:
    """Decode a stored set list, returning ``[]`` for anything malformed.

    Accepts JSON text, ``{"A", "B"}`` objects, legacy
    ``{"player1_score", "player2_score"}`` objects and ``[a, b]`` pairs. An
    empty result makes the engine fall back to the reference match.
    """
    if raw is None:
        return []
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except ValueError:
            return []
    if not isinstance(raw, list):
        return []

    pairs: list[tuple[int, int]] = []
    for entry in raw:
        if isinstance(entry, dict):
            if "A" in entry and "B" in entry:
                a, b = entry["A"], entry["B"]
            elif "player1_score" in entry and "player2_score" in entry:
                a, b = entry["player1_score"], entry["player2_score"]
            else:
                return []
        elif isinstance(entry, (list, tuple)) and len(entry) == 2:
            a, b = entry
        else:
            return []
        if isinstance(a, bool) or isinstance(b, bool):
            return []
        try:
            pairs.append((int(a), int(b)))
        except (TypeError, ValueError):
            return []
    return pairs


def replay(
    matches: Sequence[ReplayMatch],
    player_ids: Iterable[str],
    formula: RatingFormula | None = None,
) -> ReplayResult:
    """Replay ``matches`` (already in chronological order) from scratch.

    Every roster player starts at ``formula.initial_rating``. Raises
    :class:`UnknownParticipantError` before producing any result when a match
    references a player outside the roster.
    """
    formula = formula or get_formula()
    result = ReplayResult(formula_id=formula.formula_id)
    for pid in player_ids:
        result.ratings[pid] = formula.initial_rating
        result.stats[pid] = PlayerTally()

    ratings = result.ratings
    for match in matches:
        p1, p2 = match.player1_id, match.player2_id
        for pid in (p1, p2, match.winner_id):
            if pid not in ratings:
                logger.error(
                    "Aborting replay: match %s references unknown player %s",
                    match.id,
                    pid,
                )
                raise UnknownParticipantError(match.id, pid)
        if p1 == p2:
            raise ReplayIntegrityError(f"match '{match.id}' has the same player on both sides")
        if match.winner_id not in (p1, p2):
            raise ReplayIntegrityError(
                f"match '{match.id}' winner '{match.winner_id}' is not a participant"
            )

        loser_id = p2 if match.winner_id == p1 else p1
        p1_before, p2_before = ratings[p1], ratings[p2]
        change = compute_rating_change(
            ratings[match.winner_id],
            ratings[loser_id],
            parse_stored_sets(match.sets),
            formula,
        )
        if match.winner_id == p1:
            p1_after, p2_after = change.winner_new_rating, change.loser_new_rating
        else:
            p1_after, p2_after = change.loser_new_rating, change.winner_new_rating

        result.snapshots[match.id] = MatchSnapshot(
            player1_before=p1_before,
            player2_before=p2_before,
            player1_after=p1_after,
            player2_after=p2_after,
            rating_change=change.delta,
        )
        ratings[p1] = p1_after
        ratings[p2] = p2_after

        winner_tally = result.stats[match.winner_id]
        loser_tally = result.stats[loser_id]
        winner_tally.played += 1
        winner_tally.wins += 1
        loser_tally.played += 1
        loser_tally.losses += 1

    logger.info(
        "Replayed %d match(es) for %d player(s) with %s",
        len(matches),
        len(ratings),
        formula.formula_id,
    )
    return result
