"""Set-weighted Elo rating engine.

Everything in this module is pure: no I/O, no shared state. The formula is a
versioned value so historical recalculations can be replayed under any of the
formulas the application has shipped.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Sequence

from .. import config

INITIAL_RATING = 1500.0
K_FACTOR = 32.0


class UnknownRatingFormula(KeyError):
    """Raised when a formula id is not registered."""


@dataclass(frozen=True)
class RatingFormula:
    formula_id: str
    k_factor: float = K_FACTOR
    scale: float = 400.0
    initial_rating: float = INITIAL_RATING
    reference_sets: int = 3
    reference_margin: float = 5.0
    margin_cap: float = 1.5
    weight_by_sets: bool = True
    weight_by_margin: bool = True


@dataclass(frozen=True)
class RatingChange:
    winner_new_rating: float
    loser_new_rating: float
    delta: float
    winner_expected: float
    k_effective: float


CLASSIC_V1 = RatingFormula(
    formula_id="elo-k32-v1", weight_by_sets=False, weight_by_margin=False
)
SETS_V2 = RatingFormula(formula_id="elo-sets-v2", weight_by_margin=False)
SETS_MARGIN_V3 = RatingFormula(formula_id="elo-sets-margin-v3")

FORMULAS: dict[str, RatingFormula] = {
    f.formula_id: f for f in (CLASSIC_V1, SETS_V2, SETS_MARGIN_V3)
}


def get_formula(formula_id: str | None = None) -> RatingFormula:
    """Return a registered formula, defaulting to ``RATING_FORMULA``."""
    key = formula_id or config.RATING_FORMULA
    try:
        return FORMULAS[key]
    except KeyError:
        raise UnknownRatingFormula(key) from None


def round_rating(value: float) -> float:
    """Round half up to one decimal place."""
    return math.floor(value * 10 + 0.5) / 10


def expected_score(rating: float, opponent_rating: float, scale: float = 400.0) -> float:
    return 1 / (1 + 10 ** ((opponent_rating - rating) / scale))


def set_pairs(sets: Sequence[Any]) -> list[tuple[int, int]]:
    """Coerce ``{"A", "B"}`` mappings or 2-item sequences into tuples."""
    pairs: list[tuple[int, int]] = []
    for s in sets:
        if isinstance(s, dict):
            pairs.append((int(s["A"]), int(s["B"])))
        else:
            a, b = s
            pairs.append((int(a), int(b)))
    return pairs


def sensitivity(
    sets: Sequence[Any], formula: RatingFormula = SETS_MARGIN_V3
) -> float:
    """Return the effective K for a match.

    ``sets_multiplier`` is ``total_sets / reference_sets`` and
    ``margin_multiplier`` is the mean absolute point difference per set over
    ``reference_margin``, capped at ``margin_cap``. With no sets both
    multipliers are ``1``.
    """
    pairs = set_pairs(sets)
    if not pairs:
        return formula.k_factor

    sets_multiplier = 1.0
    if formula.weight_by_sets:
        sets_multiplier = len(pairs) / formula.reference_sets

    margin_multiplier = 1.0
    if formula.weight_by_margin:
        avg_margin = sum(abs(a - b) for a, b in pairs) / len(pairs)
        margin_multiplier = min(formula.margin_cap, avg_margin / formula.reference_margin)

    return formula.k_factor * sets_multiplier * margin_multiplier


def compute_rating_change(
    winner_rating: float,
    loser_rating: float,
    sets: Sequence[Any] = (),
    formula: RatingFormula | None = None,
) -> RatingChange:
    """Return the new ratings after ``winner`` beat ``loser``.

    Inputs are trusted: callers validate scores, ties and the winner before
    getting here. The winner's gain and the loser's loss share the same
    magnitude since ``1 - E_winner == E_loser``.
    """
    formula = formula or get_formula()
    k = sensitivity(sets, formula)
    winner_expected = expected_score(winner_rating, loser_rating, formula.scale)
    loser_expected = expected_score(loser_rating, winner_rating, formula.scale)

    winner_new = winner_rating + k * (1 - winner_expected)
    loser_new = loser_rating + k * (0 - loser_expected)

    return RatingChange(
        winner_new_rating=round_rating(winner_new),
        loser_new_rating=round_rating(loser_new),
        delta=round_rating(winner_new - winner_rating),
        winner_expected=winner_expected,
        k_effective=k,
    )
