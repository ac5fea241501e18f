"""Internal application services."""

from .validation import ValidationError, validate_set_scores, determine_winner_side
from .rating import (
    FORMULAS,
    RatingChange,
    RatingFormula,
    UnknownRatingFormula,
    compute_rating_change,
    get_formula,
)
from .replay import ReplayIntegrityError, UnknownParticipantError, replay
from .recording import record_match, recalculate_ratings
from .corrections import merge_matches
from .stats import (
    rolling_win_percentage,
    compute_streaks,
    rating_extremes,
    head_to_head,
    win_rate,
)

__all__ = [
    "validate_set_scores",
    "determine_winner_side",
    "ValidationError",
    "FORMULAS",
    "RatingChange",
    "RatingFormula",
    "UnknownRatingFormula",
    "compute_rating_change",
    "get_formula",
    "ReplayIntegrityError",
    "UnknownParticipantError",
    "replay",
    "record_match",
    "recalculate_ratings",
    "merge_matches",
    "rolling_win_percentage",
    "compute_streaks",
    "rating_extremes",
    "head_to_head",
    "win_rate",
]
