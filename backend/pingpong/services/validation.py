from typing import Any, Dict, List, Optional, Sequence, Tuple

class ValidationError(Exception):
    """Raised when a submitted match is invalid."""

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


def normalize_sets(sets: Any) -> List[Dict[str, Any]]:
    """Turn ``[a, b]`` pairs, ``{"A", "B"}`` mappings or models into dicts."""
    if not isinstance(sets, Sequence) or isinstance(sets, (str, bytes)):
        raise ValidationError("At least one set is required.")
    normalized: List[Dict[str, Any]] = []
    for i, s in enumerate(sets, start=1):
        if isinstance(s, dict):
            normalized.append(s)
        elif isinstance(s, (list, tuple)):
            if len(s) != 2:
                raise ValidationError(f"Set #{i} must have exactly two scores.")
            normalized.append({"A": s[0], "B": s[1]})
        elif hasattr(s, "A") and hasattr(s, "B"):
            normalized.append({"A": s.A, "B": s.B})
        else:
            raise ValidationError(f"Set #{i} must be an object with fields A and B.")
    return normalized


def validate_set_scores(
    sets: List[Dict[str, Any]],
    *,
    max_sets: Optional[int] = None,
    max_points_per_side: Optional[int] = None,
) -> List[Tuple[int, int]]:
    """Validate a list of set score dictionaries and return ``(A, B)`` pairs.

    Rules:
    - At least one set is required
    - Number of sets must be <= ``max_sets`` (if provided)
    - Each set must be an object ``{A, B}``
    - ``A`` and ``B`` must be integers >= 0 (booleans are rejected)
    - A set cannot be a tie
    """

    if not isinstance(sets, list) or len(sets) == 0:
        raise ValidationError("At least one set is required.")
    if max_sets is not None and len(sets) > max_sets:
        raise ValidationError(f"Too many sets. Max allowed is {max_sets}.")

    pairs: List[Tuple[int, int]] = []
    for i, s in enumerate(sets, start=1):
        if not isinstance(s, dict):
            raise ValidationError(f"Set #{i} must be an object with fields A and B.")
        if "A" not in s or "B" not in s:
            raise ValidationError(f"Set #{i} must include both A and B.")

        vA, vB = s["A"], s["B"]

        # bool is a subclass of int
        if isinstance(vA, bool) or isinstance(vB, bool):
            raise ValidationError(f"Set #{i} scores must be integers (not booleans).")
        if isinstance(vA, float) or isinstance(vB, float):
            if not (float(vA).is_integer() and float(vB).is_integer()):
                raise ValidationError(f"Set #{i} scores must be integers.")

        try:
            a = int(vA)
            b = int(vB)
        except (TypeError, ValueError):
            raise ValidationError(f"Set #{i} scores must be integers.")

        if a < 0 or b < 0:
            raise ValidationError(f"Set #{i} scores must be >= 0.")
        if a == b:
            raise ValidationError(f"Set #{i} cannot be a tie.")
        if max_points_per_side is not None and (
            a > max_points_per_side or b > max_points_per_side
        ):
            raise ValidationError(
                f"Set #{i} scores must be <= {max_points_per_side}."
            )
        pairs.append((a, b))

    return pairs


def sets_won(pairs: Sequence[Tuple[int, int]]) -> Tuple[int, int]:
    return (
        sum(1 for a, b in pairs if a > b),
        sum(1 for a, b in pairs if b > a),
    )


def determine_winner_side(pairs: Sequence[Tuple[int, int]]) -> str:
    """Return ``"A"`` or ``"B"``, whoever won the strict majority of sets."""
    won_a, won_b = sets_won(pairs)
    if won_a == won_b:
        raise ValidationError(
            f"Match cannot end level on sets ({won_a}-{won_b}); one player must win more sets."
        )
    return "A" if won_a > won_b else "B"


def validate_participants(player1_id: str, player2_id: str) -> None:
    if not player1_id or not player2_id:
        raise ValidationError("Both players are required.")
    if player1_id == player2_id:
        raise ValidationError("Players must be different.")
