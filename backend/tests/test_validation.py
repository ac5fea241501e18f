import pytest
from pingpong.services.validation import (
    ValidationError,
    determine_winner_side,
    normalize_sets,
    validate_participants,
    validate_set_scores,
)


def test_accepts_valid_sets() -> None:
    assert validate_set_scores([{"A": 11, "B": 8}]) == [(11, 8)]
    assert validate_set_scores([{"A": 11, "B": 9}, {"A": 9, "B": 11}]) == [
        (11, 9),
        (9, 11),
    ]


@pytest.mark.parametrize(
    "sets, msg",
    [
        ([], "At least one set"),                  # empty list
        ([{"A": 10, "B": 10}], "cannot be a tie"), # tie
        ([{"A": -1, "B": 0}], ">= 0"),             # negative
        ([{"A": "x", "B": 0}], "integers"),        # non-integer
        ([{"A": True, "B": 0}], "booleans"),       # bool
        ([{"A": 1}], "include both A and B"),      # missing key
        ("not a list", "At least one set"),        # wrong top-level type
        ([42], "must be an object"),               # non-dict set entry
    ],
    ids=[
        "empty",
        "tie",
        "negative",
        "non-integer",
        "boolean",
        "missing-key",
        "not-a-list",
        "non-dict-entry",
    ],
)
def test_rejects_invalid_sets(sets, msg) -> None:
    with pytest.raises(ValidationError) as exc:
        validate_set_scores(sets)  # type: ignore[arg-type]
    assert msg.lower() in str(exc.value).lower()


def test_rejects_too_many_sets() -> None:
    with pytest.raises(ValidationError):
        validate_set_scores([{"A": 1, "B": 0}] * 8, max_sets=7)


def test_rejects_scores_over_the_limit() -> None:
    with pytest.raises(ValidationError) as exc:
        validate_set_scores([{"A": 100, "B": 98}], max_points_per_side=99)
    assert "<= 99" in str(exc.value)


def test_normalize_sets_accepts_pairs() -> None:
    assert normalize_sets([[11, 4], (7, 11)]) == [{"A": 11, "B": 4}, {"A": 7, "B": 11}]

    with pytest.raises(ValidationError):
        normalize_sets([[11, 4, 2]])


def test_winner_needs_majority_of_sets() -> None:
    assert determine_winner_side([(11, 5), (9, 11), (11, 7)]) == "A"
    assert determine_winner_side([(4, 11)]) == "B"


def test_level_sets_count_is_rejected() -> None:
    pairs = validate_set_scores(
        normalize_sets([[11, 5], [5, 11], [11, 9], [9, 11]])
    )
    with pytest.raises(ValidationError) as exc:
        determine_winner_side(pairs)
    assert "2-2" in str(exc.value)


def test_participants_must_differ() -> None:
    validate_participants("p1", "p2")
    with pytest.raises(ValidationError, match="different"):
        validate_participants("p1", "p1")
    with pytest.raises(ValidationError, match="required"):
        validate_participants("p1", "")
