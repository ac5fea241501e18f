import pytest
from fastapi.testclient import TestClient
from pydantic import ValidationError

from pingpong.main import app
from pingpong.models import Player
from pingpong.routers.auth import create_access_token, limiter
from pingpong.schemas import MatchCreate

from conftest import add_player, add_user, load

PREFIX = "/api/v0"


@pytest.fixture
def client():
    limiter.reset()
    return TestClient(app)


def _auth(user) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user)}"}


def _post(client, user, body):
    return client.post(f"{PREFIX}/matches", json=body, headers=_auth(user))


def test_match_create_accepts_pairs_and_objects():
    body = MatchCreate(
        player1Id="p1",
        player2Id="p2",
        sets=[[11, 4], {"A": 9, "B": 11}],
        playedAt="2024-05-01T10:00:00+02:00",
    )

    assert [(s.A, s.B) for s in body.sets] == [(11, 4), (9, 11)]
    assert body.playedAt.utcoffset().total_seconds() == 0
    assert body.playedAt.hour == 8


def test_match_create_requires_timezone():
    with pytest.raises(ValidationError) as exc:
        MatchCreate(
            player1Id="p1",
            player2Id="p2",
            sets=[[11, 4]],
            playedAt="2024-05-01T10:00:00",
        )

    assert "timezone" in str(exc.value)


def test_record_match_as_participant(client, run):
    user = run(add_user("ann"))
    ann = run(add_player("Ann", user_id=user.id))
    bob = run(add_player("Bob"))

    resp = _post(
        client,
        user,
        {"player1Id": ann.id, "player2Id": bob.id, "sets": [[11, 5], [11, 6], [11, 6]]},
    )

    assert resp.status_code == 201, resp.text
    data = resp.json()
    assert data["winnerId"] == ann.id
    assert data["player1"] == {"id": ann.id, "name": "Ann"}
    assert data["player1SetsWon"] == 3
    assert data["sets"] == [{"A": 11, "B": 5}, {"A": 11, "B": 6}, {"A": 11, "B": 6}]
    assert data["player1RatingAfter"] == 1517.1
    assert data["player2RatingAfter"] == 1482.9
    assert data["ratingChange"] == 17.1
    assert data["ratingFormula"] == "elo-sets-margin-v3"

    fetched = client.get(f"{PREFIX}/matches/{data['id']}")
    assert fetched.status_code == 200
    assert fetched.json() == data
    assert run(load(Player, bob.id)).rating == 1482.9


def test_level_sets_count_rejected(client, run):
    admin = run(add_user("admin", is_admin=True))
    ann = run(add_player("Ann"))
    bob = run(add_player("Bob"))

    resp = _post(
        client,
        admin,
        {
            "player1Id": ann.id,
            "player2Id": bob.id,
            "sets": [[11, 5], [5, 11], [11, 9], [9, 11]],
        },
    )

    assert resp.status_code == 422
    assert resp.json()["code"] == "match_validation_error"
    assert run(load(Player, ann.id)).games_played == 0


@pytest.mark.parametrize(
    "sets",
    [[], [[11, 11]], [[-1, 11]], [[100, 98]], [[11, 0]] * 8],
    ids=["empty", "tie", "negative", "too-many-points", "too-many-sets"],
)
def test_invalid_set_scores_rejected(client, run, sets):
    admin = run(add_user("admin", is_admin=True))
    ann = run(add_player("Ann"))
    bob = run(add_player("Bob"))

    resp = _post(client, admin, {"player1Id": ann.id, "player2Id": bob.id, "sets": sets})

    assert resp.status_code == 422
    assert resp.json()["code"] == "match_validation_error"


def test_same_player_twice_rejected(client, run):
    admin = run(add_user("admin", is_admin=True))
    ann = run(add_player("Ann"))

    resp = _post(client, admin, {"player1Id": ann.id, "player2Id": ann.id, "sets": [[11, 3]]})

    assert resp.status_code == 400
    assert resp.json()["code"] == "match_duplicate_players"


def test_unknown_player_rejected(client, run):
    admin = run(add_user("admin", is_admin=True))
    ann = run(add_player("Ann"))

    resp = _post(client, admin, {"player1Id": ann.id, "player2Id": "ghost", "sets": [[11, 3]]})

    assert resp.status_code == 404
    assert resp.json()["code"] == "player_not_found"


def test_non_participant_cannot_record(client, run):
    stranger = run(add_user("stranger"))
    ann = run(add_player("Ann"))
    bob = run(add_player("Bob"))

    resp = _post(client, stranger, {"player1Id": ann.id, "player2Id": bob.id, "sets": [[11, 3]]})

    assert resp.status_code == 403
    assert resp.json()["code"] == "match_forbidden"


def test_record_requires_token(client, run):
    ann = run(add_player("Ann"))
    bob = run(add_player("Bob"))

    resp = client.post(
        f"{PREFIX}/matches",
        json={"player1Id": ann.id, "player2Id": bob.id, "sets": [[11, 3]]},
        headers={"Authorization": "Bearer not-a-jwt"},
    )

    assert resp.status_code == 401
    assert resp.json()["code"] == "auth_invalid_token"


def test_list_matches_newest_first_with_filter(client, run):
    admin = run(add_user("admin", is_admin=True))
    ann = run(add_player("Ann"))
    bob = run(add_player("Bob"))
    cat = run(add_player("Cat"))

    for p1, p2, when in [
        (ann.id, bob.id, "2024-02-01T10:00:00Z"),
        (bob.id, cat.id, "2024-02-02T10:00:00Z"),
        (cat.id, ann.id, "2024-02-03T10:00:00Z"),
    ]:
        body = {"player1Id": p1, "player2Id": p2, "sets": [[11, 7]], "playedAt": when}
        assert _post(client, admin, body).status_code == 201

    listing = client.get(f"{PREFIX}/matches").json()
    assert listing["total"] == 3
    assert [m["player1"]["name"] for m in listing["matches"]] == ["Cat", "Bob", "Ann"]

    bob_only = client.get(f"{PREFIX}/matches", params={"playerId": bob.id, "limit": 1}).json()
    assert bob_only["total"] == 2
    assert len(bob_only["matches"]) == 1
    assert bob_only["matches"][0]["player1"]["name"] == "Bob"


def test_backdated_match_replays_history(client, run):
    admin = run(add_user("admin", is_admin=True))
    ann = run(add_player("Ann"))
    bob = run(add_player("Bob"))

    later = _post(
        client,
        admin,
        {"player1Id": ann.id, "player2Id": bob.id, "sets": [[11, 9]], "playedAt": "2024-02-02T10:00:00Z"},
    ).json()
    earlier = _post(
        client,
        admin,
        {
            "player1Id": bob.id,
            "player2Id": ann.id,
            "sets": [[11, 5], [11, 6], [11, 6]],
            "playedAt": "2024-02-01T10:00:00Z",
        },
    ).json()

    assert earlier["player1RatingBefore"] == 1500.0
    assert earlier["player1RatingAfter"] == 1517.1

    replayed = client.get(f"{PREFIX}/matches/{later['id']}").json()
    assert replayed["player2RatingBefore"] == 1517.1
    assert replayed["player1RatingBefore"] == 1482.9
    assert replayed["player1RatingAfter"] == run(load(Player, ann.id)).rating


def test_get_match_not_found(client):
    resp = client.get(f"{PREFIX}/matches/missing")

    assert resp.status_code == 404
    assert resp.json()["code"] == "match_not_found"
