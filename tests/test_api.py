# tests/test_api.py
from datetime import datetime, timedelta, timezone

import pytest

from predictor import cache
from predictor.models import AdminAction, Prediction

MARCH = datetime(2025, 3, 10, 20, 0)


def _future_kickoff():
    return (datetime.now(timezone.utc) + timedelta(days=2)).replace(tzinfo=None, microsecond=0)


@pytest.fixture()
def cached_client(app):
    cache.init_app(app, config={"CACHE_TYPE": "SimpleCache"})
    return app.test_client()


def test_security_headers_and_json_404(client):
    r = client.get("/api/fixtures/999")
    assert r.status_code == 404
    assert r.get_json() == {"error": "not_found"}
    assert r.headers["X-Content-Type-Options"] == "nosniff"


def test_fixture_detail_includes_lock_fields(client, make_fixture):
    fixture = make_fixture(kickoff_at=_future_kickoff())

    r = client.get(f"/api/fixtures/{fixture.id}")
    assert r.status_code == 200
    data = r.get_json()
    assert data["is_locked"] is False
    assert data["status"] == "SCHEDULED"
    assert data["lock_at_utc"].endswith("+00:00")
    assert data["home_team"]["name"] == "Home FC"


def test_post_prediction_flow(client, make_user, make_fixture, make_player):
    user = make_user("Ana")
    fixture = make_fixture(kickoff_at=_future_kickoff())
    player = make_player("Striker", "A")

    r = client.post(
        "/api/predictions",
        json={"fixtureId": fixture.id, "userId": user.id, "home": 2, "away": 1},
    )
    assert r.status_code == 200, r.get_json()
    assert r.get_json()["message"] == "Prediction created"

    r = client.post(
        "/api/predictions",
        json={
            "fixtureId": fixture.id,
            "userId": user.id,
            "home": 3,
            "away": 1,
            "scorer": player.id,
        },
    )
    body = r.get_json()
    assert body["message"] == "Prediction updated"
    assert body["prediction"]["scorer_player_id"] == player.id

    r = client.post(
        "/api/predictions",
        json={"fixtureId": fixture.id, "userId": user.id, "home": 3, "away": 1, "scorer": "none"},
    )
    assert r.get_json()["prediction"]["scorer_choice"] == "none"

    r = client.get(f"/api/predictions?userId={user.id}")
    rows = r.get_json()
    assert len(rows) == 1
    assert (rows[0]["home_goals"], rows[0]["away_goals"]) == (3, 1)
    assert rows[0]["points"] is None


def test_post_prediction_errors(client, make_user, make_fixture):
    user = make_user()
    past = make_fixture(kickoff_at=MARCH)
    future = make_fixture(kickoff_at=_future_kickoff())

    r = client.post("/api/predictions", data="nope", content_type="application/json")
    assert r.status_code == 400
    assert r.get_json()["error"] == "invalid_json"

    r = client.post("/api/predictions", json={"fixtureId": future.id, "userId": user.id})
    assert r.get_json()["error"] == "missing_data"

    r = client.post(
        "/api/predictions", json={"fixtureId": future.id, "userId": 999, "home": 1, "away": 0}
    )
    assert r.get_json()["error"] == "user_missing"

    r = client.post(
        "/api/predictions", json={"fixtureId": 999, "userId": user.id, "home": 1, "away": 0}
    )
    assert r.status_code == 404

    r = client.post(
        "/api/predictions", json={"fixtureId": past.id, "userId": user.id, "home": 1, "away": 0}
    )
    assert r.status_code == 400
    assert r.get_json()["error"] == "locked"

    r = client.post(
        "/api/predictions",
        json={"fixtureId": future.id, "userId": user.id, "home": 1, "away": 0, "scorer": 777},
    )
    assert r.get_json()["error"] == "unknown_player"

    assert Prediction.query.count() == 0


def test_get_predictions_without_user_is_empty(client):
    r = client.get("/api/predictions")
    assert r.status_code == 200
    assert r.get_json() == []


def test_admin_requires_key(client, make_fixture):
    fixture = make_fixture(kickoff_at=MARCH)

    r = client.patch(
        f"/api/admin/fixtures/{fixture.id}/result", json={"home_score": 1, "away_score": 0}
    )
    assert r.status_code == 403

    r = client.patch(
        f"/api/admin/fixtures/{fixture.id}/result",
        json={"home_score": 1, "away_score": 0},
        headers={"X-Admin-Key": "wrong"},
    )
    assert r.status_code == 403
    assert AdminAction.query.count() == 0


def test_admin_result_scorers_reopen(
    client, admin_headers, make_user, make_fixture, make_player, make_prediction
):
    fixture = make_fixture(kickoff_at=MARCH)
    defender = make_player("Defender", "D")
    user = make_user("Ana")
    make_prediction(user, fixture, 1, 0, scorer=defender.id)

    r = client.patch(
        f"/api/admin/fixtures/{fixture.id}/result",
        json={"home_score": 1, "away_score": 0},
        headers=admin_headers,
    )
    body = r.get_json()
    assert r.status_code == 200
    assert body["ok"] is True
    assert body["recompute"]["scored"] == 1
    assert Prediction.query.one().points == 10

    r = client.put(
        f"/api/admin/fixtures/{fixture.id}/scorers",
        json={"player_ids": [defender.id]},
        headers=admin_headers,
    )
    assert r.status_code == 200
    assert Prediction.query.one().points == 15

    r = client.get(f"/api/rankings/game?fixtureId={fixture.id}")
    assert r.get_json()[0]["points"] == 15
    assert r.get_json()[0]["position"] == 1

    r = client.patch(f"/api/admin/fixtures/{fixture.id}/reopen", headers=admin_headers)
    assert r.get_json()["recompute"]["cleared"] == 1
    assert Prediction.query.one().points is None


def test_admin_bad_input(client, admin_headers, make_fixture):
    fixture = make_fixture(kickoff_at=MARCH)

    r = client.patch(
        f"/api/admin/fixtures/{fixture.id}/result",
        json={"home_score": -2, "away_score": 0},
        headers=admin_headers,
    )
    assert r.status_code == 400
    assert r.get_json()["error"] == "invalid_score"

    r = client.put(
        f"/api/admin/fixtures/{fixture.id}/scorers",
        json={"players": [1]},
        headers=admin_headers,
    )
    assert r.status_code == 400
    assert r.get_json()["error"] == "invalid_body"

    r = client.post("/api/admin/fixtures/999/recompute", headers=admin_headers)
    assert r.status_code == 404


def test_admin_recompute_endpoint(client, admin_headers, make_user, make_fixture, make_prediction):
    fixture = make_fixture(kickoff_at=MARCH, result=(0, 0))
    make_prediction(make_user(), fixture, 0, 0)

    r = client.post(f"/api/admin/fixtures/{fixture.id}/recompute", headers=admin_headers)
    assert r.status_code == 200
    assert r.get_json()["recompute"]["scored"] == 1
    assert Prediction.query.one().points == 10


def test_rankings_endpoints(client, make_user, make_fixture, make_prediction, finish):
    fixture = make_fixture(kickoff_at=MARCH)
    ana, bia = make_user("Ana"), make_user("Bia")
    make_prediction(ana, fixture, 1, 0)
    make_prediction(bia, fixture, 2, 0)
    finish(fixture, 1, 0)

    r = client.get("/api/rankings")
    data = r.get_json()
    assert [(row["position"], row["name"], row["points"]) for row in data] == [
        (1, "Ana", 10),
        (2, "Bia", 5),
    ]

    r = client.get("/api/rankings?ym=2025-03")
    assert [row["name"] for row in r.get_json()] == ["Ana", "Bia"]

    r = client.get("/api/rankings?ym=2025-3")
    assert r.status_code == 400

    r = client.get("/api/rankings/months")
    assert r.get_json() == ["2025-03"]

    r = client.get("/api/rankings/game")
    assert r.status_code == 400

    r = client.get("/api/rankings/game?fixtureId=999")
    assert r.status_code == 404


def test_league_ranking_endpoint(client, make_user, make_fixture, make_prediction, make_league, finish):
    fixture = make_fixture(kickoff_at=MARCH)
    ana, bia = make_user("Ana"), make_user("Bia")
    league = make_league(ana, members=[bia])
    make_prediction(bia, fixture, 1, 0)
    finish(fixture, 1, 0)

    r = client.get(f"/api/leagues/{league.id}/ranking")
    body = r.get_json()
    assert body["league"]["member_count"] == 2
    assert [(row["name"], row["points"]) for row in body["ranking"]] == [("Bia", 10), ("Ana", 0)]

    assert client.get("/api/leagues/999/ranking").status_code == 404


def test_winners_endpoints(client, make_user, make_fixture, make_prediction, finish):
    fixture = make_fixture(kickoff_at=MARCH)
    ana, bia = make_user("Ana"), make_user("Bia")
    make_prediction(ana, fixture, 0, 1)
    make_prediction(bia, fixture, 0, 2)
    finish(fixture, 0, 2)

    r = client.get("/api/winners")
    assert [(w["fixture_id"], w["name"]) for w in r.get_json()] == [(fixture.id, "Bia")]

    r = client.get("/api/winners?ym=2025-04")
    assert r.get_json() == []

    r = client.get("/api/winners/monthly")
    assert [w["name"] for w in r.get_json()] == ["Bia", "Ana"]

    r = client.get("/api/winners/monthly?ym=bad")
    assert r.status_code == 400


def test_fixture_trends(client, make_user, make_fixture, make_player, make_prediction):
    fixture = make_fixture(kickoff_at=MARCH)
    zeca, abel = make_player("Zeca", "A"), make_player("Abel", "M")
    users = [make_user() for _ in range(5)]
    make_prediction(users[0], fixture, 1, 0, scorer=zeca.id)
    make_prediction(users[1], fixture, 1, 0, scorer=abel.id)
    make_prediction(users[2], fixture, 2, 1)
    make_prediction(users[3], fixture, 2, 1, scorer="none")
    make_prediction(users[4], fixture, 0, 0)

    r = client.get(f"/api/fixtures/{fixture.id}/trends")
    data = r.get_json()

    assert data["total_predictions"] == 5
    # 1-0 and 2-1 tie on count, higher home score wins
    assert data["most_common_score"] == {"home": 2, "away": 1, "count": 2}
    # Zeca and Abel tie on count, alphabetical name wins
    assert data["most_common_scorer"] == {"player_id": abel.id, "name": "Abel", "count": 1}

    assert client.get("/api/fixtures/999/trends").status_code == 404


def test_fixture_trends_empty(client, make_fixture):
    fixture = make_fixture(kickoff_at=MARCH)
    data = client.get(f"/api/fixtures/{fixture.id}/trends").get_json()
    assert data["total_predictions"] == 0
    assert data["most_common_score"] is None
    assert data["most_common_scorer"] is None


def test_game_ranking_refreshes_after_submission(cached_client, make_user, make_fixture):
    ana, bia = make_user("Ana"), make_user("Bia")
    fixture = make_fixture(kickoff_at=_future_kickoff())
    url = f"/api/rankings/game?fixtureId={fixture.id}"

    before = cached_client.get(url).get_json()
    assert [row["name"] for row in before] == ["Ana", "Bia"]

    # served from the cache until something invalidates it
    make_user("Caio")
    assert len(cached_client.get(url).get_json()) == 2

    r = cached_client.post(
        "/api/predictions",
        json={"fixtureId": fixture.id, "userId": bia.id, "home": 1, "away": 0},
    )
    assert r.status_code == 200

    after = cached_client.get(url).get_json()
    assert [row["name"] for row in after] == ["Bia", "Ana", "Caio"]
    assert after[0]["first_pred_at"] is not None


def test_open_and_closed_fixture_listings(client, make_fixture):
    upcoming = make_fixture(kickoff_at=_future_kickoff())
    started = make_fixture(kickoff_at=MARCH)
    finished = make_fixture(kickoff_at=MARCH - timedelta(days=7), result=(2, 0))

    r = client.get("/api/fixtures/open")
    rows = {row["id"]: row for row in r.get_json()}
    assert set(rows) == {upcoming.id, started.id}
    assert rows[upcoming.id]["is_locked"] is False
    assert rows[started.id]["is_locked"] is True
    assert rows[upcoming.id]["lock_at_utc"].endswith("+00:00")

    r = client.get("/api/fixtures/closed")
    assert [row["id"] for row in r.get_json()] == [started.id, finished.id]

    r = client.get("/api/fixtures/closed?limit=1&offset=1")
    assert [row["id"] for row in r.get_json()] == [finished.id]

    r = client.get("/api/fixtures/closed?limit=abc&offset=-3")
    assert len(r.get_json()) == 2


def test_ranking_games_and_winner_months(client, make_fixture):
    fixture = make_fixture(kickoff_at=MARCH)
    later = make_fixture(kickoff_at=_future_kickoff())

    games = client.get("/api/rankings/games").get_json()
    assert [game["id"] for game in games] == [later.id, fixture.id]
    assert games[1]["home_team_name"] == "Home FC"

    assert client.get("/api/winners/months").get_json() == []


def test_winner_months_lists_finished_months(client, make_fixture, finish):
    finish(make_fixture(kickoff_at=MARCH), 1, 0)
    finish(make_fixture(kickoff_at=datetime(2025, 1, 5, 18, 0)), 0, 0)

    assert client.get("/api/winners/months").get_json() == ["2025-03", "2025-01"]


@pytest.mark.parametrize("scorer", [2.7, True, 0, -4, "abc"])
def test_post_prediction_rejects_bad_scorer_ids(client, make_user, make_fixture, make_player, scorer):
    # ids 1 and 2 exist
    make_player("Two", "A")
    make_player("Striker", "A")
    user = make_user()
    fixture = make_fixture(kickoff_at=_future_kickoff())

    r = client.post(
        "/api/predictions",
        json={"fixtureId": fixture.id, "userId": user.id, "home": 1, "away": 0, "scorer": scorer},
    )
    assert r.status_code == 400
    assert r.get_json()["error"] == "invalid_scorer"
    assert Prediction.query.count() == 0


def test_post_prediction_accepts_integral_float_scorer(client, make_user, make_fixture, make_player):
    player = make_player("Striker", "A")
    user = make_user()
    fixture = make_fixture(kickoff_at=_future_kickoff())

    r = client.post(
        "/api/predictions",
        json={
            "fixtureId": fixture.id,
            "userId": user.id,
            "home": 1,
            "away": 0,
            "scorer": float(player.id),
        },
    )
    assert r.status_code == 200
    assert r.get_json()["prediction"]["scorer_player_id"] == player.id


def test_admin_scorers_reject_bool_and_fractional_ids(client, admin_headers, make_fixture, make_player):
    make_player("First", "GR")
    fixture = make_fixture(kickoff_at=MARCH)

    for bad in ([True], [1.5]):
        r = client.put(
            f"/api/admin/fixtures/{fixture.id}/scorers",
            json={"player_ids": bad},
            headers=admin_headers,
        )
        assert r.status_code == 400
        assert r.get_json()["error"] == "invalid_player_ids"
    assert AdminAction.query.count() == 0
