# tests/conftest.py
from datetime import datetime

import pytest

from predictor import create_app, db
from predictor.models import Fixture, League, Player, Prediction, Team, User
from predictor.services.recompute_service import recompute_fixture

ADMIN_HEADERS = {"X-Admin-Key": "test-admin-key"}

# Kickoffs are stored as naive UTC
BASE_KICKOFF = datetime(2025, 3, 10, 20, 0)


@pytest.fixture()
def app():
    # Testing config: in-memory SQLite, NullCache, no log files
    app = create_app("testing")
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def admin_headers():
    return dict(ADMIN_HEADERS)


@pytest.fixture()
def make_user(app):
    counter = {"n": 0}

    def _make(name=None, email=None, **kwargs):
        counter["n"] += 1
        user = User(
            name=name,
            email=email or f"user{counter['n']}@example.com",
            **kwargs,
        )
        db.session.add(user)
        db.session.commit()
        return user

    return _make


@pytest.fixture()
def make_team(app):
    def _make(name="Team", short_name=None):
        team = Team(name=name, short_name=short_name)
        db.session.add(team)
        db.session.commit()
        return team

    return _make


@pytest.fixture()
def make_player(app):
    def _make(name="Player", position="attacker", team=None):
        player = Player(name=name, position=position, team_id=team.id if team else None)
        db.session.add(player)
        db.session.commit()
        return player

    return _make


@pytest.fixture()
def make_fixture(app, make_team):
    def _make(kickoff_at=BASE_KICKOFF, result=None, scorers=(), home=None, away=None):
        home = home or make_team("Home FC", "HOM")
        away = away or make_team("Away FC", "AWY")
        fixture = Fixture(home_team_id=home.id, away_team_id=away.id, kickoff_at=kickoff_at)
        db.session.add(fixture)
        if result is not None:
            fixture.set_result(*result)
        if scorers:
            fixture.set_scorers(list(scorers))
        db.session.commit()
        return fixture

    return _make


@pytest.fixture()
def make_prediction(app):
    def _make(user, fixture, home, away, scorer=None, created_at=None, points=None):
        prediction = Prediction(
            user_id=user.id,
            fixture_id=fixture.id,
            home_goals=home,
            away_goals=away,
            points=points,
        )
        if scorer is not None:
            prediction.set_scorer_choice(scorer)
        if created_at is not None:
            prediction.created_at = created_at
        db.session.add(prediction)
        db.session.commit()
        return prediction

    return _make


@pytest.fixture()
def make_league(app):
    def _make(owner, members=(), name="Friends", ranking_from=None):
        league = League(name=name, owner_id=owner.id, ranking_from=ranking_from)
        db.session.add(league)
        db.session.flush()
        league.add_member(owner, role="owner")
        for member in members:
            league.add_member(member)
        db.session.commit()
        return league

    return _make


@pytest.fixture()
def finish(app):
    """Record a result directly and run the recompute sweep"""

    def _finish(fixture, home, away):
        fixture.set_result(home, away)
        db.session.commit()
        return recompute_fixture(fixture.id)

    return _finish
