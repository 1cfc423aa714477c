# tests/test_recompute.py
import pytest
from sqlalchemy.exc import OperationalError

from predictor import db
from predictor.models import AdminAction, Prediction
from predictor.services import results_service
from predictor.services.recompute_service import RecomputeService, recompute_fixture


def _points(fixture):
    rows = Prediction.query.filter_by(fixture_id=fixture.id).order_by(Prediction.id).all()
    return [row.points for row in rows]


def test_sweep_writes_points_with_bonus(make_user, make_player, make_fixture, make_prediction):
    mid = make_player("Mid", "M")
    fixture = make_fixture(result=(2, 1), scorers=[mid])
    a, b, c = make_user("A"), make_user("B"), make_user("C")
    make_prediction(a, fixture, 2, 1, scorer=mid.id)
    make_prediction(b, fixture, 3, 2)
    make_prediction(c, fixture, 0, 2)

    report = recompute_fixture(fixture.id)

    assert report.ok
    assert report.scored == 3
    assert report.cleared == 0
    assert _points(fixture) == [13, 6, 0]


def test_sweep_is_idempotent(make_user, make_fixture, make_prediction):
    fixture = make_fixture(result=(1, 1))
    make_prediction(make_user(), fixture, 1, 1)
    make_prediction(make_user(), fixture, 2, 2)

    recompute_fixture(fixture.id)
    first = _points(fixture)
    recompute_fixture(fixture.id)

    assert _points(fixture) == first == [10, 6]


def test_sweep_overwrites_stale_points(make_user, make_fixture, make_prediction):
    fixture = make_fixture(result=(0, 0))
    make_prediction(make_user(), fixture, 3, 1, points=99)

    recompute_fixture(fixture.id)

    assert _points(fixture) == [0]


def test_sweep_without_result_clears_points(make_user, make_fixture, make_prediction):
    fixture = make_fixture()
    make_prediction(make_user(), fixture, 1, 0, points=10)
    make_prediction(make_user(), fixture, 0, 0, points=5)

    report = recompute_fixture(fixture.id)

    assert report.cleared == 2
    assert _points(fixture) == [None, None]


def test_unknown_fixture_raises(app):
    with pytest.raises(LookupError):
        recompute_fixture(12345)


def test_reopen_clears_points(make_user, make_fixture, make_prediction):
    fixture = make_fixture()
    make_prediction(make_user(), fixture, 2, 0)

    results_service.record_result(fixture.id, 2, 0)
    assert _points(fixture) == [10]

    report = results_service.reopen_fixture(fixture.id)

    db.session.refresh(fixture)
    assert fixture.status == "SCHEDULED"
    assert fixture.home_score is None and fixture.away_score is None
    assert report.cleared == 1
    assert _points(fixture) == [None]


def test_record_result_rejects_bad_scores(make_fixture):
    fixture = make_fixture()
    with pytest.raises(ValueError):
        results_service.record_result(fixture.id, -1, 0)
    with pytest.raises(ValueError):
        results_service.record_result(fixture.id, "two", 0)
    with pytest.raises(LookupError):
        results_service.record_result(999, 1, 0)


def test_replace_scorers_rescores(make_user, make_player, make_fixture, make_prediction):
    keeper = make_player("Keeper", "GR")
    striker = make_player("Striker", "A")
    fixture = make_fixture(result=(1, 0), scorers=[striker])
    make_prediction(make_user(), fixture, 1, 0, scorer=keeper.id)
    recompute_fixture(fixture.id)
    assert _points(fixture) == [10]

    results_service.replace_scorers(fixture.id, [keeper.id, striker.id])
    assert _points(fixture) == [20]

    with pytest.raises(LookupError):
        results_service.replace_scorers(fixture.id, [keeper.id, 4242])


def test_admin_actions_are_audited(make_fixture):
    fixture = make_fixture()
    results_service.record_result(fixture.id, 3, 1)
    results_service.reopen_fixture(fixture.id)

    actions = AdminAction.query.filter_by(fixture_id=fixture.id).order_by(AdminAction.id).all()
    assert [action.action_type for action in actions] == ["set_result", "reopen"]
    assert actions[0].action_metadata == {"home_score": 3, "away_score": 1}


def test_partial_failure_is_retried_and_reported(
    monkeypatch, make_user, make_fixture, make_prediction
):
    fixture = make_fixture(result=(2, 1))
    good = make_prediction(make_user(), fixture, 2, 1)
    flaky = make_prediction(make_user(), fixture, 2, 0)
    broken = make_prediction(make_user(), fixture, 0, 0)
    good_id, flaky_id, broken_id = good.id, flaky.id, broken.id

    original = RecomputeService._write_points
    calls = {"flaky": 0, "broken": 0}

    def failing_write(self, prediction_id, points):
        if prediction_id == flaky_id:
            calls["flaky"] += 1
            if calls["flaky"] == 1:
                raise OperationalError("UPDATE predictions", {}, Exception("locked"))
        if prediction_id == broken_id:
            calls["broken"] += 1
            raise OperationalError("UPDATE predictions", {}, Exception("disk I/O"))
        return original(self, prediction_id, points)

    monkeypatch.setattr(RecomputeService, "_write_points", failing_write)

    report = RecomputeService(max_attempts=2).recompute_fixture(fixture.id)

    assert not report.ok
    assert report.scored == 2
    assert [failure.prediction_id for failure in report.failures] == [broken_id]
    assert calls == {"flaky": 2, "broken": 2}

    points = {p.id: p.points for p in Prediction.query.all()}
    assert points[good_id] == 10
    assert points[flaky_id] == 5
    assert points[broken_id] is None

    assert report.to_dict()["failures"][0]["prediction_id"] == broken_id


def test_replace_scorers_rejects_non_integer_ids(make_player, make_fixture):
    make_player("Keeper", "GR")
    fixture = make_fixture(result=(1, 0))

    for bad in ([True], [1.5], ["abc"], [None]):
        with pytest.raises(ValueError):
            results_service.replace_scorers(fixture.id, bad)
    assert fixture.scorers == []
    assert AdminAction.query.count() == 0
