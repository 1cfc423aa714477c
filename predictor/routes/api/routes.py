import logging
import secrets
from functools import wraps

from flask import current_app, jsonify, request

from predictor import db
from predictor.models import Fixture, League, Player, Prediction, User
from predictor.models.prediction import SCORER_NONE, SCORER_UNSET
from predictor.routes.api import bp
from predictor.services import (
    fixtures_service,
    ranking_service,
    results_service,
    trends_service,
)
from predictor.services.recompute_service import recompute_fixture
from predictor.utils.cache_utils import cached_route, invalidate_rankings_cache
from predictor.utils.scoring import coerce_id

logger = logging.getLogger(__name__)


def require_admin_key(f):
    """Reject admin calls whose X-Admin-Key header does not match ADMIN_KEY"""

    @wraps(f)
    def decorated_function(*args, **kwargs):
        expected = current_app.config.get("ADMIN_KEY")
        if expected:
            given = request.headers.get("X-Admin-Key", "")
            if not secrets.compare_digest(given, expected):
                logger.warning(f"Rejected admin call to {request.path}")
                return jsonify({"error": "forbidden"}), 403
        return f(*args, **kwargs)

    return decorated_function


def _error(message, status):
    return jsonify({"error": message}), status


# ---------------------------------------------------------------------------
# Rankings
# ---------------------------------------------------------------------------


@bp.route("/rankings")
@cached_route(key_prefix="rankings")
def rankings():
    """All-time ranking, or a monthly one when ?ym=YYYY-MM is given"""
    ym = request.args.get("ym")
    try:
        rows = ranking_service.rank_month(ym) if ym else ranking_service.rank_all_time()
    except ValueError as e:
        return _error(str(e), 400)
    return ranking_service.with_positions(rows)


@bp.route("/rankings/months")
@cached_route(key_prefix="ranking_months")
def ranking_months():
    """Months that have finished fixtures, newest first"""
    return ranking_service.ranking_months()


@bp.route("/rankings/games")
@cached_route(key_prefix="ranking_games")
def ranking_games():
    """Recent fixtures to pick a game ranking from"""
    return fixtures_service.recent_games()


@bp.route("/rankings/game")
@cached_route(key_prefix="game_ranking")
def game_ranking():
    """Ranking for a single fixture (?fixtureId=)"""
    fixture_id = request.args.get("fixtureId", type=int)
    if fixture_id is None:
        return _error("missing_fixture", 400)

    try:
        rows = ranking_service.rank_game(fixture_id)
    except LookupError:
        return _error("fixture_not_found", 404)
    return ranking_service.with_positions(rows)


@bp.route("/leagues/<int:league_id>/ranking")
@cached_route(key_prefix="league_ranking")
def league_ranking(league_id):
    """Ranking among the members of a league"""
    try:
        rows = ranking_service.rank_league(league_id)
    except LookupError:
        return _error("league_not_found", 404)

    league = db.session.get(League, league_id)
    return {"league": league.to_dict(), "ranking": ranking_service.with_positions(rows)}


@bp.route("/winners")
@cached_route(key_prefix="winners")
def winners():
    """Best predictor of each finished fixture, optionally for one month"""
    try:
        return ranking_service.fixture_winners(request.args.get("ym") or None)
    except ValueError as e:
        return _error(str(e), 400)


@bp.route("/winners/months")
@cached_route(key_prefix="winner_months")
def winner_months():
    """Months that have winners, newest first"""
    return ranking_service.ranking_months()


@bp.route("/winners/monthly")
@cached_route(key_prefix="monthly_winners")
def monthly_winners():
    """Podium of a month (?ym=YYYY-MM, defaults to the latest month)"""
    ym = request.args.get("ym")
    if not ym:
        months = ranking_service.ranking_months()
        if not months:
            return []
        ym = months[0]

    try:
        return ranking_service.monthly_winners(ym)
    except ValueError as e:
        return _error(str(e), 400)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@bp.route("/fixtures/open")
def open_fixtures():
    """SCHEDULED fixtures with their lock state"""
    return fixtures_service.open_fixtures()


@bp.route("/fixtures/closed")
def closed_fixtures():
    """FINISHED or locked fixtures (?limit=&offset=)"""
    return fixtures_service.closed_fixtures(
        request.args.get("limit", type=int), request.args.get("offset", type=int)
    )


@bp.route("/fixtures/<int:fixture_id>")
def fixture_detail(fixture_id):
    fixture = db.get_or_404(Fixture, fixture_id)
    return fixture.to_dict()


@bp.route("/fixtures/<int:fixture_id>/trends")
def fixture_trends(fixture_id):
    try:
        return trends_service.fixture_trends(fixture_id)
    except LookupError:
        return _error("fixture_not_found", 404)


# ---------------------------------------------------------------------------
# Predictions
# ---------------------------------------------------------------------------


def _parse_scorer(data):
    """Map the optional 'scorer' field onto a scorer choice (None = keep)"""
    if "scorer" not in data:
        return None

    value = data["scorer"]
    if value is None or value == SCORER_UNSET:
        return SCORER_UNSET
    if value == SCORER_NONE:
        return SCORER_NONE
    player_id = coerce_id(value)
    if player_id is None:
        raise ValueError("invalid_scorer")
    return player_id


@bp.route("/predictions", methods=["POST"])
def submit_prediction():
    """Create or update a prediction while its fixture is still open"""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return _error("invalid_json", 400)

    fixture_id = data.get("fixtureId")
    user_id = data.get("userId")
    if not fixture_id or not user_id or data.get("home") is None or data.get("away") is None:
        return _error("missing_data", 400)

    fixture_id, user_id = coerce_id(fixture_id), coerce_id(user_id)
    if fixture_id is None or user_id is None:
        return _error("missing_data", 400)

    try:
        scorer = _parse_scorer(data)
    except (TypeError, ValueError):
        return _error("invalid_scorer", 400)

    if db.session.get(User, user_id) is None:
        return _error("user_missing", 400)

    fixture = db.session.get(Fixture, fixture_id)
    if fixture is None:
        return _error("fixture_not_found", 404)

    if isinstance(scorer, int) and db.session.get(Player, scorer) is None:
        return _error("unknown_player", 400)

    prediction, message = Prediction.submit(
        user_id, fixture, data.get("home"), data.get("away"), scorer=scorer
    )
    if prediction is None:
        return _error(message, 400)

    db.session.commit()
    logger.info(
        f"{message}: user {user_id} fixture {fixture_id} "
        f"{prediction.home_goals}-{prediction.away_goals}"
    )

    # Game rankings score on the fly and order ties by submission time
    invalidate_rankings_cache("prediction submitted")
    return {"success": True, "message": message, "prediction": prediction.to_dict()}


@bp.route("/predictions")
def user_predictions():
    """A user's predictions (?userId=); empty list without a user"""
    user_id = request.args.get("userId", type=int)
    if user_id is None:
        return []

    predictions = (
        Prediction.query.filter_by(user_id=user_id).order_by(Prediction.fixture_id).all()
    )
    return [prediction.to_dict() for prediction in predictions]


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------


@bp.route("/admin/fixtures/<int:fixture_id>/result", methods=["PATCH"])
@require_admin_key
def admin_set_result(fixture_id):
    data = request.get_json(silent=True) or {}
    try:
        report = results_service.record_result(
            fixture_id, data.get("home_score"), data.get("away_score")
        )
    except ValueError as e:
        return _error(str(e), 400)
    except LookupError:
        return _error("fixture_not_found", 404)
    return {"ok": report.ok, "recompute": report.to_dict()}


@bp.route("/admin/fixtures/<int:fixture_id>/reopen", methods=["PATCH"])
@require_admin_key
def admin_reopen(fixture_id):
    try:
        report = results_service.reopen_fixture(fixture_id)
    except LookupError:
        return _error("fixture_not_found", 404)
    return {"ok": report.ok, "recompute": report.to_dict()}


@bp.route("/admin/fixtures/<int:fixture_id>/scorers", methods=["PUT"])
@require_admin_key
def admin_set_scorers(fixture_id):
    data = request.get_json(silent=True)
    if not isinstance(data, dict) or not isinstance(data.get("player_ids"), list):
        return _error("invalid_body", 400)

    try:
        report = results_service.replace_scorers(fixture_id, data["player_ids"])
    except ValueError as e:
        return _error(str(e), 400)
    except LookupError as e:
        return _error(str(e), 404)
    return {"ok": report.ok, "recompute": report.to_dict()}


@bp.route("/admin/fixtures/<int:fixture_id>/recompute", methods=["POST"])
@require_admin_key
def admin_recompute(fixture_id):
    try:
        report = recompute_fixture(fixture_id)
    except LookupError:
        return _error("fixture_not_found", 404)
    return {"ok": report.ok, "recompute": report.to_dict()}
