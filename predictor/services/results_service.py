"""
Admin result actions

Every change to a fixture's result or scorer set is committed, audited
and followed by exactly one recompute sweep over that fixture.
"""

import logging

from predictor import db
from predictor.models import AdminAction, Fixture, Player
from predictor.services.recompute_service import recompute_fixture
from predictor.utils.scoring import coerce_goals, coerce_id

logger = logging.getLogger(__name__)


def _get_fixture(fixture_id):
    fixture = db.session.get(Fixture, fixture_id)
    if fixture is None:
        raise LookupError(f"Fixture {fixture_id} not found")
    return fixture


def record_result(fixture_id, home_score, away_score):
    """Set the final score, mark the fixture FINISHED and recompute"""
    home = coerce_goals(home_score)
    away = coerce_goals(away_score)
    if home is None or away is None:
        raise ValueError("invalid_score")

    fixture = _get_fixture(fixture_id)
    fixture.set_result(home, away)
    AdminAction.log_result(fixture)
    db.session.commit()

    logger.info(f"Fixture {fixture_id} result set to {home}-{away}")
    return recompute_fixture(fixture_id)


def reopen_fixture(fixture_id):
    """Clear the result, back to SCHEDULED, and clear every prediction's points"""
    fixture = _get_fixture(fixture_id)
    fixture.reopen()
    AdminAction.log_reopen(fixture)
    db.session.commit()

    logger.info(f"Fixture {fixture_id} reopened")
    return recompute_fixture(fixture_id)


def replace_scorers(fixture_id, player_ids):
    """Replace the fixture's scorer set and recompute"""
    ids = [coerce_id(player_id) for player_id in player_ids]
    if None in ids:
        raise ValueError("invalid_player_ids")
    wanted = set(ids)

    fixture = _get_fixture(fixture_id)
    players = Player.query.filter(Player.id.in_(sorted(wanted))).all() if wanted else []

    missing = wanted - {player.id for player in players}
    if missing:
        raise LookupError(f"Unknown players: {sorted(missing)}")

    fixture.set_scorers(players)
    AdminAction.log_scorers(fixture)
    db.session.commit()

    logger.info(f"Fixture {fixture_id} scorers set to {sorted(wanted)}")
    return recompute_fixture(fixture_id)
