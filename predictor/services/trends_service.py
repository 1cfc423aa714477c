"""
Fixture trends: what the pool expects from a fixture
"""

from collections import Counter

from predictor import db
from predictor.models import Fixture, Player, Prediction


def fixture_trends(fixture_id):
    """
    Summarize the predictions submitted for a fixture

    Returns:
        dict with total_predictions, most_common_score and most_common_scorer
        (either may be None when nothing was predicted)

    Raises:
        LookupError: if the fixture does not exist
    """
    if db.session.get(Fixture, fixture_id) is None:
        raise LookupError(f"Fixture {fixture_id} not found")

    rows = (
        db.session.query(
            Prediction.home_goals, Prediction.away_goals, Prediction.scorer_player_id
        )
        .filter(Prediction.fixture_id == fixture_id)
        .all()
    )

    scores = Counter(
        (row.home_goals, row.away_goals)
        for row in rows
        if row.home_goals is not None and row.away_goals is not None
    )
    scorers = Counter(
        row.scorer_player_id for row in rows if row.scorer_player_id is not None
    )

    most_common_score = None
    if scores:
        # Ties go to the higher home score, then the higher away score
        (home, away), count = max(
            scores.items(), key=lambda item: (item[1], item[0][0], item[0][1])
        )
        most_common_score = {"home": home, "away": away, "count": count}

    most_common_scorer = None
    if scorers:
        players = {
            player.id: player
            for player in Player.query.filter(Player.id.in_(list(scorers))).all()
        }
        best = max(scorers.values())
        candidates = sorted(
            (players[player_id].name if player_id in players else "", player_id)
            for player_id, count in scorers.items()
            if count == best
        )
        name, player_id = candidates[0]
        most_common_scorer = {"player_id": player_id, "name": name, "count": best}

    return {
        "fixture_id": fixture_id,
        "total_predictions": len(rows),
        "most_common_score": most_common_score,
        "most_common_scorer": most_common_scorer,
    }
