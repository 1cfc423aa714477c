"""
Scoring engine for the prediction pool

Every place that turns a prediction into points goes through
score_prediction(). Aggregation into leaderboards lives in
predictor/services/ranking_service.py and persistence of the totals in
predictor/services/recompute_service.py.

Points are additive over four independent conditions:
    correct outcome (home win / draw / away win)   +3
    correct home goals                              +2
    correct away goals                              +2
    correct goal difference                         +3
An exact score meets all four and earns the maximum of 10. A correct
goal-scorer pick adds a bonus that depends on the player's position.
"""

from collections import namedtuple
from types import MappingProxyType

WEIGHT_OUTCOME = 3
WEIGHT_HOME_GOALS = 2
WEIGHT_AWAY_GOALS = 2
WEIGHT_GOAL_DIFF = 3

MAX_OUTCOME_POINTS = (
    WEIGHT_OUTCOME + WEIGHT_HOME_GOALS + WEIGHT_AWAY_GOALS + WEIGHT_GOAL_DIFF
)


class ScoreBreakdown(
    namedtuple("ScoreBreakdown", ["points", "exact", "diff", "winner", "scorer_hit"])
):
    """Result of scoring one prediction.

    exact, diff and winner are 0/1 counters and at most one of them is 1.
    """

    __slots__ = ()

    def to_dict(self):
        return {
            "points": self.points,
            "exact": self.exact,
            "diff": self.diff,
            "winner": self.winner,
            "scorer_hit": self.scorer_hit,
        }


ZERO_BREAKDOWN = ScoreBreakdown(0, 0, 0, 0, False)


def _sign(value):
    return (value > 0) - (value < 0)


def coerce_goals(value):
    """Coerce a goal count to a non-negative int, or None if unusable"""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value >= 0 else None
    if isinstance(value, float):
        return int(value) if value.is_integer() and value >= 0 else None
    if isinstance(value, str) and value.strip().isdecimal():
        return int(value.strip())
    return None


def coerce_id(value):
    """Coerce a row id to a positive int, or None if unusable"""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float):
        if not value.is_integer():
            return None
        value = int(value)
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, str) and value.strip().isdecimal():
        return coerce_id(int(value.strip()))
    return None


def score_outcome(pred_home, pred_away, actual_home, actual_away):
    """
    Score predicted goals against the actual result.

    Args:
        pred_home, pred_away: predicted goals (None if not submitted)
        actual_home, actual_away: real goals (None while unresolved)

    Returns:
        ScoreBreakdown with scorer_hit False. Missing or invalid input on
        either side gives ZERO_BREAKDOWN.
    """
    ph, pa = coerce_goals(pred_home), coerce_goals(pred_away)
    ah, aa = coerce_goals(actual_home), coerce_goals(actual_away)
    if ah is None or aa is None or ph is None or pa is None:
        return ZERO_BREAKDOWN

    predicted_margin = ph - pa
    actual_margin = ah - aa

    same_outcome = _sign(predicted_margin) == _sign(actual_margin)
    correct_home = ph == ah
    correct_away = pa == aa
    correct_margin = predicted_margin == actual_margin
    is_exact = correct_home and correct_away

    points = 0
    if same_outcome:
        points += WEIGHT_OUTCOME
    if correct_home:
        points += WEIGHT_HOME_GOALS
    if correct_away:
        points += WEIGHT_AWAY_GOALS
    if correct_margin:
        points += WEIGHT_GOAL_DIFF

    exact = 1 if is_exact else 0
    diff = 1 if correct_margin and not is_exact else 0
    winner = 1 if same_outcome and not is_exact and not diff else 0

    return ScoreBreakdown(points, exact, diff, winner, False)


class ScorerBonusTable:
    """Immutable position -> bonus lookup.

    Positions are matched case-insensitively; the short codes used in the
    player data (GR/GK, D, M, A) resolve to the same tiers.
    """

    ALIASES = {
        "gr": "goalkeeper",
        "gk": "goalkeeper",
        "d": "defender",
        "def": "defender",
        "m": "midfielder",
        "mid": "midfielder",
        "a": "attacker",
        "att": "attacker",
        "fw": "attacker",
        "fwd": "attacker",
        "forward": "attacker",
    }

    def __init__(self, bonuses):
        self._bonuses = MappingProxyType(
            {str(k).lower(): int(v) for k, v in bonuses.items() if int(v) >= 0}
        )

    def __repr__(self):
        return f"<ScorerBonusTable {dict(self._bonuses)}>"

    def bonus_for(self, position):
        if not position:
            return 0
        key = str(position).strip().lower()
        key = self.ALIASES.get(key, key)
        return self._bonuses.get(key, 0)


DEFAULT_BONUS_TABLE = ScorerBonusTable(
    {"goalkeeper": 10, "defender": 5, "midfielder": 3, "attacker": 1}
)


def score_prediction(
    pred_home,
    pred_away,
    actual_home,
    actual_away,
    predicted_scorer_id=None,
    scorer_positions=None,
    bonus_table=DEFAULT_BONUS_TABLE,
):
    """
    Score one prediction, scorer bonus included.

    Args:
        pred_home, pred_away: predicted goals
        actual_home, actual_away: real goals (None while unresolved)
        predicted_scorer_id: player id picked as scorer, or None
        scorer_positions: mapping of player id -> position for every
            player who scored in the fixture
        bonus_table: ScorerBonusTable used for the bonus

    Returns:
        ScoreBreakdown
    """
    if coerce_goals(actual_home) is None or coerce_goals(actual_away) is None:
        return ZERO_BREAKDOWN

    breakdown = score_outcome(pred_home, pred_away, actual_home, actual_away)

    if predicted_scorer_id is None or not scorer_positions:
        return breakdown

    positions = {str(k): v for k, v in scorer_positions.items()}
    key = str(predicted_scorer_id)
    if key not in positions:
        return breakdown

    bonus = bonus_table.bonus_for(positions[key])
    if not bonus:
        return breakdown

    return breakdown._replace(points=breakdown.points + bonus, scorer_hit=True)


def score_one(prediction, fixture, bonus_table=DEFAULT_BONUS_TABLE):
    """Score a Prediction row (or None) against a Fixture row"""
    if fixture is None:
        return ZERO_BREAKDOWN
    if prediction is None:
        return score_prediction(
            None, None, fixture.home_score, fixture.away_score, bonus_table=bonus_table
        )

    return score_prediction(
        prediction.home_goals,
        prediction.away_goals,
        fixture.home_score,
        fixture.away_score,
        predicted_scorer_id=prediction.scorer_player_id,
        scorer_positions=fixture.scorer_positions(),
        bonus_table=bonus_table,
    )
