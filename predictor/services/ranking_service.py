"""
Ranking service

Builds leaderboards for four scopes: all-time, a calendar month, a single
fixture and a league. All scopes share one ordering:

    points desc, exact desc, diff desc, winner desc,
    earliest prediction asc (users without one last)

Winners listings are the same rankings cut to the top entries.
"""

import logging
import re
from datetime import datetime, timezone

from predictor import db
from predictor.models import Fixture, League, Prediction, User
from predictor.utils.lock_clock import STATUS_FINISHED
from predictor.utils.scoring import DEFAULT_BONUS_TABLE, score_one
from predictor.utils.timezone_utils import ensure_utc, month_key

logger = logging.getLogger(__name__)

SCOPE_ALL_TIME = "all_time"
SCOPE_MONTH = "month"
SCOPE_GAME = "game"
SCOPE_LEAGUE = "league"

_YM_RE = re.compile(r"^(\d{4})-(\d{2})$")
_NEVER = datetime.max.replace(tzinfo=timezone.utc)


class RankingRow:
    """Per-user accumulator, rebuilt on every request"""

    __slots__ = (
        "user_id",
        "name",
        "avatar_url",
        "points",
        "exact",
        "diff",
        "winner",
        "scorer_hits",
        "first_pred_at",
    )

    def __init__(self, user_id, name="Player", avatar_url=None):
        self.user_id = user_id
        self.name = name
        self.avatar_url = avatar_url
        self.points = 0
        self.exact = 0
        self.diff = 0
        self.winner = 0
        self.scorer_hits = 0
        self.first_pred_at = None

    @classmethod
    def for_user(cls, user):
        return cls(user.id, user.display_name, user.avatar_url)

    def __repr__(self):
        return f"<RankingRow user={self.user_id} points={self.points}>"

    def add(self, breakdown, points=None, submitted_at=None):
        """Fold one scored prediction into the row"""
        self.points += breakdown.points if points is None else points
        self.exact += breakdown.exact
        self.diff += breakdown.diff
        self.winner += breakdown.winner
        if breakdown.scorer_hit:
            self.scorer_hits += 1

        if submitted_at is not None:
            submitted_at = ensure_utc(submitted_at)
            if self.first_pred_at is None or submitted_at < self.first_pred_at:
                self.first_pred_at = submitted_at

    def to_dict(self, position=None):
        data = {
            "user_id": self.user_id,
            "name": self.name,
            "avatar_url": self.avatar_url,
            "points": self.points,
            "exact": self.exact,
            "diff": self.diff,
            "winner": self.winner,
            "scorer_hits": self.scorer_hits,
            "first_pred_at": (
                self.first_pred_at.isoformat() if self.first_pred_at else None
            ),
        }
        if position is not None:
            data["position"] = position
        return data


def ranking_sort_key(row):
    return (
        -row.points,
        -row.exact,
        -row.diff,
        -row.winner,
        row.first_pred_at or _NEVER,
        row.user_id,
    )


def order_rows(rows):
    """Sort rows by the shared tie-break chain"""
    return sorted(rows, key=ranking_sort_key)


def parse_month(ym):
    """
    Parse 'YYYY-MM' into the UTC [start, end) bounds of that month

    Raises:
        ValueError: if ym is not a valid month
    """
    match = _YM_RE.match(ym or "")
    if not match:
        raise ValueError("invalid_month")

    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        raise ValueError("invalid_month")

    start = datetime(year, month, 1, tzinfo=timezone.utc)
    if month == 12:
        end = datetime(year + 1, 1, 1, tzinfo=timezone.utc)
    else:
        end = datetime(year, month + 1, 1, tzinfo=timezone.utc)
    return start, end


def _db_instant(dt):
    # Kickoffs are stored as naive UTC
    return ensure_utc(dt).replace(tzinfo=None)


def _aggregate(pairs, rows, use_stored_points, bonus_table):
    """Fold (prediction, fixture) pairs into rows keyed by user id"""
    users_needed = {prediction.user_id for prediction, _ in pairs} - set(rows)
    if users_needed:
        for user in User.query.filter(User.id.in_(sorted(users_needed))).all():
            rows[user.id] = RankingRow.for_user(user)

    for prediction, fixture in pairs:
        row = rows.get(prediction.user_id)
        if row is None:
            row = rows[prediction.user_id] = RankingRow(prediction.user_id)

        breakdown = score_one(prediction, fixture, bonus_table)
        points = None
        if use_stored_points:
            if prediction.points is not None:
                points = prediction.points
            else:
                logger.debug(
                    f"Prediction {prediction.id} has no stored points yet, "
                    f"scoring fixture {fixture.id} on the fly"
                )
        row.add(breakdown, points=points, submitted_at=prediction.created_at)

    return rows


def _finished_pairs(*criteria):
    return (
        db.session.query(Prediction, Fixture)
        .join(Fixture, Fixture.id == Prediction.fixture_id)
        .filter(Fixture.status == STATUS_FINISHED, *criteria)
        .all()
    )


def rank_all_time(bonus_table=DEFAULT_BONUS_TABLE):
    """Every FINISHED fixture, users with at least one prediction"""
    rows = _aggregate(_finished_pairs(), {}, True, bonus_table)
    return order_rows(rows.values())


def rank_month(ym, bonus_table=DEFAULT_BONUS_TABLE):
    """FINISHED fixtures kicking off in the given 'YYYY-MM' month (UTC)"""
    start, end = parse_month(ym)
    pairs = _finished_pairs(
        Fixture.kickoff_at >= _db_instant(start), Fixture.kickoff_at < _db_instant(end)
    )
    rows = _aggregate(pairs, {}, True, bonus_table)
    return order_rows(rows.values())


def rank_game(fixture_id, submitted_only=False, bonus_table=DEFAULT_BONUS_TABLE):
    """
    Ranking for a single fixture, scored on the fly from its current result

    Every user is listed; users without a prediction get a zero row.

    Args:
        fixture_id: Fixture to rank
        submitted_only: Only list users who predicted this fixture
        bonus_table: ScorerBonusTable

    Raises:
        LookupError: if the fixture does not exist
    """
    fixture = db.session.get(Fixture, fixture_id)
    if fixture is None:
        raise LookupError(f"Fixture {fixture_id} not found")

    predictions = {
        prediction.user_id: prediction
        for prediction in Prediction.query.filter_by(fixture_id=fixture_id).all()
    }

    if submitted_only:
        users = []
        if predictions:
            users = User.query.filter(User.id.in_(list(predictions))).all()
    else:
        users = User.query.all()

    rows = []
    for user in users:
        row = RankingRow.for_user(user)
        prediction = predictions.get(user.id)
        row.add(
            score_one(prediction, fixture, bonus_table),
            submitted_at=prediction.created_at if prediction else None,
        )
        rows.append(row)

    return order_rows(rows)


def rank_league(league_id, bonus_table=DEFAULT_BONUS_TABLE):
    """
    Ranking restricted to league members and to FINISHED fixtures kicking
    off at or after the league's ranking_from cutoff (if any)

    Raises:
        LookupError: if the league does not exist
    """
    league = db.session.get(League, league_id)
    if league is None:
        raise LookupError(f"League {league_id} not found")

    member_ids = league.member_ids()
    if not member_ids:
        return []

    rows = {
        user.id: RankingRow.for_user(user)
        for user in User.query.filter(User.id.in_(member_ids)).all()
    }

    criteria = [Prediction.user_id.in_(member_ids)]
    if league.ranking_from is not None:
        criteria.append(Fixture.kickoff_at >= _db_instant(league.ranking_from))

    _aggregate(_finished_pairs(*criteria), rows, True, bonus_table)
    return order_rows(rows.values())


def rank_for(scope, value=None, bonus_table=DEFAULT_BONUS_TABLE):
    """
    Dispatch to a scope

    Args:
        scope: SCOPE_ALL_TIME, SCOPE_MONTH, SCOPE_GAME or SCOPE_LEAGUE
        value: 'YYYY-MM' for months, fixture id for games, league id for leagues
    """
    if scope == SCOPE_ALL_TIME:
        return rank_all_time(bonus_table)
    if scope == SCOPE_MONTH:
        return rank_month(value, bonus_table)
    if scope == SCOPE_GAME:
        return rank_game(value, bonus_table=bonus_table)
    if scope == SCOPE_LEAGUE:
        return rank_league(value, bonus_table)
    raise ValueError(f"Unknown ranking scope: {scope}")


def with_positions(rows):
    """Serialize ordered rows with 1-based positions"""
    return [row.to_dict(position=index) for index, row in enumerate(rows, start=1)]


def ranking_months():
    """'YYYY-MM' months that have FINISHED fixtures, newest first"""
    kickoffs = (
        db.session.query(Fixture.kickoff_at)
        .filter(Fixture.status == STATUS_FINISHED)
        .all()
    )
    return sorted({month_key(kickoff) for (kickoff,) in kickoffs}, reverse=True)


def fixture_winners(ym=None, bonus_table=DEFAULT_BONUS_TABLE):
    """Best predictor of every FINISHED fixture that received predictions"""
    query = (
        Fixture.query.filter(Fixture.status == STATUS_FINISHED)
        .filter(Fixture.predictions.any())
        .order_by(Fixture.kickoff_at.desc())
    )
    if ym:
        start, end = parse_month(ym)
        query = query.filter(
            Fixture.kickoff_at >= _db_instant(start),
            Fixture.kickoff_at < _db_instant(end),
        )

    winners = []
    for fixture in query.all():
        top = rank_game(fixture.id, submitted_only=True, bonus_table=bonus_table)[:1]
        if not top:
            continue

        entry = top[0].to_dict()
        entry.update(
            {
                "ym": month_key(fixture.kickoff_at),
                "fixture_id": fixture.id,
                "kickoff_at": fixture.kickoff_utc.isoformat(),
                "home_team_name": fixture.home_team.name if fixture.home_team else None,
                "away_team_name": fixture.away_team.name if fixture.away_team else None,
                "competition_code": fixture.competition_code,
                "round_label": fixture.round_label,
            }
        )
        winners.append(entry)

    return winners


def monthly_winners(ym, top=3, bonus_table=DEFAULT_BONUS_TABLE):
    """Top entries of the monthly ranking"""
    rows = rank_month(ym, bonus_table)[:top]
    return [dict(row.to_dict(position=index), ym=ym) for index, row in enumerate(rows, 1)]
