"""
Fixture listings split by lock state

Open fixtures are the SCHEDULED ones, each carrying its lock flag. Closed
fixtures are those FINISHED or past their lock instant. Both use the
same lock clock as the prediction gate.
"""

from datetime import timedelta

from sqlalchemy import or_
from sqlalchemy.orm import aliased

from predictor import db
from predictor.models import Fixture, Team
from predictor.utils.lock_clock import STATUS_FINISHED, STATUS_SCHEDULED, lock_window_minutes
from predictor.utils.timezone_utils import ensure_utc, get_utc_time

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100
RECENT_GAMES_LIMIT = 300


def clamp_page(limit, offset):
    """Clamp limit to 1..MAX_PAGE_SIZE and offset to >= 0"""
    if limit is None:
        limit = DEFAULT_PAGE_SIZE
    if offset is None:
        offset = 0
    return min(max(limit, 1), MAX_PAGE_SIZE), max(offset, 0)


def open_fixtures(now=None):
    """SCHEDULED fixtures, soonest first, with is_locked and lock_at_utc"""
    now = now or get_utc_time()
    fixtures = (
        Fixture.query.filter(Fixture.status == STATUS_SCHEDULED)
        .order_by(Fixture.kickoff_at.asc(), Fixture.id.asc())
        .all()
    )
    return [fixture.to_dict(now) for fixture in fixtures]


def closed_fixtures(limit=None, offset=None, now=None):
    """FINISHED or locked fixtures, latest kickoff first"""
    limit, offset = clamp_page(limit, offset)
    now = now or get_utc_time()

    # now >= kickoff - window  <=>  kickoff <= now + window
    cutoff = ensure_utc(now) + timedelta(minutes=lock_window_minutes())
    fixtures = (
        Fixture.query.filter(
            or_(
                Fixture.status == STATUS_FINISHED,
                Fixture.kickoff_at <= cutoff.replace(tzinfo=None),
            )
        )
        .order_by(Fixture.kickoff_at.desc(), Fixture.id.desc())
        .limit(limit)
        .offset(offset)
        .all()
    )
    return [fixture.to_dict(now) for fixture in fixtures]


def recent_games(limit=RECENT_GAMES_LIMIT):
    """Short fixture summaries for the game ranking picker"""
    home = aliased(Team)
    away = aliased(Team)
    rows = (
        db.session.query(Fixture, home.name, away.name)
        .join(home, home.id == Fixture.home_team_id)
        .join(away, away.id == Fixture.away_team_id)
        .order_by(Fixture.kickoff_at.desc(), Fixture.id.desc())
        .limit(limit)
        .all()
    )
    return [
        {
            "id": fixture.id,
            "kickoff_at": fixture.kickoff_utc.isoformat(),
            "home_team_name": home_name,
            "away_team_name": away_name,
            "competition_code": fixture.competition_code,
            "round_label": fixture.round_label,
        }
        for fixture, home_name, away_name in rows
    ]
