from datetime import datetime, timezone

from predictor import db
from predictor.utils.lock_clock import (
    STATUS_FINISHED,
    STATUS_SCHEDULED,
    is_locked,
    lock_instant,
    lock_window_minutes,
)
from predictor.utils.timezone_utils import ensure_utc, format_kickoff, get_utc_time

fixture_scorers = db.Table(
    "fixture_scorers",
    db.Column("fixture_id", db.Integer, db.ForeignKey("fixtures.id"), primary_key=True),
    db.Column("player_id", db.Integer, db.ForeignKey("players.id"), primary_key=True),
)


class Fixture(db.Model):
    __tablename__ = "fixtures"

    id = db.Column(db.Integer, primary_key=True)

    # Teams
    home_team_id = db.Column(db.Integer, db.ForeignKey("teams.id"), nullable=False)
    away_team_id = db.Column(db.Integer, db.ForeignKey("teams.id"), nullable=False)

    # Fixture timing (stored as UTC)
    kickoff_at = db.Column(db.DateTime, nullable=False)

    # Scores, present only when FINISHED
    home_score = db.Column(db.Integer)
    away_score = db.Column(db.Integer)

    status = db.Column(db.String(20), default=STATUS_SCHEDULED, nullable=False)

    # Additional fixture info
    competition_code = db.Column(db.String(20))
    round_label = db.Column(db.String(50))

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    predictions = db.relationship(
        "Prediction", backref="fixture", lazy="dynamic", cascade="all, delete-orphan"
    )
    scorers = db.relationship("Player", secondary=fixture_scorers, lazy="selectin")

    __table_args__ = (
        db.Index("idx_fixture_kickoff", "kickoff_at"),
        db.Index("idx_fixture_status", "status"),
        db.CheckConstraint("home_team_id != away_team_id", name="different_teams"),
    )

    def __repr__(self):
        return f"<Fixture {self.id} {self.home_score}-{self.away_score} {self.status}>"

    @property
    def has_result(self):
        return self.home_score is not None and self.away_score is not None

    @property
    def kickoff_utc(self):
        return ensure_utc(self.kickoff_at)

    @property
    def lock_at(self):
        """Instant from which predictions are rejected"""
        return lock_instant(self.kickoff_at, lock_window_minutes())

    def is_locked(self, now=None):
        """Check if the fixture no longer accepts predictions"""
        return is_locked(
            self.kickoff_at,
            lock_window_minutes(),
            now or get_utc_time(),
            self.status,
        )

    def scorer_positions(self):
        """Map of player id -> position for everyone who scored"""
        return {player.id: player.position for player in self.scorers}

    def set_result(self, home_score, away_score):
        """Record the final score"""
        self.home_score = home_score
        self.away_score = away_score
        self.status = STATUS_FINISHED

    def reopen(self):
        """Back to SCHEDULED, dropping the result"""
        self.home_score = None
        self.away_score = None
        self.status = STATUS_SCHEDULED

    def set_scorers(self, players):
        """Replace the scorer set"""
        self.scorers = list({player.id: player for player in players}.values())

    def to_dict(self, now=None):
        """Convert fixture to dictionary for API responses"""
        lock_at = self.lock_at
        return {
            "id": self.id,
            "kickoff_at": self.kickoff_utc.isoformat(),
            "kickoff_local": format_kickoff(self.kickoff_at),
            "status": self.status,
            "home_team": self.home_team.to_dict() if self.home_team else None,
            "away_team": self.away_team.to_dict() if self.away_team else None,
            "home_score": self.home_score,
            "away_score": self.away_score,
            "competition_code": self.competition_code,
            "round_label": self.round_label,
            "scorers": [player.to_dict() for player in self.scorers],
            "is_locked": self.is_locked(now),
            "lock_at_utc": lock_at.isoformat(),
        }
