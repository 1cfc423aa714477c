from datetime import datetime, timezone

from predictor import db
from predictor.utils.scoring import coerce_goals, score_one

# Three-state scorer choice: not chosen yet, explicitly nobody, or a player id
SCORER_UNSET = "unset"
SCORER_NONE = "none"


class Prediction(db.Model):
    __tablename__ = "predictions"

    id = db.Column(db.Integer, primary_key=True)

    # Prediction identification
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    fixture_id = db.Column(db.Integer, db.ForeignKey("fixtures.id"), nullable=False)

    # Predicted score (None = not submitted)
    home_goals = db.Column(db.Integer)
    away_goals = db.Column(db.Integer)

    # Scorer choice
    scorer_player_id = db.Column(
        db.Integer, db.ForeignKey("players.id"), nullable=True
    )
    no_scorer = db.Column(db.Boolean, default=False, nullable=False)

    # Total points, bonus included; NULL while the fixture has no result
    points = db.Column(db.Integer, nullable=True)

    # created_at is the first submission and is used for tie-breaks
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    scorer_player = db.relationship("Player", foreign_keys=[scorer_player_id])

    __table_args__ = (
        db.UniqueConstraint("user_id", "fixture_id", name="unique_user_fixture"),
        db.Index("idx_prediction_fixture", "fixture_id"),
        db.Index("idx_prediction_user", "user_id"),
    )

    def __repr__(self):
        return (
            f"<Prediction user_id={self.user_id} fixture_id={self.fixture_id} "
            f"{self.home_goals}-{self.away_goals} points={self.points}>"
        )

    @property
    def scorer_choice(self):
        """SCORER_UNSET, SCORER_NONE or the chosen player id"""
        if self.scorer_player_id is not None:
            return self.scorer_player_id
        return SCORER_NONE if self.no_scorer else SCORER_UNSET

    def set_scorer_choice(self, choice):
        if choice == SCORER_UNSET:
            self.scorer_player_id = None
            self.no_scorer = False
        elif choice == SCORER_NONE:
            self.scorer_player_id = None
            self.no_scorer = True
        else:
            self.scorer_player_id = int(choice)
            self.no_scorer = False

    def score(self, fixture=None):
        """Score this prediction against its fixture's current result"""
        return score_one(self, fixture or self.fixture)

    @staticmethod
    def submit(user_id, fixture, home_goals, away_goals, scorer=None, now=None):
        """Create or update a user's prediction for a fixture.

        Args:
            user_id: predicting user
            fixture: Fixture being predicted
            home_goals, away_goals: predicted score
            scorer: None leaves the scorer choice as it is, otherwise
                SCORER_UNSET, SCORER_NONE or a player id
            now: current instant, defaults to the wall clock

        Returns:
            (prediction, message); prediction is None when rejected
        """
        if fixture is None:
            return None, "fixture_not_found"

        if fixture.is_locked(now):
            return None, "locked"

        home = coerce_goals(home_goals)
        away = coerce_goals(away_goals)
        if home is None or away is None:
            return None, "invalid_score"

        prediction = Prediction.query.filter_by(
            user_id=user_id, fixture_id=fixture.id
        ).first()

        message = "Prediction updated"
        if prediction is None:
            prediction = Prediction(user_id=user_id, fixture_id=fixture.id)
            db.session.add(prediction)
            message = "Prediction created"

        prediction.home_goals = home
        prediction.away_goals = away
        if scorer is not None:
            prediction.set_scorer_choice(scorer)

        return prediction, message

    def to_dict(self):
        """Convert prediction to dictionary for API responses"""
        choice = self.scorer_choice
        return {
            "id": self.id,
            "user_id": self.user_id,
            "fixture_id": self.fixture_id,
            "home_goals": self.home_goals,
            "away_goals": self.away_goals,
            "scorer_player_id": self.scorer_player_id,
            "scorer_choice": choice if isinstance(choice, str) else "player",
            "points": self.points,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
