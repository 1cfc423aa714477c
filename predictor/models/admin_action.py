from datetime import datetime, timezone

from predictor import db


class AdminAction(db.Model):
    __tablename__ = "admin_actions"

    id = db.Column(db.Integer, primary_key=True)

    # 'set_result', 'reopen', 'set_scorers'
    action_type = db.Column(db.String(50), nullable=False)
    action_description = db.Column(db.String(500), nullable=False)

    fixture_id = db.Column(db.Integer, db.ForeignKey("fixtures.id"), nullable=True)

    # Additional context data (JSON)
    action_metadata = db.Column(db.JSON, nullable=True)

    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    fixture = db.relationship(
        "Fixture", backref=db.backref("admin_actions", cascade="all, delete-orphan")
    )

    __table_args__ = (
        db.Index("idx_admin_action_fixture", "fixture_id"),
        db.Index("idx_admin_action_type", "action_type"),
    )

    def __repr__(self):
        return f"<AdminAction {self.action_type} fixture={self.fixture_id}>"

    @staticmethod
    def log_action(action_type, description, fixture_id=None, action_metadata=None):
        """Log an admin action"""
        action = AdminAction(
            action_type=action_type,
            action_description=description,
            fixture_id=fixture_id,
            action_metadata=action_metadata or {},
        )

        db.session.add(action)
        return action

    @staticmethod
    def log_result(fixture):
        return AdminAction.log_action(
            "set_result",
            f"Result for fixture {fixture.id} set to {fixture.home_score}-{fixture.away_score}",
            fixture_id=fixture.id,
            action_metadata={
                "home_score": fixture.home_score,
                "away_score": fixture.away_score,
            },
        )

    @staticmethod
    def log_reopen(fixture):
        return AdminAction.log_action(
            "reopen", f"Fixture {fixture.id} reopened", fixture_id=fixture.id
        )

    @staticmethod
    def log_scorers(fixture):
        player_ids = sorted(player.id for player in fixture.scorers)
        return AdminAction.log_action(
            "set_scorers",
            f"Scorers for fixture {fixture.id} set to {player_ids}",
            fixture_id=fixture.id,
            action_metadata={"player_ids": player_ids},
        )

    def to_dict(self):
        return {
            "id": self.id,
            "action_type": self.action_type,
            "action_description": self.action_description,
            "fixture_id": self.fixture_id,
            "action_metadata": self.action_metadata,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
