from datetime import datetime, timezone

from predictor import db


class Team(db.Model):
    __tablename__ = "teams"

    id = db.Column(db.Integer, primary_key=True)

    # Team identification
    name = db.Column(db.String(100), nullable=False)
    short_name = db.Column(db.String(20), index=True)

    # Visual elements
    crest_url = db.Column(db.String(500))

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    # Relationships
    home_fixtures = db.relationship(
        "Fixture",
        foreign_keys="Fixture.home_team_id",
        backref=db.backref("home_team", lazy="joined"),
        lazy="dynamic",
    )
    away_fixtures = db.relationship(
        "Fixture",
        foreign_keys="Fixture.away_team_id",
        backref=db.backref("away_team", lazy="joined"),
        lazy="dynamic",
    )
    players = db.relationship("Player", backref="team", lazy="dynamic")

    def __repr__(self):
        return f"<Team {self.name}>"

    def to_dict(self):
        """Convert team to dictionary for API responses"""
        return {
            "id": self.id,
            "name": self.name,
            "short_name": self.short_name,
            "crest_url": self.crest_url,
        }
