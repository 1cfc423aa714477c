from predictor import db

POSITIONS = ("goalkeeper", "defender", "midfielder", "attacker", "other")


class Player(db.Model):
    __tablename__ = "players"

    id = db.Column(db.Integer, primary_key=True)
    team_id = db.Column(db.Integer, db.ForeignKey("teams.id"), nullable=True)
    name = db.Column(db.String(100), nullable=False)

    # One of POSITIONS; short codes (GR, D, M, A) are tolerated by the bonus table
    position = db.Column(db.String(20), default="other")

    __table_args__ = (db.Index("idx_player_team", "team_id"),)

    def __repr__(self):
        return f"<Player {self.name} ({self.position})>"

    def to_dict(self):
        return {
            "id": self.id,
            "team_id": self.team_id,
            "name": self.name,
            "position": self.position,
        }
