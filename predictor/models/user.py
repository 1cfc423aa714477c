from datetime import datetime, timezone

from predictor import db


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100))
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    avatar_url = db.Column(db.String(500))

    # Site-wide role ('user' or 'admin'); identity itself lives elsewhere
    role = db.Column(db.String(20), default="user", nullable=False)

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    # Relationships
    predictions = db.relationship(
        "Prediction", backref="user", lazy="dynamic", cascade="all, delete-orphan"
    )
    league_memberships = db.relationship(
        "LeagueMember", backref="user", lazy="dynamic", cascade="all, delete-orphan"
    )

    def __repr__(self):
        return f"<User {self.email}>"

    @property
    def display_name(self):
        """Trimmed name, else the local part of the email, else 'Player'"""
        if self.name and self.name.strip():
            return self.name.strip()
        if self.email:
            return self.email.split("@", 1)[0] if "@" in self.email else self.email
        return "Player"

    def to_dict(self):
        """Convert user to dictionary for API responses"""
        return {
            "id": self.id,
            "name": self.display_name,
            "avatar_url": self.avatar_url,
            "role": self.role,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
