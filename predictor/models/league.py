import secrets
from datetime import datetime, timezone

from predictor import db
from predictor.utils.timezone_utils import ensure_utc


class League(db.Model):
    __tablename__ = "leagues"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)

    # Join code
    code = db.Column(db.String(8), unique=True, nullable=False, index=True)
    visibility = db.Column(db.String(20), default="private")

    owner_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    # Fixtures kicking off before this instant are left out of the ranking
    ranking_from = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    # Relationships
    members = db.relationship(
        "LeagueMember", backref="league", lazy="dynamic", cascade="all, delete-orphan"
    )
    owner = db.relationship("User", foreign_keys=[owner_id])

    def __repr__(self):
        return f"<League {self.name}>"

    def __init__(self, **kwargs):
        super(League, self).__init__(**kwargs)
        if not self.code:
            self.code = self.generate_code()

    @staticmethod
    def generate_code():
        """Generate a unique 8-character join code"""
        while True:
            code = secrets.token_urlsafe(6)[:8].upper()
            if not League.query.filter_by(code=code).first():
                return code

    @property
    def ranking_from_utc(self):
        return ensure_utc(self.ranking_from)

    def member_ids(self):
        return [member.user_id for member in self.members]

    def is_user_member(self, user_id):
        return self.members.filter_by(user_id=user_id).first() is not None

    def add_member(self, user, role="member"):
        """Add a user to the league"""
        from .league_member import LeagueMember

        if self.is_user_member(user.id):
            return False, "User is already a member"

        db.session.add(LeagueMember(league_id=self.id, user_id=user.id, role=role))
        return True, "User added successfully"

    def to_dict(self):
        """Convert league to dictionary for API responses"""
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "visibility": self.visibility,
            "owner_id": self.owner_id,
            "ranking_from": (
                self.ranking_from_utc.isoformat() if self.ranking_from else None
            ),
            "member_count": self.members.count(),
        }
