from predictor import db  # noqa: F401 - imported for model imports

from .admin_action import AdminAction
from .fixture import Fixture, fixture_scorers
from .league import League
from .league_member import LeagueMember
from .player import Player
from .prediction import Prediction
from .team import Team
from .user import User

__all__ = [
    "User",
    "Team",
    "Player",
    "Fixture",
    "fixture_scorers",
    "Prediction",
    "League",
    "LeagueMember",
    "AdminAction",
]
