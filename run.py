from predictor import create_app, db
from predictor.models import Fixture, League, Player, Prediction, Team, User

app = create_app()


@app.shell_context_processor
def make_shell_context():
    return {
        "db": db,
        "User": User,
        "League": League,
        "Fixture": Fixture,
        "Prediction": Prediction,
        "Player": Player,
        "Team": Team,
    }


if __name__ == "__main__":
    app.run(host="0.0.0.0", port=5000, debug=app.config.get("DEBUG", False))
