"""
Points recompute service

Re-scores every prediction on a fixture after its result or scorer set
changes and persists the totals in Prediction.points. Each prediction is
written and committed on its own, so one failing row never blocks the
rest of the sweep. Re-running a sweep on unchanged data writes the same
values again.
"""

import logging
from collections import namedtuple

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError

from predictor import db
from predictor.models import Fixture, Prediction
from predictor.utils.cache_utils import invalidate_rankings_cache
from predictor.utils.lock_clock import STATUS_FINISHED
from predictor.utils.scoring import DEFAULT_BONUS_TABLE, score_prediction

logger = logging.getLogger(__name__)

RecomputeFailure = namedtuple("RecomputeFailure", ["prediction_id", "user_id", "error"])


class RecomputeReport:
    """Outcome of one sweep over a fixture's predictions"""

    def __init__(self, fixture_id):
        self.fixture_id = fixture_id
        self.scored = 0
        self.cleared = 0
        self.failures = []

    def __repr__(self):
        return (
            f"<RecomputeReport fixture={self.fixture_id} scored={self.scored} "
            f"cleared={self.cleared} failures={len(self.failures)}>"
        )

    @property
    def ok(self):
        return not self.failures

    def to_dict(self):
        return {
            "fixture_id": self.fixture_id,
            "scored": self.scored,
            "cleared": self.cleared,
            "failures": [
                {
                    "prediction_id": failure.prediction_id,
                    "user_id": failure.user_id,
                    "error": failure.error,
                }
                for failure in self.failures
            ],
        }


class RecomputeService:
    """Writes fresh points for the predictions of a fixture"""

    def __init__(self, bonus_table=DEFAULT_BONUS_TABLE, max_attempts=None):
        self.bonus_table = bonus_table
        self.max_attempts = max_attempts

    def _attempts(self):
        if self.max_attempts:
            return self.max_attempts
        return max(1, int(current_app.config.get("RECOMPUTE_MAX_ATTEMPTS", 2)))

    def recompute_fixture(self, fixture_id):
        """
        Re-score (or clear) every prediction on a fixture

        Args:
            fixture_id: Fixture to sweep

        Returns:
            RecomputeReport

        Raises:
            LookupError: if the fixture does not exist
        """
        fixture = db.session.get(Fixture, fixture_id)
        if fixture is None:
            raise LookupError(f"Fixture {fixture_id} not found")

        # Snapshot the inputs before any commit expires the session
        has_result = fixture.has_result
        home_score, away_score = fixture.home_score, fixture.away_score
        scorer_positions = fixture.scorer_positions()

        rows = (
            db.session.query(
                Prediction.id,
                Prediction.user_id,
                Prediction.home_goals,
                Prediction.away_goals,
                Prediction.scorer_player_id,
            )
            .filter(Prediction.fixture_id == fixture_id)
            .order_by(Prediction.id)
            .all()
        )

        report = RecomputeReport(fixture_id)

        for row in rows:
            if has_result:
                points = score_prediction(
                    row.home_goals,
                    row.away_goals,
                    home_score,
                    away_score,
                    predicted_scorer_id=row.scorer_player_id,
                    scorer_positions=scorer_positions,
                    bonus_table=self.bonus_table,
                ).points
            else:
                points = None

            error = self._write_with_retry(row.id, points)
            if error is not None:
                report.failures.append(RecomputeFailure(row.id, row.user_id, error))
            elif points is None:
                report.cleared += 1
            else:
                report.scored += 1

        if report.failures:
            logger.error(
                f"Recompute for fixture {fixture_id} finished with "
                f"{len(report.failures)} failed predictions: "
                f"{[failure.prediction_id for failure in report.failures]}"
            )
        else:
            logger.info(
                f"Recomputed fixture {fixture_id}: scored={report.scored} "
                f"cleared={report.cleared}"
            )

        invalidate_rankings_cache(f"fixture {fixture_id} recomputed")
        return report

    def _write_with_retry(self, prediction_id, points):
        """Write one prediction's points; returns an error string on failure"""
        attempts = self._attempts()
        last_error = None
        for attempt in range(1, attempts + 1):
            try:
                self._write_points(prediction_id, points)
                return None
            except SQLAlchemyError as e:
                db.session.rollback()
                logger.warning(
                    f"Writing points for prediction {prediction_id} failed "
                    f"(attempt {attempt}/{attempts}): {e}"
                )
                last_error = str(e)

        logger.error(
            f"Giving up on prediction {prediction_id} after {attempts} attempts"
        )
        return last_error

    def _write_points(self, prediction_id, points):
        db.session.execute(
            update(Prediction)
            .where(Prediction.id == prediction_id)
            .values(points=points)
        )
        db.session.commit()

    def recompute_all(self, finished_only=False):
        """Sweep every fixture; returns the list of reports"""
        query = db.session.query(Fixture.id).order_by(Fixture.id)
        if finished_only:
            query = query.filter(Fixture.status == STATUS_FINISHED)

        fixture_ids = [fixture_id for (fixture_id,) in query.all()]
        return [self.recompute_fixture(fixture_id) for fixture_id in fixture_ids]


recompute_service = RecomputeService()


def recompute_fixture(fixture_id):
    """Module-level shortcut used by the admin actions and the CLI"""
    return recompute_service.recompute_fixture(fixture_id)
