#!/usr/bin/env python3
"""
Prediction pool management CLI

Database setup, points repair and ranking inspection from the command line.
"""

import logging
import secrets

import click
from flask import current_app
from flask.cli import with_appcontext
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from predictor import create_app, db
from predictor.models import Fixture, League, Prediction, User
from predictor.services import ranking_service
from predictor.services.recompute_service import recompute_service
from predictor.utils.lock_clock import STATUS_FINISHED

logger = logging.getLogger(__name__)


@click.group()
def cli():
    """Prediction pool management CLI"""
    pass


# Database Commands
@cli.group()
def db_cmd():
    """Database commands"""
    pass


@db_cmd.command()
@with_appcontext
def init_db():
    """Initialize database tables"""
    try:
        db.create_all()
        click.echo("✅ Database tables created successfully!")
    except SQLAlchemyError as e:
        click.echo(f"❌ Error initializing database: {str(e)}")
        logger.error(f"Database init failed: {e}")


@db_cmd.command()
@with_appcontext
def reset():
    """⚠️  DANGER: Drop and recreate all tables"""
    if not click.confirm("This will DELETE ALL DATA. Are you sure?"):
        click.echo("Cancelled.")
        return

    try:
        db.drop_all()
        db.create_all()
        click.echo("✅ Database reset successfully!")
    except SQLAlchemyError as e:
        click.echo(f"❌ Error resetting database: {str(e)}")
        logger.error(f"Database reset failed: {e}")


# Points Commands
def _echo_report(report):
    status = "✅" if report.ok else "⚠️ "
    click.echo(
        f"{status} Fixture {report.fixture_id}: {report.scored} scored, "
        f"{report.cleared} cleared, {len(report.failures)} failed"
    )
    for failure in report.failures:
        click.echo(
            f"   ❌ Prediction {failure.prediction_id} "
            f"(user {failure.user_id}): {failure.error}"
        )


def _warn_local_cache():
    # SimpleCache lives in this process only; a running server keeps its copy
    if current_app.config.get("CACHE_TYPE") == "SimpleCache":
        click.echo(
            "ℹ️  CACHE_TYPE=SimpleCache: the server's cached rankings expire after "
            "RANKINGS_CACHE_TIMEOUT. Use FileSystemCache to share the cache."
        )


@cli.command()
@click.argument("fixture_id", type=int)
@with_appcontext
def recompute(fixture_id):
    """Recompute points for every prediction on a fixture"""
    try:
        report = recompute_service.recompute_fixture(fixture_id)
    except LookupError:
        click.echo(f"❌ Fixture {fixture_id} not found!")
        return

    _echo_report(report)
    _warn_local_cache()


@cli.command()
@click.option("--finished-only", is_flag=True, help="Only sweep FINISHED fixtures")
@with_appcontext
def recompute_all(finished_only):
    """Recompute points for every fixture (repair)"""
    reports = recompute_service.recompute_all(finished_only=finished_only)

    if not reports:
        click.echo("No fixtures found.")
        return

    for report in reports:
        _echo_report(report)

    failed = sum(len(report.failures) for report in reports)
    click.echo(f"\n🎉 Swept {len(reports)} fixtures ({failed} failed predictions)")
    _warn_local_cache()


# Ranking Commands
@cli.command()
@click.option("--month", help="Monthly ranking (YYYY-MM)")
@click.option("--league", type=int, help="League ranking (league id)")
@click.option("--limit", type=int, default=20, show_default=True)
@with_appcontext
def rankings(month, league, limit):
    """Print a ranking (all-time by default)"""
    if month and league:
        click.echo("❌ Use either --month or --league, not both")
        return

    try:
        if league:
            scope, rows = f"League {league}", ranking_service.rank_league(league)
        elif month:
            scope, rows = f"Month {month}", ranking_service.rank_month(month)
        else:
            scope, rows = "All-time", ranking_service.rank_all_time()
    except ValueError:
        click.echo(f"❌ Invalid month: {month} (expected YYYY-MM)")
        return
    except LookupError:
        click.echo(f"❌ League {league} not found!")
        return

    click.echo(f"🏆 {scope} ranking")
    click.echo("=" * 40)

    if not rows:
        click.echo("No entries.")
        return

    for entry in ranking_service.with_positions(rows)[:limit]:
        click.echo(
            f"{entry['position']:>3}. {entry['name']:<20} {entry['points']:>4} pts "
            f"(exact {entry['exact']}, diff {entry['diff']}, "
            f"winner {entry['winner']})"
        )


# Info Commands
@cli.command()
def generate_secrets():
    """Generate SECRET_KEY and ADMIN_KEY values for the .env file"""
    click.echo("🔐 Generating secure secrets...")
    click.echo("=" * 50)
    click.echo(f"SECRET_KEY={secrets.token_urlsafe(32)}")
    click.echo(f"ADMIN_KEY={secrets.token_urlsafe(24)}")
    click.echo("=" * 50)
    click.echo("📝 Copy these values to your .env file")
    click.echo("⚠️  Keep these secrets secure and never commit them to version control!")


@cli.command()
@with_appcontext
def status():
    """Show application status"""
    click.echo("⚽ Prediction Pool Status")
    click.echo("=" * 40)

    try:
        db.session.execute(text("SELECT 1"))
        click.echo("✅ Database: Connected")
    except SQLAlchemyError as e:
        click.echo(f"❌ Database: Error - {str(e)}")
        return

    click.echo(f"👥 Users: {User.query.count()}")
    click.echo(f"🏆 Leagues: {League.query.count()}")

    fixture_count = Fixture.query.count()
    finished_count = Fixture.query.filter_by(status=STATUS_FINISHED).count()
    click.echo(f"📅 Fixtures: {finished_count}/{fixture_count} finished")

    unscored = (
        Prediction.query.join(Fixture, Fixture.id == Prediction.fixture_id)
        .filter(Fixture.status == STATUS_FINISHED, Prediction.points.is_(None))
        .count()
    )
    if unscored:
        click.echo(f"⚠️  {unscored} predictions on finished fixtures have no points")
        click.echo("   Run 'python manage.py recompute-all --finished-only' to repair")
    else:
        click.echo("✅ All predictions on finished fixtures are scored")


def main():
    app = create_app()
    with app.app_context():
        cli()


if __name__ == "__main__":
    main()
