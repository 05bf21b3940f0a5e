# cli.py
"""
Flask CLI commands for the scheduling service.
"""

import click
from flask import current_app
from flask.cli import with_appcontext

from trainhub.extensions import db


@click.command("init-db")
@with_appcontext
def init_database():
    """Create all database tables (use Flask-Migrate for schema changes)."""
    db.create_all()
    click.echo("Database tables created.")


@click.command("create-user")
@click.option("--name", prompt=True, help="Full name")
@click.option("--email", prompt=True, help="Email address")
@click.option("--role", prompt=True, type=click.Choice(['admin', 'trainer', 'student']), help="User role")
@click.option("--no-token", is_flag=True, help="Do not issue an API token")
@with_appcontext
def create_user(name, email, role, no_token):
    """Create a user and print their API token."""
    from trainhub.models import User

    if db.session.query(User).filter_by(email=email).first():
        click.echo(f"Error: a user with email {email} already exists", err=True)
        return

    try:
        user = User(name=name, email=email, role=role, is_active=True)
        token = None if no_token else user.issue_api_token(current_app.config.get('API_TOKEN_BYTES', 32))
        db.session.add(user)
        db.session.commit()

        click.echo(f"User '{name}' created successfully!")
        click.echo(f"   ID: {user.id}")
        click.echo(f"   Role: {user.role}")
        if token:
            click.echo(f"   API token: {token}")

    except Exception as e:
        db.session.rollback()
        click.echo(f"Error creating user: {str(e)}", err=True)
        raise


@click.command("issue-token")
@click.argument("email")
@with_appcontext
def issue_token(email):
    """Issue a fresh API token for EMAIL, replacing the previous one."""
    from trainhub.models import User

    user = db.session.query(User).filter_by(email=email).first()
    if user is None:
        click.echo(f"Error: no user with email {email}", err=True)
        return

    token = user.issue_api_token(current_app.config.get('API_TOKEN_BYTES', 32))
    db.session.commit()
    click.echo(f"API token for {email}: {token}")


@click.command("refresh-group-stats")
@click.option("--group-id", default=None, help="Only refresh this group")
@with_appcontext
def refresh_group_stats(group_id):
    """Recompute and store the average attendance of groups."""
    from trainhub.models import Group, GroupStatus
    from trainhub.services.stats_service import StatsService

    query = db.session.query(Group)
    if group_id:
        query = query.filter(Group.id == group_id)
    else:
        query = query.filter(Group.status == GroupStatus.ACTIVE)

    groups = query.all()
    if not groups:
        click.echo("No groups to refresh.")
        return

    for group in groups:
        average = StatsService.refresh_group_stats(group)
        click.echo(f"{group.name:<40} {average:>3}%")

    click.echo(f"\nRefreshed {len(groups)} group(s).")


@click.command("low-attendance")
@click.option("--trainer-id", default=None, help="Only groups of this trainer")
@with_appcontext
def low_attendance(trainer_id):
    """List active groups below the attendance threshold."""
    from trainhub.services.stats_service import StatsService

    alerts = StatsService.low_attendance_alerts(trainer_id)
    if not alerts:
        click.echo("No low-attendance groups.")
        return

    click.echo(f"{'Group':<40} {'Average':>8}")
    click.echo("-" * 50)
    for alert in alerts:
        click.echo(f"{alert['group_name'][:40]:<40} {alert['average_attendance']:>7}%")


def register_cli_commands(app):
    """
    Register all CLI commands with the Flask application.

    Args:
        app: Flask application instance
    """
    app.cli.add_command(init_database)
    app.cli.add_command(create_user)
    app.cli.add_command(issue_token)
    app.cli.add_command(refresh_group_stats)
    app.cli.add_command(low_attendance)

# flask init-db
# flask create-user --name "Jane Trainer" --email jane@example.com --role trainer
# flask refresh-group-stats
# flask low-attendance
