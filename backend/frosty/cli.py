# Overview: Flask CLI command groups for account bootstrap and maintenance.

# backend/frosty/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# Schema:
# - python -m flask db upgrade
#   Apply migrations (Flask-Migrate).
#
# Accounts:
# - python -m flask users create-admin --username admin --email admin@example.com --full-name "Admin"
#   Create an approved admin account (prompts for the password).
# - python -m flask users pending
#   List accounts awaiting approval.
# - python -m flask users approve bob
#   Approve an account by username.
#
# Maintenance:
# - python -m flask sessions cleanup --retention-days 30
#   Delete expired and revoked sessions older than the retention window.

import click
from flask.cli import with_appcontext

from .errors import FrostyError
from .extensions import db
from .models import User, ROLE_ADMIN
from .services import session_service, user_service
from .services.auth_service import hash_password


# =============================================================================
# USER MANAGEMENT COMMANDS
# =============================================================================

@click.group('users')
def users_group():
    """User account commands."""


@users_group.command('create-admin')
@click.option('--username', prompt=True, help='Username')
@click.option('--email', prompt=True, help='Email address')
@click.option('--full-name', prompt=True, help='Full name')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@with_appcontext
def create_admin_cli(username, email, full_name, password):
    """
    Create an approved admin account.

    Self-registration only produces unapproved staff accounts, so the first
    administrator has to come from here.
    """
    if user_service.get_user_by_username(username):
        raise click.ClickException(f"User '{username}' already exists")

    try:
        password_hash = hash_password(password)
    except FrostyError as e:
        raise click.ClickException(e.message)

    user = User(
        username=username,
        email=email,
        full_name=full_name,
        password_hash=password_hash,
        role=ROLE_ADMIN,
        approved=True,
    )
    db.session.add(user)
    db.session.commit()
    click.echo(f"PASS Created admin: {user.username} (ID: {user.id})")


@users_group.command('pending')
@with_appcontext
def list_pending_cli():
    """List accounts awaiting approval, oldest first."""
    users = db.session.query(User).filter(User.approved.is_(False)).order_by(User.id).all()
    if not users:
        click.echo("No pending accounts.")
        return

    click.echo(f"{'ID':<5} {'Username':<20} {'Email':<30} {'Full name'}")
    for user in users:
        click.echo(f"{user.id:<5} {user.username:<20} {user.email:<30} {user.full_name}")


@users_group.command('approve')
@click.argument('username')
@with_appcontext
def approve_cli(username):
    """Approve an account by username."""
    user = user_service.get_user_by_username(username)
    if not user:
        raise click.ClickException(f"User '{username}' not found")

    if user.approved:
        click.echo(f"User '{username}' is already approved.")
        return

    user.approved = True
    db.session.commit()
    click.echo(f"PASS Approved user: {username}")


# =============================================================================
# MAINTENANCE COMMANDS
# =============================================================================

@click.group('sessions')
def sessions_group():
    """Session maintenance commands."""


@sessions_group.command('cleanup')
@click.option('--retention-days', type=int, default=30, show_default=True)
@with_appcontext
def cleanup_sessions_cli(retention_days):
    """Delete expired and revoked sessions older than the retention window."""
    deleted = session_service.cleanup_expired_sessions(retention_days=retention_days)
    click.echo(f"Deleted {deleted} sessions older than {retention_days} days.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(users_group)
    app.cli.add_command(sessions_group)
