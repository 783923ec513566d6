# Overview: Flask CLI command groups for store bootstrap and user seeding.

# backend/shopoms/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Export DATABASE_URL and JWT_SECRET.
# - Set FLASK_APP to wsgi.py.
#
# Store:
# - python -m flask system init-db
#   Create all tables (use `flask db upgrade` for migration-managed databases).
# - python -m flask system check-store
#   Probe store connectivity; exits non-zero when unreachable.
#
# Users:
# - python -m flask users create --username admin --name "System Admin" --password "..." --role admin
#   Create a staff user (prompts if options are omitted).
# - python -m flask users list
#   List all users with roles.

import click
from flask.cli import with_appcontext
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from .extensions import db
from .models import User, ROLES
from .services.auth_service import create_user


@click.group('system')
def system_group():
    """Store bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Tables created")


@system_group.command('check-store')
@with_appcontext
def check_store():
    """Probe the store with SELECT 1."""
    try:
        db.session.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        click.echo(f"FAIL Store unreachable: {exc.__class__.__name__}", err=True)
        raise SystemExit(1)
    click.echo("PASS Store reachable")


@click.group('users')
def users_group():
    """User seeding commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username (case-insensitive)')
@click.option('--name', 'display_name', prompt=True, help='Display name')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(list(ROLES)), default='cashier', show_default=True, help='Role')
@with_appcontext
def create_user_cli(username, display_name, password, role):
    """Create a staff user."""
    try:
        user = create_user(username, display_name, password, role)
    except ValueError as e:
        click.echo(f"FAIL {e}", err=True)
        raise SystemExit(1)
    click.echo(f"PASS Created user {user.username} (ID: {user.id}, role: {user.role})")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users."""
    users = db.session.query(User).order_by(User.id.asc()).all()
    if not users:
        click.echo("No users found.")
        return
    for user in users:
        click.echo(f"{user.id:>4}  {user.username:<24} {user.role:<8} {user.display_name}")


def register_commands(app):
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
