# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/retoro/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init [--no-seed]
#   Idempotent: creates missing tables and the built-in retailers.
#
# Retailer inspection/bootstrap:
# - python -m flask retailers list
#   List retailers with their return windows.
# - python -m flask retailers add --name "Uniqlo" --window 30 [--free-returns]
#   Add a retailer (id is derived from the name).
#
# Maintenance:
# - python -m flask maintenance cleanup-sessions
#   Delete expired sessions.
# - python -m flask maintenance recompute-deadlines [--retailer-id zara]
#   Re-derive stored deadlines after a policy change.

import click
from flask.cli import with_appcontext

from .extensions import db
from .services import retailer_service, return_item_service, session_service
from .validation import ValidationError, ConflictError


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init')
@click.option('--seed/--no-seed', default=True, help='Insert the built-in retailers')
@with_appcontext
def init_system(seed):
    """
    Initialize Retoro: create tables and seed default retailers.

    Safe to run repeatedly; existing rows are left alone.
    """
    click.echo("START Initializing Retoro...")

    db.create_all()
    click.echo("PASS Database tables ready")

    if seed:
        added = retailer_service.seed_default_retailers()
        click.echo(f"PASS Added {added} default retailers")
    else:
        click.echo("WARN  Skipped retailer seed")

    click.echo("DONE Retoro initialized")


@click.group('retailers')
def retailers_group():
    """Retailer policy inspection and bootstrap."""


@retailers_group.command('list')
@with_appcontext
def list_retailers_cli():
    retailers = retailer_service.list_retailers()
    if not retailers:
        click.echo("No retailers found. Run: flask system init")
        return

    for retailer in retailers:
        window = f"{retailer.return_window_days} days" if retailer.return_window_days else "no deadline"
        free = " (free returns)" if retailer.has_free_returns else ""
        click.echo(f"{retailer.id:<20} {retailer.name:<25} {window}{free}")


@retailers_group.command('add')
@click.option('--name', prompt=True)
@click.option('--window', 'return_window_days', type=int, prompt='Return window (days, 0 = none)')
@click.option('--description', 'policy_description', default=None)
@click.option('--url', 'website_url', default=None)
@click.option('--free-returns/--no-free-returns', 'has_free_returns', default=False)
@with_appcontext
def add_retailer_cli(name, return_window_days, policy_description, website_url, has_free_returns):
    payload = {
        "name": name,
        "return_window_days": return_window_days,
        "has_free_returns": has_free_returns,
    }
    if policy_description:
        payload["policy_description"] = policy_description
    if website_url:
        payload["website_url"] = website_url

    try:
        retailer = retailer_service.create_retailer(payload)
    except ConflictError as e:
        raise click.ClickException(f"{e}: {getattr(e, 'retailer_id', '')}")
    except ValidationError as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS Created retailer: {retailer.name} (ID: {retailer.id})")


@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('cleanup-sessions')
@with_appcontext
def cleanup_sessions_cli():
    deleted = session_service.cleanup_expired_sessions()
    click.echo(f"Deleted {deleted} expired sessions.")


@maintenance_group.command('recompute-deadlines')
@click.option('--retailer-id', default=None, help='Only items from this retailer')
@with_appcontext
def recompute_deadlines_cli(retailer_id):
    """
    Re-derive return deadlines from the current retailer policies.

    Items keep the deadline computed when they were written until this runs.
    """
    if retailer_id and not retailer_service.get_retailer(retailer_id):
        raise click.ClickException(f"Retailer not found: {retailer_id}")

    changed = return_item_service.recompute_deadlines(retailer_id=retailer_id)
    click.echo(f"Updated {changed} return deadlines.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(retailers_group)
    app.cli.add_command(maintenance_group)
