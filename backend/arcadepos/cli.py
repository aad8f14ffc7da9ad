# Overview: Flask CLI command groups for bootstrap and inspection.

# backend/arcadepos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Use: python -m flask --app arcadepos <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask --app arcadepos system init-db
#   Create all tables that do not exist yet (idempotent).
# - python -m flask --app arcadepos system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# PC directory:
# - python -m flask --app arcadepos pcs create --number PC-01 --name "Station 1" --rate 2.5
#   Register a PC; the LBP rate is derived from the current exchange rate.
# - python -m flask --app arcadepos pcs list [--all]
#   List PCs with status and hourly rate.
#
# Gaming sessions:
# - python -m flask --app arcadepos sessions active
#   List running sessions with their current projected cost.
#
# Exchange rate:
# - python -m flask --app arcadepos rates set --rate 89500 --user-id 1 [--notes "..."]
#   Record a new USD to LBP rate, effective immediately.
# - python -m flask --app arcadepos rates show
#   Print the current rate and the most recent changes.

import click
from flask.cli import with_appcontext

from .errors import BillingError
from .extensions import db


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    from . import models  # noqa: F401

    db.create_all()
    click.echo("PASS Database schema is up to date")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()
    click.echo("BUILD Creating all tables...")
    db.create_all()
    click.echo("PASS Database reset complete")


@click.group('pcs')
def pcs_group():
    """PC directory commands."""


@pcs_group.command('create')
@click.option('--number', required=True, help='PC number, e.g. PC-01')
@click.option('--name', required=True, help='Display name')
@click.option('--rate', 'rate_usd', help='Hourly rate in USD (default: DEFAULT_HOURLY_RATE_USD)')
@click.option('--location', help='Location in the venue')
@with_appcontext
def create_pc_cli(number, name, rate_usd, location):
    """
    Register a gaming PC.

    Example:
        flask pcs create --number PC-01 --name "Station 1" --rate 2.5 --location "Main Hall"
    """
    from .services import pc_service

    try:
        pc = pc_service.create_pc(number, name, hourly_rate_usd=rate_usd, location=location)
    except BillingError as e:
        click.echo(f"FAIL Error: {e.message}")
        return

    rate = pc.hourly_rate
    click.echo(f"PASS Created PC: {pc.pc_number} - {pc.name}")
    click.echo(f"   Hourly rate: ${rate.usd} / {rate.lbp:,} LBP")
    click.echo(f"   Location: {pc.location or 'Not specified'}")
    click.echo(f"   PC ID: {pc.id}")


@pcs_group.command('list')
@click.option('--all', 'show_all', is_flag=True, help='Show inactive PCs too')
@with_appcontext
def list_pcs_cli(show_all):
    """
    List PCs.

    Example:
        flask pcs list
        flask pcs list --all
    """
    from .services import pc_service

    pcs = pc_service.list_pcs(include_inactive=show_all)
    if not pcs:
        click.echo("No PCs found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Number':<10} {'Name':<22} {'Status':<12} {'USD/h':>8} {'LBP/h':>12} {'Active':>7}")
    click.echo("="*90)
    for pc in pcs:
        rate = pc.hourly_rate
        active_str = "Yes" if pc.is_active else "No"
        click.echo(
            f"{pc.id:<5} {pc.pc_number:<10} {pc.name:<22} {pc.status:<12} "
            f"{rate.usd:>8} {int(rate.lbp):>12,} {active_str:>7}"
        )
    click.echo("="*90 + "\n")


@click.group('sessions')
def sessions_group():
    """Gaming session inspection commands."""


@sessions_group.command('active')
@with_appcontext
def active_sessions_cli():
    """
    List running sessions with their projected cost right now.

    Example:
        flask sessions active
    """
    from .services import projection_service, session_service

    sessions = session_service.list_active_sessions()
    if not sessions:
        click.echo("No active sessions.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Number':<16} {'PC':<10} {'Customer':<20} {'Minutes':>8} {'USD':>8} {'LBP':>12}")
    click.echo("="*90)
    for session in sessions:
        quote = projection_service.project_session_cost(session.id)
        cost = quote["cost"]
        click.echo(
            f"{session.id:<5} {session.session_number:<16} {session.pc.pc_number:<10} "
            f"{(session.customer_name or '-'):<20} {quote['duration']:>8} "
            f"{cost['usd']:>8.2f} {cost['lbp']:>12,}"
        )
    click.echo("="*90 + "\n")


@click.group('rates')
def rates_group():
    """USD to LBP exchange rate commands."""


@rates_group.command('set')
@click.option('--rate', required=True, help='Whole LBP per USD, e.g. 89500')
@click.option('--user-id', required=True, type=int, help='User recording the change')
@click.option('--notes', help='Reason for the change')
@with_appcontext
def set_rate_cli(rate, user_id, notes):
    """
    Record a new exchange rate.

    Example:
        flask rates set --rate 89500 --user-id 1 --notes "Morning update"
    """
    from .services import exchange_rate_service

    try:
        row = exchange_rate_service.update_rate(user_id, rate, notes=notes)
    except BillingError as e:
        click.echo(f"FAIL Error: {e.message}")
        return

    previous = f"{row.previous_rate:,}" if row.previous_rate is not None else "-"
    click.echo(f"PASS Exchange rate set: 1 USD = {row.rate:,} LBP (was {previous})")


@rates_group.command('show')
@click.option('--limit', default=10, show_default=True, type=int, help='History rows to show')
@with_appcontext
def show_rate_cli(limit):
    """
    Print the current rate and recent history.

    Example:
        flask rates show
    """
    from .services import exchange_rate_service

    click.echo(f"Current rate: 1 USD = {exchange_rate_service.get_current_rate():,} LBP")
    history = exchange_rate_service.get_rate_history(limit=max(limit, 1))
    if not history:
        click.echo("No rate changes recorded; using the configured default.")
        return
    for row in history:
        click.echo(f"  {row.effective_from:%Y-%m-%d %H:%M}  {row.rate:>10,}  user {row.updated_by_user_id}  {row.notes or ''}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(pcs_group)
    app.cli.add_command(sessions_group)
    app.cli.add_command(rates_group)
