# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/barberdesk/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables that do not exist yet.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users create --email owner@example.com --password "Password123!" --business-name "Fade Lab"
#   Create an owner account (company is provisioned on first login).
# - python -m flask users grant-role admin@example.com super_admin
#   Grant a role (owner, barber, super_admin).
# - python -m flask users list
#
# Companies / landing page:
# - python -m flask companies list
# - python -m flask companies set-plan 3 --status active --price 99.90
# - python -m flask spots show
#   Print the remaining-spots payload the landing page receives.
#
# Maintenance:
# - python -m flask maintenance cleanup-security-events --retention-days 90
# - python -m flask maintenance cleanup-page-visits --retention-days 365

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User, VALID_ROLES
from .services.auth_service import (
    AccountError,
    PasswordValidationError,
    assign_role,
    create_user,
    find_user_by_email,
)
from .services import company_service
from .services import maintenance_service
from .services import scarcity_service


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create missing tables (idempotent)."""
    db.create_all()
    click.echo("PASS Database tables ready")


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

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--business-name', default=None, help='Names the company provisioned on first login')
@click.option('--full-name', default=None, help='Owner full name')
@with_appcontext
def create_user_cli(email, password, business_name, full_name):
    """
    Create an owner account.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character
    """
    try:
        user = create_user(
            email,
            password,
            profile={"business_name": business_name, "full_name": full_name},
        )
        click.echo(f"PASS Created user: {user.email} (ID: {user.id})")
        click.echo("SECURITY Password securely hashed with bcrypt")
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {str(e)}")
        click.echo("Requirements: 8+ chars, uppercase, lowercase, digit, special char")
    except AccountError as e:
        click.echo(f"FAIL Failed to create user: {str(e)}")


@users_group.command('grant-role')
@click.argument('email')
@click.argument('role', type=click.Choice(sorted(VALID_ROLES)))
@with_appcontext
def grant_role_cli(email, role):
    """Grant a role to the account registered under EMAIL."""
    user = find_user_by_email(email)
    if not user:
        click.echo(f"FAIL No user with email {email}")
        return
    assign_role(user.id, role)
    click.echo(f"PASS {user.email} now has role '{role}'")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their roles."""
    users = db.session.query(User).order_by(User.id).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Email':<40} {'Active':<8} {'Roles'}")
    click.echo("="*90)

    for user in users:
        roles_str = ", ".join(sorted(user.role_names)) or "none"
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.email:<40} {active_str:<8} {roles_str}")

    click.echo("="*90 + "\n")


@click.group('companies')
def companies_group():
    """Company (tenant) inspection."""


@companies_group.command('list')
@with_appcontext
def list_companies_cli():
    companies = company_service.list_companies()
    if not companies:
        click.echo("No companies found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Name':<35} {'Owner':<7} {'Plan':<9} {'Price':<10} {'Units'}")
    click.echo("="*90)

    for company in companies:
        click.echo(
            f"{company.id:<5} {company.name[:34]:<35} {company.owner_user_id:<7} "
            f"{company.plan_status:<9} {str(company.monthly_price):<10} {len(company.units)}"
        )

    click.echo("="*90 + "\n")


@companies_group.command('set-plan')
@click.argument('company_id', type=int)
@click.option('--status', 'plan_status', type=click.Choice(['trial', 'active', 'overdue']), default=None)
@click.option('--price', 'monthly_price', default=None, help='Monthly price, e.g. 99.90')
@with_appcontext
def set_plan_cli(company_id, plan_status, monthly_price):
    try:
        company = company_service.set_plan(company_id, plan_status=plan_status, monthly_price=monthly_price)
    except company_service.CompanyError as e:
        click.echo(f"FAIL {e}")
        return
    click.echo(f"PASS {company.name}: {company.plan_status} at {company.monthly_price}")


@click.group('spots')
def spots_group():
    """Landing page counters."""


@spots_group.command('show')
@with_appcontext
def show_spots():
    payload = scarcity_service.remaining_spots()
    total = scarcity_service.company_stats()["totalCompanies"]
    click.echo(f"Companies: {total}")
    click.echo(f"Shown:     {payload['remaining']} ({payload['message']})")
    click.echo(f"Has spots: {'yes' if payload['hasSpots'] else 'no'}")


@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('cleanup-security-events')
@click.option('--retention-days', type=int, default=90, show_default=True)
@with_appcontext
def cleanup_security_events_cli(retention_days):
    deleted = maintenance_service.cleanup_security_events(retention_days=retention_days)
    click.echo(f"Deleted {deleted} security events older than {retention_days} days.")


@maintenance_group.command('cleanup-page-visits')
@click.option('--retention-days', type=int, default=365, show_default=True)
@with_appcontext
def cleanup_page_visits_cli(retention_days):
    deleted = maintenance_service.cleanup_page_visits(retention_days=retention_days)
    click.echo(f"Deleted {deleted} page visits older than {retention_days} days.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(companies_group)
    app.cli.add_command(spots_group)
    app.cli.add_command(maintenance_group)
