# Overview: Flask CLI command groups for bootstrap, account support, suppliers, and maintenance.

# backend/storefront/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables that do not exist yet (use `flask db upgrade` in production).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Accounts:
# - python -m flask users create --username admin --email admin@store.local --role admin
#   Create an account (prompts for the password).
# - python -m flask users list
#   List accounts with role, lock state and active status.
# - python -m flask users unlock alice01
#   Clear the failed-login counter and lock for a username or email.
# - python -m flask users deactivate alice01
#   Disable an account and revoke every session it holds.
#
# Suppliers:
# - python -m flask suppliers create --name "Acme Textiles" --email orders@acme.example
# - python -m flask suppliers list
# - python -m flask suppliers expire-stale
#   Mark PENDING order tokens past their expiry as EXPIRED.
#
# Referrals:
# - python -m flask referrals create --referrer bob@x.com --email friend@x.com
#   Create a referral on behalf of an existing account and print its token.
#
# Maintenance:
# - python -m flask maintenance cleanup-sessions --retention-days 30
#   Delete expired or revoked sessions older than the retention window.

import click
from datetime import timedelta
from flask.cli import with_appcontext

from .errors import StorefrontError
from .extensions import db
from .models import ROLES, Supplier, User
from .services import get_services
from .services.password_service import PasswordHasher, validate_password_strength
from .validation import validate_email, validate_username


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables. Idempotent."""
    db.create_all()
    click.echo("PASS Database tables created.")


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

    click.echo("PASS Database reset complete.")


@click.group('users')
def users_group():
    """Account management commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--firstname', default='Store', show_default=True)
@click.option('--lastname', default='Admin', show_default=True)
@click.option('--role', type=click.Choice(list(ROLES)), default='user', show_default=True, help='Role')
@with_appcontext
def create_user_cli(username, email, password, firstname, lastname, role):
    """
    Create an account directly, bypassing the referral flow.

    Password must meet strength requirements:
    - 8 to 128 characters
    - At least one uppercase letter, lowercase letter and digit
    - At least one special character (@$!%*?&)
    """
    services = get_services()
    try:
        username = validate_username(username.strip())
        email = validate_email(email.strip())
        validate_password_strength(password)
        services.store.ensure_available(username, email)

        digest = services.hasher.hash(password)
        user = services.store.create(
            username=username,
            email=email,
            password_hash=digest,
            password_cost=PasswordHasher.cost_of(digest),
            role=role,
            firstname=firstname,
            lastname=lastname,
        )
    except StorefrontError as e:
        click.echo(f"FAIL Failed to create user: {e.message}")
        raise SystemExit(1)

    click.echo(f"PASS Created user: {user.username} ({user.email}) with role '{user.role}'")
    click.echo("SECURITY Password securely hashed with bcrypt")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all accounts."""
    users = db.session.query(User).order_by(User.id).all()
    if not users:
        click.echo("No users found.")
        return

    now = get_services().clock()
    click.echo(f"{'ID':<5} {'Username':<20} {'Email':<32} {'Role':<10} {'Locked':<7} {'Active'}")
    click.echo("-" * 86)
    for user in users:
        locked = "yes" if user.is_locked_at(now) else "no"
        active = "yes" if user.is_active else "no"
        click.echo(f"{user.id:<5} {user.username:<20} {user.email:<32} {user.role:<10} {locked:<7} {active}")


@users_group.command('unlock')
@click.argument('identifier')
@with_appcontext
def unlock_user_cli(identifier):
    """Reset the lockout state for a username or email."""
    services = get_services()
    user = services.store.find_by_identifier(identifier)
    if not user:
        click.echo(f"FAIL User '{identifier}' not found")
        raise SystemExit(1)

    services.store.unlock(user.id)
    click.echo(f"PASS Unlocked {user.username}")


@users_group.command('deactivate')
@click.argument('identifier')
@with_appcontext
def deactivate_user_cli(identifier):
    """Disable an account and revoke all of its sessions."""
    services = get_services()
    user = services.store.find_by_identifier(identifier)
    if not user:
        click.echo(f"FAIL User '{identifier}' not found")
        raise SystemExit(1)

    user.is_active = False
    db.session.commit()
    revoked = services.sessions.revoke_all_user_sessions(user.id, reason="Account deactivated")
    click.echo(f"PASS Deactivated {user.username}; revoked {revoked} session(s)")


@click.group('suppliers')
def suppliers_group():
    """Supplier and stock-order commands."""


@suppliers_group.command('create')
@click.option('--name', required=True, help='Supplier name')
@click.option('--email', required=True, help='Supplier email (receives order links)')
@click.option('--phone', 'contact_phone', default=None, help='Contact phone')
@with_appcontext
def create_supplier_cli(name, email, contact_phone):
    try:
        supplier = get_services().suppliers.create_supplier(name, email, contact_phone)
    except StorefrontError as e:
        click.echo(f"FAIL Failed to create supplier: {e.message}")
        raise SystemExit(1)
    click.echo(f"PASS Created supplier {supplier.id}: {supplier.name} <{supplier.email}>")


@suppliers_group.command('list')
@with_appcontext
def list_suppliers_cli():
    suppliers = db.session.query(Supplier).order_by(Supplier.id).all()
    if not suppliers:
        click.echo("No suppliers found.")
        return
    for supplier in suppliers:
        state = "active" if supplier.is_active else "inactive"
        click.echo(f"{supplier.id:<5} {supplier.name:<30} {supplier.email:<32} {state}")


@suppliers_group.command('expire-stale')
@with_appcontext
def expire_stale_cli():
    """Mark PENDING order tokens past their expiry as EXPIRED."""
    count = get_services().suppliers.expire_stale()
    click.echo(f"Marked {count} supplier token(s) as EXPIRED.")


@click.group('referrals')
def referrals_group():
    """Referral commands."""


@referrals_group.command('create')
@click.option('--referrer', required=True, help='Username or email of the referring account')
@click.option('--email', required=True, help='Email of the person being referred')
@with_appcontext
def create_referral_cli(referrer, email):
    services = get_services()
    account = services.store.find_by_identifier(referrer)
    if not account:
        click.echo(f"FAIL Referrer '{referrer}' not found")
        raise SystemExit(1)
    try:
        referral = services.referrals.create_referral(account, email)
    except StorefrontError as e:
        click.echo(f"FAIL Failed to create referral: {e.message}")
        raise SystemExit(1)
    click.echo(f"PASS Referral token: {referral.token}")


@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('cleanup-sessions')
@click.option('--retention-days', type=int, default=30, show_default=True)
@with_appcontext
def cleanup_sessions_cli(retention_days):
    """
    Cleanup expired and revoked sessions.

    Default retention: 30 days.
    """
    deleted = get_services().sessions.cleanup_expired_sessions(retention=timedelta(days=retention_days))
    click.echo(f"Deleted {deleted} sessions older than {retention_days} days.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(suppliers_group)
    app.cli.add_command(referrals_group)
    app.cli.add_command(maintenance_group)
