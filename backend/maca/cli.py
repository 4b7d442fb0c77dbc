# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/maca/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: creates tables and the default admin user.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users list
# - python -m flask users create --username ana --email ana@maca.local --password "Clave1234" --role SELLER
# - python -m flask users deactivate --username ana
#   Deactivate and revoke every open session.
#
# Invoices:
# - python -m flask invoices mark-overdue [--warehouse "Centro"]
#   Move PENDING invoices past their due date to OVERDUE.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User, UserRole, enum_values
from .services.auth_service import create_user, set_user_active, PasswordValidationError
from .services.invoice_service import mark_overdue_invoices
from .services.session_service import revoke_all_user_sessions
from .services.warehouse_service import require_warehouse, UnknownWarehouseError
from .validation import ValidationError

DEFAULT_ADMIN_PASSWORD = "Maca12345"


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--admin-password', default=DEFAULT_ADMIN_PASSWORD, help='Password for the default admin')
@with_appcontext
def init_system(admin_password):
    """
    Create tables and the default admin account.

    Idempotent: safe to run more than once.
    """
    click.echo("START Initializing MACA system...")
    db.create_all()
    click.echo("PASS Tables ready")

    existing = db.session.query(User).filter_by(username="admin").first()
    if existing:
        click.echo("WARN  User 'admin' already exists, skipping...")
        return

    try:
        create_user(
            "admin",
            "admin@maca.local",
            admin_password,
            role=UserRole.ADMIN.value,
            full_name="Administrador",
        )
    except PasswordValidationError as e:
        raise click.ClickException(f"Password validation failed for 'admin': {e}")

    click.echo("PASS Created user: admin (admin@maca.local) with role 'ADMIN'")
    click.echo("\nDefault Credentials (CHANGE IN PRODUCTION!):")
    click.echo(f"   admin -> {admin_password}")


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

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(enum_values(UserRole)), default=UserRole.SELLER.value, help='Role')
@click.option('--full-name', default=None, help='Display name')
@click.option('--warehouse', default=None, help='Warehouse preselected at login')
@with_appcontext
def create_user_cli(username, email, password, role, full_name, warehouse):
    """
    Create a new user.

    Password must be 8+ characters with at least one letter and one digit.
    """
    try:
        default_warehouse = require_warehouse(warehouse) if warehouse else None
        user = create_user(
            username,
            email,
            password,
            role=role,
            full_name=full_name,
            default_warehouse=default_warehouse,
        )
    except PasswordValidationError as e:
        raise click.ClickException(f"Password validation failed: {e}")
    except (ValidationError, UnknownWarehouseError) as e:
        raise click.ClickException(e.message)

    click.echo(f"PASS Created user: {user.username} ({user.email}) with role '{user.role}'")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their roles."""
    users = db.session.query(User).order_by(User.id).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Username':<20} {'Email':<30} {'Role':<8} {'Active':<8} {'Warehouse'}")
    click.echo("="*90)

    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(
            f"{user.id:<5} {user.username:<20} {user.email:<30} {user.role:<8} {active_str:<8} "
            f"{user.default_warehouse or '-'}"
        )

    click.echo("="*90 + "\n")


@users_group.command('deactivate')
@click.option('--username', required=True, help='Username')
@with_appcontext
def deactivate_user_cli(username):
    """Deactivate a user and revoke their open sessions."""
    user = db.session.query(User).filter_by(username=username).first()
    if not user:
        raise click.ClickException(f"User '{username}' not found")

    set_user_active(user.id, False)
    revoked = revoke_all_user_sessions(user.id)
    click.echo(f"PASS Deactivated '{username}', revoked {revoked} session(s)")


@click.group('invoices')
def invoices_group():
    """Accounts payable maintenance."""


@invoices_group.command('mark-overdue')
@click.option('--warehouse', default=None, help='Limit to one warehouse (default: all)')
@with_appcontext
def mark_overdue_cli(warehouse):
    """Move PENDING invoices past their due date to OVERDUE."""
    try:
        warehouse = require_warehouse(warehouse) if warehouse else None
    except UnknownWarehouseError as e:
        raise click.ClickException(e.message)

    count = mark_overdue_invoices(warehouse)
    click.echo(f"PASS Marked {count} invoice(s) overdue")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(invoices_group)
