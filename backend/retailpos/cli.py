# Overview: Flask CLI command groups for bootstrap, users and catalog seeding.

# backend/retailpos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--admin-password "..."]
#   Idempotent: creates tables and a default admin user if none exists.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users list
# - python -m flask users create --username alice --password "secret123" --role cashier
#
# Catalog:
# - python -m flask products add --name "Cola 330ml" --price 12.50 --cost 9 --category Beverages
#   Omit --barcode to have a unique 4-digit one generated.
# - python -m flask suppliers add --name "Acme Wholesale" --phone "0100..."

import click
from flask.cli import with_appcontext

from .errors import ServiceError
from .extensions import db
from .models import Supplier, User
from .permissions import capability_names
from .services.auth_service import create_user, list_users as fetch_users
from .services.products_service import create_product
from .validation import coerce_decimal_cents

DEFAULT_ADMIN_USERNAME = "admin"


@click.group("system")
def system_group():
    """System bootstrap and repair commands."""


@system_group.command("init")
@click.option("--admin-username", default=DEFAULT_ADMIN_USERNAME, show_default=True)
@click.option("--admin-password", prompt=True, hide_input=True, confirmation_prompt=True,
              help="Password for the default admin (only used if it does not exist)")
@with_appcontext
def init_system(admin_username, admin_password):
    """Create tables and the default admin user. Safe to run repeatedly."""
    click.echo("BUILD  Creating tables...")
    db.create_all()

    if db.session.query(User).filter_by(username=admin_username).first():
        click.echo(f"SKIP  User '{admin_username}' already exists")
    else:
        try:
            create_user(admin_username, admin_password, role="admin")
        except ServiceError as e:
            raise click.ClickException(f"Failed to create admin: {e.message}")
        click.echo(f"PASS Created admin user '{admin_username}'")

    click.echo("PASS System initialized")


@system_group.command("reset-db")
@click.option("--yes", is_flag=True, help="Skip confirmation")
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


@click.group("users")
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command("create")
@click.option("--username", prompt=True, help="Username")
@click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True, help="Password")
@click.option("--role", type=click.Choice(["admin", "manager", "cashier"]), prompt=True, help="Role")
@with_appcontext
def create_user_cli(username, password, role):
    """Create a user; capabilities default to the role's set."""
    try:
        user = create_user(username, password, role=role)
    except ServiceError as e:
        raise click.ClickException(e.message)

    click.echo(f"PASS Created user: {username} with role '{role}'")
    click.echo(f"     Capabilities: {', '.join(capability_names(user.permissions)) or 'none'}")


@users_group.command("list")
@with_appcontext
def list_users():
    """List all users with their roles."""
    users = fetch_users()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "=" * 80)
    click.echo(f"{'ID':<5} {'Username':<20} {'Role':<10} {'Active':<8} {'Capabilities'}")
    click.echo("=" * 80)

    for user in users:
        active_str = "Yes" if user.is_active else "No"
        caps = ", ".join(capability_names(user.permissions or 0)) or "none"
        click.echo(f"{user.id:<5} {user.username:<20} {user.role:<10} {active_str:<8} {caps}")

    click.echo("=" * 80 + "\n")


@click.group("products")
def products_group():
    """Catalog seeding commands."""


@products_group.command("add")
@click.option("--name", required=True)
@click.option("--barcode", default=None, help="Leave empty to generate a 4-digit barcode")
@click.option("--category", default=None)
@click.option("--price", default="0", help="Retail price, e.g. 12.50")
@click.option("--cost", default="0", help="Unit cost, e.g. 9.75")
@click.option("--wholesale-price", default=None)
@click.option("--stock", type=int, default=0)
@click.option("--min-stock", type=int, default=0)
@with_appcontext
def add_product_cli(name, barcode, category, price, cost, wholesale_price, stock, min_stock):
    try:
        product = create_product(
            name=name,
            barcode=barcode,
            category=category,
            price_cents=coerce_decimal_cents(price, "price"),
            cost_cents=coerce_decimal_cents(cost, "cost"),
            wholesale_price_cents=coerce_decimal_cents(wholesale_price, "wholesale_price") if wholesale_price else None,
            stock=stock,
            min_stock=min_stock,
        )
    except ServiceError as e:
        raise click.ClickException(e.message)

    click.echo(f"PASS Created product #{product.id} '{product.name}' barcode={product.barcode}")


@click.group("suppliers")
def suppliers_group():
    """Supplier seeding commands."""


@suppliers_group.command("add")
@click.option("--name", required=True)
@click.option("--phone", default=None)
@click.option("--address", default=None)
@with_appcontext
def add_supplier_cli(name, phone, address):
    supplier = Supplier(name=name.strip(), phone=phone, address=address)
    db.session.add(supplier)
    db.session.commit()
    click.echo(f"PASS Created supplier #{supplier.id} '{supplier.name}'")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(products_group)
    app.cli.add_command(suppliers_group)
