# Overview: Flask CLI command groups for bootstrap and inspection.

# backend/poscore/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to poscore (PowerShell: $env:FLASK_APP="poscore").
# - Use: python -m flask <group> <command> [options]
#
# Schema (production uses migrations: python -m flask db upgrade):
# - python -m flask system init-db
#   Create all tables directly from the models (dev/test).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system seed-demo
#   Demo vendor, location, manager + cashier, one register and stocked products.
#
# Tenancy:
# - python -m flask vendors create --name "Green Leaf" --slug green-leaf [--allow-negative-stock]
# - python -m flask vendors add-location --vendor-id 1 --name "Downtown" --slug downtown
#
# Operators:
# - python -m flask operators create --vendor-id 1 --username mgr --email mgr@example.com --password "Password123!" --role manager
#
# Registers and sessions:
# - python -m flask registers create --vendor-id 1 --location-id 1 --number REG-01 --name "Front Counter 1"
# - python -m flask registers list --location-id 1 [--all]
# - python -m flask sessions list [--register-id 1] [--status open] [--limit 20]

import click
from decimal import Decimal
from flask.cli import with_appcontext

from .errors import PosError
from .extensions import db
from .models import Vendor, Location, Operator, Product, Register, RegisterSession
from .models.auth import ROLES, ROLE_CASHIER, ROLE_MANAGER
from .services import auth_service, inventory_service, register_service, session_service
from .services.auth_service import PasswordValidationError
from .services.token_service import OperatorContext


def _system_context(vendor_id: int) -> OperatorContext:
    """Context for commands run by an administrator at the console."""
    return OperatorContext(operator_id=None, vendor_id=vendor_id, location_id=None, role=ROLE_MANAGER)


@click.group('system')
def system_group():
    """Schema and demo data commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Tables created.")


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

    click.echo("PASS Database reset complete. Run 'python -m flask system seed-demo' for demo data.")


@system_group.command('seed-demo')
@click.option('--password', default='Password123!', show_default=True, help='Password for demo operators')
@with_appcontext
def seed_demo(password):
    """
    Idempotent demo bootstrap.

    Vendor 'demo', location 'main', operators 'manager' and 'cashier',
    register REG-01 and three stocked products.
    """
    vendor = db.session.query(Vendor).filter_by(slug="demo").first()
    if vendor is None:
        vendor = Vendor(name="Demo Dispensary", slug="demo", allow_negative_stock=False, is_active=True)
        db.session.add(vendor)
        db.session.commit()
        click.echo(f"PASS Created vendor: {vendor.name} (ID: {vendor.id})")

    location = db.session.query(Location).filter_by(vendor_id=vendor.id, slug="main").first()
    if location is None:
        location = Location(vendor_id=vendor.id, name="Main Street", slug="main", is_active=True)
        db.session.add(location)
        db.session.commit()
        click.echo(f"PASS Created location: {location.name} (ID: {location.id})")

    for username, role in (("manager", ROLE_MANAGER), ("cashier", ROLE_CASHIER)):
        if db.session.query(Operator).filter_by(vendor_id=vendor.id, username=username).first():
            continue
        try:
            auth_service.create_operator(
                vendor_id=vendor.id,
                username=username,
                email=f"{username}@demo.local",
                password=password,
                role=role,
                location_id=location.id,
            )
            click.echo(f"PASS Created operator: {username} ({role})")
        except PasswordValidationError as e:
            click.echo(f"FAIL Password validation failed: {str(e)}")
            return

    ctx = _system_context(vendor.id)
    if not db.session.query(Register).filter_by(location_id=location.id, register_number="REG-01").first():
        register = register_service.create_register(
            ctx,
            location_id=location.id,
            register_number="REG-01",
            name="Front Counter 1",
        )
        click.echo(f"PASS Created register: {register.register_number} (ID: {register.id})")

    demo_products = (
        ("FLW-001", "Blue Dream 3.5g", "flower", "35.00", 40, "18.50"),
        ("PRE-001", "Sativa Pre-Roll 1g", "pre-roll", "12.00", 100, "4.25"),
        ("EDB-001", "Gummies 10pk", "edible", "22.00", 60, "9.75"),
    )
    for sku, name, category, price, qty, cost in demo_products:
        if db.session.query(Product).filter_by(vendor_id=vendor.id, sku=sku).first():
            continue
        product = Product(vendor_id=vendor.id, sku=sku, name=name, category=category, price=Decimal(price), is_active=True)
        db.session.add(product)
        db.session.commit()
        inventory_service.receive_stock(
            ctx,
            product_id=product.id,
            location_id=location.id,
            quantity=qty,
            cost_per_unit=cost,
            reference_id="SEED",
        )
        click.echo(f"PASS Stocked {qty} x {name}")

    click.echo("PASS Demo data ready.")


@click.group('vendors')
def vendors_group():
    """Tenant management commands."""


@vendors_group.command('create')
@click.option('--name', required=True, help='Vendor name')
@click.option('--slug', required=True, help='URL-safe unique slug')
@click.option('--allow-negative-stock', is_flag=True, help='Let sales take stock below zero')
@with_appcontext
def create_vendor_cli(name, slug, allow_negative_stock):
    """Create a new vendor (tenant)."""
    if db.session.query(Vendor).filter_by(slug=slug).first():
        click.echo(f"FAIL Vendor with slug '{slug}' already exists")
        return

    vendor = Vendor(name=name, slug=slug, allow_negative_stock=allow_negative_stock, is_active=True)
    db.session.add(vendor)
    db.session.commit()
    click.echo(f"PASS Created vendor: {vendor.name} (ID: {vendor.id})")


@vendors_group.command('add-location')
@click.option('--vendor-id', type=int, required=True, help='Vendor ID')
@click.option('--name', required=True, help='Location name')
@click.option('--slug', required=True, help='Slug, unique within the vendor (prefixes sale numbers)')
@with_appcontext
def add_location_cli(vendor_id, name, slug):
    vendor = db.session.get(Vendor, vendor_id)
    if vendor is None:
        click.echo(f"FAIL Vendor ID {vendor_id} not found")
        return
    if db.session.query(Location).filter_by(vendor_id=vendor_id, slug=slug).first():
        click.echo(f"FAIL Location '{slug}' already exists for vendor {vendor.name}")
        return

    location = Location(vendor_id=vendor_id, name=name, slug=slug, is_active=True)
    db.session.add(location)
    db.session.commit()
    click.echo(f"PASS Created location: {location.name} (ID: {location.id})")


@click.group('operators')
def operators_group():
    """Operator bootstrap commands."""


@operators_group.command('create')
@click.option('--vendor-id', type=int, required=True, help='Vendor ID')
@click.option('--username', prompt=True, help='Username')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(list(ROLES)), default=ROLE_CASHIER, show_default=True)
@click.option('--location-id', type=int, help='Home location')
@with_appcontext
def create_operator_cli(vendor_id, username, email, password, role, location_id):
    """
    Create an operator inside a vendor.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character
    """
    try:
        operator = auth_service.create_operator(
            vendor_id=vendor_id,
            username=username,
            email=email,
            password=password,
            role=role,
            location_id=location_id,
        )
        click.echo(f"PASS Created operator: {operator.username} ({operator.email}) with role '{role}'")
        click.echo("SECURITY Password securely hashed with bcrypt")

    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {str(e)}")
        click.echo("Requirements: 8+ chars, uppercase, lowercase, digit, special char")
    except PosError as e:
        click.echo(f"FAIL Failed to create operator: {str(e)}")


@click.group('registers')
def registers_group():
    """Register inspection and bootstrap commands."""


@registers_group.command('create')
@click.option('--vendor-id', type=int, required=True, help='Vendor ID')
@click.option('--location-id', type=int, required=True, help='Location ID')
@click.option('--number', required=True, help='Register number, unique within the location')
@click.option('--name', required=True, help='Register name')
@with_appcontext
def create_register_cli(vendor_id, location_id, number, name):
    """
    Create a new POS register.

    Example:
        flask registers create --vendor-id 1 --location-id 1 --number REG-01 --name "Front Counter 1"
    """
    try:
        register = register_service.create_register(
            _system_context(vendor_id),
            location_id=location_id,
            register_number=number,
            name=name,
        )
        click.echo(f"PASS Created register: {register.register_number} - {register.name}")
        click.echo(f"   Location ID: {register.location_id}")
        click.echo(f"   Register ID: {register.id}")

    except PosError as e:
        click.echo(f"FAIL Error: {str(e)}")


@registers_group.command('list')
@click.option('--location-id', type=int, help='Filter by location ID')
@click.option('--all', 'show_all', is_flag=True, help='Show inactive registers too')
@with_appcontext
def list_registers_cli(location_id, show_all):
    """
    List registers and whether each has an open session.

    Example:
        flask registers list
        flask registers list --location-id 1 --all
    """
    query = db.session.query(Register)

    if location_id:
        query = query.filter_by(location_id=location_id)

    if not show_all:
        query = query.filter_by(is_active=True)

    registers = query.order_by(Register.location_id, Register.register_number).all()

    if not registers:
        click.echo("No registers found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Vendor':<7} {'Location':<9} {'Number':<12} {'Name':<25} {'Active':<8} {'Session'}")
    click.echo("="*90)

    for register in registers:
        open_session = register_service.get_open_session(register.id)
        session_str = open_session.session_number if open_session else "-"
        active_str = "Yes" if register.is_active else "No"

        click.echo(f"{register.id:<5} {register.vendor_id:<7} {register.location_id:<9} "
                   f"{register.register_number:<12} {register.name:<25} {active_str:<8} {session_str}")

    click.echo("="*90 + "\n")


@click.group('sessions')
def sessions_group():
    """Register session inspection commands."""


@sessions_group.command('list')
@click.option('--vendor-id', type=int, help='Filter by vendor ID')
@click.option('--register-id', type=int, help='Filter by register ID')
@click.option('--status', type=click.Choice(['open', 'closed']), help='Filter by status')
@click.option('--limit', type=int, default=20, help='Max sessions to show')
@with_appcontext
def list_sessions_cli(vendor_id, register_id, status, limit):
    """
    List register sessions, newest first.

    Example:
        flask sessions list --status open
    """
    if vendor_id:
        sessions = session_service.list_sessions(
            _system_context(vendor_id),
            register_id=register_id,
            status=status,
            limit=limit,
        )
    else:
        query = db.session.query(RegisterSession)
        if register_id:
            query = query.filter_by(register_id=register_id)
        if status:
            query = query.filter_by(status=status)
        sessions = query.order_by(RegisterSession.opened_at.desc()).limit(limit).all()

    if not sessions:
        click.echo("No sessions found.")
        return

    click.echo("\n" + "="*110)
    click.echo(f"{'ID':<5} {'Number':<18} {'Register':<9} {'Status':<8} {'Sales':>12} {'Txns':>6} "
               f"{'Opened':<20} {'Variance'}")
    click.echo("="*110)

    for session in sessions:
        variance_str = "-"
        if session.cash_variance is not None:
            variance_str = f"${session.cash_variance:+.2f}"

        click.echo(f"{session.id:<5} {session.session_number:<18} {session.register_id:<9} {session.status:<8} "
                   f"{session.total_sales:>12.2f} {session.total_transactions:>6} "
                   f"{str(session.opened_at)[:19]:<20} {variance_str}")

    click.echo("="*110 + "\n")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(vendors_group)
    app.cli.add_command(operators_group)
    app.cli.add_command(registers_group)
    app.cli.add_command(sessions_group)
