# Overview: Flask CLI command groups for bootstrap and inspection.

# backend/sell/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to "sell:create_app".
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system seed-demo
#   Idempotent demo catalog: branch, products with barcodes, tariffs, cashier and shop assistant.
#
# Inspection:
# - python -m flask inventory list --branch-id 1
#   Show stock on hand per product.
# - python -m flask staff list
#   Show staff with tariff and balance.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Branch, Product, StaffTariff, Staff
from .services import inventory_service


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


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

    click.echo("PASS Database reset complete. Run 'python -m flask system seed-demo' to add a demo catalog.")


@system_group.command('seed-demo')
@click.option('--branch', 'branch_name', default='Main Branch', help='Branch name')
@click.option('--stock', default=50, show_default=True, help='Initial stock per product')
@with_appcontext
def seed_demo(branch_name, stock):
    """Create a demo branch, catalog, tariffs and staff (safe to re-run)."""
    db.create_all()

    branch = db.session.query(Branch).filter_by(name=branch_name).first()
    if not branch:
        branch = Branch(name=branch_name)
        db.session.add(branch)
        db.session.flush()
        click.echo(f"PASS Created branch: {branch.name} (ID: {branch.id})")
    else:
        click.echo(f"PASS Using existing branch: {branch.name} (ID: {branch.id})")

    tariffs = {}
    for name, tariff_type, cash, card in (
        ("Fixed 100", "fixed", 100, 80),
        ("Percent 5", "percent", 5, 3),
    ):
        tariff = db.session.query(StaffTariff).filter_by(name=name).first()
        if not tariff:
            tariff = StaffTariff(name=name, tariff_type=tariff_type, amount_for_cash=cash, amount_for_card=card)
            db.session.add(tariff)
            db.session.flush()
        tariffs[tariff_type] = tariff

    for name, staff_type, tariff_type in (
        ("Demo Cashier", "cashier", "fixed"),
        ("Demo Assistant", "shop_assistant", "percent"),
    ):
        if not db.session.query(Staff).filter_by(name=name, branch_id=branch.id).first():
            db.session.add(Staff(
                name=name,
                staff_type=staff_type,
                branch_id=branch.id,
                tariff_id=tariffs[tariff_type].id,
            ))
            click.echo(f"PASS Created {staff_type}: {name}")

    for name, price, barcode in (
        ("Coffee beans 1kg", 500, "4006381333931"),
        ("Paper cups x50", 300, "4006381333948"),
    ):
        product = db.session.query(Product).filter_by(barcode=barcode).first()
        if not product:
            product = Product(name=name, price=price, barcode=barcode)
            db.session.add(product)
            db.session.flush()
            click.echo(f"PASS Created product: {name} ({barcode})")
        record = inventory_service.get_or_create_record(product.id, branch.id)
        if record.count == 0:
            record.count = stock

    db.session.commit()
    click.echo("DONE Demo data ready.")


@click.group('inventory')
def inventory_group():
    """Inventory inspection commands."""


@inventory_group.command('list')
@click.option('--branch-id', type=int, help='Filter by branch')
@with_appcontext
def list_inventory(branch_id):
    records = inventory_service.list_records(branch_id=branch_id)
    if not records:
        click.echo("No inventory records found.")
        return

    click.echo(f"\n{'BRANCH':<8} {'PRODUCT':<8} {'NAME':<30} {'COUNT':>8}")
    click.echo("=" * 58)
    for record in records:
        name = record.product.name if record.product else "?"
        click.echo(f"{record.branch_id:<8} {record.product_id:<8} {name:<30} {record.count:>8}")
    click.echo("")


@click.group('staff')
def staff_group():
    """Staff inspection commands."""


@staff_group.command('list')
@with_appcontext
def list_staff():
    staff = db.session.query(Staff).order_by(Staff.id).all()
    if not staff:
        click.echo("No staff found.")
        return

    click.echo(f"\n{'ID':<5} {'BRANCH':<7} {'NAME':<25} {'TYPE':<16} {'TARIFF':<10} {'BALANCE':>10}")
    click.echo("=" * 78)
    for member in staff:
        tariff = member.tariff.tariff_type if member.tariff else "?"
        click.echo(
            f"{member.id:<5} {member.branch_id:<7} {member.name:<25} {member.staff_type:<16} "
            f"{tariff:<10} {member.balance:>10}"
        )
    click.echo("")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(inventory_group)
    app.cli.add_command(staff_group)
