# Overview: Flask CLI command group for bootstrap, inspection, and maintenance.

# backend/storeledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# - python -m flask ledger init-db
#   Create any missing tables (idempotent, keeps data).
# - python -m flask ledger reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask ledger seed-catalog
#   Add a small sample catalog (skipped if products already exist).
# - python -m flask ledger low-stock
#   Print tracked products at or below their low-stock limit.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Product
from .services import catalog_service


SAMPLE_CATALOG = [
    {"name": "Mineral Water 500ml", "category": "Drinks", "price_cents": 100, "sku": "DRK-001",
     "track_stock": True, "stock_quantity": 48, "low_stock_limit": 12},
    {"name": "Cola Can", "category": "Drinks", "price_cents": 150, "sku": "DRK-002",
     "track_stock": True, "stock_quantity": 24, "low_stock_limit": 10},
    {"name": "Potato Chips", "category": "Snacks", "price_cents": 250, "sku": "SNK-001",
     "track_stock": True, "stock_quantity": 3, "low_stock_limit": 8},
    {"name": "Chocolate Bar", "category": "Snacks", "price_cents": 200, "sku": "SNK-002",
     "track_stock": True, "stock_quantity": 0, "low_stock_limit": 5},
    {"name": "Gift Wrapping", "category": "Services", "price_cents": 300, "sku": "SRV-001",
     "track_stock": False},
]


@click.group('ledger')
def ledger_group():
    """Ledger database bootstrap and inspection commands."""


@ledger_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created.")


@ledger_group.command('reset-db')
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

    click.echo("PASS Database reset complete. Run 'python -m flask ledger seed-catalog' for sample products.")


@ledger_group.command('seed-catalog')
@with_appcontext
def seed_catalog():
    """Insert the sample catalog into an empty products table."""
    existing = db.session.query(Product).count()
    if existing:
        click.echo(f"SKIP {existing} product(s) already present; nothing seeded.")
        return

    for payload in SAMPLE_CATALOG:
        product = catalog_service.create_product(dict(payload))
        click.echo(f"PASS Created product: {product.name} (ID: {product.id})")


@ledger_group.command('low-stock')
@with_appcontext
def low_stock():
    """Print tracked products at or below their limit, most severe first."""
    rows = catalog_service.get_low_stock_items()
    if not rows:
        click.echo("PASS No products at or below their low-stock limit.")
        return

    click.echo(f"{'SEVERITY':<10} {'ID':>5} {'QTY':>5} {'LIMIT':>5}  NAME")
    for row in rows:
        click.echo(
            f"{row['severity']:<10} {row['product_id']:>5} {row['stock_quantity']:>5} "
            f"{row['low_stock_limit']:>5}  {row['name']}"
        )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(ledger_group)
