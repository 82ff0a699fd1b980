# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/furnstock/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to furnstock (PowerShell: $env:FLASK_APP="furnstock").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create all tables (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Company management (MULTI-TENANT):
# - python -m flask companies list
# - python -m flask companies create --name "Sharma Furniture" --code "SHARMA"
#
# Stock inspection:
# - python -m flask stock show --company SHARMA --model-no DIMS130
#   Per-warehouse quantities plus total and sellable stock.
#
# Accounting outbox:
# - python -m flask accounting dispatch [--company SHARMA] [--retry-failed]
#   Hand queued postings to the accounting sink.
# - python -m flask accounting postings --company SHARMA [--status FAILED]
#
# Snapshots:
# - python -m flask snapshot save --company SHARMA [--dir snapshots]
# - python -m flask snapshot load --company SHARMA [--dir snapshots] --yes
#   Replace the company's purchases, sales and stock with the saved file.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Product
from .services import accounting_service, snapshot_service, stock_service
from .services.catalog_service import find_product_by_model_no
from .services.tenant_service import company_scope, create_company, get_company_by_code, list_companies
from .validation import MissingContextError, ValidationError


def _print_violations(exc) -> None:
    for row in getattr(exc, "violations", []) or []:
        click.echo(f"   - {row.get('message')}")


# =============================================================================
# SYSTEM
# =============================================================================

@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database schema ready.")


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


# =============================================================================
# COMPANY MANAGEMENT
# =============================================================================

@click.group('companies')
def companies_group():
    """Company (tenant) management commands."""


@companies_group.command('list')
@with_appcontext
def list_companies_cli():
    """List all companies."""
    companies = list_companies()

    if not companies:
        click.echo("No companies found.")
        return

    click.echo("\n" + "="*72)
    click.echo(f"{'ID':<5} {'Name':<30} {'Code':<15} {'Active':<8} {'Products'}")
    click.echo("="*72)

    for company in companies:
        product_count = db.session.query(Product).filter_by(company_id=company.id).count()
        active_str = "Yes" if company.is_active else "No"
        click.echo(f"{company.id:<5} {company.name:<30} {company.code:<15} {active_str:<8} {product_count}")

    click.echo("="*72 + "\n")


@companies_group.command('create')
@click.option('--name', required=True, help='Company name')
@click.option('--code', required=True, help='Short code (unique)')
@click.option('--gst-no', default=None, help='GST registration number')
@with_appcontext
def create_company_cli(name, code, gst_no):
    """Create a new company (tenant)."""
    try:
        company = create_company(name=name, code=code, gst_no=gst_no)
    except ValidationError as exc:
        click.echo(f"FAIL {exc}")
        return

    click.echo(f"PASS Created company: {company.name} (ID: {company.id}, Code: {company.code})")


# =============================================================================
# STOCK INSPECTION
# =============================================================================

@click.group('stock')
def stock_group():
    """Stock ledger inspection commands."""


@stock_group.command('show')
@click.option('--company', 'company_code', required=True, help='Company code')
@click.option('--model-no', required=True, help='Product model number')
@with_appcontext
def show_stock(company_code, model_no):
    """Show per-warehouse stock for one product."""
    try:
        company = get_company_by_code(company_code)
        with company_scope(company.id):
            product = find_product_by_model_no(model_no)
            if product is None:
                click.echo(f"FAIL Model {model_no} not found in {company.code}")
                return
            levels = stock_service.get_product_stock(product.id)
            total = stock_service.get_total_stock(product.id)
            sellable = stock_service.get_sellable_stock(product.id)
    except MissingContextError as exc:
        click.echo(f"FAIL {exc}")
        return

    click.echo(f"\n{product.model_no} - {product.name}" + (" (historical)" if product.is_historical else ""))
    click.echo("-"*40)
    for warehouse, quantity in levels.items():
        click.echo(f"{warehouse:<12} {quantity:>8}")
    click.echo("-"*40)
    click.echo(f"{'TOTAL':<12} {total:>8}")
    click.echo(f"{'SELLABLE':<12} {sellable:>8}\n")


# =============================================================================
# ACCOUNTING OUTBOX
# =============================================================================

@click.group('accounting')
def accounting_group():
    """Accounting outbox commands."""


@accounting_group.command('dispatch')
@click.option('--company', 'company_code', default=None, help='Only this company (default: all)')
@click.option('--retry-failed', is_flag=True, help='Also retry postings parked as FAILED')
@with_appcontext
def dispatch_postings(company_code, retry_failed):
    """Hand queued postings to the accounting sink."""
    company_id = None
    if company_code:
        try:
            company_id = get_company_by_code(company_code).id
        except MissingContextError as exc:
            click.echo(f"FAIL {exc}")
            return

    counts = accounting_service.dispatch_pending_postings(company_id, retry_failed=retry_failed)
    click.echo(f"PASS Dispatched {counts['dispatched']} posting(s), {counts['failed']} failed")


@accounting_group.command('postings')
@click.option('--company', 'company_code', required=True, help='Company code')
@click.option('--status', default=None, type=click.Choice(['PENDING', 'DISPATCHED', 'FAILED']))
@with_appcontext
def list_postings_cli(company_code, status):
    """List outbox postings for a company."""
    try:
        company = get_company_by_code(company_code)
    except MissingContextError as exc:
        click.echo(f"FAIL {exc}")
        return

    with company_scope(company.id):
        postings = accounting_service.list_postings(status)

    if not postings:
        click.echo("No postings found.")
        return

    click.echo(f"{'ID':<6} {'Kind':<18} {'Document':<16} {'Status':<11} {'Tries':<6} {'Last error'}")
    for posting in postings:
        document = f"{posting.document_type}:{posting.document_id}"
        click.echo(
            f"{posting.id:<6} {posting.kind:<18} {document:<16} {posting.status:<11} "
            f"{posting.attempts:<6} {posting.last_error or '-'}"
        )


# =============================================================================
# SNAPSHOTS
# =============================================================================

@click.group('snapshot')
def snapshot_group():
    """JSON snapshot save/restore commands."""


@snapshot_group.command('save')
@click.option('--company', 'company_code', required=True, help='Company code')
@click.option('--dir', 'directory', default=None, help='Snapshot directory (default: SNAPSHOT_DIR)')
@with_appcontext
def save_snapshot_cli(company_code, directory):
    """Write the company's purchases, sales and stock to <dir>/<CODE>.json."""
    try:
        company = get_company_by_code(company_code)
    except MissingContextError as exc:
        click.echo(f"FAIL {exc}")
        return

    with company_scope(company.id):
        path = snapshot_service.save_snapshot(directory)
    click.echo(f"PASS Snapshot written to {path}")


@snapshot_group.command('load')
@click.option('--company', 'company_code', required=True, help='Company code')
@click.option('--dir', 'directory', default=None, help='Snapshot directory (default: SNAPSHOT_DIR)')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def load_snapshot_cli(company_code, directory, yes):
    """Replace the company's purchases, sales and stock with its snapshot."""
    try:
        company = get_company_by_code(company_code)
    except MissingContextError as exc:
        click.echo(f"FAIL {exc}")
        return

    if not yes:
        click.confirm(f"WARN This replaces all purchases, sales and stock of {company.code}. Continue?", abort=True)

    try:
        with company_scope(company.id):
            counts = snapshot_service.load_snapshot(directory)
    except FileNotFoundError as exc:
        click.echo(f"FAIL Snapshot not found: {exc.filename}")
        return
    except ValidationError as exc:
        click.echo(f"FAIL {exc}")
        _print_violations(exc)
        return

    click.echo(
        f"PASS Restored {counts['purchases']} purchase(s), {counts['sales']} sale(s), "
        f"{counts['stocks']} stock row(s)"
    )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(companies_group)  # Multi-tenant company management
    app.cli.add_command(stock_group)
    app.cli.add_command(accounting_group)
    app.cli.add_command(snapshot_group)
