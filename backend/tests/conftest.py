"""
Pytest fixtures for furnstock backend tests.

Provides test database setup, company scope fixtures, catalog helpers and
swappable accounting sinks.
"""

import pytest

from furnstock import create_app
from furnstock.extensions import db
from furnstock.models import Company
from furnstock.services import stock_service
from furnstock.services.accounting_service import LedgerAccountingSink, install_accounting_sink
from furnstock.services.catalog_service import add_product
from furnstock.services.purchase_service import add_supplier
from furnstock.services.tenant_service import company_scope


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'ACCOUNTING_DISPATCH_ON_COMMIT': True,
        'ACCOUNTING_MAX_ATTEMPTS': 3,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()
        install_accounting_sink(app, LedgerAccountingSink())
        app.config['ACCOUNTING_DISPATCH_ON_COMMIT'] = True


@pytest.fixture(scope='function')
def company_a(db_session):
    """Create Company A (first tenant)."""
    company = Company(name="Sharma Furniture", code="SHARMA", is_active=True)
    db_session.add(company)
    db_session.commit()
    return company


@pytest.fixture(scope='function')
def company_b(db_session):
    """Create Company B (second tenant)."""
    company = Company(name="Verma Interiors", code="VERMA", is_active=True)
    db_session.add(company)
    db_session.commit()
    return company


@pytest.fixture(scope='function')
def scope(company_a):
    """Run the test inside Company A's scope."""
    with company_scope(company_a.id, actor="tester"):
        yield company_a


@pytest.fixture(scope='function')
def make_product(scope):
    """Factory for live products in Company A."""
    def _make(model_no, **fields):
        data = {
            "model_no": model_no,
            "name": fields.pop("name", f"Product {model_no}"),
            "sales_price_cents": 10_000,
            "cost_cents": 6_000,
            "gst_rate_bps": 1800,
        }
        data.update(fields)
        return add_product(data)
    return _make


@pytest.fixture(scope='function')
def stocked(make_product):
    """Factory: product with opening quantities per warehouse."""
    def _stocked(model_no, **quantities):
        product = make_product(model_no)
        for warehouse, qty in quantities.items():
            if qty:
                stock_service.increase_stock(product.id, warehouse.upper(), qty)
        return product
    return _stocked


@pytest.fixture(scope='function')
def supplier(scope):
    return add_supplier({"name": "Godrej Interio", "phone": "9800000000", "opening_balance_cents": 50_000})


class RecordingSink(LedgerAccountingSink):
    """Ledger sink that also remembers every call."""

    def __init__(self):
        self.calls = []

    def record_purchase_cost(self, **kwargs):
        self.calls.append(("record_purchase_cost", kwargs))
        return super().record_purchase_cost(**kwargs)

    def record_sales_revenue(self, **kwargs):
        self.calls.append(("record_sales_revenue", kwargs))
        return super().record_sales_revenue(**kwargs)

    def record_payment_against_bill(self, **kwargs):
        self.calls.append(("record_payment_against_bill", kwargs))
        return super().record_payment_against_bill(**kwargs)

    def record_payment_against_invoice(self, **kwargs):
        self.calls.append(("record_payment_against_invoice", kwargs))
        return super().record_payment_against_invoice(**kwargs)

    def reconcile_advance_to_bill(self, **kwargs):
        self.calls.append(("reconcile_advance_to_bill", kwargs))
        return super().reconcile_advance_to_bill(**kwargs)

    def reconcile_advance_to_invoice(self, **kwargs):
        self.calls.append(("reconcile_advance_to_invoice", kwargs))
        return super().reconcile_advance_to_invoice(**kwargs)

    def named(self, method):
        return [kwargs for name, kwargs in self.calls if name == method]


class FailingSink(LedgerAccountingSink):
    """Accounting collaborator that is down."""

    def _entry(self, **fields):
        raise ConnectionError("accounting service unavailable")


@pytest.fixture(scope='function')
def recording_sink(app, db_session):
    sink = RecordingSink()
    install_accounting_sink(app, sink)
    return sink


@pytest.fixture(scope='function')
def failing_sink(app, db_session):
    sink = FailingSink()
    install_accounting_sink(app, sink)
    return sink
