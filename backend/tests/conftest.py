"""
Pytest fixtures for sell backend tests.

Provides in-memory database setup, a catalog (branch, products, tariffs,
staff), stock helpers and the test client.
"""

import pytest
from sell import create_app
from sell.config import TestConfig
from sell.extensions import db
from sell.models import Branch, Product, StaffTariff, Staff, InventoryRecord
from sell.services import sales_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TestConfig)

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


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


@pytest.fixture(scope='function')
def branch(db_session):
    branch = Branch(name="Main Branch", address="1 Market St")
    db_session.add(branch)
    db_session.commit()
    return branch


@pytest.fixture(scope='function')
def other_branch(db_session):
    branch = Branch(name="Second Branch")
    db_session.add(branch)
    db_session.commit()
    return branch


@pytest.fixture(scope='function')
def product_a(db_session):
    product = Product(name="Product A", price=500, barcode="4006381333931")
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def product_b(db_session):
    product = Product(name="Product B", price=300, barcode="4006381333948")
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def fixed_tariff(db_session):
    tariff = StaffTariff(name="Fixed", tariff_type="fixed", amount_for_cash=100, amount_for_card=80)
    db_session.add(tariff)
    db_session.commit()
    return tariff


@pytest.fixture(scope='function')
def percent_tariff(db_session):
    tariff = StaffTariff(name="Percent", tariff_type="percent", amount_for_cash=5, amount_for_card=3)
    db_session.add(tariff)
    db_session.commit()
    return tariff


@pytest.fixture(scope='function')
def cashier(db_session, branch, fixed_tariff):
    staff = Staff(name="Cashier", staff_type="cashier", branch_id=branch.id, tariff_id=fixed_tariff.id)
    db_session.add(staff)
    db_session.commit()
    return staff


@pytest.fixture(scope='function')
def shop_assistant(db_session, branch, percent_tariff):
    staff = Staff(
        name="Assistant",
        staff_type="shop_assistant",
        branch_id=branch.id,
        tariff_id=percent_tariff.id,
    )
    db_session.add(staff)
    db_session.commit()
    return staff


@pytest.fixture(scope='function')
def stock(db_session):
    """Set on-hand count for (product, branch); returns the record."""
    def _stock(product, branch, count):
        record = db_session.query(InventoryRecord).filter_by(
            product_id=product.id, branch_id=branch.id
        ).first()
        if record is None:
            record = InventoryRecord(product_id=product.id, branch_id=branch.id, count=count)
            db_session.add(record)
        else:
            record.count = count
        db_session.commit()
        return record
    return _stock


@pytest.fixture(scope='function')
def open_sale(db_session, branch, cashier):
    return sales_service.create_sale(branch_id=branch.id, cashier_id=cashier.id, payment_type="cash")


@pytest.fixture(scope='function')
def on_hand(db_session):
    """Current on-hand count read straight from the database."""
    def _on_hand(product, branch) -> int:
        db_session.expire_all()
        record = db_session.query(InventoryRecord).filter_by(
            product_id=product.id, branch_id=branch.id
        ).first()
        return record.count if record else 0
    return _on_hand
