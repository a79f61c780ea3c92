"""
Pytest fixtures for ShoePOS backend tests.

Provides the application on in-memory SQLite, a per-test table wipe,
staff accounts with bearer tokens, and a small catalogue.
"""

import pytest
from sqlalchemy import text

from shoepos import create_app
from shoepos.extensions import db
from shoepos.models import Brand, Product, StockLedgerEntry, Variant
from shoepos.services.auth_service import create_user
from shoepos.services.report_cache import report_cache
from shoepos.services.session_service import create_session


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'IMPORT_TASKS_INLINE': True,
        'BCRYPT_ROUNDS': 4,
    })

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
        report_cache.invalidate()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def owner(db_session):
    return create_user(
        email="owner@shoepos.test",
        password="Password123!",
        first_name="Olive",
        last_name="Owner",
        role="OWNER",
    )


@pytest.fixture(scope='function')
def employee(db_session):
    return create_user(
        email="clerk@shoepos.test",
        password="Password123!",
        first_name="Casey",
        last_name="Clerk",
        role="EMPLOYEE",
    )


@pytest.fixture(scope='function')
def owner_headers(owner):
    _, token = create_session(owner.id)
    return auth_headers(token)


@pytest.fixture(scope='function')
def employee_headers(employee):
    _, token = create_session(employee.id)
    return auth_headers(token)


@pytest.fixture(scope='function')
def brand(db_session):
    brand = Brand(name="Acme")
    db_session.add(brand)
    db_session.commit()
    return brand


@pytest.fixture(scope='function')
def product(db_session, brand):
    product = Product(brand_id=brand.id, name="Trail Runner", tags=["running"])
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def variant(db_session, product):
    """AR-100: priced at 1000 cents, no stock yet."""
    variant = Variant(
        product_id=product.id,
        sku="AR-100",
        size="42",
        color="Black",
        barcode="0000000000100",
        price_cents=1000,
    )
    db_session.add(variant)
    db_session.commit()
    return variant


@pytest.fixture(scope='function')
def second_variant(db_session, product):
    variant = Variant(product_id=product.id, sku="AR-101", size="43", color="Black", price_cents=2500)
    db_session.add(variant)
    db_session.commit()
    return variant


@pytest.fixture(scope='function')
def ledger_without_baseline_index(db_session):
    """Ledger table without the single INITIAL_COUNT index, as on data loaded before it existed."""
    db_session.execute(text("DROP INDEX uq_stock_ledger_initial_count"))
    db_session.commit()

    yield db_session

    db_session.rollback()
    db_session.execute(StockLedgerEntry.__table__.delete())
    db_session.execute(text(
        "CREATE UNIQUE INDEX uq_stock_ledger_initial_count "
        "ON stock_ledger_entries (variant_id) WHERE type = 'INITIAL_COUNT'"
    ))
    db_session.commit()


@pytest.fixture(scope='function')
def variant_with_duplicate_baselines(ledger_without_baseline_index, variant):
    """AR-100 carrying two INITIAL_COUNT rows written behind the ledger service."""
    ledger_without_baseline_index.add_all([
        StockLedgerEntry(variant_id=variant.id, quantity_change=5, type="INITIAL_COUNT"),
        StockLedgerEntry(variant_id=variant.id, quantity_change=7, type="INITIAL_COUNT"),
    ])
    ledger_without_baseline_index.commit()
    return variant


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}
