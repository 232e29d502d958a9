"""
Shared test fixtures.

Tests run against a SQLite file database that is created before
and dropped after every test, so no test sees another's data.
"""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from core_ledger.logging_config import reset_logging
from core_ledger.main import app
from core_ledger.models.base import Base, get_db
from core_ledger.models.enums import AccountType
from core_ledger.schemas.account import AccountCreate
from core_ledger.services.ledger_store import LedgerStore
from core_ledger.services.notifications import clear_subscribers


TEST_DATABASE_URL = "sqlite:///./test.db"

engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
)

TestSessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
)

# The app installs its own handler on import; let records reach
# the root logger so caplog sees them.
reset_logging()


# Codes match the default event mappings where a role has one.
CHART = [
    ("CASH-001", "Cash", AccountType.ASSET),
    ("BANK-001", "Bank", AccountType.ASSET),
    ("AR-001", "Accounts Receivable", AccountType.ASSET),
    ("INV-001", "Inventory", AccountType.ASSET),
    ("AP-001", "Accounts Payable", AccountType.LIABILITY),
    ("GST-PAY-001", "GST Payable", AccountType.LIABILITY),
    ("CAP-001", "Owner Capital", AccountType.EQUITY),
    ("SALES-001", "Sales", AccountType.REVENUE),
    ("COGS-001", "Cost of Goods Sold", AccountType.EXPENSE),
    ("RENT-001", "Rent Expense", AccountType.EXPENSE),
]


@pytest.fixture(autouse=True)
def setup_database():
    """Create all tables before each test, drop them after."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)
    clear_subscribers()


@pytest.fixture
def db_session():
    """Provide a database session for direct service testing."""
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def make_account(db_session):
    """Factory: create and commit an account, return it."""
    store = LedgerStore(db_session)

    def _make(code, name=None, account_type=AccountType.ASSET):
        account = store.create_account(AccountCreate(
            code=code,
            name=name or code,
            account_type=account_type,
        ))
        db_session.commit()
        return account

    return _make


@pytest.fixture
def chart(make_account):
    """A small committed chart of accounts keyed by code."""
    return {
        code: make_account(code, name, account_type)
        for code, name, account_type in CHART
    }


@pytest.fixture
def client(db_session):
    """
    Provide a test client bound to the test database.

    The get_db dependency is overridden so the app uses the test
    session instead of the configured database.
    """
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()
