"""
Shared fixtures for carbon ledger tests.
"""

import os
from contextlib import contextmanager

import pytest
from sqlmodel import SQLModel, Session, create_engine
from sqlmodel.pool import StaticPool

# Test database configuration
TEST_DATABASE_URL = "sqlite:///:memory:"

# Create test engine
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


# Environment setup for tests
def setup_test_environment():
    """Setup environment variables for testing."""
    env_vars = {
        "DATABASE_URL": TEST_DATABASE_URL,
        "JWT_SECRET": "test-jwt-secret-for-the-carbon-ledger-suite",
        "ENVIRONMENT": "testing",
        "LOG_LEVEL": "WARNING",
        "ENABLE_RATE_LIMITING": "false",
        "ALLOWED_ORIGINS": "http://localhost:3000",
    }

    for key, value in env_vars.items():
        os.environ[key] = value


# Pytest configuration
def pytest_configure(config):
    """Configure pytest for ledger tests."""
    setup_test_environment()


def pytest_collection_modifyitems(config, items):
    """Add custom markers to tests."""
    for item in items:
        if "concurrent" in item.name:
            item.add_marker(pytest.mark.concurrency)

        if "api" in str(item.fspath):
            item.add_marker(pytest.mark.api)


@pytest.fixture(scope="function")
def setup_test_database():
    """Setup test database for each test."""
    # Register table models before creating tables
    import village_carbon.db.models  # noqa: F401

    SQLModel.metadata.create_all(test_engine)

    yield test_engine

    # Clean up after test
    SQLModel.metadata.drop_all(test_engine)


@pytest.fixture
def session(setup_test_database):
    """Get database session for testing."""
    with Session(setup_test_database) as session:
        yield session


# Test utilities
class TestHelpers:
    """Helper utilities for ledger tests."""

    @staticmethod
    def create_test_user(session, email="member@example.com", name="Village Member", role="GUEST"):
        """Create a test user."""
        from village_carbon.db.models.user import User

        user = User(email=email, name=name, role=role)
        session.add(user)
        session.commit()
        session.refresh(user)
        return user

    @staticmethod
    def auth_headers_for(user) -> dict:
        """Bearer headers for a user, minted the way the platform issues them."""
        from village_carbon.core.security import SecurityUtils

        token = SecurityUtils.create_access_token({"sub": str(user.id), "email": user.email})
        return {"Authorization": f"Bearer {token}"}

    @staticmethod
    def transaction_count(session, user_id=None) -> int:
        """Count transaction rows, optionally for one user."""
        from sqlmodel import func, select
        from village_carbon.db.models.credit import CarbonTransaction

        statement = select(func.count(CarbonTransaction.id))
        if user_id is not None:
            statement = statement.where(CarbonTransaction.user_id == user_id)
        return session.exec(statement).one()

    @staticmethod
    @contextmanager
    def failing_transaction_insert():
        """Make every carbon transaction insert fail as if the store went away."""
        from sqlalchemy import event
        from sqlalchemy.exc import OperationalError
        from village_carbon.db.models.credit import CarbonTransaction

        def fail_insert(mapper, connection, target):
            raise OperationalError("INSERT INTO carbon_transactions", {}, Exception("disk I/O error"))

        event.listen(CarbonTransaction, "before_insert", fail_insert)
        try:
            yield
        finally:
            event.remove(CarbonTransaction, "before_insert", fail_insert)

    @staticmethod
    def operation_count(transaction_type, outcome) -> float:
        """Current value of the ledger operations counter."""
        from prometheus_client import REGISTRY

        value = REGISTRY.get_sample_value(
            "carbon_ledger_operations_total",
            {"transaction_type": transaction_type, "outcome": outcome},
        )
        return value or 0.0


@pytest.fixture
def admin_user(session):
    """Create an administrator."""
    return TestHelpers.create_test_user(session, email="admin@example.com", name="Admin Alice", role="ADMIN")


@pytest.fixture
def member_user(session):
    """Create a regular member."""
    return TestHelpers.create_test_user(session, email="member@example.com", name="Member Mo", role="GUEST")


@pytest.fixture
def other_member(session):
    """Create a second regular member."""
    return TestHelpers.create_test_user(session, email="host@example.com", name="Host Hana", role="HOST")


@pytest.fixture
def admin_context(admin_user):
    """Request context for the administrator."""
    from village_carbon.core.security import RequestContext

    return RequestContext.from_user(admin_user)


@pytest.fixture
def member_context(member_user):
    """Request context for the regular member."""
    from village_carbon.core.security import RequestContext

    return RequestContext.from_user(member_user)


@pytest.fixture
def ledger(session):
    """Ledger service bound to the test session."""
    from village_carbon.api.services import LedgerService

    with LedgerService(session) as service:
        yield service


@pytest.fixture
def client(session):
    """HTTP client with the database session overridden."""
    from fastapi.testclient import TestClient
    from village_carbon.api.main import app
    from village_carbon.db.session import get_session

    def override_get_session():
        yield session

    app.dependency_overrides[get_session] = override_get_session
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def admin_headers(admin_user):
    """Authorization headers for the administrator."""
    return TestHelpers.auth_headers_for(admin_user)


@pytest.fixture
def member_headers(member_user):
    """Authorization headers for the regular member."""
    return TestHelpers.auth_headers_for(member_user)
