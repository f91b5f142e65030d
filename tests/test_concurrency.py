"""
Concurrent writers against a file-backed database.

Each thread owns its own session so the database, not the identity map,
decides which writer wins.
"""

import threading
from decimal import Decimal

import pytest
from sqlmodel import Session, SQLModel, select

from village_carbon.api.services import LedgerService
from village_carbon.core.exceptions import InsufficientBalanceError
from village_carbon.core.security import RequestContext
from village_carbon.db.models.credit import CarbonTransaction, CreditAccount
from village_carbon.db.session import build_engine
from tests.conftest import TestHelpers


@pytest.fixture
def file_engine(tmp_path):
    """SQLite engine on a temporary file shared by all threads."""
    import village_carbon.db.models  # noqa: F401

    engine = build_engine(f"sqlite:///{tmp_path / 'ledger.db'}")
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def seeded(file_engine):
    """An admin and a member holding 10 credits."""
    with Session(file_engine) as session:
        admin = TestHelpers.create_test_user(session, email="admin@example.com", name="Admin Alice", role="ADMIN")
        member = TestHelpers.create_test_user(session)
        context = RequestContext.from_user(admin)
        LedgerService(session).apply_adjustment(context, member.id, 10, "seed")
        return context, member.id


def _run_concurrently(engine, context, user_id, amounts):
    barrier = threading.Barrier(len(amounts))
    outcomes = []
    lock = threading.Lock()

    def worker(amount):
        with Session(engine) as session:
            service = LedgerService(session)
            barrier.wait()
            try:
                outcome = service.apply_adjustment(context, user_id, amount, "concurrent")
            except Exception as e:
                outcome = e
        with lock:
            outcomes.append(outcome)

    threads = [threading.Thread(target=worker, args=(amount,)) for amount in amounts]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)

    return outcomes


class TestConcurrentAdjustments:
    """Two writers racing for the same balance."""

    def test_concurrent_overdraft_only_one_wins(self, file_engine, seeded):
        context, user_id = seeded

        outcomes = _run_concurrently(file_engine, context, user_id, [-6, -6])

        failures = [outcome for outcome in outcomes if isinstance(outcome, InsufficientBalanceError)]
        successes = [outcome for outcome in outcomes if not isinstance(outcome, Exception)]
        assert len(outcomes) == 2
        assert len(successes) == 1
        assert len(failures) == 1
        assert successes[0].balance == Decimal("4")

        with Session(file_engine) as session:
            account = session.exec(select(CreditAccount).where(CreditAccount.user_id == user_id)).one()
            assert account.balance == Decimal("4")
            assert account.total_spent == Decimal("6")
            assert account.balance == account.total_earned - account.total_spent
            assert TestHelpers.transaction_count(session, user_id) == 2

    def test_concurrent_credits_are_all_applied(self, file_engine, seeded):
        context, user_id = seeded

        outcomes = _run_concurrently(file_engine, context, user_id, [1, 2, 3, 4])

        assert not any(isinstance(outcome, Exception) for outcome in outcomes)
        with Session(file_engine) as session:
            account = session.exec(select(CreditAccount).where(CreditAccount.user_id == user_id)).one()
            assert account.balance == Decimal("20")
            assert account.total_earned == Decimal("20")
            transactions = session.exec(
                select(CarbonTransaction).where(CarbonTransaction.user_id == user_id)
            ).all()
            assert len(transactions) == 5

    def test_concurrent_first_adjustments_create_one_account(self, file_engine, seeded):
        context, _ = seeded
        with Session(file_engine) as session:
            newcomer = TestHelpers.create_test_user(session, email="new@example.com", name="New Nia")
            newcomer_id = newcomer.id

        outcomes = _run_concurrently(file_engine, context, newcomer_id, [5, 5, 5])

        assert not any(isinstance(outcome, Exception) for outcome in outcomes)
        with Session(file_engine) as session:
            accounts = session.exec(select(CreditAccount).where(CreditAccount.user_id == newcomer_id)).all()
            assert len(accounts) == 1
            assert accounts[0].balance == Decimal("15")
