"""
Tests for transaction listings.
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest
from sqlmodel import select

from village_carbon.api.services import TransactionFilter, TransactionQueryService
from village_carbon.core.config import TransactionType
from village_carbon.db.models.credit import CarbonTransaction, CreditAccount


class TestTransactionFilter:
    """Test limit clamping."""

    @pytest.mark.parametrize("limit,expected", [(500, 100), (100, 100), (50, 50), (1, 1), (0, 1), (-3, 1)])
    def test_effective_limit(self, limit, expected):
        assert TransactionFilter(limit=limit).effective_limit == expected

    def test_default_limit(self):
        assert TransactionFilter().effective_limit == 50


class TestListTransactions:
    """Test ordering and filtering."""

    @pytest.fixture
    def populated(self, ledger, admin_context, member_user, other_member):
        ledger.apply_adjustment(admin_context, member_user.id, 10, "first")
        ledger.apply_adjustment(admin_context, other_member.id, 4, "second")
        ledger.apply_adjustment(admin_context, member_user.id, -3, "third")

    def test_limit_one_returns_most_recent(self, session, populated):
        results = list(TransactionQueryService(session).list_transactions(TransactionFilter(limit=1)))

        assert len(results) == 1
        assert results[0].reason == "third"
        assert results[0].amount == Decimal("-3")

    def test_newest_first(self, session, populated):
        results = list(TransactionQueryService(session).list_transactions(TransactionFilter()))

        assert [transaction.reason for transaction in results] == ["third", "second", "first"]

    def test_filter_by_type(self, session, populated):
        transaction_filter = TransactionFilter(type=TransactionType.BONUS)

        results = list(TransactionQueryService(session).list_transactions(transaction_filter))

        assert [transaction.reason for transaction in results] == ["second", "first"]
        assert all(transaction.type == "BONUS" for transaction in results)

    def test_filter_by_user(self, session, populated, other_member):
        transaction_filter = TransactionFilter(user_id=other_member.id)

        results = list(TransactionQueryService(session).list_transactions(transaction_filter))

        assert len(results) == 1
        assert results[0].user_id == other_member.id

    def test_combined_filters_with_no_match(self, session, populated, other_member):
        transaction_filter = TransactionFilter(user_id=other_member.id, type=TransactionType.SPEND)

        assert list(TransactionQueryService(session).list_transactions(transaction_filter)) == []

    def test_listing_is_single_pass(self, session, populated):
        results = TransactionQueryService(session).list_transactions(TransactionFilter())

        assert len(list(results)) == 3
        assert list(results) == []

    def test_with_users_joins_account_owner(self, session, populated, member_user):
        pairs = list(TransactionQueryService(session).list_transactions_with_users(TransactionFilter(limit=1)))

        transaction, user = pairs[0]
        assert transaction.reason == "third"
        assert user.id == member_user.id
        assert user.email == "member@example.com"

    def test_equal_timestamps_fall_back_to_insertion_order(self, session, ledger, admin_context, member_user):
        ledger.apply_adjustment(admin_context, member_user.id, 1, "seed")
        account = session.exec(select(CreditAccount).where(CreditAccount.user_id == member_user.id)).one()

        stamp = datetime(2000, 1, 1, tzinfo=timezone.utc)
        for reason in ("tie-a", "tie-b", "tie-c"):
            session.add(CarbonTransaction(
                credit_account_id=account.id,
                user_id=member_user.id,
                type="EARN",
                amount=Decimal("1"),
                reason=reason,
                created_at=stamp,
            ))
            session.commit()

        transaction_filter = TransactionFilter(user_id=member_user.id, limit=3)
        results = list(TransactionQueryService(session).list_transactions(transaction_filter))

        # the adjustment is newer than the fixed 2000-01-01 stamp
        assert results[0].reason == "seed"
        assert [transaction.reason for transaction in results[1:]] == ["tie-c", "tie-b"]
