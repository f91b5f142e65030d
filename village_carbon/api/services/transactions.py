"""
Read-only queries over the carbon transaction log.
"""
from typing import Iterator, Optional, Tuple
from uuid import UUID
from sqlmodel import Session, SQLModel, select

from village_carbon.core.config import TransactionType
from village_carbon.core.settings import settings
from village_carbon.db.models.credit import CarbonTransaction, CreditAccount
from village_carbon.db.models.user import User


class TransactionFilter(SQLModel):
    """Filter for transaction listings."""
    user_id: Optional[UUID] = None
    type: Optional[TransactionType] = None
    limit: int = settings.transaction_default_limit

    @property
    def effective_limit(self) -> int:
        """Limit clamped to 1..transaction_max_limit."""
        return max(1, min(self.limit, settings.transaction_max_limit))


class TransactionQueryService:
    """Lists transactions newest first; ties on created_at fall back to insertion order."""

    def __init__(self, session: Session):
        self.session = session

    def _base_statement(self, statement, transaction_filter: TransactionFilter):
        if transaction_filter.user_id is not None:
            statement = statement.where(CarbonTransaction.user_id == transaction_filter.user_id)
        if transaction_filter.type is not None:
            statement = statement.where(CarbonTransaction.type == transaction_filter.type.value)

        return (
            statement
            .order_by(CarbonTransaction.created_at.desc(), CarbonTransaction.id.desc())
            .limit(transaction_filter.effective_limit)
        )

    def list_transactions(self, transaction_filter: TransactionFilter) -> Iterator[CarbonTransaction]:
        """Yield matching transactions; the sequence can be consumed once."""
        statement = self._base_statement(select(CarbonTransaction), transaction_filter)
        yield from self.session.exec(statement)

    def list_transactions_with_users(
        self, transaction_filter: TransactionFilter
    ) -> Iterator[Tuple[CarbonTransaction, User]]:
        """Yield (transaction, account owner) pairs for the admin view."""
        statement = (
            select(CarbonTransaction, User)
            .join(CreditAccount, CreditAccount.id == CarbonTransaction.credit_account_id)
            .join(User, User.id == CreditAccount.user_id)
        )
        statement = self._base_statement(statement, transaction_filter)
        for transaction, user in self.session.exec(statement):
            yield transaction, user
