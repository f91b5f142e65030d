"""
Read-only aggregation over carbon credit accounts.
"""
from decimal import Decimal
from typing import List
from sqlmodel import Session, func, select
import structlog

from village_carbon.core.config import KG_CO2_PER_CREDIT
from village_carbon.db.models.credit import (
    AccountHolderSummary,
    CarbonStats,
    CarbonTransaction,
    CreditAccount,
)
from village_carbon.db.models.user import User

logger = structlog.get_logger(__name__)


def _as_decimal(value) -> Decimal:
    if value is None:
        return Decimal("0")
    return value if isinstance(value, Decimal) else Decimal(str(value))


class CarbonStatsService:
    """Computes cross-account statistics from the live store. Nothing is cached."""

    def __init__(self, session: Session):
        self.session = session

    def compute_stats(self) -> CarbonStats:
        """Sum balances and accumulators across every account."""
        statement = select(
            func.count(CreditAccount.id),
            func.sum(CreditAccount.balance),
            func.sum(CreditAccount.total_earned),
            func.sum(CreditAccount.total_spent),
        )
        total_users, total_credits, total_earned, total_spent = self.session.exec(statement).one()

        total_users = total_users or 0
        total_credits = _as_decimal(total_credits)
        total_earned = _as_decimal(total_earned)
        total_spent = _as_decimal(total_spent)

        if total_users > 0:
            avg_credits_per_user = total_credits / total_users
        else:
            avg_credits_per_user = Decimal("0")

        # Offset is reported from spent credits
        total_offset = total_spent * KG_CO2_PER_CREDIT

        logger.info(
            "Computed carbon stats",
            total_users=total_users,
            total_credits=str(total_credits),
        )

        return CarbonStats(
            total_credits=total_credits,
            total_users=total_users,
            total_earned=total_earned,
            total_spent=total_spent,
            total_offset=total_offset,
            avg_credits_per_user=avg_credits_per_user,
        )

    def list_account_summaries(self) -> List[AccountHolderSummary]:
        """Per-account balances with owner details, highest balance first."""
        last_transaction = (
            select(
                CarbonTransaction.credit_account_id,
                func.max(CarbonTransaction.created_at).label("last_transaction_at"),
            )
            .group_by(CarbonTransaction.credit_account_id)
            .subquery()
        )

        statement = (
            select(CreditAccount, User, last_transaction.c.last_transaction_at)
            .join(User, User.id == CreditAccount.user_id)
            .outerjoin(last_transaction, last_transaction.c.credit_account_id == CreditAccount.id)
            .order_by(CreditAccount.balance.desc(), User.email)
        )

        return [
            AccountHolderSummary(
                user_id=user.id,
                name=user.name,
                email=user.email,
                balance=account.balance,
                total_earned=account.total_earned,
                total_spent=account.total_spent,
                last_transaction_at=last_transaction_at,
            )
            for account, user, last_transaction_at in self.session.exec(statement).all()
        ]
