"""
Carbon credit ledger models: one account per user plus an append-only
transaction log.
"""
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional
from uuid import UUID, uuid4
from sqlalchemy import JSON, CheckConstraint, Column, event
from sqlmodel import Field, SQLModel
from village_carbon.core.config import CREDIT_PRECISION, CREDIT_SCALE
from village_carbon.core.exceptions import LedgerIntegrityError
from village_carbon.db.models.user import utc_now


class CreditAccount(SQLModel, table=True):
    """
    Running carbon credit balance for a single user.

    ``balance`` always equals ``total_earned - total_spent`` and never drops
    below zero once an adjustment commits. Rows are created on a user's first
    adjustment and never deleted.
    """
    __tablename__ = "carbon_credit_accounts"
    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_carbon_credit_accounts_balance_non_negative"),
    )

    id: Optional[UUID] = Field(default_factory=uuid4, primary_key=True)
    user_id: UUID = Field(foreign_key="users.id", unique=True, index=True)
    balance: Decimal = Field(
        default=Decimal("0"),
        max_digits=CREDIT_PRECISION,
        decimal_places=CREDIT_SCALE,
        index=True,
    )
    total_earned: Decimal = Field(
        default=Decimal("0"),
        max_digits=CREDIT_PRECISION,
        decimal_places=CREDIT_SCALE,
        description="Sum of every positive delta applied to the account"
    )
    total_spent: Decimal = Field(
        default=Decimal("0"),
        max_digits=CREDIT_PRECISION,
        decimal_places=CREDIT_SCALE,
        description="Sum of the absolute value of every negative delta"
    )
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class CarbonTransaction(SQLModel, table=True):
    """
    Immutable audit record of one balance change.

    The auto-increment ``id`` breaks ``created_at`` ties so listings are
    deterministic.
    """
    __tablename__ = "carbon_transactions"

    id: Optional[int] = Field(default=None, primary_key=True)
    credit_account_id: UUID = Field(foreign_key="carbon_credit_accounts.id", index=True)
    user_id: UUID = Field(foreign_key="users.id", index=True)
    type: str = Field(index=True, description="EARN, SPEND, BONUS, ADJUSTMENT, REFUND or TRANSFER")
    amount: Decimal = Field(
        max_digits=CREDIT_PRECISION,
        decimal_places=CREDIT_SCALE,
        description="Signed delta applied to the account"
    )
    reason: str
    description: Optional[str] = None
    transaction_metadata: Dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column("metadata", JSON, nullable=False)
    )
    created_at: datetime = Field(default_factory=utc_now, index=True)


@event.listens_for(CarbonTransaction, "before_update")
def _reject_transaction_update(mapper, connection, target):
    raise LedgerIntegrityError(f"Carbon transaction {target.id} is append-only and cannot be updated")


@event.listens_for(CarbonTransaction, "before_delete")
def _reject_transaction_delete(mapper, connection, target):
    raise LedgerIntegrityError(f"Carbon transaction {target.id} is append-only and cannot be deleted")


class AdjustmentResult(SQLModel):
    """Account state after a committed adjustment."""
    user_id: UUID
    balance: Decimal
    total_earned: Decimal
    total_spent: Decimal


class CreditAccountSummary(SQLModel):
    """Balance summary for a single member."""
    user_id: UUID
    balance: Decimal
    total_earned: Decimal
    total_spent: Decimal
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class MemberTransactionResult(SQLModel):
    """Outcome of a member recording a transaction on their own account."""
    balance: Decimal
    transaction: CarbonTransaction


class CarbonStats(SQLModel):
    """Cross-account ledger statistics."""
    total_credits: Decimal
    total_users: int
    total_earned: Decimal
    total_spent: Decimal
    total_offset: Decimal
    avg_credits_per_user: Decimal


class AccountHolderSummary(SQLModel):
    """Per-account balance with the owning user's contact details."""
    user_id: UUID
    name: Optional[str] = None
    email: str
    balance: Decimal
    total_earned: Decimal
    total_spent: Decimal
    last_transaction_at: Optional[datetime] = None
