# Database models
from .user import User
from .credit import (
    CreditAccount,
    CarbonTransaction,
    AdjustmentResult,
    CreditAccountSummary,
    MemberTransactionResult,
    CarbonStats,
    AccountHolderSummary,
)
from .notification import Notification

__all__ = [
    # User models
    "User",
    # Ledger models
    "CreditAccount", "CarbonTransaction", "AdjustmentResult", "CreditAccountSummary",
    "MemberTransactionResult", "CarbonStats", "AccountHolderSummary",
    # Notification models
    "Notification",
]
