"""
Application configuration constants and enums.
"""
from enum import Enum


class UserRole(str, Enum):
    """Platform user roles."""
    ADMIN = "ADMIN"
    VILLAGE_COUNCIL = "VILLAGE_COUNCIL"
    HOST = "HOST"
    SELLER = "SELLER"
    OPERATOR = "OPERATOR"
    GUEST = "GUEST"
    RESEARCHER = "RESEARCHER"


class TransactionType(str, Enum):
    """Carbon credit transaction types."""
    EARN = "EARN"
    SPEND = "SPEND"
    BONUS = "BONUS"
    ADJUSTMENT = "ADJUSTMENT"
    REFUND = "REFUND"
    TRANSFER = "TRANSFER"


class NotificationType(str, Enum):
    """Member notification severity."""
    INFO = "INFO"
    SUCCESS = "SUCCESS"
    WARNING = "WARNING"


# Types a member may record against their own account
MEMBER_TRANSACTION_TYPES = {
    TransactionType.EARN,
    TransactionType.SPEND,
    TransactionType.TRANSFER,
    TransactionType.BONUS,
    TransactionType.REFUND,
}

# Member transaction types that add to the balance; the rest debit it
CREDITING_TRANSACTION_TYPES = {
    TransactionType.EARN,
    TransactionType.BONUS,
    TransactionType.REFUND,
}

# 1 credit is reported as 1 kg of CO2 offset
KG_CO2_PER_CREDIT = 1

# Numeric column precision for balances and amounts
CREDIT_PRECISION = 18
CREDIT_SCALE = 4
