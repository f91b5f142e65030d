"""
Services package for carbon ledger business logic.

LedgerService is the only writer; the stats and transaction services are
read-only consumers of the same store.
"""

from .ledger import LedgerService, coerce_amount
from .carbon_stats import CarbonStatsService
from .transactions import TransactionFilter, TransactionQueryService

__all__ = [
    'CarbonStatsService',
    'LedgerService',
    'TransactionFilter',
    'TransactionQueryService',
    'coerce_amount',
]
