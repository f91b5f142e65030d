"""
Prometheus metrics for the carbon credit ledger.

Metrics live on the default registry so the instrumentator's /metrics
endpoint exposes them alongside the HTTP metrics.
"""

from decimal import Decimal
from prometheus_client import Counter, Histogram
import structlog

logger = structlog.get_logger(__name__)

# Ledger write metrics
ledger_operations = Counter(
    'carbon_ledger_operations_total',
    'Total number of ledger balance changes attempted',
    ['transaction_type', 'outcome']
)

credits_moved = Counter(
    'carbon_ledger_credits_total',
    'Credits added to or removed from member balances',
    ['direction']
)

ledger_operation_duration = Histogram(
    'carbon_ledger_operation_duration_seconds',
    'Duration of a ledger unit of work in seconds',
    ['transaction_type'],
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, float('inf')]
)


def record_ledger_operation(transaction_type: str, outcome: str, duration_seconds: float):
    """Record one attempted balance change."""
    ledger_operations.labels(transaction_type=transaction_type, outcome=outcome).inc()
    ledger_operation_duration.labels(transaction_type=transaction_type).observe(duration_seconds)
    logger.debug(
        "ledger_operation_recorded",
        transaction_type=transaction_type,
        outcome=outcome,
        duration_seconds=duration_seconds
    )


def record_credits_moved(delta: Decimal):
    """Track the absolute credit volume of a committed change."""
    direction = "earned" if delta > 0 else "spent"
    credits_moved.labels(direction=direction).inc(float(abs(delta)))
