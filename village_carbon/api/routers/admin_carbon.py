"""
Admin router for carbon credit adjustments, statistics and audit listings.
"""
from decimal import Decimal
from typing import Any, Dict, Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Query, Request
from sqlmodel import Field, Session, SQLModel

from village_carbon.api.rate_limit import limiter
from village_carbon.api.services import (
    CarbonStatsService,
    LedgerService,
    TransactionFilter,
    TransactionQueryService,
)
from village_carbon.core.config import TransactionType
from village_carbon.core.security import RequestContext, require_admin
from village_carbon.core.settings import settings
from village_carbon.db.session import get_session

router = APIRouter(prefix="/admin/carbon", tags=["admin-carbon"])


class AdjustCreditsRequest(SQLModel):
    """Body of an administrative adjustment."""
    userId: UUID
    amount: Decimal
    reason: str = Field(min_length=1)
    description: Optional[str] = None


def _iso(value) -> Optional[str]:
    return value.isoformat() if value is not None else None


@router.post("/adjust")
@limiter.limit(settings.adjust_rate_limit)
def adjust_credits(
    request: Request,
    body: AdjustCreditsRequest,
    context: RequestContext = Depends(require_admin),
    session: Session = Depends(get_session),
) -> Dict[str, Any]:
    """Manually adjust a member's carbon credits."""
    with LedgerService(session) as service:
        result = service.apply_adjustment(
            context,
            user_id=body.userId,
            amount=body.amount,
            reason=body.reason,
            description=body.description,
        )

    return {
        "success": True,
        "carbonCredit": {
            "userId": str(result.user_id),
            "balance": float(result.balance),
            "totalEarned": float(result.total_earned),
            "totalSpent": float(result.total_spent),
        },
    }


@router.get("/stats")
def get_carbon_stats(
    context: RequestContext = Depends(require_admin),
    session: Session = Depends(get_session),
) -> Dict[str, Any]:
    """Get carbon credit statistics across all accounts."""
    stats = CarbonStatsService(session).compute_stats()

    return {
        "totalCredits": float(stats.total_credits),
        "totalUsers": stats.total_users,
        "totalEarned": float(stats.total_earned),
        "totalSpent": float(stats.total_spent),
        "totalOffset": float(stats.total_offset),
        "avgCreditsPerUser": float(stats.avg_credits_per_user),
    }


@router.get("/transactions")
def list_carbon_transactions(
    type: Optional[TransactionType] = None,
    userId: Optional[UUID] = None,
    limit: int = Query(default=settings.transaction_default_limit, ge=1),
    context: RequestContext = Depends(require_admin),
    session: Session = Depends(get_session),
) -> Dict[str, Any]:
    """Fetch carbon credit transactions across members, newest first."""
    transaction_filter = TransactionFilter(user_id=userId, type=type, limit=limit)
    rows = TransactionQueryService(session).list_transactions_with_users(transaction_filter)

    transactions = [
        {
            "id": transaction.id,
            "userId": str(transaction.user_id),
            "userName": user.name,
            "userEmail": user.email,
            "type": transaction.type,
            "amount": float(transaction.amount),
            "reason": transaction.reason,
            "description": transaction.description,
            "metadata": transaction.transaction_metadata,
            "createdAt": _iso(transaction.created_at),
        }
        for transaction, user in rows
    ]

    return {"transactions": transactions}


@router.get("/users")
def list_carbon_users(
    context: RequestContext = Depends(require_admin),
    session: Session = Depends(get_session),
) -> Dict[str, Any]:
    """Get members holding carbon credit accounts, highest balance first."""
    summaries = CarbonStatsService(session).list_account_summaries()

    users = [
        {
            "id": str(summary.user_id),
            "name": summary.name,
            "email": summary.email,
            "balance": float(summary.balance),
            "totalEarned": float(summary.total_earned),
            "totalSpent": float(summary.total_spent),
            "lastTransaction": _iso(summary.last_transaction_at),
        }
        for summary in summaries
    ]

    return {"users": users}
