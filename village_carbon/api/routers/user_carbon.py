"""
Member router for the caller's own carbon credit balance and history.
"""
from decimal import Decimal
from typing import Any, Dict, List, Optional
from fastapi import APIRouter, Depends, Query, status
from sqlmodel import Field, Session, SQLModel

from village_carbon.api.services import LedgerService, TransactionFilter, TransactionQueryService
from village_carbon.core.config import TransactionType
from village_carbon.core.security import RequestContext, get_request_context
from village_carbon.core.settings import settings
from village_carbon.db.session import get_session

router = APIRouter(prefix="/user/carbon-credits", tags=["carbon-credits"])


class MemberTransactionRequest(SQLModel):
    """Body of a member earn/spend request."""
    amount: Decimal
    reason: str = Field(min_length=1)
    description: Optional[str] = None
    type: str = TransactionType.EARN.value


@router.get("")
def get_carbon_credits(
    context: RequestContext = Depends(get_request_context),
    session: Session = Depends(get_session),
) -> Dict[str, Any]:
    """Get the caller's carbon credit balance and summary."""
    summary = LedgerService(session).get_account_summary(context.user_id)

    return {
        "balance": float(summary.balance),
        "totalEarned": float(summary.total_earned),
        "totalSpent": float(summary.total_spent),
        "createdAt": summary.created_at.isoformat() if summary.created_at else None,
        "updatedAt": summary.updated_at.isoformat() if summary.updated_at else None,
    }


@router.post("", status_code=status.HTTP_201_CREATED)
def record_carbon_transaction(
    body: MemberTransactionRequest,
    context: RequestContext = Depends(get_request_context),
    session: Session = Depends(get_session),
) -> Dict[str, Any]:
    """Earn or spend carbon credits on the caller's own account."""
    with LedgerService(session) as service:
        result = service.record_member_transaction(
            context,
            amount=body.amount,
            reason=body.reason,
            transaction_type=body.type,
            description=body.description,
        )

    transaction = result.transaction
    return {
        "success": True,
        "balance": float(result.balance),
        "transaction": {
            "id": transaction.id,
            "type": transaction.type,
            "amount": float(transaction.amount),
            "reason": transaction.reason,
            "createdAt": transaction.created_at.isoformat(),
        },
    }


@router.get("/transactions")
def list_own_transactions(
    type: Optional[TransactionType] = None,
    limit: int = Query(default=settings.transaction_default_limit, ge=1),
    context: RequestContext = Depends(get_request_context),
    session: Session = Depends(get_session),
) -> List[Dict[str, Any]]:
    """Get the caller's own transaction history, newest first."""
    transaction_filter = TransactionFilter(user_id=context.user_id, type=type, limit=limit)

    return [
        {
            "id": transaction.id,
            "type": transaction.type,
            "amount": float(transaction.amount),
            "reason": transaction.reason,
            "description": transaction.description,
            "createdAt": transaction.created_at.isoformat(),
        }
        for transaction in TransactionQueryService(session).list_transactions(transaction_filter)
    ]
