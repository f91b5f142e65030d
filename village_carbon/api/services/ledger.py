"""
Carbon credit ledger service.

This service is the only writer of the ledger. It handles:
- Administrative adjustments (signed deltas applied to any member)
- Member self-service earn/spend transactions
- Race-safe, lazy account creation
- Balance summaries

Every balance change runs as a single unit of work: the account row is
locked, updated through a guarded statement that cannot drive the balance
below zero, and exactly one transaction row is appended before the commit.
Any failure rolls the whole unit back.
"""

import time
from contextlib import contextmanager
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional, Tuple
from uuid import UUID, uuid4
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select
import structlog

from village_carbon.core.config import (
    CREDIT_PRECISION,
    CREDIT_SCALE,
    CREDITING_TRANSACTION_TYPES,
    MEMBER_TRANSACTION_TYPES,
    NotificationType,
    TransactionType,
)
from village_carbon.core.exceptions import (
    InsufficientBalanceError,
    InternalError,
    InvalidAmountError,
    UserNotFoundError,
    ValidationError,
    VillageCarbonException,
)
from village_carbon.core.monitoring import record_credits_moved, record_ledger_operation
from village_carbon.core.security import RequestContext
from village_carbon.db.session import engine
from village_carbon.db.models.credit import (
    AdjustmentResult,
    CarbonTransaction,
    CreditAccount,
    CreditAccountSummary,
    MemberTransactionResult,
)
from village_carbon.db.models.notification import Notification
from village_carbon.db.models.user import User

logger = structlog.get_logger(__name__)

ZERO = Decimal("0")

# Smallest storable step and the exclusive magnitude bound of Numeric(18, 4)
CREDIT_STEP = Decimal(1).scaleb(-CREDIT_SCALE)
MAX_CREDIT_AMOUNT = Decimal(10) ** (CREDIT_PRECISION - CREDIT_SCALE)


def coerce_amount(amount: Any) -> Decimal:
    """
    Convert an incoming amount to a storable Decimal or raise InvalidAmountError.

    Zero, NaN, infinities, magnitudes of 10^14 or more and values with
    non-zero digits beyond four decimal places are rejected.
    """
    if isinstance(amount, bool):
        raise InvalidAmountError(amount)
    try:
        value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    except (InvalidOperation, ValueError, TypeError):
        raise InvalidAmountError(amount)
    if not value.is_finite() or value == ZERO or abs(value) >= MAX_CREDIT_AMOUNT:
        raise InvalidAmountError(amount)

    if value.quantize(CREDIT_STEP) != value:
        raise InvalidAmountError(amount)
    return value


class LedgerService:
    """
    Service for applying balance changes to carbon credit accounts.

    Provides functionality for:
    - Applying validated signed adjustments atomically
    - Recording member earn/spend transactions
    - Reading a member's balance summary
    """

    def __init__(self, session: Session = None):
        """
        Initialize ledger service.

        Args:
            session: Database session (optional, will create if not provided)
        """
        self.session = session
        self._should_close_session = session is None

        if self.session is None:
            self.session = Session(engine)

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        if self._should_close_session and self.session:
            self.session.close()

    def apply_adjustment(
        self,
        context: RequestContext,
        user_id: UUID,
        amount: Any,
        reason: str,
        description: Optional[str] = None,
    ) -> AdjustmentResult:
        """
        Apply an administrative signed adjustment to a member's balance.

        Args:
            context: Authenticated caller performing the adjustment
            user_id: Member whose account is adjusted
            amount: Non-zero signed delta with at most four decimal places
            reason: Classification tag recorded on the transaction
            description: Human explanation (defaults to the caller's name)

        Returns:
            AdjustmentResult with the committed balance and accumulators

        Raises:
            InvalidAmountError: amount is zero, not finite, out of range
                or finer than four decimal places
            ValidationError: reason is empty
            UserNotFoundError: user_id does not resolve
            InsufficientBalanceError: balance would become negative
            InternalError: unexpected store failure (rolled back)
        """
        with self._rejections_logged(TransactionType.ADJUSTMENT.value, user_id, amount, reason, context.user_id):
            delta = coerce_amount(amount)
            reason = self._require_reason(reason)
        transaction_type = TransactionType.BONUS if delta > ZERO else TransactionType.SPEND

        metadata = {
            "adjustedBy": str(context.user_id),
            "adjustedByName": context.name,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

        account, _ = self._apply(
            user_id=user_id,
            delta=delta,
            transaction_type=transaction_type,
            reason=reason,
            description=description or f"Manual adjustment by {context.display_name}",
            metadata=metadata,
            performed_by=context.user_id,
        )

        return AdjustmentResult(
            user_id=account.user_id,
            balance=account.balance,
            total_earned=account.total_earned,
            total_spent=account.total_spent,
        )

    def record_member_transaction(
        self,
        context: RequestContext,
        amount: Any,
        reason: str,
        transaction_type: str = TransactionType.EARN.value,
        description: Optional[str] = None,
    ) -> MemberTransactionResult:
        """
        Record an earn or spend transaction on the caller's own account.

        EARN, BONUS and REFUND credit the account; SPEND and TRANSFER debit it.
        The amount is always given as a positive magnitude.
        """
        member_types = {kind.value for kind in MEMBER_TRANSACTION_TYPES}
        requested_type = transaction_type if transaction_type in member_types else "INVALID"

        with self._rejections_logged(requested_type, context.user_id, amount, reason, context.user_id):
            magnitude = coerce_amount(amount)
            if magnitude < ZERO:
                raise ValidationError("Amount must be greater than 0", details={"amount": str(amount)})
            reason = self._require_reason(reason)

            try:
                kind = TransactionType(transaction_type)
            except ValueError:
                raise ValidationError("Invalid transaction type", details={"type": transaction_type})
            if kind not in MEMBER_TRANSACTION_TYPES:
                raise ValidationError("Invalid transaction type", details={"type": transaction_type})

        is_earning = kind in CREDITING_TRANSACTION_TYPES
        delta = magnitude if is_earning else -magnitude

        notification = Notification(
            user_id=context.user_id,
            title="Credits Earned!" if is_earning else "Credits Spent",
            message=(
                f"You earned {magnitude} carbon credits for {reason}"
                if is_earning
                else f"You spent {magnitude} carbon credits on {reason}"
            ),
            type=NotificationType.SUCCESS.value,
        )

        account, transaction = self._apply(
            user_id=context.user_id,
            delta=delta,
            transaction_type=kind,
            reason=reason,
            description=description,
            metadata={},
            performed_by=context.user_id,
            notification=notification,
        )

        return MemberTransactionResult(balance=account.balance, transaction=transaction)

    def get_account_summary(self, user_id: UUID) -> CreditAccountSummary:
        """Get a member's balance summary; members without an account read as zero."""
        account = self.session.exec(
            select(CreditAccount).where(CreditAccount.user_id == user_id)
        ).first()

        if account is None:
            return CreditAccountSummary(
                user_id=user_id,
                balance=ZERO,
                total_earned=ZERO,
                total_spent=ZERO,
            )

        return CreditAccountSummary(
            user_id=account.user_id,
            balance=account.balance,
            total_earned=account.total_earned,
            total_spent=account.total_spent,
            created_at=account.created_at,
            updated_at=account.updated_at,
        )

    def _apply(
        self,
        user_id: UUID,
        delta: Decimal,
        transaction_type: TransactionType,
        reason: str,
        description: Optional[str],
        metadata: Dict[str, Any],
        performed_by: UUID,
        notification: Optional[Notification] = None,
    ) -> Tuple[CreditAccount, CarbonTransaction]:
        log = logger.bind(
            user_id=str(user_id),
            amount=str(delta),
            reason=reason,
            type=transaction_type.value,
            performed_by=str(performed_by),
        )
        start_time = time.time()

        try:
            if self.session.get(User, user_id) is None:
                raise UserNotFoundError(user_id)

            account = self._get_or_create_account(user_id)

            if account.balance + delta < ZERO:
                raise InsufficientBalanceError(delta, account.balance)

            earned = delta if delta > ZERO else ZERO
            spent = -delta if delta < ZERO else ZERO

            # Guarded update: a concurrent writer that already spent the
            # balance makes this match zero rows.
            statement = (
                update(CreditAccount)
                .where(CreditAccount.id == account.id)
                .where(CreditAccount.balance + delta >= 0)
                .values(
                    balance=CreditAccount.balance + delta,
                    total_earned=CreditAccount.total_earned + earned,
                    total_spent=CreditAccount.total_spent + spent,
                    updated_at=datetime.now(timezone.utc),
                )
                .execution_options(synchronize_session=False)
            )
            result = self.session.execute(statement)
            if result.rowcount != 1:
                raise InsufficientBalanceError(delta)

            transaction = CarbonTransaction(
                credit_account_id=account.id,
                user_id=user_id,
                type=transaction_type.value,
                amount=delta,
                reason=reason,
                description=description,
                transaction_metadata=metadata,
            )
            self.session.add(transaction)
            if notification is not None:
                self.session.add(notification)

            self.session.commit()

        except VillageCarbonException as e:
            self.session.rollback()
            record_ledger_operation(transaction_type.value, "rejected", time.time() - start_time)
            log.warning("Ledger adjustment rejected", error_type=e.__class__.__name__, error=e.message)
            raise
        except SQLAlchemyError as e:
            self.session.rollback()
            record_ledger_operation(transaction_type.value, "failed", time.time() - start_time)
            log.error("Ledger adjustment failed", error=str(e))
            raise InternalError("Failed to adjust credits", details={"error": str(e)})

        record_ledger_operation(transaction_type.value, "applied", time.time() - start_time)
        record_credits_moved(delta)

        # The change is committed; a failed reload must not read as a rollback
        try:
            self.session.refresh(account)
            self.session.refresh(transaction)
        except SQLAlchemyError as e:
            log.error("Ledger adjustment committed but could not be reloaded", error=str(e))
            raise InternalError("Adjustment committed but the account could not be reloaded", details={"error": str(e)})

        log.info(
            "Ledger adjustment applied",
            transaction_id=transaction.id,
            balance=str(account.balance),
        )
        return account, transaction

    @contextmanager
    def _rejections_logged(self, transaction_type: str, user_id: Any, amount: Any, reason: Any, performed_by: UUID):
        """Log and count validation failures raised before the unit of work starts."""
        try:
            yield
        except ValidationError as e:
            record_ledger_operation(transaction_type, "rejected", 0.0)
            logger.warning(
                "Ledger adjustment rejected",
                user_id=str(user_id),
                amount=str(amount),
                reason=reason,
                type=transaction_type,
                performed_by=str(performed_by),
                error_type=e.__class__.__name__,
                error=e.message,
            )
            raise

    def _get_or_create_account(self, user_id: UUID) -> CreditAccount:
        """Return the member's locked account row, creating it with zero balances if missing."""
        account = self._lock_account(user_id)
        if account is not None:
            return account

        self._insert_account_if_missing(user_id)
        logger.info("Bootstrapped carbon credit account", user_id=str(user_id))

        account = self._lock_account(user_id)
        if account is None:
            raise InternalError("Carbon credit account could not be created", details={"user_id": str(user_id)})
        return account

    def _lock_account(self, user_id: UUID) -> Optional[CreditAccount]:
        statement = (
            select(CreditAccount)
            .where(CreditAccount.user_id == user_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return self.session.exec(statement).first()

    def _insert_account_if_missing(self, user_id: UUID) -> None:
        now = datetime.now(timezone.utc)
        values = {
            "id": uuid4(),
            "user_id": user_id,
            "balance": ZERO,
            "total_earned": ZERO,
            "total_spent": ZERO,
            "created_at": now,
            "updated_at": now,
        }

        dialect = self.session.get_bind().dialect.name
        if dialect in ("postgresql", "sqlite"):
            if dialect == "postgresql":
                from sqlalchemy.dialects.postgresql import insert
            else:
                from sqlalchemy.dialects.sqlite import insert

            statement = insert(CreditAccount).values(**values).on_conflict_do_nothing(
                index_elements=["user_id"]
            )
            self.session.execute(statement)
            return

        # Other backends: a savepoint keeps a lost creation race from
        # aborting the surrounding unit of work.
        try:
            with self.session.begin_nested():
                self.session.add(CreditAccount(**values))
        except IntegrityError:
            logger.info("Carbon credit account created concurrently", user_id=str(user_id))

    @staticmethod
    def _require_reason(reason: Optional[str]) -> str:
        if reason is None or not str(reason).strip():
            raise ValidationError("Missing required field: reason")
        return str(reason).strip()
