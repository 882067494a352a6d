"""
Token Repository

Atomic balance mutations and the append-only transaction log.

Every mutation is a single conditional UPDATE ... RETURNING on the
subscriptions row, followed by the transaction insert in the same
database transaction. Concurrent debits for one user therefore serialize
on the row and the log's balance_after always matches the stored balance.
"""

import logging
from typing import List, Optional

from sqlalchemy import update
from sqlmodel import select

from app.domain.ledger import TokenTransaction, TransactionType
from app.infrastructure.db.database import DatabaseManager, get_db_manager
from app.infrastructure.db.models.base import utc_now
from app.infrastructure.db.models.subscription import SubscriptionModel
from app.infrastructure.db.models.token_transaction import TokenTransactionModel


logger = logging.getLogger(__name__)


class TokenRepository:
    """Data access for account balances and token transactions."""

    def __init__(self, db: Optional[DatabaseManager] = None):
        self._db = db or get_db_manager()

    # =========================================================================
    # Queries
    # =========================================================================

    async def get_balance(self, user_id: str) -> Optional[int]:
        """Current balance, or None when the user has no account row."""
        async with self._db.session() as session:
            statement = select(SubscriptionModel.token_balance).where(
                SubscriptionModel.user_id == user_id
            )
            result = await session.execute(statement)
            return result.scalar_one_or_none()

    async def list_transactions(
        self,
        user_id: str,
        limit: int = 50,
    ) -> List[TokenTransaction]:
        """Transactions for a user, newest first."""
        async with self._db.session() as session:
            statement = (
                select(TokenTransactionModel)
                .where(TokenTransactionModel.user_id == user_id)
                .order_by(TokenTransactionModel.created_at.desc())
                .limit(limit)
            )
            result = await session.execute(statement)
            return [self._to_domain(model) for model in result.scalars().all()]

    # =========================================================================
    # Mutations
    # =========================================================================

    async def debit(
        self,
        user_id: str,
        cost: int,
        reason: str,
    ) -> Optional[TokenTransaction]:
        """
        Decrement the balance by ``cost`` if it stays non-negative.

        Returns:
            The debit transaction, or None when the account is missing or
            the balance is too low (nothing is written in that case).
        """
        stmt = (
            update(SubscriptionModel)
            .where(
                SubscriptionModel.user_id == user_id,
                SubscriptionModel.token_balance >= cost,
            )
            .values(
                token_balance=SubscriptionModel.token_balance - cost,
                tokens_used=SubscriptionModel.tokens_used + cost,
                updated_at=utc_now(),
            )
        )
        return await self._apply(stmt, user_id, -cost, TransactionType.DEBIT, reason)

    async def grant(
        self,
        user_id: str,
        amount: int,
        reason: str,
        replace_balance: bool = False,
    ) -> Optional[TokenTransaction]:
        """
        Add ``amount`` on top of the current balance.

        With ``replace_balance`` the balance becomes exactly ``amount`` and
        the usage count restarts, which is how a plan activation lands.
        """
        if replace_balance:
            values = {"token_balance": amount, "tokens_used": 0}
        else:
            values = {"token_balance": SubscriptionModel.token_balance + amount}

        stmt = (
            update(SubscriptionModel)
            .where(SubscriptionModel.user_id == user_id)
            .values(**values, updated_at=utc_now())
        )
        return await self._apply(stmt, user_id, amount, TransactionType.GRANT, reason)

    async def reset(
        self,
        user_id: str,
        amount: int,
        reason: str,
    ) -> Optional[TokenTransaction]:
        """Set the balance to exactly ``amount`` and start a fresh period count."""
        stmt = (
            update(SubscriptionModel)
            .where(SubscriptionModel.user_id == user_id)
            .values(
                token_balance=amount,
                tokens_limit=amount,
                tokens_used=0,
                updated_at=utc_now(),
            )
        )
        return await self._apply(stmt, user_id, amount, TransactionType.RESET, reason)

    async def _apply(
        self,
        stmt,
        user_id: str,
        amount: int,
        kind: TransactionType,
        reason: str,
    ) -> Optional[TokenTransaction]:
        async with self._db.session() as session:
            result = await session.execute(
                stmt.returning(SubscriptionModel.token_balance)
                .execution_options(synchronize_session=False)
            )
            balance_after = result.scalar_one_or_none()

            if balance_after is None:
                return None

            model = TokenTransactionModel(
                user_id=user_id,
                amount=amount,
                type=kind.value,
                reason=reason,
                balance_after=balance_after,
            )
            session.add(model)
            await session.flush()

            logger.info(
                f"Token {kind.value} for user {user_id}: {amount:+d} -> balance {balance_after}"
            )
            return self._to_domain(model)

    # =========================================================================
    # Mapping Methods
    # =========================================================================

    def _to_domain(self, model: TokenTransactionModel) -> TokenTransaction:
        """Convert database model to domain entity."""
        return TokenTransaction(
            id=model.id,
            user_id=model.user_id,
            amount=model.amount,
            type=TransactionType(model.type),
            reason=model.reason,
            balance_after=model.balance_after,
            created_at=model.created_at,
        )


# =============================================================================
# Singleton Instance
# =============================================================================

_token_repo_instance: Optional[TokenRepository] = None


def get_token_repository() -> TokenRepository:
    """Get or create token repository singleton."""
    global _token_repo_instance

    if _token_repo_instance is None:
        _token_repo_instance = TokenRepository()

    return _token_repo_instance
