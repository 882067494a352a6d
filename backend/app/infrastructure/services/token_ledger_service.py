"""
Token Ledger Service

Gates and accounts for every metered operation.

Rules:
- check_balance is read-only; a user without an account has balance 0.
- debit is called only after the billable work succeeded and never drives
  the balance below zero. It reports failure through DebitResult instead
  of raising, so a finished generation is never lost to an accounting error.
- grant/reset are reserved for the subscription reconciler.
"""

import inspect
import logging
from typing import Awaitable, Callable, List, Optional, Union

from app.domain.ledger import (
    BalanceChange,
    BalanceCheck,
    DebitResult,
    TokenBalance,
    TokenTransaction,
)
from app.domain.subscription import FREE_PLAN_TYPE
from app.infrastructure.db.repositories.subscription_repository import (
    SubscriptionRepository,
    get_subscription_repository,
)
from app.infrastructure.db.repositories.token_repository import (
    TokenRepository,
    get_token_repository,
)
from app.infrastructure.exceptions import NotFoundError, ValidationError


logger = logging.getLogger(__name__)


BalanceObserver = Callable[[str, int], Union[None, Awaitable[None]]]


def _require_positive(value: int, name: str) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError(f"{name} must be a positive integer", details={name: value})


class TokenLedgerService:
    """
    Usage ledger over the subscriptions row and the token transaction log.

    Observers registered with ``subscribe`` are called with
    ``(user_id, balance_after)`` after every successful mutation.
    """

    def __init__(
        self,
        token_repo: TokenRepository,
        subscription_repo: SubscriptionRepository,
        observers: Optional[List[BalanceObserver]] = None,
    ):
        self._tokens = token_repo
        self._subscriptions = subscription_repo
        self._observers: List[BalanceObserver] = list(observers or [])

    # =========================================================================
    # Observers
    # =========================================================================

    def subscribe(self, observer: BalanceObserver) -> None:
        """Register a balance-changed observer."""
        self._observers.append(observer)

    def unsubscribe(self, observer: BalanceObserver) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    async def _notify(self, user_id: str, balance_after: int) -> None:
        for observer in list(self._observers):
            try:
                result = observer(user_id, balance_after)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.warning(f"Balance observer failed for user {user_id}: {e}")

    # =========================================================================
    # Queries
    # =========================================================================

    async def check_balance(self, user_id: str, cost: int) -> BalanceCheck:
        """Whether the user can afford ``cost``. Never mutates state."""
        _require_positive(cost, "cost")

        balance = await self._tokens.get_balance(user_id)
        current = balance or 0
        return BalanceCheck(sufficient=current >= cost, current_balance=current)

    async def get_token_balance(self, user_id: str) -> TokenBalance:
        """Balance snapshot for the client; free-plan defaults when no account exists."""
        subscription = await self._subscriptions.get_by_user_id(user_id)
        if subscription is None:
            return TokenBalance(plan_type=FREE_PLAN_TYPE)

        return TokenBalance(
            tokens_remaining=subscription.token_balance,
            tokens_limit=subscription.tokens_limit,
            tokens_used=subscription.tokens_used,
            plan_type=subscription.plan_type,
            status=subscription.status.value,
            period_end=subscription.current_period_end,
        )

    async def get_transaction_history(
        self,
        user_id: str,
        limit: int = 50,
    ) -> List[TokenTransaction]:
        """Newest-first transaction history."""
        return await self._tokens.list_transactions(user_id, limit=limit)

    # =========================================================================
    # Mutations
    # =========================================================================

    async def debit(self, user_id: str, cost: int, reason: str) -> DebitResult:
        """
        Charge ``cost`` tokens for work that already succeeded.

        Returns:
            DebitResult(success=False) when the balance is too low, the
            account is missing or storage fails. Balance is unchanged then.
        """
        _require_positive(cost, "cost")

        try:
            transaction = await self._tokens.debit(user_id, cost, reason)
        except Exception as e:
            logger.error(f"Error deducting tokens for user {user_id}: {e}")
            return DebitResult(success=False, balance_after=0, error=str(e))

        if transaction is None:
            logger.warning(
                f"Debit of {cost} rejected for user {user_id}: insufficient tokens"
            )
            return DebitResult(success=False, balance_after=0, error="Insufficient tokens")

        await self._notify(user_id, transaction.balance_after)
        return DebitResult(success=True, balance_after=transaction.balance_after)

    async def grant(
        self,
        user_id: str,
        amount: int,
        reason: str,
        replace_balance: bool = False,
    ) -> BalanceChange:
        """
        Add tokens on top of the current balance.

        ``replace_balance`` sets the balance to exactly ``amount`` instead;
        plan activations use it so leftover tokens do not stack.

        Raises:
            NotFoundError: the user has no account row
        """
        _require_positive(amount, "amount")

        transaction = await self._tokens.grant(
            user_id, amount, reason, replace_balance=replace_balance
        )
        if transaction is None:
            raise NotFoundError(
                f"No token account for user {user_id}",
                operation="grant",
                table="subscriptions",
            )

        await self._notify(user_id, transaction.balance_after)
        return BalanceChange(balance_after=transaction.balance_after, transaction_id=transaction.id)

    async def reset(self, user_id: str, amount: int, reason: str) -> BalanceChange:
        """
        Set the balance to exactly ``amount``; unused tokens do not roll over.

        Raises:
            NotFoundError: the user has no account row
        """
        if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
            raise ValidationError("amount must be a non-negative integer", details={"amount": amount})

        transaction = await self._tokens.reset(user_id, amount, reason)
        if transaction is None:
            raise NotFoundError(
                f"No token account for user {user_id}",
                operation="reset",
                table="subscriptions",
            )

        await self._notify(user_id, transaction.balance_after)
        return BalanceChange(balance_after=transaction.balance_after, transaction_id=transaction.id)


_ledger_instance: Optional[TokenLedgerService] = None


def get_token_ledger() -> TokenLedgerService:
    """Get or create the ledger service singleton."""
    global _ledger_instance

    if _ledger_instance is None:
        _ledger_instance = TokenLedgerService(
            token_repo=get_token_repository(),
            subscription_repo=get_subscription_repository(),
        )

    return _ledger_instance
