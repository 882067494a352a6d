"""
Metering Service

Wraps billable generation calls in the check -> call -> debit sequence.
Tokens are charged only after the remote call succeeded, so a failed or
timed-out generation never costs the user anything.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Generic, Optional, TypeVar

from app.config.settings import get_settings
from app.domain.ledger import MeteredOperation, get_operation_cost
from app.infrastructure.exceptions import FashionStudioError, GenerationTimeoutError
from app.infrastructure.services.token_ledger_service import (
    TokenLedgerService,
    get_token_ledger,
)


logger = logging.getLogger(__name__)

T = TypeVar("T")


class MeteredStatus(str, Enum):
    """Outcome of a metered operation."""
    SUCCEEDED = "succeeded"
    INSUFFICIENT = "insufficient"
    FAILED = "failed"


@dataclass
class MeteredResult(Generic[T]):
    """Result of ``MeteredOperationRunner.run``."""
    status: MeteredStatus
    value: Optional[T] = None
    error: Optional[str] = None
    current_balance: Optional[int] = None
    charged: bool = False

    @property
    def ok(self) -> bool:
        return self.status == MeteredStatus.SUCCEEDED


class MeteredOperationRunner:
    """Runs generation calls against the usage ledger."""

    def __init__(self, ledger: TokenLedgerService):
        self._ledger = ledger

    async def run(
        self,
        user_id: str,
        operation: MeteredOperation,
        call: Callable[[], Awaitable[T]],
        reason: str,
        on_success: Optional[Callable[[T], Awaitable[None]]] = None,
    ) -> MeteredResult[T]:
        """
        Run ``call`` if the user can afford ``operation``.

        Args:
            user_id: Supabase auth user ID
            operation: Billable feature, determines the cost
            call: Remote generation call
            reason: Ledger reason for the debit
            on_success: Optional content-store write for the result

        Returns:
            MeteredResult; only SUCCEEDED results may have been charged
        """
        cost = get_operation_cost(operation)

        check = await self._ledger.check_balance(user_id, cost)
        if not check.sufficient:
            logger.info(
                f"Insufficient tokens for {operation.value}: user={user_id}, "
                f"balance={check.current_balance}, cost={cost}"
            )
            return MeteredResult(
                status=MeteredStatus.INSUFFICIENT,
                error="Insufficient tokens",
                current_balance=check.current_balance,
            )

        try:
            value = await call()
        except Exception as e:
            logger.error(f"{operation.value} generation failed for user {user_id}: {e}")
            return MeteredResult(
                status=MeteredStatus.FAILED,
                error=_provider_message(e, operation),
                current_balance=check.current_balance,
            )

        debit = await self._ledger.debit(user_id, cost, reason)
        if not debit.success:
            # The generation is delivered anyway
            logger.warning(
                f"Failed to deduct {cost} tokens for {operation.value}, user {user_id}: {debit.error}"
            )

        if on_success is not None:
            try:
                await on_success(value)
            except Exception as e:
                logger.error(f"Failed to store {operation.value} result for user {user_id}: {e}")

        return MeteredResult(
            status=MeteredStatus.SUCCEEDED,
            value=value,
            current_balance=debit.balance_after if debit.success else check.current_balance,
            charged=debit.success,
        )


def _provider_message(error: Exception, operation: MeteredOperation) -> str:
    if isinstance(error, FashionStudioError):
        return error.message
    return str(error) or f"Failed to generate {operation.value}. Please try again."


async def poll_until_complete(
    fetch: Callable[[], Awaitable[Optional[T]]],
    max_attempts: Optional[int] = None,
    interval_seconds: Optional[float] = None,
    operation: str = "video",
) -> T:
    """
    Poll a long-running generation until it yields a result.

    Args:
        fetch: Returns the result, or None while still processing
        max_attempts: Number of polls before giving up (VIDEO_POLL_MAX_ATTEMPTS)
        interval_seconds: Delay between polls (VIDEO_POLL_INTERVAL_SECONDS)

    Raises:
        GenerationTimeoutError: no result after ``max_attempts`` polls
    """
    settings = get_settings()
    if max_attempts is None:
        max_attempts = settings.video_poll_max_attempts
    if interval_seconds is None:
        interval_seconds = settings.video_poll_interval_seconds

    for attempt in range(1, max_attempts + 1):
        result = await fetch()
        if result is not None:
            return result

        logger.debug(f"{operation} still processing (attempt {attempt}/{max_attempts})")
        if attempt < max_attempts:
            await asyncio.sleep(interval_seconds)

    raise GenerationTimeoutError(
        f"{operation} generation timed out after {max_attempts} attempts",
        attempts=max_attempts,
        operation=operation,
    )


_runner_instance: Optional[MeteredOperationRunner] = None


def get_metered_runner() -> MeteredOperationRunner:
    """Get or create the metered operation runner singleton."""
    global _runner_instance

    if _runner_instance is None:
        _runner_instance = MeteredOperationRunner(get_token_ledger())

    return _runner_instance
