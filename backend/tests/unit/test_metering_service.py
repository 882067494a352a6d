"""
Unit tests for MeteredOperationRunner with a mocked ledger.

Verifies the charge-after-success ordering and that bookkeeping
failures never turn a delivered generation into an error.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from app.domain.ledger import BalanceCheck, DebitResult, MeteredOperation
from app.infrastructure.exceptions import AIServiceError
from app.infrastructure.services.metering_service import MeteredOperationRunner, MeteredStatus


USER = "user-1"


@pytest.fixture
def mock_ledger():
    ledger = MagicMock()
    ledger.check_balance = AsyncMock(return_value=BalanceCheck(sufficient=True, current_balance=3))
    ledger.debit = AsyncMock(return_value=DebitResult(success=True, balance_after=2))
    return ledger


@pytest.fixture
def runner(mock_ledger):
    return MeteredOperationRunner(mock_ledger)


class TestMeteredOperationRunner:

    @pytest.mark.asyncio
    async def test_debit_happens_after_call(self, runner, mock_ledger):
        order = []
        mock_ledger.debit.side_effect = lambda *a: order.append("debit") or DebitResult(True, 2)

        async def call():
            order.append("call")
            return "caption"

        result = await runner.run(USER, MeteredOperation.CAPTION, call, "Generated instagram caption")

        assert order == ["call", "debit"]
        assert result.ok
        mock_ledger.check_balance.assert_awaited_once_with(USER, 1)
        mock_ledger.debit.assert_awaited_once_with(USER, 1, "Generated instagram caption")

    @pytest.mark.asyncio
    async def test_insufficient_skips_call_and_debit(self, runner, mock_ledger):
        mock_ledger.check_balance.return_value = BalanceCheck(sufficient=False, current_balance=4)
        call = AsyncMock()

        result = await runner.run(USER, MeteredOperation.VIDEO, call, "Generated video")

        assert result.status == MeteredStatus.INSUFFICIENT
        assert result.current_balance == 4
        call.assert_not_called()
        mock_ledger.debit.assert_not_called()
        mock_ledger.check_balance.assert_awaited_once_with(USER, 5)

    @pytest.mark.asyncio
    async def test_provider_message_is_surfaced(self, runner, mock_ledger):
        call = AsyncMock(side_effect=AIServiceError("Gemini refused the prompt"))

        result = await runner.run(USER, MeteredOperation.EDITING, call, "Edited image")

        assert result.status == MeteredStatus.FAILED
        assert result.error == "Gemini refused the prompt"
        mock_ledger.debit.assert_not_called()

    @pytest.mark.asyncio
    async def test_generic_message_when_provider_is_silent(self, runner):
        result = await runner.run(USER, MeteredOperation.DRESSING, AsyncMock(side_effect=RuntimeError()), "x")

        assert result.error == "Failed to generate dressing. Please try again."

    @pytest.mark.asyncio
    async def test_debit_failure_still_delivers(self, runner, mock_ledger):
        mock_ledger.debit.return_value = DebitResult(success=False, balance_after=0, error="Insufficient tokens")

        result = await runner.run(USER, MeteredOperation.CAPTION, AsyncMock(return_value="caption"), "x")

        assert result.status == MeteredStatus.SUCCEEDED
        assert result.value == "caption"
        assert result.charged is False
        assert result.current_balance == 3

    @pytest.mark.asyncio
    async def test_store_failure_is_logged_only(self, runner, mock_ledger):
        on_success = AsyncMock(side_effect=RuntimeError("storage down"))

        result = await runner.run(
            USER, MeteredOperation.CAPTION, AsyncMock(return_value="caption"), "x", on_success=on_success
        )

        assert result.ok
        assert result.charged is True
        on_success.assert_awaited_once_with("caption")
