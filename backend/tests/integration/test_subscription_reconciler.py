"""
Integration tests for the SubscriptionReconciler.

Verifies each handled Stripe event against a real (SQLite) database with
the Stripe API mocked out.
"""

from datetime import datetime, timezone

import pytest

from app.domain.ledger import TransactionType
from app.domain.subscription import SubscriptionStatus
from app.infrastructure.exceptions import ReconciliationConfigError


USER = "22222222-2222-2222-2222-222222222222"


def checkout_session(plan_type="pro", user_id=USER, subscription="sub_123"):
    metadata = {}
    if user_id:
        metadata["user_id"] = user_id
    if plan_type:
        metadata["plan_type"] = plan_type
    return {
        "id": "cs_test_1",
        "customer": "cus_123",
        "subscription": subscription,
        "metadata": metadata,
    }


def naive(dt: datetime) -> datetime:
    """SQLite hands back naive datetimes."""
    return dt.replace(tzinfo=None) if dt.tzinfo else dt


class TestCheckoutCompleted:

    @pytest.mark.asyncio
    async def test_activates_and_grants_allotment(
        self, reconciler, plans, subscription_repo, token_repo
    ):
        handled = await reconciler.handle_event("checkout.session.completed", checkout_session())

        assert handled is True
        subscription = await subscription_repo.get_by_user_id(USER)
        assert subscription.plan_type == "pro"
        assert subscription.status == SubscriptionStatus.ACTIVE
        assert subscription.stripe_customer_id == "cus_123"
        assert subscription.stripe_subscription_id == "sub_123"
        assert subscription.stripe_price_id == "price_from_stripe"
        assert subscription.tokens_limit == 100
        assert subscription.token_balance == 100

        transactions = await token_repo.list_transactions(USER)
        assert len(transactions) == 1
        assert transactions[0].type == TransactionType.GRANT
        assert transactions[0].reason == "Subscription activated: Pro"

    @pytest.mark.asyncio
    async def test_monthly_period_end_clamps_to_month_end(
        self, reconciler, plans, subscription_repo
    ):
        # fixed_now is 2026-01-31
        await reconciler.handle_event("checkout.session.completed", checkout_session())

        subscription = await subscription_repo.get_by_user_id(USER)
        assert naive(subscription.current_period_start) == datetime(2026, 1, 31, 12, 0)
        assert naive(subscription.current_period_end) == datetime(2026, 2, 28, 12, 0)

    @pytest.mark.asyncio
    async def test_six_month_period(self, reconciler, plans, subscription_repo):
        await reconciler.handle_event("checkout.session.completed", checkout_session("semester"))

        subscription = await subscription_repo.get_by_user_id(USER)
        assert naive(subscription.current_period_end) == datetime(2026, 7, 31, 12, 0)
        assert subscription.token_balance == 500

    @pytest.mark.asyncio
    async def test_price_falls_back_to_plan(
        self, reconciler, plans, subscription_repo, mock_stripe_service
    ):
        mock_stripe_service.get_subscription_price_id.return_value = None

        await reconciler.handle_event("checkout.session.completed", checkout_session())

        subscription = await subscription_repo.get_by_user_id(USER)
        assert subscription.stripe_price_id == "price_pro"

    @pytest.mark.asyncio
    async def test_existing_balance_is_replaced_by_allotment(
        self, reconciler, plans, make_account, subscription_repo, token_repo
    ):
        await make_account(USER, balance=5)

        await reconciler.handle_event("checkout.session.completed", checkout_session("starter"))

        subscription = await subscription_repo.get_by_user_id(USER)
        assert subscription.plan_type == "starter"
        assert subscription.token_balance == 20
        assert subscription.tokens_used == 0

        [grant] = [
            t for t in await token_repo.list_transactions(USER)
            if t.reason == "Subscription activated: Starter"
        ]
        assert grant.type == TransactionType.GRANT
        assert grant.amount == 20
        assert grant.balance_after == 20

    @pytest.mark.asyncio
    async def test_resubscribe_does_not_stack_allotments(self, reconciler, plans, subscription_repo):
        await reconciler.handle_event("checkout.session.completed", checkout_session("starter"))
        await reconciler.handle_event("customer.subscription.deleted", {"id": "sub_123"})
        await reconciler.handle_event(
            "checkout.session.completed", checkout_session("starter", subscription="sub_456")
        )

        subscription = await subscription_repo.get_by_user_id(USER)
        assert subscription.status == SubscriptionStatus.ACTIVE
        assert subscription.token_balance == subscription.tokens_limit == 20

    @pytest.mark.asyncio
    @pytest.mark.parametrize("missing", ["user_id", "plan_type"])
    async def test_missing_metadata_raises(self, reconciler, plans, subscription_repo, missing):
        session = checkout_session(**{missing: None})

        with pytest.raises(ReconciliationConfigError) as exc_info:
            await reconciler.handle_event("checkout.session.completed", session)

        assert missing in exc_info.value.details["missing_keys"]
        assert await subscription_repo.get_by_user_id(USER) is None

    @pytest.mark.asyncio
    async def test_unknown_plan_raises(self, reconciler, plans, subscription_repo):
        with pytest.raises(ReconciliationConfigError):
            await reconciler.handle_event("checkout.session.completed", checkout_session("platinum"))

        assert await subscription_repo.get_by_user_id(USER) is None


class TestInvoicePaymentSucceeded:

    @pytest.mark.asyncio
    async def test_renewal_resets_balance(self, reconciler, plans, ledger, subscription_repo, token_repo):
        await reconciler.handle_event("checkout.session.completed", checkout_session())
        await ledger.debit(USER, 30, "Generated videos")

        period_end = datetime(2026, 3, 31, tzinfo=timezone.utc)
        invoice = {
            "id": "in_1",
            "subscription": "sub_123",
            "period_end": int(period_end.timestamp()),
        }
        await reconciler.handle_event("invoice.payment_succeeded", invoice)

        subscription = await subscription_repo.get_by_user_id(USER)
        assert subscription.status == SubscriptionStatus.ACTIVE
        assert subscription.token_balance == 100
        assert subscription.tokens_used == 0
        assert naive(subscription.current_period_end) == naive(period_end)

        latest = (await token_repo.list_transactions(USER))[0]
        assert latest.type == TransactionType.RESET
        assert latest.reason == "Subscription renewed: Pro"

    @pytest.mark.asyncio
    async def test_replayed_invoice_resets_twice(self, reconciler, plans, ledger, token_repo):
        """The reconciler itself does not deduplicate; delivery dedupe is opt-in."""
        await reconciler.handle_event("checkout.session.completed", checkout_session())
        invoice = {"id": "in_1", "subscription": "sub_123"}

        await reconciler.handle_event("invoice.payment_succeeded", invoice)
        await ledger.debit(USER, 10, "Generated video")
        await reconciler.handle_event("invoice.payment_succeeded", invoice)

        assert await token_repo.get_balance(USER) == 100
        resets = [t for t in await token_repo.list_transactions(USER) if t.type == TransactionType.RESET]
        assert len(resets) == 2

    @pytest.mark.asyncio
    async def test_one_time_payment_is_ignored(self, reconciler, plans, make_account, token_repo):
        await make_account(USER, balance=3)

        await reconciler.handle_event("invoice.payment_succeeded", {"id": "in_2", "subscription": None})

        assert await token_repo.get_balance(USER) == 3

    @pytest.mark.asyncio
    async def test_unknown_subscription_is_noop(self, reconciler, plans):
        handled = await reconciler.handle_event(
            "invoice.payment_succeeded", {"id": "in_3", "subscription": "sub_missing"}
        )

        assert handled is True


class TestSubscriptionLifecycle:

    @pytest.fixture
    async def active(self, reconciler, plans):
        await reconciler.handle_event("checkout.session.completed", checkout_session())

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "provider_status, expected",
        [
            ("active", SubscriptionStatus.ACTIVE),
            ("past_due", SubscriptionStatus.PAUSED),
            ("canceled", SubscriptionStatus.CANCELLED),
            ("unpaid", SubscriptionStatus.EXPIRED),
            ("incomplete_expired", SubscriptionStatus.EXPIRED),
        ],
    )
    async def test_updated_maps_status(
        self, reconciler, active, subscription_repo, provider_status, expected
    ):
        period_end = datetime(2026, 4, 1, tzinfo=timezone.utc)

        await reconciler.handle_event(
            "customer.subscription.updated",
            {
                "id": "sub_123",
                "status": provider_status,
                "current_period_end": int(period_end.timestamp()),
            },
        )

        subscription = await subscription_repo.get_by_user_id(USER)
        assert subscription.status == expected
        assert naive(subscription.current_period_end) == naive(period_end)

    @pytest.mark.asyncio
    async def test_updated_reads_period_from_items(self, reconciler, active, subscription_repo):
        period_end = datetime(2026, 5, 1, tzinfo=timezone.utc)

        await reconciler.handle_event(
            "customer.subscription.updated",
            {
                "id": "sub_123",
                "status": "active",
                "items": {"data": [{"current_period_end": int(period_end.timestamp())}]},
            },
        )

        subscription = await subscription_repo.get_by_user_id(USER)
        assert naive(subscription.current_period_end) == naive(period_end)

    @pytest.mark.asyncio
    async def test_status_sync_keeps_balance(self, reconciler, active, ledger, subscription_repo):
        await ledger.debit(USER, 4, "Dressed model")

        await reconciler.handle_event("customer.subscription.updated", {"id": "sub_123", "status": "past_due"})

        subscription = await subscription_repo.get_by_user_id(USER)
        assert subscription.token_balance == 96

    @pytest.mark.asyncio
    async def test_deleted_cancels(self, reconciler, active, subscription_repo):
        await reconciler.handle_event("customer.subscription.deleted", {"id": "sub_123"})

        subscription = await subscription_repo.get_by_user_id(USER)
        assert subscription.status == SubscriptionStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_payment_failed_pauses(self, reconciler, active, subscription_repo):
        await reconciler.handle_event("invoice.payment_failed", {"id": "in_9", "subscription": "sub_123"})

        subscription = await subscription_repo.get_by_user_id(USER)
        assert subscription.status == SubscriptionStatus.PAUSED

    @pytest.mark.asyncio
    async def test_unknown_subscription_is_noop(self, reconciler, active, subscription_repo):
        await reconciler.handle_event("customer.subscription.deleted", {"id": "sub_other"})

        subscription = await subscription_repo.get_by_user_id(USER)
        assert subscription.status == SubscriptionStatus.ACTIVE


class TestUnhandledEvents:

    @pytest.mark.asyncio
    async def test_unhandled_type_is_ignored(self, reconciler):
        handled = await reconciler.handle_event("customer.created", {"id": "cus_1"})

        assert handled is False
