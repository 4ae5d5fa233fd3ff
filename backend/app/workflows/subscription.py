"""
Subscription workflow: plan selection followed by a manual bank transfer.

    plan_selection -> payment_pending -> order_submitted

The order is written as pending. Activation or rejection happens outside this
service once the transfer has been verified.
"""

from datetime import UTC, datetime

import structlog

from app.errors import (
    InvalidTransitionError,
    MissingSelectionError,
    PersistenceFailedError,
    UnknownCatalogEntryError,
)
from app.models.account import Decision, Principal
from app.models.subscription import (
    Catalog,
    OrderStatus,
    PaymentChannel,
    PaymentInstructions,
    SubscriptionOrder,
    SubscriptionPlan,
    SubscriptionState,
)
from app.services.records import SubscriptionOrderStore

logger = structlog.get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class SubscriptionWorkflow:
    """Per-session state machine for buying a plan by bank transfer."""

    def __init__(
        self,
        catalog: Catalog,
        orders: SubscriptionOrderStore,
        now_provider=_utcnow,
    ) -> None:
        self.catalog = catalog
        self.orders = orders
        self.now_provider = now_provider

        self._state = SubscriptionState.PLAN_SELECTION
        self._plan: SubscriptionPlan | None = None
        self._channel: PaymentChannel | None = None
        self._order: SubscriptionOrder | None = None

    @property
    def state(self) -> SubscriptionState:
        return self._state

    @property
    def plan(self) -> SubscriptionPlan | None:
        return self._plan

    @property
    def channel(self) -> PaymentChannel | None:
        return self._channel

    @property
    def order(self) -> SubscriptionOrder | None:
        return self._order

    def _require(self, operation: str, state: SubscriptionState) -> None:
        if self._state != state:
            raise InvalidTransitionError(operation, self._state.value)

    def select_plan(self, principal: Principal, plan_id: str) -> Decision:
        self._require("select_plan", SubscriptionState.PLAN_SELECTION)
        if not principal.is_authenticated:
            return Decision.REQUIRES_LOGIN

        plan = self.catalog.plan(plan_id)
        if plan is None:
            raise UnknownCatalogEntryError(f"Unknown plan: {plan_id}")

        self._plan = plan
        self._state = SubscriptionState.PAYMENT_PENDING
        logger.info("subscription_plan_selected", user_id=principal.id, plan_id=plan.id)
        return Decision.ALLOWED

    def select_channel(self, channel_id: str) -> PaymentChannel:
        self._require("select_channel", SubscriptionState.PAYMENT_PENDING)
        channel = self.catalog.payment_channel(channel_id)
        if channel is None:
            raise UnknownCatalogEntryError(f"Unknown payment channel: {channel_id}")
        self._channel = channel
        return channel

    def payment_instructions(self) -> PaymentInstructions:
        """Bank account and amount the user should transfer."""
        self._require("payment_instructions", SubscriptionState.PAYMENT_PENDING)
        if self._plan is None or self._channel is None:
            raise MissingSelectionError("Pilih paket dan metode pembayaran terlebih dahulu")
        return PaymentInstructions(
            plan_name=self._plan.name,
            amount=self._plan.monthly_price,
            bank=self._channel.display_name,
            account_number=self._channel.account_number,
            account_holder=self._channel.account_holder,
        )

    async def confirm(
        self,
        principal: Principal,
        transfer_note: str | None = None,
    ) -> SubscriptionOrder:
        """Write a pending order for the bound plan and channel.

        Raises:
            MissingSelectionError: plan or channel not selected.
            PersistenceFailedError: the order could not be stored; state unchanged.
        """
        self._require("confirm", SubscriptionState.PAYMENT_PENDING)
        if self._plan is None or self._channel is None:
            raise MissingSelectionError("Pilih paket dan metode pembayaran terlebih dahulu")
        if not principal.is_authenticated or not principal.id:
            raise ValueError("Cannot confirm an order for an anonymous principal")

        order = SubscriptionOrder(
            principal_id=principal.id,
            plan_name=self._plan.name,
            price_monthly=self._plan.monthly_price,
            payment_channel=self._channel.display_name,
            status=OrderStatus.PENDING,
            transfer_note=(transfer_note or "").strip() or None,
            created_at=self.now_provider(),
        )
        try:
            await self.orders.append(order)
        except Exception as e:
            logger.exception("subscription_order_append_failed", user_id=principal.id)
            raise PersistenceFailedError("Terjadi kesalahan. Silakan coba lagi.") from e

        self._order = order
        self._state = SubscriptionState.ORDER_SUBMITTED
        logger.info(
            "subscription_order_submitted",
            user_id=principal.id,
            plan_name=order.plan_name,
            payment_channel=order.payment_channel,
        )
        return order

    def back(self) -> None:
        self._require("back", SubscriptionState.PAYMENT_PENDING)
        self._plan = None
        self._channel = None
        self._state = SubscriptionState.PLAN_SELECTION
