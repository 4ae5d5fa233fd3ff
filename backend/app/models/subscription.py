"""Subscription catalog and order models."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class OrderStatus(str, Enum):
    """Lifecycle of a subscription order. The core only ever writes PENDING."""

    PENDING = "pending"
    ACTIVE = "active"
    REJECTED = "rejected"


class SubscriptionState(str, Enum):
    """States of the plan selection / bank transfer flow."""

    PLAN_SELECTION = "plan_selection"
    PAYMENT_PENDING = "payment_pending"
    ORDER_SUBMITTED = "order_submitted"


class SubscriptionPlan(BaseModel):
    """Static catalog entry for a paid plan."""

    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    monthly_price: int = Field(gt=0)
    features: list[str] = Field(default_factory=list)
    popular: bool = False


class PaymentChannel(BaseModel):
    """Bank account the user transfers the subscription fee to."""

    id: str = Field(min_length=1)
    display_name: str = Field(min_length=1)
    account_number: str = Field(min_length=1)
    account_holder: str = Field(min_length=1)


class Catalog(BaseModel):
    """Plans and payment channels offered to users."""

    plans: list[SubscriptionPlan] = Field(min_length=1)
    payment_channels: list[PaymentChannel] = Field(min_length=1)

    def plan(self, plan_id: str) -> SubscriptionPlan | None:
        return next((p for p in self.plans if p.id == plan_id), None)

    def payment_channel(self, channel_id: str) -> PaymentChannel | None:
        return next((c for c in self.payment_channels if c.id == channel_id), None)


class SubscriptionOrder(BaseModel):
    """Order row written when the user confirms a bank transfer."""

    principal_id: str
    plan_name: str
    price_monthly: int
    payment_channel: str
    status: OrderStatus = OrderStatus.PENDING
    transfer_note: str | None = None
    created_at: datetime | None = None


class PaymentInstructions(BaseModel):
    """Transfer details shown while the order is pending."""

    plan_name: str
    amount: int
    bank: str
    account_number: str
    account_holder: str
