"""Subscription (manual bank transfer) API endpoints."""

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from app.api.errors import http_error
from app.auth import AuthenticatedPrincipal, CurrentPrincipal, login_required_error
from app.errors import ConverterAppError
from app.models.account import Decision
from app.models.subscription import (
    Catalog,
    PaymentChannel,
    PaymentInstructions,
    SubscriptionOrder,
    SubscriptionPlan,
    SubscriptionState,
)
from app.services.sessions import Session, SessionRegistry

router = APIRouter(prefix="/subscription", tags=["subscription"])


class PlanRequest(BaseModel):
    """Plan selection request."""

    plan_id: str = Field(description="Catalog plan id, e.g. 'pro'")


class ChannelRequest(BaseModel):
    """Payment channel selection request."""

    channel_id: str = Field(description="Catalog bank id, e.g. 'bca'")


class ConfirmRequest(BaseModel):
    """Transfer confirmation."""

    transfer_note: str | None = Field(
        default=None,
        max_length=500,
        description="Optional note: sender bank, transfer date, etc.",
    )


class SubscriptionStatusResponse(BaseModel):
    """Snapshot of the session's subscription workflow."""

    state: SubscriptionState
    plan: SubscriptionPlan | None = None
    channel: PaymentChannel | None = None
    order: SubscriptionOrder | None = None


def _get_catalog(request: Request) -> Catalog:
    catalog = getattr(request.app.state, "catalog", None)
    if catalog is None:
        raise HTTPException(status_code=503, detail="Katalog langganan tidak tersedia")
    return catalog


def _get_session(request: Request) -> Session:
    sessions: SessionRegistry | None = getattr(request.app.state, "sessions", None)
    if sessions is None:
        raise HTTPException(status_code=503, detail="Layanan langganan tidak tersedia")
    return sessions.get_or_create(request.state.session_id)


def _status(session: Session) -> SubscriptionStatusResponse:
    workflow = session.subscription
    return SubscriptionStatusResponse(
        state=workflow.state,
        plan=workflow.plan,
        channel=workflow.channel,
        order=workflow.order,
    )


@router.get("/plans", response_model=list[SubscriptionPlan])
async def list_plans(request: Request) -> list[SubscriptionPlan]:
    """List the available premium plans."""
    return _get_catalog(request).plans


@router.get("/channels", response_model=list[PaymentChannel])
async def list_channels(request: Request) -> list[PaymentChannel]:
    """List the bank accounts accepted for transfers."""
    return _get_catalog(request).payment_channels


@router.get("/status", response_model=SubscriptionStatusResponse)
async def subscription_status(request: Request) -> SubscriptionStatusResponse:
    """Return the session's subscription workflow state."""
    return _status(_get_session(request))


@router.post("/plan", response_model=SubscriptionStatusResponse)
async def select_plan(
    body: PlanRequest,
    request: Request,
    principal: CurrentPrincipal,
) -> SubscriptionStatusResponse:
    """Choose a plan. Anonymous callers get 401 and stay on plan selection."""
    session = _get_session(request)
    try:
        decision = session.subscription.select_plan(principal, body.plan_id)
    except ConverterAppError as e:
        raise http_error(e)
    if decision == Decision.REQUIRES_LOGIN:
        raise login_required_error()
    return _status(session)


@router.post("/channel", response_model=SubscriptionStatusResponse)
async def select_channel(body: ChannelRequest, request: Request) -> SubscriptionStatusResponse:
    """Choose the bank the transfer will be sent to."""
    session = _get_session(request)
    try:
        session.subscription.select_channel(body.channel_id)
    except ConverterAppError as e:
        raise http_error(e)
    return _status(session)


@router.get("/instructions", response_model=PaymentInstructions)
async def payment_instructions(request: Request) -> PaymentInstructions:
    """Account number, holder and amount for the pending transfer."""
    session = _get_session(request)
    try:
        return session.subscription.payment_instructions()
    except ConverterAppError as e:
        raise http_error(e)


@router.post("/confirm", response_model=SubscriptionOrder)
async def confirm_payment(
    body: ConfirmRequest,
    request: Request,
    principal: AuthenticatedPrincipal,
) -> SubscriptionOrder:
    """Record the transfer as a pending order awaiting verification."""
    session = _get_session(request)
    try:
        return await session.subscription.confirm(principal, body.transfer_note)
    except ConverterAppError as e:
        raise http_error(e)


@router.post("/back", response_model=SubscriptionStatusResponse)
async def back_to_plans(request: Request) -> SubscriptionStatusResponse:
    """Return to plan selection, dropping the plan and bank choices."""
    session = _get_session(request)
    try:
        session.subscription.back()
    except ConverterAppError as e:
        raise http_error(e)
    return _status(session)


@router.get("/orders", response_model=list[SubscriptionOrder])
async def list_orders(request: Request, principal: AuthenticatedPrincipal) -> list[SubscriptionOrder]:
    """List the authenticated user's subscription orders."""
    orders = getattr(request.app.state, "subscription_orders", None)
    if orders is None:
        raise HTTPException(status_code=503, detail="Layanan langganan tidak tersedia")
    return await orders.list_for(principal.id)
