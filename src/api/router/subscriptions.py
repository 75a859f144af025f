"""Subscription plans, usage and storage for the signed-in account."""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from src.core.dependencies import (
    get_current_account,
    get_entitlement_service,
    get_optional_account,
    get_subscription_service,
    require_admin,
)
from src.core.logger.logger import get_logger
from src.core.service.auth.models.account import Account, AccountPublic
from src.core.service.auth.models.auth import MessageResponse
from src.core.service.entitlement.entitlement_service import EntitlementService
from src.core.service.entitlement.models import Currency, StorageSummary
from src.core.service.subscription.models import (
    ActivationResult,
    PlanChangeRequest,
    PlanView,
    UsageSummary,
)
from src.core.service.subscription.subscription_service import SubscriptionService

logger = get_logger(__name__)

router = APIRouter(
    prefix="/subscriptions",
    tags=["Subscriptions"],
    responses={
        401: {"description": "Unauthorized"},
        403: {"description": "Entitlement denied"},
    }
)

admin_router = APIRouter(prefix="/admin", tags=["Admin"])


@router.get("/plans", response_model=List[PlanView])
async def list_plans(
    currency: Optional[Currency] = Query(None, description="Pricing currency; defaults to the account preference"),
    account: Optional[Account] = Depends(get_optional_account),
    subscription_service: SubscriptionService = Depends(get_subscription_service)
):
    """Active plans ordered by tier."""
    if currency is None:
        currency = account.currency_preference if account else Currency.USD
    return await subscription_service.list_active_plans(currency)


@router.post("/free-trial", response_model=ActivationResult)
async def activate_free_plan(
    account: Account = Depends(get_current_account),
    subscription_service: SubscriptionService = Depends(get_subscription_service)
):
    return await subscription_service.activate_free_plan(account)


@router.post("/cancel", response_model=MessageResponse)
async def cancel_subscription(
    account: Account = Depends(get_current_account),
    subscription_service: SubscriptionService = Depends(get_subscription_service)
):
    await subscription_service.cancel_subscription(account)
    return MessageResponse(message="Subscription cancelled")


@router.get("/usage", response_model=UsageSummary)
async def usage_summary(
    account: Account = Depends(get_current_account),
    subscription_service: SubscriptionService = Depends(get_subscription_service)
):
    return await subscription_service.usage_summary(account)


@router.get("/storage", response_model=StorageSummary)
async def storage_summary(
    account: Account = Depends(get_current_account),
    entitlement_service: EntitlementService = Depends(get_entitlement_service)
):
    return await entitlement_service.storage_summary(account)


@admin_router.put("/accounts/{account_id}/plan", response_model=AccountPublic)
async def change_plan(
    account_id: UUID,
    request: PlanChangeRequest,
    admin: Account = Depends(require_admin),
    subscription_service: SubscriptionService = Depends(get_subscription_service)
):
    """Move an account to another plan. No payment is taken."""
    account = await subscription_service.change_plan(account_id, request.plan_name)
    logger.info(
        "Plan changed by admin",
        extra={"admin_id": str(admin.id), "account_id": str(account_id), "plan": request.plan_name.value}
    )
    return AccountPublic.from_account(account)
