"""Freelancer subscription API.

Implements:
- POST /subscriptions/subscribe - Subscribe to a plan
- PATCH /subscriptions/cancel - Cancel own active subscription
- GET /subscriptions/me - Own subscription status
- GET /subscriptions/me/active - Own entitling subscription (verified and subscribed only)
"""

from fastapi import APIRouter, Depends, HTTPException

from freelance_plans.api.dependencies import require_freelancer, require_verified_with_subscription
from freelance_plans.logging_config import get_logger
from freelance_plans.models import (
    ActiveSubscriptionResponse,
    Principal,
    SubscribeRequest,
    SubscriptionResponse,
    SubscriptionStatusResponse,
)
from freelance_plans.services.access_policy import AccessPolicy, get_access_policy
from freelance_plans.services.subscription_engine import (
    AlreadySubscribedError,
    NoActiveSubscriptionError,
    PlanNotFoundError,
    SubscriptionEngine,
    UserNotFoundError,
    get_subscription_engine,
)

logger = get_logger(__name__)
router = APIRouter(tags=["Subscriptions"], prefix="/subscriptions")


@router.post(
    "/subscribe",
    response_model=SubscriptionResponse,
    status_code=201,
    summary="Subscribe to a plan",
)
def subscribe(
    request: SubscribeRequest,
    principal: Principal = Depends(require_freelancer),
    engine: SubscriptionEngine = Depends(get_subscription_engine),
) -> SubscriptionResponse:
    """Subscribe the caller to a plan, starting the window now.

    Raises:
        404: Plan or user not found
        400: Caller already holds an open subscription window
    """
    logger.info("subscribe_request", user_id=principal.user_id, plan_id=request.plan_id)

    try:
        subscription = engine.subscribe(principal.user_id, request.plan_id)
    except PlanNotFoundError:
        raise HTTPException(
            status_code=404,
            detail={"error": "plan_not_found", "message": f"Plan {request.plan_id} does not exist"},
        )
    except UserNotFoundError:
        raise HTTPException(
            status_code=404,
            detail={"error": "user_not_found", "message": "User not found"},
        )
    except AlreadySubscribedError as e:
        raise HTTPException(
            status_code=400,
            detail={
                "error": "already_subscribed",
                "message": str(e),
                "subscription_id": e.subscription_id,
                "expires_at": e.expires_at.isoformat() if e.expires_at else None,
            },
        )

    return SubscriptionResponse(message="Subscribed successfully", subscription=subscription)


@router.patch("/cancel", response_model=SubscriptionResponse, summary="Cancel own subscription")
def cancel(
    principal: Principal = Depends(require_freelancer),
    engine: SubscriptionEngine = Depends(get_subscription_engine),
) -> SubscriptionResponse:
    """Cancel the caller's active subscription.

    Raises:
        400: No active subscription
    """
    try:
        subscription = engine.cancel(principal.user_id)
    except NoActiveSubscriptionError as e:
        raise HTTPException(
            status_code=400,
            detail={"error": "no_active_subscription", "message": str(e)},
        )

    return SubscriptionResponse(message="Subscription cancelled", subscription=subscription)


@router.get("/me", response_model=SubscriptionStatusResponse, summary="Own subscription status")
def my_status(
    principal: Principal = Depends(require_freelancer),
    engine: SubscriptionEngine = Depends(get_subscription_engine),
) -> SubscriptionStatusResponse:
    view = engine.get_status(principal.user_id)
    return SubscriptionStatusResponse(**view.model_dump())


@router.get(
    "/me/active",
    response_model=ActiveSubscriptionResponse,
    summary="Own entitling subscription",
)
def my_active_subscription(
    principal: Principal = Depends(require_freelancer),
    _: Principal = Depends(require_verified_with_subscription),
    policy: AccessPolicy = Depends(get_access_policy),
) -> ActiveSubscriptionResponse:
    subscription = policy.entitling_subscription(principal.user_id)
    if subscription is None:
        # Window closed between the gate and this read
        raise HTTPException(
            status_code=403,
            detail={
                "error": "no_active_subscription",
                "message": "You need an active subscription plan to use this feature",
            },
        )
    return ActiveSubscriptionResponse(
        subscription=subscription,
        remaining_days=policy.remaining_days(principal.user_id),
    )
