"""Admin subscription API.

Implements:
- GET /admin/subscriptions - List subscriptions, optionally by status
- PATCH /admin/subscriptions - Override status and/or end date
- DELETE /admin/subscriptions/{subscription_id} - Hard delete
- POST /admin/subscriptions/assign - Stage a plan for a freelancer
- POST /admin/subscriptions/{subscription_id}/activate - Activate a staged subscription
- POST /admin/subscriptions/sweep-expired - Run the expiry sweep now
"""

from typing import Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query

from freelance_plans.api.dependencies import require_admin
from freelance_plans.logging_config import get_logger
from freelance_plans.models import (
    ActivateSubscriptionRequest,
    AdminUpdateSubscriptionRequest,
    AssignSubscriptionRequest,
    MessageResponse,
    Principal,
    SubscriptionListResponse,
    SubscriptionResponse,
    SubscriptionStatus,
    SweepResponse,
)
from freelance_plans.services.subscription_engine import (
    AlreadySubscribedError,
    InvalidSubscriptionStateError,
    InvalidUserRoleError,
    PlanNotFoundError,
    SubscriptionEngine,
    SubscriptionNotFoundError,
    UserNotFoundError,
    get_subscription_engine,
)

logger = get_logger(__name__)
router = APIRouter(tags=["Admin"], prefix="/admin/subscriptions")


def _subscription_not_found(subscription_id: int) -> HTTPException:
    logger.warning("subscription_not_found", subscription_id=subscription_id)
    return HTTPException(
        status_code=404,
        detail={
            "error": "subscription_not_found",
            "message": f"Subscription {subscription_id} does not exist",
        },
    )


@router.get("", response_model=SubscriptionListResponse, summary="List subscriptions")
def list_subscriptions(
    status: Optional[SubscriptionStatus] = Query(None, description="Filter by status"),
    _: Principal = Depends(require_admin),
    engine: SubscriptionEngine = Depends(get_subscription_engine),
) -> SubscriptionListResponse:
    subscriptions = engine.list_subscriptions(status=status)
    return SubscriptionListResponse(count=len(subscriptions), subscriptions=subscriptions)


@router.patch("", response_model=SubscriptionResponse, summary="Override subscription")
def update_subscription(
    request: AdminUpdateSubscriptionRequest,
    admin: Principal = Depends(require_admin),
    engine: SubscriptionEngine = Depends(get_subscription_engine),
) -> SubscriptionResponse:
    """Set status and/or end_date; omitted fields keep their value.

    No transition rules apply to this override.

    Raises:
        404: Subscription not found
    """
    logger.info(
        "admin_update_request",
        admin_id=admin.user_id,
        subscription_id=request.subscription_id,
        status=str(request.status) if request.status else None,
        end_date=request.end_date.isoformat() if request.end_date else None,
    )

    try:
        subscription = engine.admin_update(
            request.subscription_id,
            status=request.status,
            end_date=request.end_date,
        )
    except SubscriptionNotFoundError:
        raise _subscription_not_found(request.subscription_id)

    return SubscriptionResponse(message="Subscription updated", subscription=subscription)


@router.delete("/{subscription_id}", response_model=MessageResponse, summary="Delete subscription")
def delete_subscription(
    subscription_id: int,
    admin: Principal = Depends(require_admin),
    engine: SubscriptionEngine = Depends(get_subscription_engine),
) -> MessageResponse:
    """Hard-delete a subscription in any status.

    Raises:
        404: Subscription not found
    """
    try:
        engine.admin_delete(subscription_id)
    except SubscriptionNotFoundError:
        raise _subscription_not_found(subscription_id)

    logger.info("admin_delete_success", admin_id=admin.user_id, subscription_id=subscription_id)
    return MessageResponse(message="Subscription deleted")


@router.post(
    "/assign",
    response_model=SubscriptionResponse,
    status_code=201,
    summary="Assign plan to freelancer",
)
def assign_subscription(
    request: AssignSubscriptionRequest,
    admin: Principal = Depends(require_admin),
    engine: SubscriptionEngine = Depends(get_subscription_engine),
) -> SubscriptionResponse:
    """Stage a pending_start subscription for a freelancer.

    Raises:
        404: Freelancer or plan not found
        400: Not a freelancer, or an open window already exists
    """
    try:
        subscription = engine.assign(request.freelancer_id, request.plan_id)
    except UserNotFoundError:
        raise HTTPException(
            status_code=404,
            detail={"error": "user_not_found", "message": f"Freelancer {request.freelancer_id} not found"},
        )
    except PlanNotFoundError:
        raise HTTPException(
            status_code=404,
            detail={"error": "plan_not_found", "message": f"Plan {request.plan_id} does not exist"},
        )
    except InvalidUserRoleError as e:
        raise HTTPException(status_code=400, detail={"error": "invalid_role", "message": str(e)})
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

    logger.info("admin_assign_success", admin_id=admin.user_id, subscription_id=subscription.id)
    return SubscriptionResponse(message="Subscription assigned", subscription=subscription)


@router.post(
    "/{subscription_id}/activate",
    response_model=SubscriptionResponse,
    summary="Activate staged subscription",
)
def activate_subscription(
    subscription_id: int,
    request: Optional[ActivateSubscriptionRequest] = Body(None),
    admin: Principal = Depends(require_admin),
    engine: SubscriptionEngine = Depends(get_subscription_engine),
) -> SubscriptionResponse:
    """Move a pending_start subscription to active.

    Raises:
        404: Subscription not found
        400: Subscription is not pending_start
    """
    start_date = request.start_date if request is not None else None
    try:
        subscription = engine.activate(subscription_id, start_date=start_date)
    except SubscriptionNotFoundError:
        raise _subscription_not_found(subscription_id)
    except InvalidSubscriptionStateError as e:
        raise HTTPException(status_code=400, detail={"error": "invalid_state", "message": str(e)})

    logger.info("admin_activate_success", admin_id=admin.user_id, subscription_id=subscription_id)
    return SubscriptionResponse(message="Subscription activated", subscription=subscription)


@router.post("/sweep-expired", response_model=SweepResponse, summary="Run expiry sweep")
def sweep_expired(
    admin: Principal = Depends(require_admin),
    engine: SubscriptionEngine = Depends(get_subscription_engine),
) -> SweepResponse:
    expired = engine.expire_overdue()
    logger.info("admin_sweep_success", admin_id=admin.user_id, expired_count=len(expired))
    return SweepResponse(expired_count=len(expired), subscription_ids=[s.id for s in expired])
