"""Plan catalog API.

Implements:
- GET /plans - List plans, optionally with subscription counts
- GET /plans/{plan_id} - Get one plan
- POST /plans - Create plan (admin)
- PUT /plans/{plan_id} - Replace plan (admin)
- DELETE /plans/{plan_id} - Delete unused plan (admin)
- GET /plans/subscriptions/counts - Subscriptions per plan (admin)
- GET /plans/{plan_id}/subscribers - Subscriptions of a plan (admin)
"""

from fastapi import APIRouter, Depends, HTTPException, Query

from freelance_plans.api.dependencies import require_admin
from freelance_plans.logging_config import get_logger
from freelance_plans.models import (
    MessageResponse,
    PlanCountListResponse,
    PlanCountsResponse,
    PlanCreate,
    PlanListResponse,
    PlanResponse,
    Principal,
    SubscriptionListResponse,
)
from freelance_plans.repositories.plan_catalog import (
    PlanCatalog,
    PlanInUseError,
    PlanNotFoundError,
    get_plan_catalog,
)
from freelance_plans.services.subscription_engine import (
    SubscriptionEngine,
    get_subscription_engine,
)

logger = get_logger(__name__)
router = APIRouter(tags=["Plans"], prefix="/plans")


def _plan_not_found(plan_id: int) -> HTTPException:
    logger.warning("plan_not_found", plan_id=plan_id)
    return HTTPException(
        status_code=404,
        detail={"error": "plan_not_found", "message": f"Plan {plan_id} does not exist"},
    )


@router.get("", summary="List plans")
def list_plans(
    with_counts: bool = Query(False, description="Include subscription counts per plan"),
    catalog: PlanCatalog = Depends(get_plan_catalog),
):
    """List all plans ordered by ID."""
    plans = catalog.list_plans(include_counts=with_counts)
    if with_counts:
        return PlanCountListResponse(plans=plans)
    return PlanListResponse(plans=plans)


@router.get(
    "/subscriptions/counts",
    response_model=PlanCountsResponse,
    summary="Subscription counts per plan",
)
def plan_subscription_counts(
    _: Principal = Depends(require_admin),
    catalog: PlanCatalog = Depends(get_plan_catalog),
) -> PlanCountsResponse:
    return PlanCountsResponse(counts=catalog.subscription_counts())


@router.get("/{plan_id}", response_model=PlanResponse, summary="Get plan")
def get_plan(plan_id: int, catalog: PlanCatalog = Depends(get_plan_catalog)) -> PlanResponse:
    try:
        return PlanResponse(plan=catalog.get_plan(plan_id))
    except PlanNotFoundError:
        raise _plan_not_found(plan_id)


@router.post("", response_model=PlanResponse, status_code=201, summary="Create plan")
def create_plan(
    request: PlanCreate,
    admin: Principal = Depends(require_admin),
    catalog: PlanCatalog = Depends(get_plan_catalog),
) -> PlanResponse:
    plan = catalog.create_plan(request)
    logger.info("create_plan_success", plan_id=plan.id, admin_id=admin.user_id)
    return PlanResponse(plan=plan, message="Plan created successfully")


@router.put("/{plan_id}", response_model=PlanResponse, summary="Replace plan")
def update_plan(
    plan_id: int,
    request: PlanCreate,
    admin: Principal = Depends(require_admin),
    catalog: PlanCatalog = Depends(get_plan_catalog),
) -> PlanResponse:
    """Replace a plan's fields.

    Windows already computed for its subscriptions are left as they are.
    """
    try:
        plan = catalog.update_plan(plan_id, request)
    except PlanNotFoundError:
        raise _plan_not_found(plan_id)

    logger.info("update_plan_success", plan_id=plan.id, admin_id=admin.user_id)
    return PlanResponse(plan=plan, message="Plan updated successfully")


@router.delete("/{plan_id}", response_model=MessageResponse, summary="Delete plan")
def delete_plan(
    plan_id: int,
    admin: Principal = Depends(require_admin),
    catalog: PlanCatalog = Depends(get_plan_catalog),
) -> MessageResponse:
    """Delete a plan no subscription references.

    Raises:
        404: Plan not found
        400: Plan still referenced by subscriptions
    """
    try:
        catalog.delete_plan(plan_id)
    except PlanNotFoundError:
        raise _plan_not_found(plan_id)
    except PlanInUseError as e:
        raise HTTPException(
            status_code=400,
            detail={
                "error": "plan_in_use",
                "message": str(e),
                "subscription_count": e.subscription_count,
            },
        )

    logger.info("delete_plan_success", plan_id=plan_id, admin_id=admin.user_id)
    return MessageResponse(message="Plan deleted successfully")


@router.get(
    "/{plan_id}/subscribers",
    response_model=SubscriptionListResponse,
    summary="List plan subscribers",
)
def plan_subscribers(
    plan_id: int,
    _: Principal = Depends(require_admin),
    engine: SubscriptionEngine = Depends(get_subscription_engine),
) -> SubscriptionListResponse:
    try:
        subscriptions = engine.list_plan_subscribers(plan_id)
    except PlanNotFoundError:
        raise _plan_not_found(plan_id)
    return SubscriptionListResponse(count=len(subscriptions), subscriptions=subscriptions)
