"""Pydantic models for API requests, responses, and domain objects."""

# Configuration models
from .settings import (
    PlanDefinition,
    DatabaseSettings,
    AuthSettings,
    ServiceSettings,
    AppSettings,
)

# Plan catalog models
from .plan import (
    Plan,
    PlanWithCount,
    PlanSubscriptionCount,
    PlanCreate,
)

# Subscription models
from .subscription import (
    SubscriptionStatus,
    OPEN_STATUSES,
    can_transition,
    sources_of,
    Subscription,
    SubscriptionDetail,
    SubscriptionStatusView,
)

# User models
from .user import (
    Role,
    User,
    Principal,
)

# API request models
from .api_request import (
    SubscribeRequest,
    AdminUpdateSubscriptionRequest,
    AssignSubscriptionRequest,
    ActivateSubscriptionRequest,
    RegisterRequest,
    TokenRequest,
)

# API response models
from .api_response import (
    PlanListResponse,
    PlanCountListResponse,
    PlanResponse,
    PlanCountsResponse,
    SubscriptionResponse,
    ActiveSubscriptionResponse,
    SubscriptionListResponse,
    SubscriptionStatusResponse,
    MessageResponse,
    SweepResponse,
    TokenResponse,
    UserResponse,
    ErrorResponse,
)

__all__ = [
    # Configuration
    "PlanDefinition",
    "DatabaseSettings",
    "AuthSettings",
    "ServiceSettings",
    "AppSettings",
    # Plans
    "Plan",
    "PlanWithCount",
    "PlanSubscriptionCount",
    "PlanCreate",
    # Subscriptions
    "SubscriptionStatus",
    "OPEN_STATUSES",
    "can_transition",
    "sources_of",
    "Subscription",
    "SubscriptionDetail",
    "SubscriptionStatusView",
    # Users
    "Role",
    "User",
    "Principal",
    # API requests
    "SubscribeRequest",
    "AdminUpdateSubscriptionRequest",
    "AssignSubscriptionRequest",
    "ActivateSubscriptionRequest",
    "RegisterRequest",
    "TokenRequest",
    # API responses
    "PlanListResponse",
    "PlanCountListResponse",
    "PlanResponse",
    "PlanCountsResponse",
    "SubscriptionResponse",
    "ActiveSubscriptionResponse",
    "SubscriptionListResponse",
    "SubscriptionStatusResponse",
    "MessageResponse",
    "SweepResponse",
    "TokenResponse",
    "UserResponse",
    "ErrorResponse",
]
