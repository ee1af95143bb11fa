"""FastAPI dependencies for authentication and role guards.

Role checks run before any engine call: a missing or invalid bearer token
is 401, a valid token with the wrong role is 403.
"""

from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from freelance_plans.logging_config import bind_context, get_logger
from freelance_plans.models.user import Principal, Role
from freelance_plans.security import InvalidTokenError, decode_access_token
from freelance_plans.services.access_policy import (
    EMAIL_NOT_VERIFIED,
    USER_NOT_FOUND,
    AccessPolicy,
    get_access_policy,
)

logger = get_logger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def get_current_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Principal:
    """Decode the bearer token into the calling principal.

    Raises:
        HTTPException 401: token missing, expired, or invalid
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": "unauthorized", "message": "Missing authorization token"},
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        principal = decode_access_token(credentials.credentials)
    except InvalidTokenError as e:
        logger.info("token_rejected", reason=str(e))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": "unauthorized", "message": str(e)},
            headers={"WWW-Authenticate": "Bearer"},
        )

    bind_context(user_id=principal.user_id)
    return principal


def _require_role(principal: Principal, role: Role, label: str) -> Principal:
    if principal.role != role:
        logger.info(
            "role_rejected",
            user_id=principal.user_id,
            role=principal.role.name.lower(),
            required=role.name.lower(),
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"error": "forbidden", "message": f"Forbidden - {label} only"},
        )
    return principal


def require_admin(principal: Principal = Depends(get_current_principal)) -> Principal:
    return _require_role(principal, Role.ADMIN, "Admins")


def require_freelancer(principal: Principal = Depends(get_current_principal)) -> Principal:
    return _require_role(principal, Role.FREELANCER, "Freelancers")


def require_verified_with_subscription(
    principal: Principal = Depends(get_current_principal),
    policy: AccessPolicy = Depends(get_access_policy),
) -> Principal:
    """Gate for subscription-only features.

    Admins and clients pass. Freelancers need a verified email and an
    entitling subscription. The user row is re-read on every request, so
    the token's verified flag is not trusted.
    """
    decision = policy.check_feature_access(principal.user_id)
    if decision.allowed:
        return principal

    if decision.reason == USER_NOT_FOUND:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error": "user_not_found", "message": "User not found"},
        )
    if decision.reason == EMAIL_NOT_VERIFIED:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"error": "email_not_verified", "message": "Please verify your email first"},
        )
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail={
            "error": "no_active_subscription",
            "message": "You need an active subscription plan to use this feature",
        },
    )
