"""Account API.

Implements:
- POST /auth/register - Create a client or freelancer account
- POST /auth/token - Exchange email and password for an access token
"""

from fastapi import APIRouter, Depends, HTTPException

from freelance_plans.logging_config import get_logger
from freelance_plans.models import RegisterRequest, TokenRequest, TokenResponse, UserResponse
from freelance_plans.repositories.user_repository import (
    EmailAlreadyRegisteredError,
    UserRepository,
    get_user_repository,
)
from freelance_plans.security import hash_password, issue_access_token, verify_password

logger = get_logger(__name__)
router = APIRouter(tags=["Auth"], prefix="/auth")


@router.post("/register", response_model=UserResponse, status_code=201, summary="Register account")
def register(
    request: RegisterRequest,
    users: UserRepository = Depends(get_user_repository),
) -> UserResponse:
    """Create a client or freelancer account.

    Raises:
        409: Email already registered
    """
    try:
        user = users.create(
            email=request.email,
            password_hash=hash_password(request.password),
            role=request.role,
            first_name=request.first_name,
            last_name=request.last_name,
        )
    except EmailAlreadyRegisteredError:
        raise HTTPException(
            status_code=409,
            detail={"error": "email_taken", "message": "Email already registered"},
        )

    return UserResponse(**user.model_dump(include=set(UserResponse.model_fields)))


@router.post("/token", response_model=TokenResponse, summary="Issue access token")
def issue_token(
    request: TokenRequest,
    users: UserRepository = Depends(get_user_repository),
) -> TokenResponse:
    """Exchange credentials for a bearer token.

    Raises:
        401: Unknown email or wrong password
    """
    credentials = users.get_credentials(request.email)
    if credentials is None or not verify_password(request.password, credentials[1]):
        logger.info("login_failed", email_domain=request.email.rpartition("@")[2])
        raise HTTPException(
            status_code=401,
            detail={"error": "invalid_credentials", "message": "Invalid email or password"},
        )

    return issue_access_token(credentials[0])
