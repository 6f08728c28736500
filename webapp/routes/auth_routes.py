"""Authentication API routes."""

from fastapi import APIRouter, Depends, Response, status

from webapp.auth import TOKEN_COOKIE_NAME
from webapp.container import ServiceContainer, get_container
from webapp.schemas.auth import (
    RegisterRequest,
    RegisterResponse,
    LoginRequest,
    LoginResponse,
    UserResponse,
)
from webapp.schemas.common import ERROR_RESPONSES, SuccessResponse

router = APIRouter(prefix="/auth", tags=["Authentication"], responses=ERROR_RESPONSES)


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
def register(request: RegisterRequest, container: ServiceContainer = Depends(get_container)):
    """
    Register a new user account.

    Parameters:
        - email: Unique email address (case-insensitive)
        - password: At least 8 characters (hashed before storage)

    Returns:
        - userId: UUID of created user
        - email: Normalized email

    Raises:
        - 400: Malformed email or short password
        - 409: Email already registered
    """
    user = container.auth_service.register_user(request.email, request.password)
    return RegisterResponse(user_id=user.user_id, email=user.email)


@router.post("/login", response_model=LoginResponse)
def login(request: LoginRequest, response: Response, container: ServiceContainer = Depends(get_container)):
    """
    Authenticate user and issue an access token.

    The token is returned in the body and also set as an http-only cookie.

    Raises:
        - 401: Invalid credentials
    """
    token, user = container.auth_service.login_user(request.email, request.password)

    response.set_cookie(
        key=TOKEN_COOKIE_NAME,
        value=token,
        max_age=container.settings.token_ttl_seconds,
        httponly=True,
        secure=container.settings.cookie_secure,
        samesite="lax",
    )
    return LoginResponse(token=token, user=UserResponse(user_id=user.user_id, email=user.email))


@router.post("/logout", response_model=SuccessResponse)
def logout(response: Response, container: ServiceContainer = Depends(get_container)):
    """
    Clear the token cookie. Issued tokens stay valid until they expire.
    """
    response.delete_cookie(
        key=TOKEN_COOKIE_NAME,
        httponly=True,
        secure=container.settings.cookie_secure,
        samesite="lax",
    )
    return SuccessResponse(message="Logged out")
