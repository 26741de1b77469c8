"""
  Auth API Routes

  Sign-up, sign-in and account maintenance backed by Firebase:
    - POST /api/auth/signup
    - POST /api/auth/signin
    - POST /api/auth/signout/{uid} (own uid or admin)
    - PUT  /api/auth/users/{uid} (own uid or admin; role changes admin only)
    - POST /api/auth/password/reset
    - GET  /api/auth/me (authenticated)
"""
from fastapi import APIRouter, Depends, Response, status

from nicecommerce.api.dependencies import get_user_service
from nicecommerce.api.schemas.account import (
    PasswordResetRequest,
    SignInRequest,
    SignInResponse,
    SignUpRequest,
    UpdateUserRequest,
    UpdateUserResponse,
    UserDTO,
)
from nicecommerce.api.security import get_current_principal, require_self_or_admin
from nicecommerce.domain.accounts import Principal
from nicecommerce.domain.exceptions import AccessDeniedException, ResourceNotFoundException
from nicecommerce.services.accounts import UserService

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post(
    "/signup",
    response_model=UserDTO,
    status_code=status.HTTP_200_OK,
    summary="Register a new user",
)
async def sign_up(
    request: SignUpRequest,
    users: UserService = Depends(get_user_service),
) -> UserDTO:
    return await users.sign_up(request)


@router.post("/signin", response_model=SignInResponse, summary="Sign in with a Firebase ID token")
async def sign_in(
    request: SignInRequest,
    users: UserService = Depends(get_user_service),
) -> SignInResponse:
    return await users.sign_in(request)


@router.post("/signout/{uid}", summary="Revoke all sessions of a user")
async def sign_out(
    uid: str,
    principal: Principal = Depends(get_current_principal),
    users: UserService = Depends(get_user_service),
) -> Response:
    require_self_or_admin(principal, uid)
    await users.sign_out(uid)
    return Response(status_code=status.HTTP_200_OK)


@router.put("/users/{uid}", response_model=UpdateUserResponse, summary="Update a user")
async def update_user(
    uid: str,
    request: UpdateUserRequest,
    principal: Principal = Depends(get_current_principal),
    users: UserService = Depends(get_user_service),
) -> UpdateUserResponse:
    require_self_or_admin(principal, uid)
    if request.role is not None and not principal.is_admin():
        raise AccessDeniedException("Admin role required to change roles")
    return await users.update_user(uid, request)


@router.post("/password/reset", summary="Send a password reset email")
async def recover_password(
    request: PasswordResetRequest,
    users: UserService = Depends(get_user_service),
) -> Response:
    await users.recover_password(request)
    return Response(status_code=status.HTTP_200_OK)


@router.get("/me", response_model=UserDTO, summary="Current user profile")
async def me(
    principal: Principal = Depends(get_current_principal),
    users: UserService = Depends(get_user_service),
) -> UserDTO:
    if not principal.email:
        raise ResourceNotFoundException("User not found")
    return await users.get_current_user(principal.email)
