"""
  Authentication and authorization

  Clients send the Firebase ID token as `Authorization: Bearer <token>`.
  The verified claims become a Principal whose role comes from the custom
  "role" claim (USER when absent).

  Public routes simply do not depend on get_current_principal.
"""
import logging

from fastapi import Depends, Request

from nicecommerce.api.container import Container
from nicecommerce.api.dependencies import get_container
from nicecommerce.domain.accounts import Principal, User
from nicecommerce.domain.exceptions import (
    AccessDeniedException,
    BusinessException,
    ResourceNotFoundException,
    UnauthorizedException,
)

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "
DEFAULT_ROLE = "USER"


def extract_bearer_token(header: str) -> str:
    if not header or not header.startswith(BEARER_PREFIX):
        raise UnauthorizedException("Missing or invalid Authorization header")
    token = header[len(BEARER_PREFIX):].strip()
    if not token:
        raise UnauthorizedException("Missing or invalid Authorization header")
    return token


async def get_current_principal(request: Request,
                                container: Container = Depends(get_container)) -> Principal:
    token = extract_bearer_token(request.headers.get("Authorization", ""))
    try:
        claims = await container.firebase.verify_token(token)
    except BusinessException as e:
        raise UnauthorizedException(e.message)

    principal = Principal(
        uid=claims.get("uid") or claims.get("sub"),
        email=claims.get("email"),
        role=claims.get("role") or DEFAULT_ROLE,
    )
    logger.debug("Authenticated %s as %s", principal.uid, principal.authority)
    return principal


async def require_admin(principal: Principal = Depends(get_current_principal)) -> Principal:
    if not principal.is_admin():
        raise AccessDeniedException("Admin role required")
    return principal


async def get_current_user(principal: Principal = Depends(get_current_principal),
                           container: Container = Depends(get_container)) -> User:
    """The local user row behind the principal. Also fills principal.user_id."""
    user = await container.user_service.find_user_by_email(principal.email) if principal.email else None
    if user is None:
        raise ResourceNotFoundException("User not found")
    principal.user_id = user.id
    return user


async def get_account_principal(principal: Principal = Depends(get_current_principal),
                                user: User = Depends(get_current_user)) -> Principal:
    """Principal with user_id resolved, for routes that check ownership."""
    return principal


def require_self_or_admin(principal: Principal, uid: str) -> None:
    """Account routes addressed by uid: the caller's own account, or any account for an ADMIN."""
    if principal.uid != uid and not principal.is_admin():
        raise AccessDeniedException("You can only manage your own account")
