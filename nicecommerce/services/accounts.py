"""
  User Service

  Keeps the local users table in step with Firebase. Firebase owns the
  credentials; the local row carries role, staff flags and login history.
"""
import logging
import secrets
from datetime import datetime, timedelta, timezone

from nicecommerce.api.schemas.account import (
    PasswordResetRequest,
    SignInRequest,
    SignInResponse,
    SignUpRequest,
    UpdateUserRequest,
    UpdateUserResponse,
    UserDTO,
)
from nicecommerce.domain.accounts import PasswordResetToken, User, UserRole
from nicecommerce.domain.exceptions import BusinessException, ResourceNotFoundException
from nicecommerce.infrastructure.cache import USERS, CacheManager

logger = logging.getLogger(__name__)


class UserService:
    def __init__(self, users, reset_tokens, firebase, cache: CacheManager,
                 password_reset_ttl_minutes: int = 60):
        self._users = users
        self._reset_tokens = reset_tokens
        self._firebase = firebase
        self._cache = cache
        self._reset_ttl = timedelta(minutes=password_reset_ttl_minutes)

    async def sign_up(self, request: SignUpRequest) -> UserDTO:
        """
        Register a user in Firebase and the local database.

        The local check runs first so a duplicate email never reaches Firebase.
        """
        if await self._users.exists_by_email(request.email):
            raise BusinessException("Email already exists")

        record = await self._firebase.create_user(request)

        user = User(
            firebase_uid=record.uid,
            email=record.email or request.email,
            display_name=record.display_name or request.display_name,
            phone_number=record.phone_number or request.phone_number,
            email_verified=bool(record.email_verified),
            role=UserRole.CUSTOMER,
            is_active=not record.disabled,
        )
        user = await self._users.save(user)
        logger.info("User registered in Firebase and local DB - email: %s", user.email)
        return UserDTO.from_user(user)

    async def sign_in(self, request: SignInRequest) -> SignInResponse:
        response = await self._firebase.sign_in(request.id_token)

        user = await self._users.find_by_firebase_uid(response.uid)
        if user is None and response.email:
            user = await self._users.find_by_email(response.email)
        if user is None:
            if not response.email:
                logger.warning("Firebase account without email not stored locally - uid: %s", response.uid)
                return response
            # the account was created directly in Firebase
            user = User(
                firebase_uid=response.uid,
                email=response.email,
                display_name=response.display_name,
                phone_number=response.phone_number,
                email_verified=response.email_verified,
                role=UserRole.CUSTOMER,
                is_active=True,
            )
        elif not user.firebase_uid:
            user.firebase_uid = response.uid
        user.last_login_at = datetime.now(timezone.utc)
        await self._users.save(user)
        return response

    async def get_user_by_id(self, user_id: int) -> UserDTO:
        async def load():
            user = await self._users.find_by_id(user_id)
            if user is None:
                raise ResourceNotFoundException(f"User not found with id: {user_id}")
            return UserDTO.from_user(user)

        return await self._cache.get_or_load(USERS, user_id, load)

    async def get_current_user(self, email: str) -> UserDTO:
        user = await self._users.find_by_email(email)
        if user is None:
            raise ResourceNotFoundException("User not found")
        return UserDTO.from_user(user)

    async def find_user_by_email(self, email: str):
        return await self._users.find_by_email(email)

    async def update_user(self, uid: str, request: UpdateUserRequest) -> UpdateUserResponse:
        user = await self._users.find_by_firebase_uid(uid)
        if user is None:
            raise ResourceNotFoundException("User not found")

        record = await self._firebase.update_user(uid, request)

        if request.email:
            user.email = request.email
        if request.display_name is not None:
            user.display_name = request.display_name
        if request.phone_number is not None:
            user.phone_number = request.phone_number
        if request.email_verified is not None:
            user.email_verified = request.email_verified
        if request.role is not None:
            user.role = request.role

        user = await self._users.save(user)
        self._cache.evict(USERS, user.id)
        logger.info("User updated in Firebase and local DB - email: %s", user.email)

        return UpdateUserResponse(
            uid=record.uid,
            email=record.email,
            display_name=record.display_name,
            phone_number=record.phone_number,
            email_verified=bool(record.email_verified),
            disabled=bool(record.disabled),
            custom_claims=dict(record.custom_claims or {}),
        )

    async def sign_out(self, uid: str) -> None:
        await self._firebase.sign_out(uid)
        logger.info("User signed out - uid: %s", uid)

    async def recover_password(self, request: PasswordResetRequest) -> None:
        await self._firebase.send_password_reset_email(request.email)

        user = await self._users.find_by_email(request.email)
        if user is not None:
            token = PasswordResetToken(
                user_id=user.id,
                token=secrets.token_urlsafe(32),
                expires_at=datetime.now(timezone.utc) + self._reset_ttl,
            )
            await self._reset_tokens.save(token)
        logger.info("Password reset requested - email: %s", request.email)

    async def delete_user(self, uid: str) -> None:
        """Remove the Firebase account and deactivate the local user."""
        await self._firebase.delete_user(uid)

        user = await self._users.find_by_firebase_uid(uid)
        if user is not None:
            user.is_active = False
            await self._users.save(user)
            self._cache.evict(USERS, user.id)
        logger.info("User deleted - uid: %s", uid)
