"""
  Firebase Authentication

  Passwords and sessions live in Firebase. This module wraps the
  firebase-admin `auth` API and translates SDK errors into our exceptions:

    - user not found            → ResourceNotFoundException
    - email already registered  → BusinessException
    - any other FirebaseError   → BusinessException("Failed to <action>: ...")

  The SDK is blocking (HTTP calls to Google), so every call runs in a worker
  thread via asyncio.to_thread.
"""
import asyncio
import logging
from typing import Any, Optional

import firebase_admin
from firebase_admin import auth, credentials
from firebase_admin.exceptions import FirebaseError

from nicecommerce.api.schemas.account import SignInResponse, SignUpRequest, UpdateUserRequest
from nicecommerce.config import Settings
from nicecommerce.domain.exceptions import BusinessException, ResourceNotFoundException

logger = logging.getLogger(__name__)

DEFAULT_ROLE_CLAIM = "CUSTOMER"


def init_firebase(settings: Settings) -> firebase_admin.App:
    """Initialise the default Firebase app once per process."""
    try:
        return firebase_admin.get_app()
    except ValueError:
        pass
    if settings.firebase_credentials_path:
        cred = credentials.Certificate(settings.firebase_credentials_path)
        logger.info("Firebase initialised from credentials file")
    else:
        cred = credentials.ApplicationDefault()
        logger.info("Firebase initialised with application default credentials")
    options = {"projectId": settings.firebase_project_id} if settings.firebase_project_id else None
    return firebase_admin.initialize_app(cred, options)


class FirebaseAuthService:
    def __init__(self, app: Optional[firebase_admin.App] = None, auth_client=auth):
        """
        Args:
            app: Firebase app (None → default app)
            auth_client: object exposing the firebase_admin.auth functions
        """
        self._app = app
        self._auth = auth_client

    async def _call(self, fn, *args, **kwargs):
        return await asyncio.to_thread(fn, *args, app=self._app, **kwargs)

    async def create_user(self, request: SignUpRequest):
        kwargs: dict[str, Any] = {
            "email": request.email,
            "password": request.password,
            "email_verified": False,
            "disabled": False,
        }
        if request.display_name:
            kwargs["display_name"] = request.display_name
        if request.phone_number:
            kwargs["phone_number"] = request.phone_number

        try:
            record = await self._call(self._auth.create_user, **kwargs)
            await self._call(self._auth.set_custom_user_claims, record.uid, {"role": DEFAULT_ROLE_CLAIM})
        except auth.EmailAlreadyExistsError:
            raise BusinessException("Email already exists")
        except FirebaseError as e:
            logger.error("Error creating Firebase user: %s", e)
            raise BusinessException(f"Failed to create user: {e}")
        logger.info("Firebase user created: %s", record.uid)
        return record

    async def update_user(self, uid: str, request: UpdateUserRequest):
        """Apply only the fields present in `request`. A role is merged into the custom claims."""
        try:
            existing = await self._call(self._auth.get_user, uid)

            kwargs: dict[str, Any] = {}
            if request.email:
                kwargs["email"] = request.email
            if request.display_name is not None:
                kwargs["display_name"] = request.display_name
            if request.phone_number is not None:
                kwargs["phone_number"] = request.phone_number
            if request.password:
                kwargs["password"] = request.password
            if request.email_verified is not None:
                kwargs["email_verified"] = request.email_verified
            if request.role is not None:
                claims = dict(existing.custom_claims or {})
                claims["role"] = request.role.value
                kwargs["custom_claims"] = claims

            record = await self._call(self._auth.update_user, uid, **kwargs)
        except auth.UserNotFoundError:
            raise ResourceNotFoundException(f"User not found with uid: {uid}")
        except auth.EmailAlreadyExistsError:
            raise BusinessException("Email already exists")
        except FirebaseError as e:
            logger.error("Error updating Firebase user: %s", e)
            raise BusinessException(f"Failed to update user: {e}")
        logger.info("Firebase user updated: %s", record.uid)
        return record

    async def verify_token(self, id_token: str) -> dict[str, Any]:
        """
        Decode and verify a Firebase ID token.

        Raises:
            BusinessException: token invalid, expired or revoked
        """
        try:
            decoded = await self._call(self._auth.verify_id_token, id_token)
        except (ValueError, FirebaseError) as e:
            logger.warning("Error verifying Firebase token: %s", e)
            raise BusinessException(f"Invalid or expired token: {e}")
        logger.debug("Firebase token verified for user: %s", decoded.get("uid"))
        return decoded

    async def sign_in(self, id_token: str) -> SignInResponse:
        decoded = await self.verify_token(id_token)
        try:
            record = await self._call(self._auth.get_user, decoded["uid"])
        except FirebaseError as e:
            logger.error("Error getting user from Firebase: %s", e)
            raise BusinessException(f"Failed to get user information: {e}")
        return SignInResponse(
            uid=record.uid,
            email=record.email,
            display_name=record.display_name,
            email_verified=bool(record.email_verified),
            phone_number=record.phone_number,
            photo_url=record.photo_url,
            custom_claims=dict(decoded),
        )

    async def sign_out(self, uid: str) -> None:
        """Revoke every refresh token, ending all sessions of the user."""
        try:
            await self._call(self._auth.revoke_refresh_tokens, uid)
        except auth.UserNotFoundError:
            raise ResourceNotFoundException(f"User not found with uid: {uid}")
        except FirebaseError as e:
            logger.error("Error signing out Firebase user: %s", e)
            raise BusinessException(f"Failed to sign out user: {e}")
        logger.info("Firebase user signed out (tokens revoked): %s", uid)

    async def send_password_reset_email(self, email: str) -> None:
        try:
            link = await self._call(self._auth.generate_password_reset_link, email)
        except auth.UserNotFoundError:
            # reported as success so callers cannot tell which emails exist
            logger.warning("Password reset requested for non-existent user: %s", email)
            return
        except FirebaseError as e:
            logger.error("Error sending password reset email: %s", e)
            raise BusinessException(f"Failed to send password reset email: {e}")
        logger.info("Password reset link generated for: %s", email)
        logger.debug("Password reset link: %s", link)

    async def get_user_by_uid(self, uid: str):
        try:
            return await self._call(self._auth.get_user, uid)
        except auth.UserNotFoundError:
            raise ResourceNotFoundException(f"User not found with uid: {uid}")
        except FirebaseError as e:
            logger.error("Error getting Firebase user: %s", e)
            raise BusinessException(f"Failed to get user: {e}")

    async def get_user_by_email(self, email: str):
        try:
            return await self._call(self._auth.get_user_by_email, email)
        except auth.UserNotFoundError:
            raise ResourceNotFoundException(f"User not found with email: {email}")
        except FirebaseError as e:
            logger.error("Error getting Firebase user by email: %s", e)
            raise BusinessException(f"Failed to get user: {e}")

    async def delete_user(self, uid: str) -> None:
        try:
            await self._call(self._auth.delete_user, uid)
        except auth.UserNotFoundError:
            raise ResourceNotFoundException(f"User not found with uid: {uid}")
        except FirebaseError as e:
            logger.error("Error deleting Firebase user: %s", e)
            raise BusinessException(f"Failed to delete user: {e}")
        logger.info("Firebase user deleted: %s", uid)
