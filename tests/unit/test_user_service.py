"""
Unit tests for UserService + FirebaseAuthService.

Firebase is the fake auth client from tests/fakes.py, which raises the real
firebase_admin exception types, so the error translation in
FirebaseAuthService runs for real.
"""
import pytest

from nicecommerce.api.schemas.account import (
    PasswordResetRequest,
    SignInRequest,
    SignUpRequest,
    UpdateUserRequest,
)
from nicecommerce.domain.accounts import UserRole
from nicecommerce.domain.exceptions import BusinessException, ResourceNotFoundException

pytestmark = pytest.mark.asyncio


def _sign_up(email="ana@example.com", **kwargs) -> SignUpRequest:
    return SignUpRequest(email=email, password="s3cretpass", **kwargs)


class TestSignUp:
    async def test_creates_firebase_and_local_user(self, backend):
        dto = await backend.user_service.sign_up(_sign_up(display_name="Ana", phone_number="+5491155550000"))

        record = backend.auth_client.users[dto.firebase_uid]
        assert record.custom_claims == {"role": "CUSTOMER"}
        stored = await backend.users.find_by_email("ana@example.com")
        assert stored.role == UserRole.CUSTOMER
        assert stored.display_name == "Ana"
        assert stored.phone_number == "+5491155550000"
        assert stored.is_active is True

    async def test_display_name_defaults_to_email_local_part(self, backend):
        dto = await backend.user_service.sign_up(_sign_up())
        assert dto.display_name == "ana"

    async def test_local_duplicate_never_reaches_firebase(self, backend, make_user):
        await make_user("ana@example.com")
        firebase_users = len(backend.auth_client.users)

        with pytest.raises(BusinessException, match="Email already exists"):
            await backend.user_service.sign_up(_sign_up())
        assert len(backend.auth_client.users) == firebase_users

    async def test_firebase_duplicate_is_a_business_error(self, backend):
        backend.auth_client.add_user("ana@example.com")
        with pytest.raises(BusinessException, match="Email already exists"):
            await backend.user_service.sign_up(_sign_up())
        assert await backend.users.find_by_email("ana@example.com") is None

    async def test_other_firebase_errors_are_wrapped(self, backend):
        backend.auth_client.unavailable = True
        with pytest.raises(BusinessException, match="Failed to create user"):
            await backend.user_service.sign_up(_sign_up())


class TestSignIn:
    async def test_sets_last_login(self, backend, make_user):
        user, token = await make_user()
        response = await backend.user_service.sign_in(SignInRequest(id_token=token))

        assert response.email == user.email
        assert response.custom_claims["role"] == "CUSTOMER"
        stored = await backend.users.find_by_id(user.id)
        assert stored.last_login_at is not None

    async def test_creates_local_user_for_firebase_only_account(self, backend):
        record = backend.auth_client.add_user("new@example.com", display_name="New")
        token = backend.auth_client.issue_token(record.uid)

        await backend.user_service.sign_in(SignInRequest(id_token=token))

        stored = await backend.users.find_by_email("new@example.com")
        assert stored.firebase_uid == record.uid
        assert stored.role == UserRole.CUSTOMER
        assert stored.last_login_at is not None

    async def test_finds_local_user_by_firebase_uid_after_email_change(self, backend, make_user):
        user, token = await make_user()
        backend.auth_client.users[user.firebase_uid].email = "renamed@example.com"

        await backend.user_service.sign_in(SignInRequest(id_token=token))

        assert len(backend.users.all()) == 1
        assert (await backend.users.find_by_id(user.id)).last_login_at is not None

    async def test_firebase_account_without_email_is_not_stored(self, backend):
        for _ in range(2):
            record = backend.auth_client.add_user(None)
            await backend.user_service.sign_in(SignInRequest(id_token=backend.auth_client.issue_token(record.uid)))

        assert backend.users.all() == []

    async def test_bad_token(self, backend):
        with pytest.raises(BusinessException, match="Invalid or expired token"):
            await backend.user_service.sign_in(SignInRequest(id_token="forged"))


class TestLookups:
    async def test_get_user_by_id_is_cached(self, backend, make_user):
        user, _ = await make_user()
        first = await backend.user_service.get_user_by_id(user.id)
        second = await backend.user_service.get_user_by_id(user.id)
        assert first == second
        assert backend.cache.stats("users").hits == 1

    async def test_unknown_user(self, backend):
        with pytest.raises(ResourceNotFoundException):
            await backend.user_service.get_user_by_id(404)
        with pytest.raises(ResourceNotFoundException):
            await backend.user_service.get_current_user("ghost@example.com")


class TestUpdateUser:
    async def test_updates_both_sides_and_merges_role_claim(self, backend, make_user):
        user, _ = await make_user()
        backend.auth_client.users[user.firebase_uid].custom_claims = {"role": "CUSTOMER", "tier": "gold"}
        await backend.user_service.get_user_by_id(user.id)

        response = await backend.user_service.update_user(
            user.firebase_uid, UpdateUserRequest(display_name="Ana B", role=UserRole.ADMIN)
        )

        assert response.custom_claims == {"role": "ADMIN", "tier": "gold"}
        assert response.display_name == "Ana B"
        dto = await backend.user_service.get_user_by_id(user.id)
        assert dto.role == UserRole.ADMIN
        assert dto.is_staff is True
        assert dto.display_name == "Ana B"

    async def test_email_change_updates_local_user(self, backend, make_user):
        user, _ = await make_user("old@example.com")

        response = await backend.user_service.update_user(
            user.firebase_uid, UpdateUserRequest(email="new@example.com")
        )

        assert response.email == "new@example.com"
        assert backend.auth_client.users[user.firebase_uid].email == "new@example.com"
        assert (await backend.users.find_by_id(user.id)).email == "new@example.com"
        assert await backend.users.find_by_email("old@example.com") is None

    async def test_unknown_uid(self, backend):
        with pytest.raises(ResourceNotFoundException):
            await backend.user_service.update_user("missing", UpdateUserRequest(display_name="x"))

    async def test_firebase_untouched_without_local_user(self, backend):
        record = backend.auth_client.add_user("firebase-only@example.com")

        with pytest.raises(ResourceNotFoundException):
            await backend.user_service.update_user(record.uid, UpdateUserRequest(display_name="x"))
        assert backend.auth_client.users[record.uid].display_name is None


class TestSessionsAndRecovery:
    async def test_sign_out_revokes_tokens(self, backend, make_user):
        user, token = await make_user()
        await backend.user_service.sign_out(user.firebase_uid)

        assert user.firebase_uid in backend.auth_client.revoked
        with pytest.raises(BusinessException):
            await backend.firebase.verify_token(token)

    async def test_recover_password_stores_reset_token(self, backend, make_user):
        user, _ = await make_user()
        await backend.user_service.recover_password(PasswordResetRequest(email=user.email))

        assert len(backend.auth_client.reset_links) == 1
        [token] = backend.reset_tokens.all()
        assert token.user_id == user.id
        assert token.is_valid()

    async def test_recover_password_for_unknown_email_is_silent(self, backend):
        await backend.user_service.recover_password(PasswordResetRequest(email="ghost@example.com"))
        assert backend.reset_tokens.all() == []

    async def test_delete_user_deactivates_local_row(self, backend, make_user):
        user, _ = await make_user()
        await backend.user_service.delete_user(user.firebase_uid)

        assert user.firebase_uid not in backend.auth_client.users
        stored = await backend.users.find_by_id(user.id)
        assert stored.is_active is False
