"""
  User and password reset token persistence.
"""
from datetime import datetime, timezone
from typing import Optional

import asyncpg

from nicecommerce.domain.accounts import PasswordResetToken, StaffRole, User, UserRole
from nicecommerce.infrastructure.database import Database

_USER_COLUMNS = """
    id, firebase_uid, email, display_name, phone_number, email_verified, role,
    staff_role, is_active, is_staff, is_superuser, last_login_at, created_at, updated_at
"""


def _row_to_user(row: asyncpg.Record) -> User:
    return User(
        id=row["id"],
        firebase_uid=row["firebase_uid"],
        email=row["email"],
        display_name=row["display_name"],
        phone_number=row["phone_number"],
        email_verified=row["email_verified"],
        role=UserRole(row["role"]),
        staff_role=StaffRole(row["staff_role"]) if row["staff_role"] else None,
        is_active=row["is_active"],
        is_staff=row["is_staff"],
        is_superuser=row["is_superuser"],
        last_login_at=row["last_login_at"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class UserRepository:
    def __init__(self, db: Database):
        self._db = db

    async def find_by_id(self, user_id: int) -> Optional[User]:
        async with self._db.connection() as conn:
            row = await conn.fetchrow(f"SELECT {_USER_COLUMNS} FROM users WHERE id = $1", user_id)
        return _row_to_user(row) if row else None

    async def find_by_email(self, email: str) -> Optional[User]:
        async with self._db.connection() as conn:
            row = await conn.fetchrow(
                f"SELECT {_USER_COLUMNS} FROM users WHERE LOWER(email) = LOWER($1)", email
            )
        return _row_to_user(row) if row else None

    async def find_by_firebase_uid(self, uid: str) -> Optional[User]:
        async with self._db.connection() as conn:
            row = await conn.fetchrow(f"SELECT {_USER_COLUMNS} FROM users WHERE firebase_uid = $1", uid)
        return _row_to_user(row) if row else None

    async def exists_by_email(self, email: str) -> bool:
        async with self._db.connection() as conn:
            found = await conn.fetchval("SELECT 1 FROM users WHERE LOWER(email) = LOWER($1)", email)
        return bool(found)

    async def save(self, user: User) -> User:
        """Insert when `user.id` is None, update otherwise. Returns the stored row."""
        user.prepare_for_save()
        async with self._db.connection() as conn:
            if user.id is None:
                row = await conn.fetchrow(
                    f"""
                    INSERT INTO users (
                        firebase_uid, email, display_name, phone_number, email_verified, role,
                        staff_role, is_active, is_staff, is_superuser, last_login_at
                    ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11)
                    RETURNING {_USER_COLUMNS}
                    """,
                    user.firebase_uid, user.email, user.display_name, user.phone_number,
                    user.email_verified, user.role.value,
                    user.staff_role.value if user.staff_role else None,
                    user.is_active, user.is_staff, user.is_superuser, user.last_login_at,
                )
            else:
                row = await conn.fetchrow(
                    f"""
                    UPDATE users SET
                        firebase_uid = $2, email = $3, display_name = $4, phone_number = $5,
                        email_verified = $6, role = $7, staff_role = $8, is_active = $9,
                        is_staff = $10, is_superuser = $11, last_login_at = $12, updated_at = NOW()
                    WHERE id = $1
                    RETURNING {_USER_COLUMNS}
                    """,
                    user.id, user.firebase_uid, user.email, user.display_name, user.phone_number,
                    user.email_verified, user.role.value,
                    user.staff_role.value if user.staff_role else None,
                    user.is_active, user.is_staff, user.is_superuser, user.last_login_at,
                )
        return _row_to_user(row)


def _row_to_token(row: asyncpg.Record) -> PasswordResetToken:
    return PasswordResetToken(
        id=row["id"],
        user_id=row["user_id"],
        token=row["token"],
        expires_at=row["expires_at"],
        used=row["used"],
        created_at=row["created_at"],
    )


class PasswordResetTokenRepository:
    def __init__(self, db: Database):
        self._db = db

    async def save(self, token: PasswordResetToken) -> PasswordResetToken:
        async with self._db.connection() as conn:
            row = await conn.fetchrow(
                """
                INSERT INTO password_reset_tokens (user_id, token, expires_at, used)
                VALUES ($1, $2, $3, $4)
                RETURNING id, user_id, token, expires_at, used, created_at
                """,
                token.user_id, token.token, token.expires_at, token.used,
            )
        return _row_to_token(row)

    async def find_by_token(self, token: str) -> Optional[PasswordResetToken]:
        async with self._db.connection() as conn:
            row = await conn.fetchrow(
                "SELECT id, user_id, token, expires_at, used, created_at "
                "FROM password_reset_tokens WHERE token = $1",
                token,
            )
        return _row_to_token(row) if row else None

    async def find_valid(self, token: str, now: Optional[datetime] = None) -> Optional[PasswordResetToken]:
        async with self._db.connection() as conn:
            row = await conn.fetchrow(
                """
                SELECT id, user_id, token, expires_at, used, created_at
                FROM password_reset_tokens
                WHERE token = $1 AND used = FALSE AND expires_at > $2
                """,
                token, now or datetime.now(timezone.utc),
            )
        return _row_to_token(row) if row else None

    async def mark_used(self, token_id: int) -> None:
        async with self._db.connection() as conn:
            await conn.execute(
                "UPDATE password_reset_tokens SET used = TRUE, updated_at = NOW() WHERE id = $1",
                token_id,
            )

    async def delete_expired(self, now: Optional[datetime] = None) -> int:
        async with self._db.connection() as conn:
            status = await conn.execute(
                "DELETE FROM password_reset_tokens WHERE expires_at < $1",
                now or datetime.now(timezone.utc),
            )
        # asyncpg returns the command tag, e.g. "DELETE 3"
        return int(status.split()[-1])
