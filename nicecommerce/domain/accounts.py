"""
  Account entities

  User mirrors the identity stored in Firebase plus local profile data
  (role, staff flags, last login). Passwords live only in Firebase.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


class UserRole(str, Enum):
    CUSTOMER = "CUSTOMER"
    ADMIN = "ADMIN"


class StaffRole(str, Enum):
    SUPER_ADMIN = "SUPER_ADMIN"
    SALES_MANAGER = "SALES_MANAGER"
    SUPPORT_AGENT = "SUPPORT_AGENT"
    LOGISTICS_COORDINATOR = "LOGISTICS_COORDINATOR"


@dataclass
class User:
    email: str
    id: Optional[int] = None
    firebase_uid: Optional[str] = None
    display_name: Optional[str] = None
    phone_number: Optional[str] = None
    email_verified: bool = False
    role: UserRole = UserRole.CUSTOMER
    staff_role: Optional[StaffRole] = None
    is_active: bool = True
    is_staff: bool = False
    is_superuser: bool = False
    last_login_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def prepare_for_save(self) -> None:
        """
        Normalize derived fields before an insert or update.

          - Blank display name → local part of the email ("User" without email)
          - ADMIN role always implies is_staff
          - CUSTOMER role clears is_staff unless the user is a superuser
        """
        if not self.display_name or not self.display_name.strip():
            self.display_name = self.email.split("@")[0] if self.email else "User"
        if self.role == UserRole.ADMIN:
            self.is_staff = True
        elif self.role == UserRole.CUSTOMER and not self.is_superuser:
            self.is_staff = False

    def is_staff_member(self) -> bool:
        return self.role == UserRole.ADMIN or self.is_staff or self.staff_role is not None

    @property
    def authority(self) -> str:
        if self.is_superuser:
            return "ROLE_SUPERUSER"
        if self.role == UserRole.ADMIN:
            return "ROLE_ADMIN"
        return "ROLE_USER"


@dataclass
class PasswordResetToken:
    """Single-use reset token. Expired or used tokens are never valid."""
    user_id: int
    token: str
    expires_at: datetime
    used: bool = False
    id: Optional[int] = None
    created_at: Optional[datetime] = None

    def is_valid(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now(timezone.utc)
        return not self.used and now < self.expires_at


@dataclass
class Principal:
    """The caller behind a verified Firebase ID token."""
    uid: str
    email: Optional[str] = None
    role: str = "USER"
    user_id: Optional[int] = None

    @property
    def authority(self) -> str:
        return f"ROLE_{self.role}"

    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value
