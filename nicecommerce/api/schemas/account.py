"""
  Account Schemas (DTOs)

  Requests and responses for sign-up, sign-in, profile updates and password
  recovery. Passwords only ever travel inbound; no response carries one.
"""
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from nicecommerce.domain.accounts import StaffRole, User, UserRole

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class SignUpRequest(BaseModel):
    """
    Request body for creating an account.

    Example:
    {
        "email": "ana@example.com",
        "password": "s3cretpass",
        "display_name": "Ana",
        "phone_number": "+5491155550000"
    }
    """
    email: str = Field(..., pattern=EMAIL_PATTERN, max_length=255, description="Login email")
    password: str = Field(..., min_length=8, description="At least 8 characters")
    display_name: Optional[str] = Field(default=None, max_length=255)
    phone_number: Optional[str] = Field(default=None, max_length=20)

    class Config:
        json_schema_extra = {
            "example": {
                "email": "ana@example.com",
                "password": "s3cretpass",
                "display_name": "Ana",
                "phone_number": "+5491155550000",
            }
        }


class SignInRequest(BaseModel):
    """The client signs in with Firebase and sends us the resulting ID token."""
    id_token: str = Field(..., min_length=1, description="Firebase ID token")

    @field_validator("id_token")
    @classmethod
    def not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("ID token is required")
        return value


class SignInResponse(BaseModel):
    uid: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    email_verified: bool = False
    phone_number: Optional[str] = None
    photo_url: Optional[str] = None
    custom_claims: dict[str, Any] = Field(default_factory=dict)


class UpdateUserRequest(BaseModel):
    """Every field is optional; only the ones sent are applied."""
    email: Optional[str] = Field(default=None, pattern=EMAIL_PATTERN, max_length=255)
    display_name: Optional[str] = Field(default=None, max_length=255)
    phone_number: Optional[str] = Field(default=None, max_length=20)
    password: Optional[str] = Field(default=None, min_length=8)
    email_verified: Optional[bool] = None
    role: Optional[UserRole] = None


class UpdateUserResponse(BaseModel):
    uid: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    phone_number: Optional[str] = None
    email_verified: bool = False
    disabled: bool = False
    custom_claims: dict[str, Any] = Field(default_factory=dict)


class PasswordResetRequest(BaseModel):
    email: str = Field(..., pattern=EMAIL_PATTERN, max_length=255)


class UserDTO(BaseModel):
    id: Optional[int] = None
    firebase_uid: Optional[str] = None
    email: str
    display_name: Optional[str] = None
    phone_number: Optional[str] = None
    email_verified: bool = False
    role: UserRole = UserRole.CUSTOMER
    staff_role: Optional[StaffRole] = None
    is_active: bool = True
    is_staff: bool = False
    last_login_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    @classmethod
    def from_user(cls, user: User) -> "UserDTO":
        return cls.model_validate(user)
