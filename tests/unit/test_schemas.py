"""
Unit tests for request validation at the API boundary.

Pattern: Arrange-Act-Assert using pytest.raises(ValidationError)
"""
from decimal import Decimal

import pytest
from pydantic import ValidationError

from nicecommerce.api.schemas.account import SignInRequest, SignUpRequest, UpdateUserRequest, UserDTO
from nicecommerce.api.schemas.order import CreateOrderRequest
from nicecommerce.api.schemas.product import CreateProductRequest, ProductDTO, UpdateProductRequest
from nicecommerce.domain.accounts import User, UserRole
from nicecommerce.domain.products import Product

VALID_PRODUCT_PAYLOAD = {
    "name": "Linen Shirt",
    "price": "45000.00",
    "category_id": 1,
    "sizes": {"S": 10, "M": 5},
}


class TestSignUpValidation:
    def test_valid_request_passes(self):
        req = SignUpRequest(email="ana@example.com", password="s3cretpass")
        assert req.display_name is None

    def test_rejects_short_password(self):
        with pytest.raises(ValidationError):
            SignUpRequest(email="ana@example.com", password="short")

    def test_rejects_malformed_email(self):
        with pytest.raises(ValidationError):
            SignUpRequest(email="not-an-email", password="s3cretpass")


class TestSignInValidation:
    @pytest.mark.parametrize("token", ["", "   "])
    def test_rejects_blank_token(self, token):
        with pytest.raises(ValidationError):
            SignInRequest(id_token=token)


class TestUpdateUserValidation:
    def test_everything_optional(self):
        req = UpdateUserRequest()
        assert req.role is None

    def test_unknown_role_rejected(self):
        with pytest.raises(ValidationError):
            UpdateUserRequest(role="OWNER")

    def test_role_parsed(self):
        assert UpdateUserRequest(role="ADMIN").role == UserRole.ADMIN


class TestProductValidation:
    def test_valid_request_passes(self):
        req = CreateProductRequest(**VALID_PRODUCT_PAYLOAD)
        assert req.price == Decimal("45000.00")
        assert req.is_drop is False

    def test_rejects_negative_price(self):
        with pytest.raises(ValidationError):
            CreateProductRequest(**{**VALID_PRODUCT_PAYLOAD, "price": "-1"})

    def test_rejects_more_than_two_decimals(self):
        with pytest.raises(ValidationError):
            CreateProductRequest(**{**VALID_PRODUCT_PAYLOAD, "price": "10.001"})

    def test_rejects_blank_name(self):
        with pytest.raises(ValidationError) as exc_info:
            CreateProductRequest(**{**VALID_PRODUCT_PAYLOAD, "name": "   "})
        assert "Product name is required" in str(exc_info.value)

    def test_category_is_required(self):
        payload = {k: v for k, v in VALID_PRODUCT_PAYLOAD.items() if k != "category_id"}
        with pytest.raises(ValidationError):
            CreateProductRequest(**payload)

    def test_update_rejects_negative_price(self):
        with pytest.raises(ValidationError):
            UpdateProductRequest(price="-0.01")


class TestOrderValidation:
    def test_quantity_must_be_positive(self):
        with pytest.raises(ValidationError):
            CreateOrderRequest(items=[{"product_id": 1, "size": "M", "quantity": 0}])

    def test_empty_order_is_allowed(self):
        assert CreateOrderRequest().items == []


class TestResponseMapping:
    def test_product_dto_reports_availability(self):
        product = Product(id=1, name="Tee", slug="tee", price=Decimal("10"), category_id=2,
                          category_name="Shirts", sizes={"S": 0, "M": 1})
        dto = ProductDTO.from_product(product)
        assert dto.is_available is True
        assert dto.category_name == "Shirts"

    def test_user_dto_has_no_password_field(self):
        dto = UserDTO.from_user(User(id=3, email="ana@example.com", firebase_uid="uid-3"))
        assert "password" not in dto.model_dump()
        assert dto.firebase_uid == "uid-3"
