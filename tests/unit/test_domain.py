"""
Unit tests for the domain entities.

Pure dataclasses and rules: stock arithmetic, slugs, order numbers, user
normalization. No database, no async.
"""
import re
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from nicecommerce.domain.accounts import PasswordResetToken, Principal, StaffRole, User, UserRole
from nicecommerce.domain.orders import Order, OrderStatus, generate_order_number
from nicecommerce.domain.pagination import Page
from nicecommerce.domain.products import Product, generate_slug


def _product(sizes) -> Product:
    return Product(name="Tee", price=Decimal("10.00"), category_id=1, sizes=sizes)


class TestProductStock:
    def test_decrease_stock_subtracts_when_enough(self):
        product = _product({"S": 10, "M": 5})
        assert product.decrease_stock("S", 3) is True
        assert product.sizes == {"S": 7, "M": 5}

    def test_decrease_stock_to_exactly_zero(self):
        product = _product({"M": 2})
        assert product.decrease_stock("M", 2) is True
        assert product.stock_for_size("M") == 0
        assert product.is_available() is False

    def test_decrease_stock_refuses_and_leaves_map_unchanged(self):
        """Asking for more than is left must not touch the stock."""
        product = _product({"S": 1})
        assert product.decrease_stock("S", 2) is False
        assert product.sizes == {"S": 1}

    def test_decrease_unknown_size_fails(self):
        product = _product({"S": 1})
        assert product.decrease_stock("XL", 1) is False
        assert "XL" not in product.sizes

    def test_increase_stock_creates_missing_size(self):
        product = _product({"S": 1})
        product.increase_stock("L", 4)
        assert product.sizes == {"S": 1, "L": 4}

    def test_increase_stock_with_no_map(self):
        product = _product(None)
        product.increase_stock("S", 2)
        assert product.sizes == {"S": 2}

    def test_total_stock_ignores_null_entries(self):
        assert _product({"S": 3, "M": None, "L": 2}).total_stock() == 5

    @pytest.mark.parametrize("sizes, expected", [
        ({}, False),
        ({"S": 0, "M": 0}, False),
        ({"S": 0, "M": 1}, True),
    ])
    def test_is_available(self, sizes, expected):
        assert _product(sizes).is_available() is expected


class TestGenerateSlug:
    def test_strips_accents_and_lowercases(self):
        assert generate_slug("Café Crème Tee") == "cafe-creme-tee"

    def test_drops_punctuation(self):
        assert generate_slug("Shirt (Limited!) #1") == "shirt-limited-1"

    def test_every_whitespace_becomes_a_dash(self):
        assert generate_slug("Linen  Shirt") == "linen--shirt"


class TestOrder:
    def test_order_number_format(self):
        number = generate_order_number(now_millis=1_700_000_123_456)
        assert re.fullmatch(r"ORD-\d{8}-\d{1,6}", number)
        assert number.startswith("ORD-00123456-")

    def test_prepare_for_save_fills_number_and_pending_timestamp(self):
        order = Order(user_id=1)
        order.prepare_for_save()
        assert order.order_number.startswith("ORD-")
        assert order.pending_timestamp is not None

    def test_prepare_for_save_keeps_existing_number(self):
        order = Order(user_id=1, order_number="ORD-1-1", status=OrderStatus.PAID)
        order.prepare_for_save()
        assert order.order_number == "ORD-1-1"
        assert order.pending_timestamp is None

    @pytest.mark.parametrize("status, paid", [
        (OrderStatus.PENDING, False),
        (OrderStatus.PAID, True),
        (OrderStatus.PROCESSING, True),
        (OrderStatus.SHIPPED, True),
        (OrderStatus.DELIVERED, True),
        (OrderStatus.CANCELLED, False),
        (OrderStatus.REFUNDED, False),
    ])
    def test_is_paid(self, status, paid):
        assert Order(user_id=1, status=status).is_paid() is paid


class TestUser:
    def test_blank_display_name_defaults_to_email_local_part(self):
        user = User(email="ana@example.com", display_name="  ")
        user.prepare_for_save()
        assert user.display_name == "ana"

    def test_admin_is_always_staff(self):
        user = User(email="boss@example.com", role=UserRole.ADMIN)
        user.prepare_for_save()
        assert user.is_staff is True
        assert user.authority == "ROLE_ADMIN"

    def test_customer_loses_staff_flag_unless_superuser(self):
        customer = User(email="a@example.com", is_staff=True)
        customer.prepare_for_save()
        assert customer.is_staff is False

        root = User(email="root@example.com", is_staff=True, is_superuser=True)
        root.prepare_for_save()
        assert root.is_staff is True
        assert root.authority == "ROLE_SUPERUSER"

    def test_staff_role_makes_staff_member(self):
        assert User(email="s@example.com", staff_role=StaffRole.SUPPORT_AGENT).is_staff_member()
        assert not User(email="c@example.com").is_staff_member()


class TestPasswordResetToken:
    def test_valid_until_expiry(self):
        now = datetime(2025, 1, 1, tzinfo=timezone.utc)
        token = PasswordResetToken(user_id=1, token="t", expires_at=now + timedelta(minutes=5))
        assert token.is_valid(now) is True
        assert token.is_valid(now + timedelta(minutes=5)) is False

    def test_used_token_is_invalid(self):
        token = PasswordResetToken(
            user_id=1, token="t", used=True,
            expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
        )
        assert token.is_valid() is False


class TestPrincipal:
    def test_authority_and_admin(self):
        assert Principal(uid="u", role="ADMIN").is_admin()
        assert Principal(uid="u").authority == "ROLE_USER"
        assert not Principal(uid="u", role="CUSTOMER").is_admin()


class TestPage:
    def test_total_pages_rounds_up(self):
        assert Page(items=[], total=41, page=0, size=20).total_pages == 3

    def test_empty_listing_has_no_pages(self):
        assert Page(items=[], total=0, page=0, size=20).total_pages == 0

    def test_offset(self):
        assert Page(page=2, size=20).offset == 40
