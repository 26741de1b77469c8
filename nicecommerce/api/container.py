"""
  Service wiring

  The Container holds every service the routes need. The app lifespan builds
  one from real infrastructure (build_container); tests hand create_app a
  Container of fakes instead.
"""
from dataclasses import dataclass
from typing import Any, Optional

from nicecommerce.config import Settings
from nicecommerce.infrastructure.cache import CacheManager
from nicecommerce.infrastructure.database import Database
from nicecommerce.infrastructure.payment_gateway import SimulatedPaymentGateway
from nicecommerce.infrastructure.repositories import (
    CategoryRepository,
    IdempotencyKeyRepository,
    OrderRepository,
    PasswordResetTokenRepository,
    PaymentRepository,
    ProductRepository,
    UserRepository,
    WaitlistRepository,
    WebhookLogRepository,
)
from nicecommerce.infrastructure.resilience import ResilientCaller
from nicecommerce.services.accounts import UserService
from nicecommerce.services.orders import OrderService
from nicecommerce.services.payments import PaymentService
from nicecommerce.services.products import CategoryService, ProductService


@dataclass
class Container:
    settings: Settings
    firebase: Any
    publisher: Any
    cache: CacheManager
    user_service: UserService
    product_service: ProductService
    category_service: CategoryService
    order_service: OrderService
    payment_service: PaymentService
    db: Optional[Database] = None


def build_container(settings: Settings, db: Database, publisher, firebase,
                    cache: Optional[CacheManager] = None, gateway=None) -> Container:
    cache = cache or CacheManager()

    users = UserRepository(db)
    products = ProductRepository(db)
    orders = OrderRepository(db)

    payment_service = PaymentService(
        payments=PaymentRepository(db),
        webhook_logs=WebhookLogRepository(db),
        orders=orders,
        gateway=gateway or SimulatedPaymentGateway(),
        caller=ResilientCaller(settings.payment),
        publisher=publisher,
    )
    return Container(
        settings=settings,
        firebase=firebase,
        publisher=publisher,
        cache=cache,
        db=db,
        user_service=UserService(
            users=users,
            reset_tokens=PasswordResetTokenRepository(db),
            firebase=firebase,
            cache=cache,
            password_reset_ttl_minutes=settings.password_reset_ttl_minutes,
        ),
        product_service=ProductService(
            db=db,
            products=products,
            categories=CategoryRepository(db),
            waitlist=WaitlistRepository(db),
            publisher=publisher,
            cache=cache,
        ),
        category_service=CategoryService(categories=CategoryRepository(db), cache=cache),
        order_service=OrderService(
            db=db,
            orders=orders,
            products=products,
            idempotency_keys=IdempotencyKeyRepository(db),
            payment_service=payment_service,
            publisher=publisher,
            cache=cache,
            idempotency_ttl_seconds=settings.idempotency_ttl_seconds,
        ),
        payment_service=payment_service,
    )
