from nicecommerce.infrastructure.repositories.idempotency import (
    IdempotencyKeyRepository,
    IdempotencyRecord,
)
from nicecommerce.infrastructure.repositories.orders import OrderRepository
from nicecommerce.infrastructure.repositories.payments import PaymentRepository, WebhookLogRepository
from nicecommerce.infrastructure.repositories.products import (
    CategoryRepository,
    ProductRepository,
    WaitlistRepository,
)
from nicecommerce.infrastructure.repositories.users import PasswordResetTokenRepository, UserRepository

__all__ = [
    "CategoryRepository",
    "IdempotencyKeyRepository",
    "IdempotencyRecord",
    "OrderRepository",
    "PasswordResetTokenRepository",
    "PaymentRepository",
    "ProductRepository",
    "UserRepository",
    "WaitlistRepository",
    "WebhookLogRepository",
]
