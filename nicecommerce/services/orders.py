"""
  Order Service

  Checkout flow:
    1. Idempotency-Key seen before from this user (and not expired)? Return
       that order. Keys are stored as "<user id>:<key>".
    2. Inside one DB transaction: lock every product, check all stock,
       then write the decremented stock, the order and the key record.
    3. After commit: publish ORDER_CREATED and the IdempotencyEvent.

  Stock is checked for every item before any write, so a short item leaves
  the catalog untouched.
"""
import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional

from nicecommerce.api.schemas.order import (
    CreateOrderRequest,
    OrderDTO,
    OrderListResponse,
    PaymentResultDTO,
)
from nicecommerce.domain.accounts import Principal, User
from nicecommerce.domain.events import (
    IDEMPOTENCY_TTL_SECONDS,
    IdempotencyEvent,
    OrderEvent,
    OrderEventType,
    PaymentEvent,
    PaymentEventType,
)
from nicecommerce.domain.exceptions import (
    AccessDeniedException,
    BusinessException,
    ResourceNotFoundException,
)
from nicecommerce.domain.orders import Order, OrderItem, OrderStatus
from nicecommerce.infrastructure.cache import CacheManager
from nicecommerce.infrastructure.repositories.idempotency import IdempotencyRecord
from nicecommerce.services.products import evict_products

logger = logging.getLogger(__name__)

ORDER_RESOURCE = "order"


def scoped_idempotency_key(user_id: int, key: str) -> str:
    """Keys are per user: two customers may send the same Idempotency-Key."""
    return f"{user_id}:{key}"


class OrderService:
    def __init__(self, db, orders, products, idempotency_keys, payment_service, publisher,
                 cache: CacheManager, idempotency_ttl_seconds: int = IDEMPOTENCY_TTL_SECONDS):
        self._db = db
        self._orders = orders
        self._products = products
        self._idempotency_keys = idempotency_keys
        self._payment_service = payment_service
        self._publisher = publisher
        self._cache = cache
        self._idempotency_ttl = idempotency_ttl_seconds

    async def create_order(self, user: Optional[User], request: CreateOrderRequest,
                           idempotency_key: Optional[str] = None) -> OrderDTO:
        if user is None:
            raise BusinessException("User is required")

        key = idempotency_key if idempotency_key and idempotency_key.strip() else None
        stored_key = scoped_idempotency_key(user.id, key) if key is not None else None
        if key is not None:
            existing = await self._find_by_idempotency_key(stored_key)
            if existing is not None:
                logger.info("Idempotent replay - key: %s, orderId: %s", key, existing.id)
                return OrderDTO.from_order(existing)

        async with self._db.transaction() as conn:
            locked = {}
            items = []
            subtotal = Decimal("0")
            for line in request.items:
                product = locked.get(line.product_id)
                if product is None:
                    product = await self._products.find_by_id_for_update(line.product_id, conn)
                    if product is None or not product.is_active:
                        raise ResourceNotFoundException(f"Product not found with id: {line.product_id}")
                    locked[line.product_id] = product
                if not product.decrease_stock(line.size, line.quantity):
                    raise BusinessException(
                        f"Insufficient stock for product {product.name} size {line.size}: "
                        f"requested {line.quantity}, available {product.stock_for_size(line.size)}"
                    )
                items.append(OrderItem(
                    product_id=product.id,
                    product_name=product.name,
                    size=line.size,
                    quantity=line.quantity,
                    price=str(product.price),
                    image_url=product.images[0] if product.images else None,
                ))
                subtotal += product.price * line.quantity

            for product in locked.values():
                await self._products.update_sizes(product, conn=conn)

            order = Order(
                user_id=user.id,
                status=OrderStatus.PENDING,
                items=items,
                subtotal=subtotal,
                shipping=Decimal("0"),
                tax=Decimal("0"),
                total=subtotal,
                shipping_address=dict(request.shipping_address),
                payment_method=request.payment_method,
                notes=request.notes,
            )
            order = await self._orders.save(order, conn=conn)

            if key is not None:
                await self._idempotency_keys.save_if_absent(IdempotencyRecord(
                    idempotency_key=stored_key,
                    resource_type=ORDER_RESOURCE,
                    resource_id=str(order.id),
                    expires_at=datetime.now(timezone.utc) + timedelta(seconds=self._idempotency_ttl),
                ), conn=conn)

        evict_products(self._cache, locked.keys())

        await self._publisher.publish_order_event(OrderEvent(
            event_type=OrderEventType.ORDER_CREATED,
            order_id=order.id,
            order_number=order.order_number,
            user_id=user.id,
            idempotency_key=key,
            status=order.status.value,
            total=order.total,
        ))
        if key is not None:
            await self._publisher.publish_idempotency_event(IdempotencyEvent(
                idempotency_key=stored_key,
                resource_type=ORDER_RESOURCE,
                resource_id=str(order.id),
                ttl_seconds=self._idempotency_ttl,
            ))

        logger.info("Order created - orderId: %s, userId: %s", order.id, user.id)
        return OrderDTO.from_order(order)

    async def _find_by_idempotency_key(self, key: str) -> Optional[Order]:
        record = await self._idempotency_keys.find_live(key, ORDER_RESOURCE)
        if record is None:
            return None
        return await self._orders.find_by_id(int(record.resource_id))

    async def _get_accessible_order(self, order_number: str, principal: Principal) -> Order:
        order = await self._orders.find_by_order_number(order_number)
        if order is None:
            raise ResourceNotFoundException(f"Order not found: {order_number}")
        if not principal.is_admin() and order.user_id != principal.user_id:
            raise AccessDeniedException("You do not have access to this order")
        return order

    async def get_order(self, order_number: str, principal: Principal) -> OrderDTO:
        return OrderDTO.from_order(await self._get_accessible_order(order_number, principal))

    async def list_orders(self, user: User, page: int = 0, size: int = 20) -> OrderListResponse:
        return OrderListResponse.from_page(await self._orders.find_by_user(user.id, page, size))

    async def _lock_order(self, order_id: int, conn) -> Order:
        order = await self._orders.find_by_id_for_update(order_id, conn)
        if order is None:
            raise ResourceNotFoundException(f"Order not found with id: {order_id}")
        return order

    async def cancel_order(self, order_number: str, principal: Principal) -> OrderDTO:
        order = await self._get_accessible_order(order_number, principal)

        async with self._db.transaction() as conn:
            # status is re-read under the row lock
            order = await self._lock_order(order.id, conn)
            if order.status != OrderStatus.PENDING:
                raise BusinessException(f"Only pending orders can be cancelled (status: {order.status.value})")

            restored = {}
            for item in order.items:
                product = restored.get(item.product_id)
                if product is None:
                    product = await self._products.find_by_id_for_update(item.product_id, conn)
                    if product is None:
                        logger.warning("Cannot restore stock, product missing - productId: %s", item.product_id)
                        continue
                    restored[item.product_id] = product
                product.increase_stock(item.size, item.quantity)
            for product in restored.values():
                await self._products.update_sizes(product, conn=conn)

            order.status = OrderStatus.CANCELLED
            order = await self._orders.save(order, conn=conn)

        evict_products(self._cache, restored.keys())
        logger.info("Order cancelled - orderId: %s", order.id)

        await self._publisher.publish_order_event(OrderEvent(
            event_type=OrderEventType.ORDER_CANCELLED,
            order_id=order.id,
            order_number=order.order_number,
            user_id=order.user_id,
            status=order.status.value,
            total=order.total,
        ))
        return OrderDTO.from_order(order)

    async def pay_order(self, order_number: str, principal: Principal) -> PaymentResultDTO:
        """
        Charge a PENDING order.

        The order row stays locked while the gateway is called, so a second
        pay or a cancel for the same order waits and then sees the new status.
        """
        order = await self._get_accessible_order(order_number, principal)

        payment = None
        async with self._db.transaction() as conn:
            order = await self._lock_order(order.id, conn)
            if order.status != OrderStatus.PENDING:
                raise BusinessException(f"Order is not pending payment (status: {order.status.value})")

            result = await self._payment_service.process_payment(order.id)
            if result.success:
                payment = await self._payment_service.record_payment(order, result, order.payment_method,
                                                                      conn=conn)
                order.status = OrderStatus.PAID
                order.payment_id = payment.payment_id
                order = await self._orders.save(order, conn=conn)

        if payment is None:
            await self._publisher.publish_payment_event(PaymentEvent(
                event_type=PaymentEventType.PAYMENT_FAILED,
                order_id=order.id,
                order_number=order.order_number,
                status="failed",
                amount=order.total,
            ))
            logger.warning("Payment failed - orderId: %s, reason: %s", order.id, result.message)
            return PaymentResultDTO.from_result(result)

        logger.info("Order paid - orderId: %s, paymentId: %s", order.id, payment.payment_id)

        await self._publisher.publish_order_event(OrderEvent(
            event_type=OrderEventType.ORDER_PAID,
            order_id=order.id,
            order_number=order.order_number,
            user_id=order.user_id,
            status=order.status.value,
            total=order.total,
        ))
        await self._publisher.publish_payment_event(PaymentEvent(
            event_type=PaymentEventType.PAYMENT_SUCCEEDED,
            payment_id=payment.payment_id,
            order_id=order.id,
            order_number=order.order_number,
            status=payment.status,
            amount=payment.amount,
            currency=payment.currency,
        ))
        return PaymentResultDTO.from_result(result)
