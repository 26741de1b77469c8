"""
  Payment Service

  Charges go through ResilientCaller (retry → circuit breaker → time limit).
  Whatever goes wrong, callers get a PaymentResult back; a failure becomes
  the fallback result instead of an exception.
"""
import logging
from typing import Any

from nicecommerce.api.schemas.payment import PaymentDTO
from nicecommerce.domain.events import (
    OrderEvent,
    OrderEventType,
    PaymentEvent,
    PaymentEventType,
)
from nicecommerce.domain.exceptions import ResourceNotFoundException
from nicecommerce.domain.orders import Order, OrderStatus
from nicecommerce.domain.payments import (
    DEFAULT_CURRENCY,
    FALLBACK_MESSAGE,
    Payment,
    PaymentResult,
    WebhookLog,
)
from nicecommerce.infrastructure.resilience import CircuitBreakerError, ResilientCaller

logger = logging.getLogger(__name__)

APPROVED = "approved"


def webhook_event_type(payload: dict[str, Any]) -> str:
    return str(payload.get("type") or payload.get("action") or "unknown")


class PaymentService:
    def __init__(self, payments, webhook_logs, orders, gateway, caller: ResilientCaller, publisher):
        self._payments = payments
        self._webhook_logs = webhook_logs
        self._orders = orders
        self._gateway = gateway
        self._caller = caller
        self._publisher = publisher

    async def process_payment(self, order_id: int) -> PaymentResult:
        try:
            return await self._caller.call(self._gateway.charge, order_id)
        except CircuitBreakerError as e:
            logger.error("Payment circuit open - using fallback - orderId: %s, error: %s", order_id, e)
        except Exception as e:
            logger.error("Payment processing failed - using fallback - orderId: %s, error: %s",
                         order_id, e, exc_info=True)
        return PaymentResult(success=False, message=FALLBACK_MESSAGE)

    async def record_payment(self, order: Order, result: PaymentResult, method=None, conn=None) -> Payment:
        payment = Payment(
            order_id=order.id,
            payment_id=result.transaction_id,
            status=APPROVED,
            amount=order.total,
            currency=DEFAULT_CURRENCY,
            payment_method=method,
            raw_data={"transaction_id": result.transaction_id, "message": result.message},
        )
        payment = await self._payments.save(payment, conn=conn)
        logger.info("Payment recorded - orderId: %s, paymentId: %s", order.id, payment.payment_id)
        return payment

    async def find_by_payment_id(self, payment_id: str) -> PaymentDTO:
        payment = await self._payments.find_by_payment_id(payment_id)
        if payment is None:
            raise ResourceNotFoundException(f"Payment not found with id: {payment_id}")
        return PaymentDTO.model_validate(payment)

    async def handle_webhook(self, payload: dict[str, Any]) -> WebhookLog:
        """
        Record a gateway notification and apply it.

        `payment.*` events carry data.id (our payment_id) and data.status.
        An approved status marks the order PAID.

        Raises:
            ResourceNotFoundException: data.id matches no payment. The log
            row is kept with the error.
        """
        event_type = webhook_event_type(payload)
        log = await self._webhook_logs.save(WebhookLog(event_type=event_type, payload=payload))
        logger.info("Webhook received - type: %s, logId: %s", event_type, log.id)

        data = payload.get("data") or {}
        payment_id = data.get("id")
        if event_type.startswith("payment") and payment_id is not None:
            payment = await self._payments.find_by_payment_id(str(payment_id))
            if payment is None:
                log.error_message = f"Payment not found with id: {payment_id}"
                await self._webhook_logs.save(log)
                raise ResourceNotFoundException(log.error_message)
            await self._apply_status(payment, data.get("status"), payload)

        log.processed = True
        return await self._webhook_logs.save(log)

    async def _apply_status(self, payment: Payment, status, payload: dict[str, Any]) -> None:
        if status:
            payment.status = str(status)
        payment.raw_data = payload
        payment = await self._payments.save(payment)

        order = await self._orders.find_by_id(payment.order_id)
        order_number = order.order_number if order else ""
        await self._publisher.publish_payment_event(PaymentEvent(
            event_type=PaymentEventType.PAYMENT_UPDATED,
            payment_id=payment.payment_id,
            order_id=payment.order_id,
            order_number=order_number,
            status=payment.status,
            amount=payment.amount,
            currency=payment.currency,
        ))

        if payment.status == APPROVED and order is not None and not order.is_paid():
            order.status = OrderStatus.PAID
            order.payment_id = payment.payment_id
            order = await self._orders.save(order)
            logger.info("Order marked paid from webhook - orderId: %s", order.id)
            await self._publisher.publish_order_event(OrderEvent(
                event_type=OrderEventType.ORDER_PAID,
                order_id=order.id,
                order_number=order.order_number,
                user_id=order.user_id,
                status=order.status.value,
                total=order.total,
            ))
