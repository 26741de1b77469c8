"""
  Payment gateway adapters

  SimulatedPaymentGateway stands in for the real provider: it waits about a
  second and approves every charge with a TXN-<epoch millis> id.
"""
import asyncio
import logging
import time
from typing import Protocol

from nicecommerce.domain.payments import PaymentResult

logger = logging.getLogger(__name__)


class PaymentGateway(Protocol):
    async def charge(self, order_id: int) -> PaymentResult:
        ...


class SimulatedPaymentGateway:
    def __init__(self, latency_seconds: float = 1.0):
        self.latency_seconds = latency_seconds

    async def charge(self, order_id: int) -> PaymentResult:
        logger.info("Processing payment for order: %s", order_id)
        await asyncio.sleep(self.latency_seconds)
        transaction_id = f"TXN-{int(time.time() * 1000)}"
        return PaymentResult(success=True, transaction_id=transaction_id, message="Payment processed successfully")
