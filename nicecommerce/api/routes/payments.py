from typing import Any

from fastapi import APIRouter, Body, Depends

from nicecommerce.api.dependencies import get_payment_service
from nicecommerce.api.schemas.payment import PaymentDTO, WebhookAck
from nicecommerce.api.security import get_current_principal
from nicecommerce.services.payments import PaymentService

router = APIRouter(prefix="/api/payments", tags=["payments"])


@router.post("/webhook", response_model=WebhookAck, summary="Payment gateway notifications")
async def payment_webhook(
    payload: dict[str, Any] = Body(...),
    payments: PaymentService = Depends(get_payment_service),
) -> WebhookAck:
    await payments.handle_webhook(payload)
    return WebhookAck(received=True)


@router.get(
    "/{payment_id}",
    response_model=PaymentDTO,
    dependencies=[Depends(get_current_principal)],
    summary="Get a payment",
)
async def get_payment(payment_id: str, payments: PaymentService = Depends(get_payment_service)) -> PaymentDTO:
    return await payments.find_by_payment_id(payment_id)
