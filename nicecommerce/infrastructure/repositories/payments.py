from typing import Optional

import asyncpg

from nicecommerce.domain.payments import Payment, WebhookLog
from nicecommerce.infrastructure.database import Database, from_json, to_json

_PAYMENT_COLUMNS = """
    id, order_id, payment_id, status, amount, currency, payment_method, raw_data,
    created_at, updated_at
"""


def _row_to_payment(row: asyncpg.Record) -> Payment:
    return Payment(
        id=row["id"],
        order_id=row["order_id"],
        payment_id=row["payment_id"],
        status=row["status"],
        amount=row["amount"],
        currency=row["currency"],
        payment_method=row["payment_method"],
        raw_data=from_json(row["raw_data"], {}),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class PaymentRepository:
    def __init__(self, db: Database):
        self._db = db

    async def find_by_payment_id(self, payment_id: str) -> Optional[Payment]:
        async with self._db.connection() as conn:
            row = await conn.fetchrow(
                f"SELECT {_PAYMENT_COLUMNS} FROM payments WHERE payment_id = $1", payment_id
            )
        return _row_to_payment(row) if row else None

    async def find_by_order_id(self, order_id: int) -> list[Payment]:
        async with self._db.connection() as conn:
            rows = await conn.fetch(
                f"SELECT {_PAYMENT_COLUMNS} FROM payments WHERE order_id = $1 ORDER BY created_at",
                order_id,
            )
        return [_row_to_payment(row) for row in rows]

    async def save(self, payment: Payment, conn=None) -> Payment:
        async with self._db.connection(conn) as c:
            if payment.id is None:
                row = await c.fetchrow(
                    f"""
                    INSERT INTO payments (
                        order_id, payment_id, status, amount, currency, payment_method, raw_data
                    ) VALUES ($1, $2, $3, $4, $5, $6, $7)
                    RETURNING {_PAYMENT_COLUMNS}
                    """,
                    payment.order_id, payment.payment_id, payment.status, payment.amount,
                    payment.currency, payment.payment_method, to_json(payment.raw_data),
                )
            else:
                row = await c.fetchrow(
                    f"""
                    UPDATE payments SET
                        status = $2, amount = $3, currency = $4, payment_method = $5,
                        raw_data = $6, updated_at = NOW()
                    WHERE id = $1
                    RETURNING {_PAYMENT_COLUMNS}
                    """,
                    payment.id, payment.status, payment.amount, payment.currency,
                    payment.payment_method, to_json(payment.raw_data),
                )
        return _row_to_payment(row)


class WebhookLogRepository:
    def __init__(self, db: Database):
        self._db = db

    async def save(self, log: WebhookLog) -> WebhookLog:
        async with self._db.connection() as conn:
            if log.id is None:
                row = await conn.fetchrow(
                    """
                    INSERT INTO webhook_logs (event_type, payload, processed, error_message)
                    VALUES ($1, $2, $3, $4)
                    RETURNING id, event_type, payload, processed, error_message, created_at
                    """,
                    log.event_type, to_json(log.payload), log.processed, log.error_message,
                )
            else:
                row = await conn.fetchrow(
                    """
                    UPDATE webhook_logs SET processed = $2, error_message = $3, updated_at = NOW()
                    WHERE id = $1
                    RETURNING id, event_type, payload, processed, error_message, created_at
                    """,
                    log.id, log.processed, log.error_message,
                )
        return WebhookLog(
            id=row["id"],
            event_type=row["event_type"],
            payload=from_json(row["payload"], {}),
            processed=row["processed"],
            error_message=row["error_message"],
            created_at=row["created_at"],
        )
