from typing import Optional

import asyncpg

from nicecommerce.domain.orders import Order, OrderItem, OrderStatus
from nicecommerce.domain.pagination import Page
from nicecommerce.infrastructure.database import Database, from_json, to_json

_ORDER_COLUMNS = """
    id, user_id, order_number, status, items, subtotal, shipping, tax, total,
    shipping_address, payment_id, payment_method, tracking_number, shipped_at,
    delivered_at, pending_reason, pending_timestamp, notes, staff_notes,
    assigned_to, created_at, updated_at
"""


def _row_to_order(row: asyncpg.Record) -> Order:
    return Order(
        id=row["id"],
        user_id=row["user_id"],
        order_number=row["order_number"],
        status=OrderStatus(row["status"]),
        items=[OrderItem.from_dict(item) for item in from_json(row["items"], [])],
        subtotal=row["subtotal"],
        shipping=row["shipping"],
        tax=row["tax"],
        total=row["total"],
        shipping_address=from_json(row["shipping_address"], {}),
        payment_id=row["payment_id"],
        payment_method=row["payment_method"],
        tracking_number=row["tracking_number"],
        shipped_at=row["shipped_at"],
        delivered_at=row["delivered_at"],
        pending_reason=row["pending_reason"],
        pending_timestamp=row["pending_timestamp"],
        notes=row["notes"],
        staff_notes=row["staff_notes"],
        assigned_to=row["assigned_to"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class OrderRepository:
    def __init__(self, db: Database):
        self._db = db

    async def find_by_id(self, order_id: int) -> Optional[Order]:
        async with self._db.connection() as conn:
            row = await conn.fetchrow(f"SELECT {_ORDER_COLUMNS} FROM orders WHERE id = $1", order_id)
        return _row_to_order(row) if row else None

    async def find_by_id_for_update(self, order_id: int, conn) -> Optional[Order]:
        """Lock the order row until the surrounding transaction ends."""
        row = await conn.fetchrow(f"SELECT {_ORDER_COLUMNS} FROM orders WHERE id = $1 FOR UPDATE", order_id)
        return _row_to_order(row) if row else None

    async def find_by_order_number(self, order_number: str) -> Optional[Order]:
        async with self._db.connection() as conn:
            row = await conn.fetchrow(
                f"SELECT {_ORDER_COLUMNS} FROM orders WHERE order_number = $1", order_number
            )
        return _row_to_order(row) if row else None

    async def find_by_user(self, user_id: int, page: int, size: int) -> Page[Order]:
        """Newest first."""
        async with self._db.connection() as conn:
            total = await conn.fetchval("SELECT COUNT(*) FROM orders WHERE user_id = $1", user_id)
            rows = await conn.fetch(
                f"""
                SELECT {_ORDER_COLUMNS} FROM orders WHERE user_id = $1
                ORDER BY created_at DESC, id DESC LIMIT $2 OFFSET $3
                """,
                user_id, size, page * size,
            )
        return Page(items=[_row_to_order(row) for row in rows], total=total, page=page, size=size)

    async def save(self, order: Order, conn=None) -> Order:
        order.prepare_for_save()
        items = to_json([item.to_dict() for item in order.items])
        async with self._db.connection(conn) as c:
            if order.id is None:
                row = await c.fetchrow(
                    f"""
                    INSERT INTO orders (
                        user_id, order_number, status, items, subtotal, shipping, tax, total,
                        shipping_address, payment_id, payment_method, tracking_number,
                        shipped_at, delivered_at, pending_reason, pending_timestamp, notes,
                        staff_notes, assigned_to
                    ) VALUES (
                        $1, $2, $3, $4, $5, $6, $7, $8, $9, $10,
                        $11, $12, $13, $14, $15, $16, $17, $18, $19
                    )
                    RETURNING {_ORDER_COLUMNS}
                    """,
                    order.user_id, order.order_number, order.status.value, items,
                    order.subtotal, order.shipping, order.tax, order.total,
                    to_json(order.shipping_address), order.payment_id, order.payment_method,
                    order.tracking_number, order.shipped_at, order.delivered_at,
                    order.pending_reason, order.pending_timestamp, order.notes,
                    order.staff_notes, order.assigned_to,
                )
            else:
                row = await c.fetchrow(
                    f"""
                    UPDATE orders SET
                        status = $2, items = $3, subtotal = $4, shipping = $5, tax = $6,
                        total = $7, shipping_address = $8, payment_id = $9,
                        payment_method = $10, tracking_number = $11, shipped_at = $12,
                        delivered_at = $13, pending_reason = $14, pending_timestamp = $15,
                        notes = $16, staff_notes = $17, assigned_to = $18, updated_at = NOW()
                    WHERE id = $1
                    RETURNING {_ORDER_COLUMNS}
                    """,
                    order.id, order.status.value, items, order.subtotal, order.shipping,
                    order.tax, order.total, to_json(order.shipping_address),
                    order.payment_id, order.payment_method, order.tracking_number,
                    order.shipped_at, order.delivered_at, order.pending_reason,
                    order.pending_timestamp, order.notes, order.staff_notes,
                    order.assigned_to,
                )
        return _row_to_order(row)
