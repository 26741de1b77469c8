"""
  Catalog persistence: categories, products and waitlist entries.

  Product listings always join the category so `category_name` is filled.
  Stock changes during checkout lock the row with SELECT ... FOR UPDATE
  (see `find_by_id_for_update`) and are written back with `update_sizes`.
"""
from datetime import datetime, timezone
from typing import Optional

import asyncpg

from nicecommerce.domain.pagination import Page
from nicecommerce.domain.products import Category, Product, Waitlist
from nicecommerce.infrastructure.database import Database, from_json, to_json

SORT_COLUMNS = frozenset({"created_at", "price", "name", "release_date"})

_PRODUCT_SELECT = """
    SELECT p.id, p.name, p.slug, p.description, p.price, p.category_id,
           c.name AS category_name, p.images, p.sizes, p.material, p.size_guide,
           p.occasions_of_use, p.is_drop, p.release_date, p.is_active,
           p.created_at, p.updated_at
    FROM products p
    JOIN categories c ON c.id = p.category_id
"""


def _row_to_product(row: asyncpg.Record) -> Product:
    return Product(
        id=row["id"],
        name=row["name"],
        slug=row["slug"],
        description=row["description"],
        price=row["price"],
        category_id=row["category_id"],
        category_name=row["category_name"],
        images=from_json(row["images"], []),
        sizes=from_json(row["sizes"], {}),
        material=row["material"],
        size_guide=from_json(row["size_guide"], {}),
        occasions_of_use=from_json(row["occasions_of_use"], []),
        is_drop=row["is_drop"],
        release_date=row["release_date"],
        is_active=row["is_active"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_category(row: asyncpg.Record) -> Category:
    return Category(
        id=row["id"],
        name=row["name"],
        slug=row["slug"],
        description=row["description"],
        created_at=row["created_at"],
    )


def _order_clause(sort_column: str, descending: bool) -> str:
    if sort_column not in SORT_COLUMNS:
        raise ValueError(f"Unsupported sort column: {sort_column}")
    direction = "DESC" if descending else "ASC"
    # id breaks ties so paging is stable
    return f"ORDER BY p.{sort_column} {direction} NULLS LAST, p.id {direction}"


class CategoryRepository:
    def __init__(self, db: Database):
        self._db = db

    async def find_all(self) -> list[Category]:
        async with self._db.connection() as conn:
            rows = await conn.fetch(
                "SELECT id, name, slug, description, created_at FROM categories ORDER BY name"
            )
        return [_row_to_category(row) for row in rows]

    async def find_by_id(self, category_id: int) -> Optional[Category]:
        async with self._db.connection() as conn:
            row = await conn.fetchrow(
                "SELECT id, name, slug, description, created_at FROM categories WHERE id = $1",
                category_id,
            )
        return _row_to_category(row) if row else None

    async def find_by_slug(self, slug: str) -> Optional[Category]:
        async with self._db.connection() as conn:
            row = await conn.fetchrow(
                "SELECT id, name, slug, description, created_at FROM categories WHERE slug = $1",
                slug,
            )
        return _row_to_category(row) if row else None

    async def exists_by_name_or_slug(self, name: str, slug: str) -> bool:
        async with self._db.connection() as conn:
            found = await conn.fetchval(
                "SELECT 1 FROM categories WHERE LOWER(name) = LOWER($1) OR slug = $2",
                name, slug,
            )
        return bool(found)

    async def save(self, category: Category) -> Category:
        async with self._db.connection() as conn:
            row = await conn.fetchrow(
                """
                INSERT INTO categories (name, slug, description)
                VALUES ($1, $2, $3)
                RETURNING id, name, slug, description, created_at
                """,
                category.name, category.slug, category.description,
            )
        return _row_to_category(row)


class ProductRepository:
    def __init__(self, db: Database):
        self._db = db

    async def find_by_id(self, product_id: int, conn=None) -> Optional[Product]:
        async with self._db.connection(conn) as c:
            row = await c.fetchrow(f"{_PRODUCT_SELECT} WHERE p.id = $1", product_id)
        return _row_to_product(row) if row else None

    async def find_by_id_for_update(self, product_id: int, conn) -> Optional[Product]:
        """Lock the product row until the surrounding transaction ends."""
        row = await conn.fetchrow(f"{_PRODUCT_SELECT} WHERE p.id = $1 FOR UPDATE OF p", product_id)
        return _row_to_product(row) if row else None

    async def find_by_slug(self, slug: str) -> Optional[Product]:
        async with self._db.connection() as conn:
            row = await conn.fetchrow(f"{_PRODUCT_SELECT} WHERE p.slug = $1", slug)
        return _row_to_product(row) if row else None

    async def exists_by_slug(self, slug: str) -> bool:
        async with self._db.connection() as conn:
            found = await conn.fetchval("SELECT 1 FROM products WHERE slug = $1", slug)
        return bool(found)

    async def _find_page(self, where: str, params: list, page: int, size: int,
                         sort_column: str, descending: bool) -> Page[Product]:
        order_by = _order_clause(sort_column, descending)
        limit_idx = len(params) + 1
        async with self._db.connection() as conn:
            total = await conn.fetchval(f"SELECT COUNT(*) FROM products p WHERE {where}", *params)
            rows = await conn.fetch(
                f"{_PRODUCT_SELECT} WHERE {where} {order_by} "
                f"LIMIT ${limit_idx} OFFSET ${limit_idx + 1}",
                *params, size, page * size,
            )
        return Page(items=[_row_to_product(row) for row in rows], total=total, page=page, size=size)

    async def find_active(self, page: int, size: int,
                          sort_column: str = "created_at", descending: bool = True) -> Page[Product]:
        return await self._find_page("p.is_active = TRUE", [], page, size, sort_column, descending)

    async def find_active_by_category(self, category_id: int, page: int, size: int,
                                      sort_column: str = "created_at",
                                      descending: bool = True) -> Page[Product]:
        return await self._find_page(
            "p.is_active = TRUE AND p.category_id = $1", [category_id],
            page, size, sort_column, descending,
        )

    async def find_active_drops(self, page: int, size: int,
                                sort_column: str = "created_at",
                                descending: bool = True) -> Page[Product]:
        return await self._find_page(
            "p.is_active = TRUE AND p.is_drop = TRUE", [], page, size, sort_column, descending,
        )

    async def search_active(self, term: str, page: int, size: int,
                            sort_column: str = "created_at",
                            descending: bool = True) -> Page[Product]:
        """Case-insensitive substring match on name or description."""
        escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        return await self._find_page(
            "p.is_active = TRUE AND (p.name ILIKE $1 OR p.description ILIKE $1)",
            [f"%{escaped}%"], page, size, sort_column, descending,
        )

    async def save(self, product: Product, conn=None) -> Product:
        """Insert when `product.id` is None, update otherwise."""
        async with self._db.connection(conn) as c:
            if product.id is None:
                product_id = await c.fetchval(
                    """
                    INSERT INTO products (
                        name, slug, description, price, category_id, images, sizes, material,
                        size_guide, occasions_of_use, is_drop, release_date, is_active
                    ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13)
                    RETURNING id
                    """,
                    product.name, product.slug, product.description or "", product.price,
                    product.category_id, to_json(product.images), to_json(product.sizes),
                    product.material, to_json(product.size_guide),
                    to_json(product.occasions_of_use), product.is_drop,
                    product.release_date, product.is_active,
                )
            else:
                product_id = await c.fetchval(
                    """
                    UPDATE products SET
                        name = $2, slug = $3, description = $4, price = $5, category_id = $6,
                        images = $7, sizes = $8, material = $9, size_guide = $10,
                        occasions_of_use = $11, is_drop = $12, release_date = $13,
                        is_active = $14, updated_at = NOW()
                    WHERE id = $1
                    RETURNING id
                    """,
                    product.id, product.name, product.slug, product.description or "",
                    product.price, product.category_id, to_json(product.images),
                    to_json(product.sizes), product.material, to_json(product.size_guide),
                    to_json(product.occasions_of_use), product.is_drop,
                    product.release_date, product.is_active,
                )
            row = await c.fetchrow(f"{_PRODUCT_SELECT} WHERE p.id = $1", product_id)
        return _row_to_product(row)

    async def update_sizes(self, product: Product, conn=None) -> None:
        async with self._db.connection(conn) as c:
            await c.execute(
                "UPDATE products SET sizes = $2, updated_at = NOW() WHERE id = $1",
                product.id, to_json(product.sizes),
            )


def _row_to_waitlist(row: asyncpg.Record) -> Waitlist:
    return Waitlist(
        id=row["id"],
        product_id=row["product_id"],
        user_id=row["user_id"],
        email=row["email"],
        size=row["size"],
        notified=row["notified"],
        notified_at=row["notified_at"],
        created_at=row["created_at"],
    )


class WaitlistRepository:
    def __init__(self, db: Database):
        self._db = db

    async def exists(self, product_id: int, email: str, size: Optional[str]) -> bool:
        async with self._db.connection() as conn:
            found = await conn.fetchval(
                """
                SELECT 1 FROM waitlist
                WHERE product_id = $1 AND email = $2 AND COALESCE(size, '') = COALESCE($3, '')
                """,
                product_id, email, size,
            )
        return bool(found)

    async def save(self, entry: Waitlist) -> Waitlist:
        async with self._db.connection() as conn:
            row = await conn.fetchrow(
                """
                INSERT INTO waitlist (product_id, user_id, email, size)
                VALUES ($1, $2, $3, $4)
                RETURNING id, product_id, user_id, email, size, notified, notified_at, created_at
                """,
                entry.product_id, entry.user_id, entry.email, entry.size,
            )
        return _row_to_waitlist(row)

    async def find_pending(self, product_id: int) -> list[Waitlist]:
        async with self._db.connection() as conn:
            rows = await conn.fetch(
                """
                SELECT id, product_id, user_id, email, size, notified, notified_at, created_at
                FROM waitlist WHERE product_id = $1 AND notified = FALSE ORDER BY created_at
                """,
                product_id,
            )
        return [_row_to_waitlist(row) for row in rows]

    async def mark_notified(self, entry_ids: list[int], now: Optional[datetime] = None) -> None:
        if not entry_ids:
            return
        async with self._db.connection() as conn:
            await conn.execute(
                """
                UPDATE waitlist SET notified = TRUE, notified_at = $2, updated_at = NOW()
                WHERE id = ANY($1::bigint[])
                """,
                entry_ids, now or datetime.now(timezone.utc),
            )
