"""
API tests for the public catalog (/api/products, /api/categories) and the
admin catalog routes.
"""
import pytest

from nicecommerce.domain.accounts import UserRole

pytestmark = pytest.mark.asyncio


class TestListProducts:
    async def test_default_page(self, client, make_product):
        await make_product("Linen Shirt")
        await make_product("Wool Coat")

        response = await client.get("/api/products")

        assert response.status_code == 200
        body = response.json()
        assert (body["current_page"], body["page_size"], body["total_items"], body["total_pages"]) == (0, 20, 2, 1)
        assert [p["name"] for p in body["products"]] == ["Wool Coat", "Linen Shirt"]

    async def test_search_wins_over_drop_and_category(self, client, make_product):
        await make_product("Linen Shirt")
        await make_product("Night Drop", is_drop=True)

        response = await client.get("/api/products", params={"search": "linen", "isDrop": "true", "category": "x"})

        assert [p["name"] for p in response.json()["products"]] == ["Linen Shirt"]

    async def test_drop_wins_over_category(self, client, make_product):
        await make_product("Linen Shirt")
        await make_product("Night Drop", is_drop=True)

        response = await client.get("/api/products", params={"isDrop": "true", "category": "missing"})

        assert response.status_code == 200
        assert [p["name"] for p in response.json()["products"]] == ["Night Drop"]

    async def test_unknown_category(self, client):
        response = await client.get("/api/products", params={"category": "missing"})
        assert response.status_code == 404

    async def test_sort_by_price(self, client, make_product):
        await make_product("Cheap", price="10.00")
        await make_product("Pricey", price="90.00")

        response = await client.get("/api/products", params={"sort": "-price"})

        assert [p["name"] for p in response.json()["products"]] == ["Pricey", "Cheap"]

    async def test_invalid_sort_field(self, client):
        response = await client.get("/api/products", params={"sort": "bogus"})
        assert response.status_code == 400
        assert response.json()["message"] == "Invalid sort field: bogus"

    @pytest.mark.parametrize("params, field", [({"size": 101}, "size"), ({"page": -1}, "page")])
    async def test_out_of_range_paging(self, client, params, field):
        response = await client.get("/api/products", params=params)
        assert response.status_code == 400
        assert field in response.json()["errors"]


class TestProductBySlug:
    async def test_found(self, client, make_product):
        product = await make_product("Linen Shirt", price="100.00")

        response = await client.get(f"/api/products/{product.slug}")

        body = response.json()
        assert body["id"] == product.id
        assert body["price"] == "100.00"
        assert body["is_available"] is True

    async def test_missing_is_error_response(self, client):
        response = await client.get("/api/products/nope")

        assert response.status_code == 404
        body = response.json()
        assert body["status"] == 404
        assert body["error"] == "Not Found"
        assert body["message"] == "Product not found with slug: nope"
        assert body["errors"] is None
        assert "timestamp" in body


class TestWaitlist:
    async def test_join_sold_out_size(self, client, backend, make_product, make_user, bearer):
        user, token = await make_user()
        product = await make_product("Linen Shirt", sizes={"S": 0, "M": 2})

        response = await client.post(
            f"/api/products/{product.slug}/waitlist",
            json={"email": "ana@example.com", "size": "S"},
            headers=bearer(token),
        )

        assert response.status_code == 201
        assert response.json()["product_id"] == product.id
        [entry] = backend.waitlist.all()
        assert entry.user_id == user.id

    async def test_in_stock_size_is_rejected(self, client, make_product, make_user, bearer):
        _, token = await make_user()
        product = await make_product("Linen Shirt", sizes={"M": 2})

        response = await client.post(
            f"/api/products/{product.slug}/waitlist", json={"email": "ana@example.com", "size": "M"},
            headers=bearer(token),
        )

        assert response.status_code == 400
        assert response.json()["message"] == "Product is in stock"

    async def test_requires_authentication(self, client, make_product):
        product = await make_product(sizes={"S": 0})
        response = await client.post(f"/api/products/{product.slug}/waitlist", json={"email": "a@b.co"})
        assert response.status_code == 401


class TestCategories:
    async def test_list_and_get(self, client, make_category):
        await make_category("Shirts")
        await make_category("Outerwear")

        listing = await client.get("/api/categories")
        single = await client.get("/api/categories/outerwear")

        assert sorted(c["slug"] for c in listing.json()) == ["outerwear", "shirts"]
        assert single.json()["name"] == "Outerwear"

    async def test_missing(self, client):
        assert (await client.get("/api/categories/missing")).status_code == 404


class TestAdminCatalog:
    async def test_customer_is_forbidden(self, client, make_user, bearer):
        _, token = await make_user()
        response = await client.post("/api/admin/categories", json={"name": "Hats"}, headers=bearer(token))
        assert response.status_code == 403
        assert response.json()["error"] == "Forbidden"

    async def test_anonymous_is_unauthorized(self, client):
        response = await client.post("/api/admin/categories", json={"name": "Hats"})
        assert response.status_code == 401

    async def test_product_lifecycle(self, client, make_category, make_user, bearer):
        _, token = await make_user("boss@example.com", role=UserRole.ADMIN)
        category = await make_category("Outerwear")

        created = await client.post("/api/admin/products", headers=bearer(token), json={
            "name": "Wool Coat", "price": "250.00", "category_id": category.id, "sizes": {"M": 3},
        })
        assert created.status_code == 201
        product = created.json()
        assert product["slug"] == "wool-coat"
        assert product["category_name"] == "Outerwear"

        updated = await client.put(
            f"/api/admin/products/{product['id']}", headers=bearer(token), json={"price": "199.90"},
        )
        assert updated.json()["price"] == "199.90"

        deleted = await client.delete(f"/api/admin/products/{product['id']}", headers=bearer(token))
        assert deleted.status_code == 204
        assert (await client.get("/api/products/wool-coat")).status_code == 404

    async def test_create_category_and_reject_duplicate(self, client, make_user, bearer):
        _, token = await make_user("boss@example.com", role=UserRole.ADMIN)

        first = await client.post("/api/admin/categories", json={"name": "Hats"}, headers=bearer(token))
        second = await client.post("/api/admin/categories", json={"name": "Hats"}, headers=bearer(token))

        assert first.status_code == 201
        assert first.json()["slug"] == "hats"
        assert second.status_code == 400

    async def test_get_user_by_id(self, client, make_user, bearer):
        customer, _ = await make_user()
        _, token = await make_user("boss@example.com", role=UserRole.ADMIN)

        response = await client.get(f"/api/admin/users/{customer.id}", headers=bearer(token))

        assert response.json()["email"] == "ana@example.com"
