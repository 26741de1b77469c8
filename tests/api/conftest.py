"""
API fixtures - the real FastAPI app over the in-memory backend.

Requests go through httpx's ASGI transport, so tests stay async and can
seed data with the same factory fixtures the service tests use.
"""
import httpx
import pytest
import pytest_asyncio

from nicecommerce.api.app import create_app


@pytest_asyncio.fixture()
async def client(backend):
    app = create_app(container=backend.container)
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as c:
        yield c


@pytest.fixture
def bearer():
    def _bearer(token: str) -> dict:
        return {"Authorization": f"Bearer {token}"}
    return _bearer
