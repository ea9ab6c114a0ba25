"""Fixtures for API tests: an ASGI client wired to the test database."""

from collections.abc import AsyncGenerator, Callable

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from api_helpers import SUPER_ADMIN
from backoffice.infrastructure.blob_store import InMemoryBlobStore, get_blob_store
from backoffice.infrastructure.database import get_session
from backoffice.main import app


@pytest.fixture
async def client(
    session_factory: async_sessionmaker[AsyncSession],
    blob_store: InMemoryBlobStore,
) -> AsyncGenerator[AsyncClient, None]:
    """Client sending requests straight to the app, one session per request."""

    async def override_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_blob_store] = lambda: blob_store
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def create_category(client: AsyncClient) -> Callable:
    """Create a category through the API and return its JSON."""

    async def _create(name: str, parent_id: str | None = None) -> dict:
        data = {"name": name}
        if parent_id:
            data["parent_id"] = parent_id
        response = await client.post("/admin/categories", data=data, headers=SUPER_ADMIN)
        assert response.status_code == 201, response.text
        return response.json()

    return _create
