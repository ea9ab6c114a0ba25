"""Tests for admin identity headers and role checks on the routes."""

import json

import pytest
from httpx import AsyncClient

from api_helpers import headers_for


class TestAuthorizationApi:
    """Tests for 401 and 403 responses."""

    async def test_missing_headers(self, client: AsyncClient) -> None:
        response = await client.get("/admin/products")

        assert response.status_code == 401
        assert response.json()["error_code"] == "UNAUTHORIZED"

    async def test_support_agent_can_read(self, client: AsyncClient) -> None:
        response = await client.get("/admin/products", headers=headers_for("SUPPORT_AGENT"))
        assert response.status_code == 200

    async def test_support_agent_cannot_create(self, client: AsyncClient) -> None:
        response = await client.post(
            "/admin/products",
            data={"data": json.dumps({"name": "Shaker", "category_ids": ["c"], "price_cents": 1})},
            headers=headers_for("SUPPORT_AGENT"),
        )

        assert response.status_code == 403
        assert response.json()["error_code"] == "FORBIDDEN"

    @pytest.mark.parametrize(
        ("role", "method", "path", "payload"),
        [
            ("MANAGER", "POST", "/admin/inventory/remove", {"variant_id": "v", "quantity": 1}),
            ("MANAGER", "POST", "/admin/inventory/adjust", {"variant_id": "v", "delta": 1}),
            ("ADMIN", "DELETE", "/admin/products/p", None),
            ("ADMIN", "DELETE", "/admin/variants/v", None),
            ("CONTENT_EDITOR", "POST", "/admin/weights", {"value": 1, "unit": "kg"}),
        ],
    )
    async def test_forbidden(
        self,
        client: AsyncClient,
        role: str,
        method: str,
        path: str,
        payload: dict | None,
    ) -> None:
        response = await client.request(method, path, json=payload, headers=headers_for(role))
        assert response.status_code == 403

    async def test_manager_can_restock(self, client: AsyncClient) -> None:
        """Allowed roles reach the handler, which reports the unknown variant."""
        response = await client.post(
            "/admin/inventory/add",
            json={"variant_id": "missing", "quantity": 1},
            headers=headers_for("MANAGER"),
        )
        assert response.status_code == 404

    async def test_unknown_role(self, client: AsyncClient) -> None:
        response = await client.get("/admin/categories", headers=headers_for("INTERN"))
        assert response.status_code == 403
