"""Tests for the category endpoints."""

import json
from collections.abc import Callable

from httpx import AsyncClient

from api_helpers import PNG, SUPER_ADMIN


class TestCategoriesApi:
    """Tests for category CRUD over HTTP."""

    async def test_create_child_and_list(self, client: AsyncClient, create_category: Callable) -> None:
        parent = await create_category("Supplements")
        child = await create_category("Protein Powders", parent_id=parent["id"])

        assert child["slug"] == "protein-powders"
        assert child["parent_id"] == parent["id"]

        listed = await client.get("/admin/categories", headers=SUPER_ADMIN)
        assert [c["name"] for c in listed.json()["items"]] == ["Protein Powders", "Supplements"]

    async def test_create_with_image(self, client: AsyncClient) -> None:
        response = await client.post(
            "/admin/categories",
            data={"name": "Gear", "description": "Bottles and bags"},
            files={"image": PNG},
            headers=SUPER_ADMIN,
        )
        assert response.status_code == 201, response.text
        assert response.json()["image_url"].startswith("memory://blobs/categories/")

    async def test_duplicate_name(self, client: AsyncClient, create_category: Callable) -> None:
        await create_category("Supplements")
        response = await client.post("/admin/categories", data={"name": "Supplements"}, headers=SUPER_ADMIN)
        assert response.status_code == 409

    async def test_cycle_rejected(self, client: AsyncClient, create_category: Callable) -> None:
        parent = await create_category("Supplements")
        child = await create_category("Protein", parent_id=parent["id"])

        response = await client.patch(
            f"/admin/categories/{parent['id']}",
            data={"parent_id": child["id"]},
            headers=SUPER_ADMIN,
        )

        assert response.status_code == 400
        assert response.json()["error_code"] == "VALIDATION"

    async def test_clear_parent(self, client: AsyncClient, create_category: Callable) -> None:
        parent = await create_category("Supplements")
        child = await create_category("Protein", parent_id=parent["id"])

        response = await client.patch(
            f"/admin/categories/{child['id']}",
            data={"clear_parent": "true"},
            headers=SUPER_ADMIN,
        )

        assert response.json()["parent_id"] is None

    async def test_delete_blocked_by_children(self, client: AsyncClient, create_category: Callable) -> None:
        parent = await create_category("Supplements")
        await create_category("Protein", parent_id=parent["id"])

        response = await client.delete(f"/admin/categories/{parent['id']}", headers=SUPER_ADMIN)

        assert response.status_code == 422
        assert response.json()["error_code"] == "INVARIANT_VIOLATION"

    async def test_delete_blocked_by_products(self, client: AsyncClient, create_category: Callable) -> None:
        category = await create_category("Accessories")
        await client.post(
            "/admin/products",
            data={"data": json.dumps({"name": "Shaker", "category_ids": [category["id"]], "price_cents": 500})},
            headers=SUPER_ADMIN,
        )

        response = await client.delete(f"/admin/categories/{category['id']}", headers=SUPER_ADMIN)

        assert response.status_code == 422
        assert "1 products" in response.json()["message"]

    async def test_delete(self, client: AsyncClient, create_category: Callable) -> None:
        category = await create_category("Accessories")

        response = await client.delete(f"/admin/categories/{category['id']}", headers=SUPER_ADMIN)

        assert response.json()["outcome"] == "deleted"
        missing = await client.get(f"/admin/categories/{category['id']}", headers=SUPER_ADMIN)
        assert missing.status_code == 404
