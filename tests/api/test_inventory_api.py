"""Tests for the inventory endpoints."""

import json
from collections.abc import Callable

import pytest
from httpx import AsyncClient

from api_helpers import SUPER_ADMIN


@pytest.fixture
async def variant_id(client: AsyncClient, create_category: Callable) -> str:
    """A simple product with no stock; returns its default variant id."""
    category = await create_category("Accessories")
    response = await client.post(
        "/admin/products",
        data={"data": json.dumps({"name": "Shaker", "category_ids": [category["id"]], "price_cents": 500})},
        headers=SUPER_ADMIN,
    )
    assert response.status_code == 201, response.text
    return response.json()["variants"][0]["id"]


class TestStockChanges:
    """Tests for add, remove and adjust."""

    async def test_add_then_remove(self, client: AsyncClient, variant_id: str) -> None:
        added = await client.post(
            "/admin/inventory/add",
            json={"variant_id": variant_id, "quantity": 50, "notes": "delivery"},
            headers=SUPER_ADMIN,
        )
        assert added.status_code == 200, added.text
        body = added.json()
        assert body["variant"]["quantity"] == 50
        assert body["log"]["reason"] == "restock"
        assert body["log"]["created_by"] == "adm-1"
        assert body["log"]["notes"] == "delivery"

        removed = await client.post(
            "/admin/inventory/remove",
            json={"variant_id": variant_id, "quantity": 20, "reason": "sale"},
            headers=SUPER_ADMIN,
        )
        assert removed.json()["log"]["quantity_change"] == -20
        assert removed.json()["variant"]["quantity"] == 30

    async def test_over_removal_rejected(self, client: AsyncClient, variant_id: str) -> None:
        await client.post(
            "/admin/inventory/add",
            json={"variant_id": variant_id, "quantity": 30},
            headers=SUPER_ADMIN,
        )

        response = await client.post(
            "/admin/inventory/remove",
            json={"variant_id": variant_id, "quantity": 40},
            headers=SUPER_ADMIN,
        )

        assert response.status_code == 400
        body = response.json()
        assert body["error_code"] == "VALIDATION"
        assert body["details"]["available"] == 30
        assert body["details"]["requested"] == 40

        logs = await client.get(
            "/admin/inventory/logs",
            params={"variant_id": variant_id},
            headers=SUPER_ADMIN,
        )
        assert logs.json()["total"] == 1

    async def test_adjust(self, client: AsyncClient, variant_id: str) -> None:
        response = await client.post(
            "/admin/inventory/adjust",
            json={"variant_id": variant_id, "delta": 7, "reason": "return"},
            headers=SUPER_ADMIN,
        )
        assert response.json()["variant"]["quantity"] == 7
        assert response.json()["log"]["reason"] == "return"

    async def test_zero_quantity_rejected(self, client: AsyncClient, variant_id: str) -> None:
        response = await client.post(
            "/admin/inventory/add",
            json={"variant_id": variant_id, "quantity": 0},
            headers=SUPER_ADMIN,
        )
        assert response.status_code == 400

    async def test_unknown_variant(self, client: AsyncClient) -> None:
        response = await client.post(
            "/admin/inventory/add",
            json={"variant_id": "missing", "quantity": 1},
            headers=SUPER_ADMIN,
        )
        assert response.status_code == 404

    async def test_missing_field_uses_error_envelope(self, client: AsyncClient) -> None:
        response = await client.post("/admin/inventory/add", json={"quantity": 1}, headers=SUPER_ADMIN)
        assert response.status_code == 400
        body = response.json()
        assert body["error_code"] == "VALIDATION"
        assert body["details"][0]["field"] == "variant_id"


class TestReads:
    """Tests for overview, low stock, logs and balance."""

    async def test_overview_and_low_stock(self, client: AsyncClient, variant_id: str) -> None:
        await client.post(
            "/admin/inventory/add",
            json={"variant_id": variant_id, "quantity": 3},
            headers=SUPER_ADMIN,
        )

        overview = (await client.get("/admin/inventory/overview", headers=SUPER_ADMIN)).json()
        assert overview["total_variants"] == 1
        assert overview["low_stock_count"] == 1
        assert overview["out_of_stock_count"] == 0
        assert len(overview["recent_logs"]) == 1

        low = (
            await client.get("/admin/inventory/low-stock", params={"threshold": 5}, headers=SUPER_ADMIN)
        ).json()
        assert low["threshold"] == 5
        assert [(item["variant_id"], item["product_name"], item["quantity"]) for item in low["items"]] == [
            (variant_id, "Shaker", 3)
        ]

    async def test_log_detail_and_balance(self, client: AsyncClient, variant_id: str) -> None:
        added = await client.post(
            "/admin/inventory/add",
            json={"variant_id": variant_id, "quantity": 10},
            headers=SUPER_ADMIN,
        )
        log_id = added.json()["log"]["id"]

        entry = await client.get(f"/admin/inventory/logs/{log_id}", headers=SUPER_ADMIN)
        assert entry.json()["new_quantity"] == 10

        balance = (
            await client.get(f"/admin/inventory/variants/{variant_id}/balance", headers=SUPER_ADMIN)
        ).json()
        assert balance["balanced"] is True
        assert balance["ledger_total"] == 10

    async def test_logs_filtered_by_reason(self, client: AsyncClient, variant_id: str) -> None:
        for path, payload in (
            ("/admin/inventory/add", {"quantity": 10}),
            ("/admin/inventory/remove", {"quantity": 2, "reason": "sale"}),
            ("/admin/inventory/remove", {"quantity": 1, "reason": "adjustment"}),
        ):
            await client.post(path, json={"variant_id": variant_id, **payload}, headers=SUPER_ADMIN)

        sales = await client.get("/admin/inventory/logs", params={"reason": "sale"}, headers=SUPER_ADMIN)
        assert [entry["quantity_change"] for entry in sales.json()["items"]] == [-2]

        oldest_first = await client.get(
            "/admin/inventory/logs",
            params={"sort_order": "asc"},
            headers=SUPER_ADMIN,
        )
        assert [entry["quantity_change"] for entry in oldest_first.json()["items"]] == [10, -2, -1]
