"""Tests for the product, variant and image endpoints."""

import json
from collections.abc import Callable

import pytest
from httpx import AsyncClient

from api_helpers import PNG, SUPER_ADMIN


@pytest.fixture
async def accessories(create_category: Callable) -> dict:
    return await create_category("Accessories")


async def _create(client: AsyncClient, payload: dict, files: list | None = None):
    return await client.post(
        "/admin/products",
        data={"data": json.dumps(payload)},
        files=files,
        headers=SUPER_ADMIN,
    )


async def _flavor(client: AsyncClient, name: str) -> dict:
    response = await client.post("/admin/flavors", data={"name": name}, headers=SUPER_ADMIN)
    assert response.status_code == 201, response.text
    return response.json()


async def _weight(client: AsyncClient, value: float, unit: str) -> dict:
    response = await client.post(
        "/admin/weights",
        json={"value": value, "unit": unit},
        headers=SUPER_ADMIN,
    )
    assert response.status_code == 201, response.text
    return response.json()


class TestCreateProduct:
    """Tests for POST /admin/products."""

    async def test_simple_product_with_images(self, client: AsyncClient, accessories: dict) -> None:
        response = await _create(
            client,
            {"name": "Shaker Bottle", "category_ids": [accessories["id"]], "price_cents": 999, "quantity": 12},
            files=[("images", PNG), ("images", ("b.png", b"\x89PNG-b", "image/png"))],
        )

        assert response.status_code == 201, response.text
        body = response.json()
        assert body["slug"] == "shaker-bottle"
        assert body["has_variants"] is False
        assert body["primary_category"]["id"] == accessories["id"]
        [variant] = body["variants"]
        assert variant["sku"].endswith("-DEF")
        assert (variant["price_cents"], variant["quantity"]) == (999, 12)
        assert [image["is_primary"] for image in body["images"]] == [True, False]
        assert body["primary_image_url"].startswith("memory://blobs/products/")

    async def test_variant_product_from_selection(self, client: AsyncClient, accessories: dict) -> None:
        vanilla = await _flavor(client, "Vanilla")
        chocolate = await _flavor(client, "Chocolate")
        half_kilo = await _weight(client, 500, "g")

        response = await _create(
            client,
            {
                "name": "Whey Protein",
                "category_ids": [accessories["id"]],
                "has_variants": True,
                "selection": {
                    "flavor_ids": [vanilla["id"], chocolate["id"]],
                    "weight_ids": [half_kilo["id"]],
                    "price_cents": 2999,
                },
            },
        )

        assert response.status_code == 201, response.text
        variants = response.json()["variants"]
        assert len(variants) == 2
        assert len({v["sku"] for v in variants}) == 2
        assert {v["flavor"]["name"] for v in variants} == {"Vanilla", "Chocolate"}
        assert {v["weight"]["display"] for v in variants} == {"500g"}

    async def test_stringified_fields_accepted(self, client: AsyncClient, accessories: dict) -> None:
        """Form clients may send nested fields as JSON strings."""
        response = await _create(
            client,
            {
                "name": "Shaker",
                "category_ids": json.dumps([accessories["id"]]),
                "nutrition_info": json.dumps({"protein": "24g"}),
                "price_cents": 500,
            },
        )
        assert response.status_code == 201, response.text
        assert response.json()["nutrition_info"] == {"protein": "24g"}

    async def test_malformed_data_rejected(self, client: AsyncClient) -> None:
        response = await client.post(
            "/admin/products",
            data={"data": "{not json"},
            headers=SUPER_ADMIN,
        )
        assert response.status_code == 400
        body = response.json()
        assert body["error_code"] == "VALIDATION"
        assert body["message"] == "Invalid request data"

    async def test_missing_price_rejected(self, client: AsyncClient, accessories: dict) -> None:
        response = await _create(client, {"name": "Shaker", "category_ids": [accessories["id"]]})
        assert response.status_code == 400
        assert "Price is required" in response.json()["message"]

    async def test_non_image_upload_rejected(self, client: AsyncClient, accessories: dict) -> None:
        response = await _create(
            client,
            {"name": "Shaker", "category_ids": [accessories["id"]], "price_cents": 500},
            files=[("images", ("notes.pdf", b"%PDF-1.4", "application/pdf"))],
        )
        assert response.status_code == 400
        assert response.json()["message"] == "Only image files are allowed"

    async def test_unknown_category(self, client: AsyncClient) -> None:
        response = await _create(client, {"name": "Shaker", "category_ids": ["missing"], "price_cents": 500})
        assert response.status_code == 404
        assert response.json()["error_code"] == "NOT_FOUND"

    async def test_duplicate_slug(self, client: AsyncClient, accessories: dict) -> None:
        payload = {"name": "Shaker", "category_ids": [accessories["id"]], "price_cents": 500}
        assert (await _create(client, payload)).status_code == 201
        response = await _create(client, payload)
        assert response.status_code == 409
        assert response.json()["error_code"] == "CONFLICT"


class TestProductLifecycle:
    """Tests for reading, updating and deleting products."""

    async def test_get_and_list(self, client: AsyncClient, accessories: dict) -> None:
        created = (await _create(
            client,
            {"name": "Shaker", "category_ids": [accessories["id"]], "price_cents": 500, "featured": True},
        )).json()

        fetched = await client.get(f"/admin/products/{created['id']}", headers=SUPER_ADMIN)
        assert fetched.json()["name"] == "Shaker"

        listed = await client.get(
            "/admin/products",
            params={"featured": "true", "category_id": accessories["id"]},
            headers=SUPER_ADMIN,
        )
        body = listed.json()
        assert body["total"] == 1
        assert body["has_more"] is False
        assert body["items"][0]["id"] == created["id"]

    async def test_unknown_product_envelope(self, client: AsyncClient) -> None:
        response = await client.get(
            "/admin/products/missing",
            headers={**SUPER_ADMIN, "X-Request-ID": "req-42"},
        )
        assert response.status_code == 404
        body = response.json()
        assert body["error_code"] == "NOT_FOUND"
        assert body["details"] == {"entity_type": "Product", "entity_id": "missing"}
        assert body["request_id"] == "req-42"
        assert response.headers["X-Request-ID"] == "req-42"

    async def test_update_reconciles_variants(self, client: AsyncClient, accessories: dict) -> None:
        vanilla = await _flavor(client, "Vanilla")
        chocolate = await _flavor(client, "Chocolate")
        created = (await _create(
            client,
            {
                "name": "Whey",
                "category_ids": [accessories["id"]],
                "has_variants": True,
                "variants": [
                    {"id": "new-1", "flavor_id": vanilla["id"], "price_cents": 2999},
                ],
            },
        )).json()
        [stored] = created["variants"]

        response = await client.patch(
            f"/admin/products/{created['id']}",
            data={
                "data": json.dumps(
                    {
                        "variants": [
                            {"id": stored["id"], "flavor_id": vanilla["id"], "price_cents": 2499, "sku": stored["sku"]},
                            {"id": "new-2", "flavor_id": chocolate["id"], "price_cents": 2999, "sku": ""},
                        ]
                    }
                )
            },
            headers=SUPER_ADMIN,
        )

        assert response.status_code == 200, response.text
        variants = {v["flavor"]["name"]: v for v in response.json()["variants"]}
        assert variants["Vanilla"]["id"] == stored["id"]
        assert variants["Vanilla"]["price_cents"] == 2499
        assert variants["Chocolate"]["sku"]

    async def test_keep_list_disagreement(self, client: AsyncClient, accessories: dict) -> None:
        vanilla = await _flavor(client, "Vanilla")
        created = (await _create(
            client,
            {
                "name": "Whey",
                "category_ids": [accessories["id"]],
                "has_variants": True,
                "variants": [{"flavor_id": vanilla["id"], "price_cents": 2999}],
            },
        )).json()
        [stored] = created["variants"]

        response = await client.patch(
            f"/admin/products/{created['id']}",
            data={
                "data": json.dumps(
                    {
                        "variants": [{"id": stored["id"], "flavor_id": vanilla["id"], "price_cents": 1}],
                        "keep_variant_ids": [],
                    }
                )
            },
            headers=SUPER_ADMIN,
        )

        assert response.status_code == 400
        assert response.json()["details"]["variant_ids"] == [stored["id"]]
        unchanged = await client.get(f"/admin/products/{created['id']}", headers=SUPER_ADMIN)
        assert unchanged.json()["variants"][0]["price_cents"] == 2999

    async def test_delete(self, client: AsyncClient, accessories: dict) -> None:
        created = (await _create(
            client,
            {"name": "Shaker", "category_ids": [accessories["id"]], "price_cents": 500},
        )).json()

        response = await client.delete(f"/admin/products/{created['id']}", headers=SUPER_ADMIN)

        assert response.json() == {
            "id": created["id"],
            "outcome": "deleted",
            "message": "Product deleted successfully",
        }
        gone = await client.get(f"/admin/products/{created['id']}", headers=SUPER_ADMIN)
        assert gone.status_code == 404


class TestImages:
    """Tests for image endpoints."""

    async def test_add_and_delete_images(self, client: AsyncClient, accessories: dict) -> None:
        created = (await _create(
            client,
            {"name": "Shaker", "category_ids": [accessories["id"]], "price_cents": 500},
            files=[("images", PNG)],
        )).json()
        [first] = created["images"]

        added = await client.post(
            f"/admin/products/{created['id']}/images",
            files={"image": PNG},
            data={"is_primary": "true", "alt": "Side view"},
            headers=SUPER_ADMIN,
        )
        assert added.status_code == 201, added.text
        second = added.json()
        assert second["is_primary"] is True
        assert second["alt"] == "Side view"

        deleted = await client.delete(f"/admin/products/images/{second['id']}", headers=SUPER_ADMIN)
        assert deleted.status_code == 204

        product = (await client.get(f"/admin/products/{created['id']}", headers=SUPER_ADMIN)).json()
        assert [(i["id"], i["is_primary"]) for i in product["images"]] == [(first["id"], True)]

        last = await client.delete(f"/admin/products/images/{first['id']}", headers=SUPER_ADMIN)
        assert last.status_code == 422
        assert last.json()["error_code"] == "INVARIANT_VIOLATION"


class TestVariantEndpoints:
    """Tests for the variant endpoints."""

    async def test_generate_and_patch(self, client: AsyncClient, accessories: dict) -> None:
        vanilla = await _flavor(client, "Vanilla")
        kilo = await _weight(client, 1, "kg")
        created = (await _create(
            client,
            {"name": "Shaker", "category_ids": [accessories["id"]], "price_cents": 500},
        )).json()

        generated = await client.post(
            f"/admin/products/{created['id']}/variants/generate",
            json={"flavor_ids": [vanilla["id"]], "weight_ids": [kilo["id"]], "price_cents": 700},
            headers=SUPER_ADMIN,
        )
        assert generated.status_code == 201, generated.text
        [variant] = generated.json()["items"]
        assert variant["sku"].endswith("-VAN-1kg")

        patched = await client.patch(
            f"/admin/variants/{variant['id']}",
            json={"sale_price_cents": 650},
            headers=SUPER_ADMIN,
        )
        assert patched.status_code == 200, patched.text
        assert patched.json()["sale_price_cents"] == 650
        assert patched.json()["price_cents"] == 700

        fetched = await client.get(f"/admin/variants/{variant['id']}", headers=SUPER_ADMIN)
        assert fetched.json()["weight"]["display"] == "1kg"

        listed = await client.get(f"/admin/products/{created['id']}/variants", headers=SUPER_ADMIN)
        assert listed.json()["total"] == 2

    async def test_last_variant_cannot_be_deleted(self, client: AsyncClient, accessories: dict) -> None:
        created = (await _create(
            client,
            {"name": "Shaker", "category_ids": [accessories["id"]], "price_cents": 500},
        )).json()
        [variant] = created["variants"]

        response = await client.delete(f"/admin/variants/{variant['id']}", headers=SUPER_ADMIN)

        assert response.status_code == 422
        assert response.json()["message"] == "Cannot delete the only variant for this product"
