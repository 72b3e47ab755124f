"""
MealTracker Backend - HTTP API Tests
=====================================

What:  The FastAPI app over a real DurableStore (local file in tmp_path, or the
       in-memory contents API for remote sync), driven through httpx.ASGITransport.

What we test:
    ✅ CRUD for restaurants, sections and meals, both listing route forms
    ✅ Validation (400), unknown ids (404), missing parents (404)
    ✅ X-Persistence and X-Request-ID headers
    ✅ /health reports store state and degraded persistence
"""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from mealtracker.main import create_app


async def create_tree(client: AsyncClient):
    restaurant = (await client.post("/api/restaurants", json={"name": "Cafe X"})).json()
    section = (
        await client.post("/api/sections", json={"restaurant_id": restaurant["id"], "name": "Mains"})
    ).json()
    meal = (await client.post("/api/meals", json={"section_id": section["id"], "name": "Soup"})).json()
    return restaurant, section, meal


@pytest_asyncio.fixture
async def remote_app_client(remote_store):
    app = create_app(store=remote_store)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


class TestRestaurants:

    @pytest.mark.asyncio
    async def test_create_and_list(self, app_client):
        response = await app_client.post("/api/restaurants", json={"name": "  Cafe X  "})

        assert response.status_code == 201
        assert response.headers["X-Persistence"] == "durable"
        body = response.json()
        assert body["id"] == 1
        assert body["name"] == "Cafe X"
        assert body["created_at"]

        await app_client.post("/api/restaurants", json={"name": "Bistro Y"})
        listed = (await app_client.get("/api/restaurants")).json()
        assert [r["name"] for r in listed] == ["Bistro Y", "Cafe X"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [{}, {"name": ""}, {"name": "   "}, {"name": "x" * 201}])
    async def test_invalid_name_is_400(self, app_client, payload):
        response = await app_client.post("/api/restaurants", json=payload)

        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"
        assert response.json()["details"]["field"] == "name"

    @pytest.mark.asyncio
    async def test_delete_cascades(self, app_client):
        restaurant, section, _ = await create_tree(app_client)

        response = await app_client.delete(f"/api/restaurants/{restaurant['id']}")

        assert response.status_code == 200
        assert response.json() == {"success": True}
        assert (await app_client.get(f"/api/restaurants/{restaurant['id']}/sections")).json() == []
        assert (await app_client.get(f"/api/sections/{section['id']}/meals")).json() == []

    @pytest.mark.asyncio
    async def test_delete_unknown_is_404(self, app_client):
        response = await app_client.delete("/api/restaurants/42")

        assert response.status_code == 404
        assert response.json()["error"] == "not_found"


class TestSections:

    @pytest.mark.asyncio
    async def test_both_listing_forms(self, app_client):
        restaurant, section, _ = await create_tree(app_client)

        nested = (await app_client.get(f"/api/restaurants/{restaurant['id']}/sections")).json()
        flat = (await app_client.get("/api/sections", params={"restaurantId": restaurant["id"]})).json()

        expected = [{"id": section["id"], "restaurant_id": restaurant["id"], "name": "Mains"}]
        assert nested == expected
        assert flat == expected

    @pytest.mark.asyncio
    async def test_listing_requires_restaurant_id(self, app_client):
        response = await app_client.get("/api/sections")
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_create_under_missing_restaurant_is_404(self, app_client):
        response = await app_client.post("/api/sections", json={"restaurant_id": 999, "name": "Mains"})

        assert response.status_code == 404
        assert "restaurant" in response.json()["message"]

    @pytest.mark.asyncio
    async def test_create_requires_restaurant_id(self, app_client):
        response = await app_client.post("/api/sections", json={"name": "Mains"})
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_delete_cascades_to_meals(self, app_client):
        restaurant, section, _ = await create_tree(app_client)
        desserts = (
            await app_client.post("/api/sections", json={"restaurant_id": restaurant["id"], "name": "Desserts"})
        ).json()
        tart = (await app_client.post("/api/meals", json={"section_id": desserts["id"], "name": "Tart"})).json()

        response = await app_client.delete(f"/api/sections/{section['id']}")

        assert response.status_code == 200
        assert response.json() == {"success": True}
        assert response.headers["X-Persistence"] == "durable"
        assert (await app_client.get(f"/api/sections/{section['id']}/meals")).json() == []
        remaining = (await app_client.get(f"/api/restaurants/{restaurant['id']}/sections")).json()
        assert [s["name"] for s in remaining] == ["Desserts"]
        assert [m["id"] for m in (await app_client.get(f"/api/sections/{desserts['id']}/meals")).json()] == [
            tart["id"]
        ]

    @pytest.mark.asyncio
    async def test_delete_unknown_is_404(self, app_client):
        response = await app_client.delete("/api/sections/42")

        assert response.status_code == 404
        assert response.json()["error"] == "not_found"


class TestMeals:

    @pytest.mark.asyncio
    async def test_create_returns_untried_meal(self, app_client):
        _, section, _ = await create_tree(app_client)

        response = await app_client.post("/api/meals", json={"section_id": section["id"], "name": "Salad"})

        assert response.status_code == 201
        assert response.json() == {"id": 2, "section_id": section["id"], "name": "Salad", "tried": False}

    @pytest.mark.asyncio
    async def test_tried_meals_sort_last(self, app_client):
        _, section, soup = await create_tree(app_client)
        salad = (await app_client.post("/api/meals", json={"section_id": section["id"], "name": "Salad"})).json()
        stew = (await app_client.post("/api/meals", json={"section_id": section["id"], "name": "Stew"})).json()

        response = await app_client.patch(f"/api/meals/{salad['id']}", json={"tried": True})
        assert response.status_code == 200
        assert response.json() == {"id": salad["id"], "tried": True}

        nested = (await app_client.get(f"/api/sections/{section['id']}/meals")).json()
        flat = (await app_client.get("/api/meals", params={"sectionId": section["id"]})).json()

        assert [m["id"] for m in nested] == [stew["id"], soup["id"], salad["id"]]
        assert [m["tried"] for m in nested] == [False, False, True]
        assert flat == nested

    @pytest.mark.asyncio
    async def test_patch_requires_tried(self, app_client):
        _, _, soup = await create_tree(app_client)
        response = await app_client.patch(f"/api/meals/{soup['id']}", json={})
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_patch_unknown_is_404(self, app_client):
        response = await app_client.patch("/api/meals/77", json={"tried": True})
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_create_under_missing_section_is_404(self, app_client):
        response = await app_client.post("/api/meals", json={"section_id": 5, "name": "Soup"})
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_delete(self, app_client):
        _, section, soup = await create_tree(app_client)

        response = await app_client.delete(f"/api/meals/{soup['id']}")

        assert response.status_code == 200
        assert (await app_client.get(f"/api/sections/{section['id']}/meals")).json() == []
        assert (await app_client.delete(f"/api/meals/{soup['id']}")).status_code == 404


class TestHeadersAndHealth:

    @pytest.mark.asyncio
    async def test_request_id_echoed(self, app_client):
        response = await app_client.get("/api/restaurants", headers={"X-Request-ID": "abc123"})
        assert response.headers["X-Request-ID"] == "abc123"

    @pytest.mark.asyncio
    async def test_request_id_generated(self, app_client):
        response = await app_client.get("/api/restaurants")
        assert response.headers["X-Request-ID"]

    @pytest.mark.asyncio
    async def test_health_before_first_use(self, app_client):
        response = await app_client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["store_state"] == "uninitialized"
        assert body["mode"] == "local"
        assert body["last_persistence"] is None

    @pytest.mark.asyncio
    async def test_health_after_write(self, app_client):
        await app_client.post("/api/restaurants", json={"name": "Cafe X"})

        body = (await app_client.get("/health")).json()

        assert body["store_state"] == "ready"
        assert body["image_source"] == "bootstrap"
        assert body["last_persistence"] == "durable"

    @pytest.mark.asyncio
    async def test_unsynced_write_is_reported(self, remote_app_client, contents_api):
        contents_api.fail_puts_with = 503

        response = await remote_app_client.post("/api/restaurants", json={"name": "Cafe X"})

        assert response.status_code == 201
        assert response.headers["X-Persistence"] == "local_only"
        health = (await remote_app_client.get("/health")).json()
        assert health["status"] == "degraded"
        assert health["mode"] == "remote"
        assert health["last_persistence"] == "local_only"

    @pytest.mark.asyncio
    async def test_query_string_type_error_is_rejected(self, app_client):
        response = await app_client.get("/api/meals", params={"sectionId": "abc"})
        assert response.status_code == 422
