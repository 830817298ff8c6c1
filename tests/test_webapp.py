"""
Integration tests for the web API.
"""

import inspect
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from storefront.services.admin_service import AdminService
from storefront.storage.kv_store import InMemoryKVStore
from storefront.utils.config_loader import AppConfig
from storefront.webapp.main import create_app
from storefront.webapp.routes import router
from tests.fixtures.service_mocks import RecordingScheduler

DRESS = {"name": "Summer Dress", "source_cost_usd": 15.5, "agent_fee_local": "500", "margin_local": 300,
         "category": "Dresses"}


@pytest.fixture
def service(config: AppConfig, kv_store: InMemoryKVStore, clock) -> AdminService:
    return AdminService(config, kv_store, clock=clock, scheduler=RecordingScheduler())


@pytest.fixture
def client(service: AdminService):
    """Create a test client for the FastAPI app."""
    with TestClient(create_app(service)) as c:
        yield c


@pytest.fixture
def admin_client(client: TestClient, admin_password: str) -> TestClient:
    response = client.post("/api/admin/login", json={"password": admin_password})
    assert response.json()["success"] is True
    return client


class TestPublicEndpoints:
    """Tests for storefront endpoints."""

    def test_health(self, client: TestClient) -> None:
        response = client.get("/health/simple")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_empty_catalog(self, client: TestClient) -> None:
        body = client.get("/api/products").json()
        assert body["products"] == []
        assert body["rate"] == 154.0

    def test_search_and_categories(self, admin_client: TestClient) -> None:
        admin_client.post("/api/admin/products", json=DRESS)
        admin_client.post("/api/admin/products", json={"name": "Boots", "category": "Shoes"})
        body = admin_client.get("/api/products", params={"search": "dress"}).json()
        assert [p["name"] for p in body["products"]] == ["Summer Dress"]
        assert admin_client.get("/api/categories").json() == ["Dresses", "Shoes"]

    def test_invalid_sort(self, client: TestClient) -> None:
        response = client.get("/api/products", params={"sort": "random"})
        assert response.status_code == 400
        assert response.json()["error"] == "VALIDATION_ERROR"

    def test_product_not_found(self, client: TestClient) -> None:
        response = client.get("/api/products/missing")
        assert response.status_code == 404
        assert response.json()["error"] == "PRODUCT_NOT_FOUND"

    def test_order_links(self, admin_client: TestClient) -> None:
        product_id = admin_client.post("/api/admin/products", json=DRESS).json()["id"]
        links = admin_client.get(f"/api/products/{product_id}/order-links").json()
        assert links["whatsapp"].startswith("https://wa.me/")
        assert links["telegram"].startswith("https://t.me/")


class TestAdminSession:
    """Tests for login, lockout and logout over HTTP."""

    def test_admin_routes_require_login(self, client: TestClient) -> None:
        assert client.get("/api/admin/stats").status_code == 401
        response = client.post("/api/admin/products", json=DRESS)
        assert response.status_code == 401
        assert response.json()["error"] == "AUTHENTICATION_REQUIRED"

    def test_lockout(self, client: TestClient, admin_password: str) -> None:
        for _ in range(3):
            body = client.post("/api/admin/login", json={"password": "x"}).json()
        assert body["state"] == "locked_out"
        body = client.post("/api/admin/login", json={"password": admin_password}).json()
        assert body["success"] is False
        assert body["state"] == "locked_out"
        assert body["remaining_seconds"] == 300

    def test_wrong_password_is_not_an_error(self, client: TestClient) -> None:
        response = client.post("/api/admin/login", json={"password": "x"})
        assert response.status_code == 200
        assert response.json()["attempts_left"] == 2

    def test_logout(self, admin_client: TestClient) -> None:
        assert admin_client.post("/api/admin/logout").json()["state"] == "logged_out"
        assert admin_client.get("/api/admin/stats").status_code == 401

    def test_wrong_password_after_expiry_is_refused(self, admin_client: TestClient, clock) -> None:
        clock.advance(hours=2)
        body = admin_client.post("/api/admin/login", json={"password": "definitely-wrong"}).json()
        assert body["success"] is False
        assert body["state"] == "logged_out"
        assert body["attempts_left"] == 2
        assert admin_client.get("/api/admin/stats").status_code == 401

    def test_session_expiry_notice(self, admin_client: TestClient, clock) -> None:
        clock.advance(hours=1)
        body = admin_client.get("/api/admin/session").json()
        assert body["authenticated"] is False
        assert body["notice"] == "Your session has expired. Please log in again."
        assert admin_client.get("/api/admin/session").json()["notice"] is None


class TestAdminCatalog:
    """Tests for admin product management."""

    def test_create_prices_product(self, admin_client: TestClient) -> None:
        response = admin_client.post("/api/admin/products", json=DRESS)
        assert response.status_code == 201
        body = response.json()
        assert body["convertedCostLocal"] == 2387
        assert body["finalPriceLocal"] == 800

    def test_create_blank_name(self, admin_client: TestClient) -> None:
        response = admin_client.post("/api/admin/products", json={"name": " "})
        assert response.status_code == 400
        assert response.json()["message"] == "Product Name is required"
        assert admin_client.get("/api/products").json()["count"] == 0

    def test_create_too_many_images(self, admin_client: TestClient) -> None:
        payload = dict(DRESS, images=[f"{i}.jpg" for i in range(11)])
        assert admin_client.post("/api/admin/products", json=payload).status_code == 400

    def test_edit_and_delete(self, admin_client: TestClient) -> None:
        created = admin_client.post("/api/admin/products", json=DRESS).json()
        edited = admin_client.put(f"/api/admin/products/{created['id']}", json=dict(DRESS, margin_local=450)).json()
        assert edited["finalPriceLocal"] == 950
        assert edited["createdAt"] == created["createdAt"]

        status = admin_client.patch(f"/api/admin/products/{created['id']}/status", json={"status": "sold"})
        assert status.json()["status"] == "sold"

        assert admin_client.delete(f"/api/admin/products/{created['id']}").json()["success"] is True
        assert admin_client.get(f"/api/products/{created['id']}").status_code == 404

    def test_stats(self, admin_client: TestClient) -> None:
        admin_client.post("/api/admin/products", json=DRESS)
        body = admin_client.get("/api/admin/stats").json()
        assert body["total"] == 1
        assert body["in_stock_value"] == 800


class TestAdminRate:
    """Tests for exchange-rate endpoints."""

    def test_rate_status(self, admin_client: TestClient) -> None:
        body = admin_client.get("/api/admin/rate").json()
        assert body["rate"] == 154.0
        assert body["source"] == "cached"

    def test_manual_rate_reprices(self, admin_client: TestClient) -> None:
        product_id = admin_client.post("/api/admin/products", json=DRESS).json()["id"]
        body = admin_client.post("/api/admin/rate/manual", json={"rate": "160"}).json()
        assert body["rate"] == 160.0
        assert body["source"] == "manual_override"
        assert admin_client.get(f"/api/products/{product_id}").json()["convertedCostLocal"] == 2480

    def test_manual_rate_zero_rejected(self, admin_client: TestClient) -> None:
        response = admin_client.post("/api/admin/rate/manual", json={"rate": 0})
        assert response.status_code == 400
        assert response.json()["message"] == "Please enter a valid rate."
        assert admin_client.get("/api/admin/rate").json()["rate"] == 154.0

    def test_refresh(self, admin_client: TestClient) -> None:
        with patch("storefront.pricing.fx_provider.fetch_live_rate", return_value=(157.5, "frankfurter")):
            body = admin_client.post("/api/admin/rate/refresh").json()
        assert body["success"] is True
        assert body["fetched"] is True
        assert body["rate"] == 157.5
        assert body["source"] == "live_fetch"

    def test_refresh_failure_reports_error(self, admin_client: TestClient) -> None:
        with patch("storefront.pricing.fx_provider.fetch_live_rate", return_value=(None, "All rate providers failed")):
            body = admin_client.post("/api/admin/rate/refresh").json()
        assert body["success"] is False
        assert body["error"] == "All rate providers failed"
        assert body["rate"] == 154.0

    def test_background_refresh(self, admin_client: TestClient, service: AdminService) -> None:
        with patch("storefront.pricing.fx_provider.fetch_live_rate", return_value=(157.5, "frankfurter")):
            response = admin_client.post("/api/admin/rate/refresh-async")
            assert response.status_code == 202
            service.fx_provider.refresh_rate_async().result(timeout=5)
        body = admin_client.get("/api/admin/rate").json()
        assert body["rate"] == 157.5
        assert body["is_loading"] is False

    def test_background_refresh_requires_login(self, client: TestClient) -> None:
        assert client.post("/api/admin/rate/refresh-async").status_code == 401


class TestAdminBackup:
    """Tests for catalog export and clear-all."""

    def test_export_downloads_catalog(self, admin_client: TestClient) -> None:
        created = admin_client.post("/api/admin/products", json=DRESS).json()
        response = admin_client.get("/api/admin/products/export")
        assert response.status_code == 200
        assert 'filename="etsub_products_backup.json"' in response.headers["content-disposition"]
        assert response.json() == [created]

    def test_export_requires_login(self, client: TestClient) -> None:
        assert client.get("/api/admin/products/export").status_code == 401

    def test_clear_all(self, admin_client: TestClient) -> None:
        admin_client.post("/api/admin/products", json=DRESS)
        admin_client.post("/api/admin/products", json=dict(DRESS, name="Boots"))
        body = admin_client.delete("/api/admin/products").json()
        assert body == {"success": True, "removed": 2}
        assert admin_client.get("/api/products").json()["count"] == 0

    def test_clear_requires_login(self, client: TestClient) -> None:
        assert client.delete("/api/admin/products").status_code == 401


class TestRouteExecution:
    """Admin endpoints run in the threadpool."""

    def test_admin_endpoints_are_sync(self) -> None:
        admin_routes = [r for r in router.routes if r.path.startswith("/api/admin")]
        assert admin_routes
        for route in admin_routes:
            assert not inspect.iscoroutinefunction(route.endpoint), route.path
