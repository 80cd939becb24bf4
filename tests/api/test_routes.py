"""
API Tests - Routes
"""
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.exc import OperationalError

from spend_analytics.database.connection import get_db_dependency
from spend_analytics.serving.api.main import create_api_app
from spend_analytics.serving.cache import QueryCache


async def test_liveness(client):
    response = await client.get("/api/health/live")

    assert response.status_code == 200
    assert response.json() == {"status": "alive"}
    assert "X-Request-ID" in response.headers


async def test_dashboard(client):
    response = await client.get("/api/analytics/dashboard", params={"date_from": "2025-02-01"})

    assert response.status_code == 200
    body = response.json()
    assert body["total_expenses"] == pytest.approx(360.0)
    assert set(body["expenses_by_category"]) == {"Chemicals", "Equipment", "Supplies"}


async def test_repeated_location_params_are_exact(client):
    response = await client.get(
        "/api/analytics/dashboard",
        params=[("location", "Westside"), ("location", "Downtown Wash")],
    )

    assert set(response.json()["expenses_by_location"]) == {"Westside", "Downtown Wash"}


async def test_invalid_query_param_is_400(client):
    response = await client.get("/api/analytics/dashboard", params={"date_from": "not-a-date"})

    assert response.status_code == 400
    assert "date_from" in response.json()["error"]


async def test_top_skus_limit(client):
    response = await client.get("/api/analytics/top-skus", params={"limit": 1})

    assert response.status_code == 200
    assert response.json() == [
        {"sku": "SOAP-2", "description": "Foam soap", "category": "Chemicals", "total": 800.0},
    ]


async def test_heatmap_and_trend(client):
    heatmap = (await client.get("/api/analytics/heatmap")).json()
    trend = (await client.get("/api/analytics/category-trend")).json()

    assert heatmap["locations"] == ["Airport Express", "Downtown Wash", "Westside"]
    assert trend[-1] == {"month": "2025-03", "Supplies": 60.0}


async def test_invoice_counts(client):
    response = await client.get("/api/analytics/locations/invoice-counts")

    assert response.json() == [
        {"name": "Airport Express", "value": 1},
        {"name": "Downtown Wash", "value": 2},
        {"name": "Westside", "value": 1},
    ]


async def test_category_volatility(client):
    response = await client.get("/api/analytics/category-volatility")

    chemicals = response.json()[0]
    assert chemicals["category"] == "Chemicals"
    assert (chemicals["q1"], chemicals["median"], chemicals["q3"]) == (200.0, 300.0, 800.0)


async def test_replenishment(client):
    response = await client.get("/api/analytics/replenishment")

    by_sku = {row["sku"]: row for row in response.json()}
    assert by_sku["CHEM-01"]["purchase_count"] == 3
    assert by_sku["CHEM-01"]["avg_days_between"] == pytest.approx(18.0)
    assert by_sku["SOAP-2"]["avg_days_between"] is None


async def test_readiness_without_store(client):
    response = await client.get("/api/health/ready")

    assert response.status_code == 503
    assert response.json() == {"status": "not_ready", "reason": "database_unavailable"}


class TestMostExpensive:
    """POST /api/invoices/most-expensive"""

    async def test_single_element_plural_is_substring(self, client):
        response = await client.post("/api/invoices/most-expensive", json={"locations": ["downtown"]})

        assert response.status_code == 200
        assert [invoice["id"] for invoice in response.json()] == ["inv-1", "inv-3"]

    async def test_several_locations_are_exact(self, client):
        response = await client.post(
            "/api/invoices/most-expensive",
            json={"locations": ["Downtown", "Westside"]},
        )

        assert [invoice["id"] for invoice in response.json()] == ["inv-5"]

    async def test_singular_wins(self, client):
        response = await client.post(
            "/api/invoices/most-expensive",
            json={"location": "Airport", "locations": ["Westside"], "dateTo": "2025-01-31"},
        )

        assert [invoice["id"] for invoice in response.json()] == ["inv-2"]

    async def test_category(self, client):
        response = await client.post("/api/invoices/most-expensive", json={"categories": ["Supplies"]})

        body = response.json()
        assert [invoice["id"] for invoice in body] == ["inv-5"]
        assert body[0]["invoice_total"] is None


async def test_invoices_listing(client):
    response = await client.get("/api/invoices", params={"search": "zep"})

    body = response.json()
    assert [invoice["id"] for invoice in body] == ["inv-3", "inv-1"]
    assert [line["category"] for line in body[1]["lines"]] == ["Chemicals", "Equipment"]


async def test_export(client):
    response = await client.get("/api/invoices/export", params={"location": "Airport"})

    assert [(row["invoice_id"], row["line_total"]) for row in response.json()] == [
        ("inv-2", 400.0),
        ("inv-2", 800.0),
    ]


async def test_invoice_lines_by_sku_requires_sku(client):
    response = await client.get("/api/invoice-lines/by-sku")

    assert response.status_code == 400
    assert response.json() == {"error": "sku is required"}


async def test_invoice_lines(client):
    response = await client.get("/api/invoice-lines", params={"sku": "soap"})

    body = response.json()
    assert len(body) == 1
    assert body[0]["source"] == "Ecolab"
    assert body[0]["invoice_date"] == "2025-01-20"


class TestForecast:
    """POST /api/inventory/forecast endpoints"""

    async def test_sku_missing_is_400(self, client):
        response = await client.post("/api/inventory/forecast/sku", json={})

        assert response.status_code == 400
        assert response.json() == {"error": "sku is required"}

    async def test_sku_forecast(self, client):
        response = await client.post("/api/inventory/forecast/sku", json={"sku": "chem-01"})

        forecast = response.json()["forecast"]
        assert forecast["sku"] == "CHEM-01"
        assert forecast["purchase_count"] == 3
        assert forecast["next_expected_purchase"].startswith("2025-02-28T10:00")

    async def test_unknown_sku_is_null(self, client):
        response = await client.post("/api/inventory/forecast/sku", json={"sku": "NOPE"})

        assert response.status_code == 200
        assert response.json() == {"forecast": None}

    async def test_inventory_forecast(self, client):
        response = await client.post("/api/inventory/forecast", json={"locations": ["Downtown Wash"]})

        assert [row["sku"] for row in response.json()] == ["BRUSH-9", "CHEM-01"]


async def test_filter_options(client):
    response = await client.get("/api/filters/options")

    body = response.json()
    assert body["categories"] == ["Chemicals", "Equipment", "Supplies"]
    assert {"sku": "TOWEL-3", "description": "No description", "category": "Supplies"} in body["skus"]


async def test_store_failure_serves_empty_payload():
    class BrokenSession:
        async def execute(self, stmt):
            raise OperationalError("SELECT", {}, ConnectionError("connection refused"))

        async def rollback(self):
            pass

    async def broken_db():
        yield BrokenSession()

    app = create_api_app(query_cache=QueryCache())
    app.dependency_overrides[get_db_dependency] = broken_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.get("/api/analytics/dashboard")

    assert response.status_code == 200
    assert response.json() == {"total_expenses": 0.0, "expenses_by_category": {}, "expenses_by_location": {}}
