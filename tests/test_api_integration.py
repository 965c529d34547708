"""
Integration tests for API endpoints.

Tests the full HTTP request/response cycle with mocked registry calls.
"""
import pytest
from unittest.mock import AsyncMock, patch

from grouping_service.main import app
from grouping_service.api.dependencies import get_grouping_service
from grouping_service.infrastructure.farm_registry_client import (
    FarmRegistryClient,
    FarmRegistryError,
)
from grouping_service.services.application.grouping_service import GroupingService
from grouping_service.services.domain.cluster_builder import ClusteringConfig
from grouping_service.services.domain.group_formation_engine import GroupFormationEngine


PREVIEW_PATH = "/api/v1/clusters/cluster-1/seasons/ws-2025/group-preview"


def plot_body(plot_id, x, y, area=1.6, **overrides) -> dict:
    body = {
        "plot_id": plot_id,
        "farmer_id": f"farmer-{plot_id}",
        "area": area,
        "centroid": [x, y],
        "rice_variety_id": "OM5451",
        "planting_date": "2025-01-10",
    }
    body.update(overrides)
    return body


@pytest.fixture
def compact_body() -> dict:
    layout = [(0, 0), (30, 0), (0, 30), (30, 30), (15, 15), (5000, 0)]
    return {
        "plots": [plot_body(f"a{i + 1}", x, y) for i, (x, y) in enumerate(layout)],
        "parameters": {"coordinate_system": "projected"},
    }


@pytest.fixture
def registry_client(registry_plots, registry_supervisors):
    """Real registry client with its network calls mocked out."""
    client = FarmRegistryClient()
    with patch.object(client, "get_eligible_plots", AsyncMock(return_value=registry_plots)), \
            patch.object(client, "get_supervisors", AsyncMock(return_value=registry_supervisors)):
        yield client


@pytest.fixture
def override_service(registry_client):
    """Route the app to a service backed by the mocked registry client."""
    service = GroupingService(
        registry_client=registry_client,
        engine=GroupFormationEngine(ClusteringConfig()),
    )
    app.dependency_overrides[get_grouping_service] = lambda: service
    try:
        yield service
    finally:
        app.dependency_overrides.clear()


# ============================================================
# Health Check Tests
# ============================================================

class TestHealthEndpoints:
    """Liveness routes."""

    def test_root_endpoint(self, test_client):
        """The root route reports service identity."""
        response = test_client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert "service" in data
        assert "version" in data

    def test_health_endpoint(self, test_client):
        response = test_client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


# ============================================================
# Preview Endpoint Tests
# ============================================================

class TestPreviewEndpoint:
    """Tests for previews on caller-supplied plots."""

    def test_preview_groups(self, test_client, compact_body):
        response = test_client.post("/api/v1/groups/preview", json=compact_body)

        assert response.status_code == 200
        data = response.json()
        assert data["summary"] == {
            "total_eligible_plots": 6,
            "plots_grouped": 5,
            "ungrouped_plots": 1,
            "groups_to_be_formed": 1,
            "estimated_total_area": 8.0,
        }
        group = data["groups"][0]
        assert group["group_number"] == 1
        assert group["plot_count"] == 5
        assert group["boundary"]["type"] == "Polygon"
        assert group["supervisor_id"] is None
        ungrouped = data["ungrouped_plots"][0]
        assert ungrouped["plot_id"] == "a6"
        assert ungrouped["ungroup_reason"] == "IsolatedLocation"
        assert ungrouped["nearest_group_number"] == 1

    def test_parameters_are_echoed_with_defaults(self, test_client, compact_body):
        compact_body["parameters"]["proximity_threshold"] = 150

        data = test_client.post("/api/v1/groups/preview", json=compact_body).json()

        assert data["parameters"]["proximity_threshold"] == 150.0
        assert data["parameters"]["max_plots_per_group"] == 10
        assert data["parameters"]["coordinate_system"] == "projected"

    def test_supervisors_are_advised(self, test_client, compact_body):
        compact_body["supervisors"] = [
            {"supervisor_id": "sup-1", "current_total_area": 3.0, "max_area_capacity": 50.0},
        ]

        data = test_client.post("/api/v1/groups/preview", json=compact_body).json()

        assert data["groups"][0]["supervisor_id"] == "sup-1"

    def test_invalid_parameters_return_400(self, test_client, compact_body):
        compact_body["parameters"]["min_group_area"] = 20

        response = test_client.post("/api/v1/groups/preview", json=compact_body)

        assert response.status_code == 400
        assert "min_group_area" in response.json()["detail"][0]

    def test_empty_plot_list_returns_400(self, test_client):
        response = test_client.post("/api/v1/groups/preview", json={"plots": []})

        assert response.status_code == 400

    def test_malformed_body_returns_422(self, test_client):
        response = test_client.post(
            "/api/v1/groups/preview",
            json={"plots": [plot_body("a1", 0, 0, area=-1)]},
        )

        assert response.status_code == 422


# ============================================================
# Registry Preview Endpoint Tests
# ============================================================

class TestRegistryPreviewEndpoint:
    """Tests for previews backed by the farm registry."""

    def test_group_preview(self, test_client, override_service):
        response = test_client.get(PREVIEW_PATH)

        assert response.status_code == 200
        data = response.json()
        assert data["cluster_id"] == "cluster-1"
        assert data["season_id"] == "ws-2025"
        assert data["summary"]["groups_to_be_formed"] == 1
        assert data["groups"][0]["supervisor_id"] == "sup-1"
        assert 105.76 < data["groups"][0]["centroid_lng"] < 105.78

    def test_query_parameters_override_defaults(self, test_client, override_service):
        response = test_client.get(PREVIEW_PATH, params={"min_plots_per_group": 6})

        assert response.status_code == 200
        data = response.json()
        assert data["parameters"]["min_plots_per_group"] == 6
        assert data["summary"]["groups_to_be_formed"] == 0

    def test_invalid_query_parameters_return_400(self, test_client, override_service):
        response = test_client.get(PREVIEW_PATH, params={"proximity_threshold": -5})

        assert response.status_code == 400

    def test_unknown_cluster_returns_404(self, test_client, override_service, registry_client):
        registry_client.get_eligible_plots.side_effect = FarmRegistryError("Not Found", 404)

        response = test_client.get(PREVIEW_PATH)

        assert response.status_code == 404

    def test_registry_failure_returns_502(self, test_client, override_service, registry_client):
        registry_client.get_eligible_plots.side_effect = FarmRegistryError("down", 502)

        response = test_client.get(PREVIEW_PATH)

        assert response.status_code == 502


# ============================================================
# Response Format Tests
# ============================================================

class TestResponseFormats:
    """Generated API documentation."""

    def test_openapi_schema_available(self, test_client):
        response = test_client.get("/openapi.json")

        assert response.status_code == 200
        data = response.json()
        assert "/api/v1/groups/preview" in data["paths"]
        assert "/api/v1/clusters/{cluster_id}/seasons/{season_id}/group-preview" in data["paths"]

    def test_docs_endpoint_available(self, test_client):
        response = test_client.get("/docs")

        assert response.status_code == 200


# ============================================================
# Rate Limiting Tests
# ============================================================

class TestRateLimiting:
    """Rate limit documentation."""

    def test_rate_limit_documented_in_openapi(self, test_client):
        data = test_client.get("/openapi.json").json()

        preview_path = data["paths"]["/api/v1/groups/preview"]
        assert "429" in preview_path["post"]["responses"]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
