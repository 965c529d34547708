"""
Shared pytest fixtures for all tests.

This module provides common fixtures including:
- A plot factory for projected (meter) layouts
- Grouping parameters for projected input
- Sample scenarios (compact group, grid, chain)
- Registry records
- FastAPI test client
"""
import pytest
from datetime import date, timedelta
from typing import Callable
from fastapi.testclient import TestClient
from tenacity import wait_none

from grouping_service.main import app
from grouping_service.domain.models import (
    CoordinateSystem,
    GroupingParameters,
    PlotCandidate,
    SupervisorCandidate,
)
from grouping_service.infrastructure.farm_registry_client import (
    FarmRegistryClient,
    RegistryPlot,
    RegistrySupervisor,
)


BASE_DATE = date(2025, 1, 10)


# ============================================================
# Sample Data Fixtures
# ============================================================

@pytest.fixture
def make_plot() -> Callable[..., PlotCandidate]:
    """Factory for plots placed in planar meters."""
    def _make_plot(
        plot_id: str,
        x: float,
        y: float,
        area: float = 1.0,
        variety: str = "OM5451",
        day_offset: int = 0,
        farmer_id: str = None,
    ) -> PlotCandidate:
        return PlotCandidate(
            plot_id=plot_id,
            farmer_id=farmer_id or f"farmer-{plot_id}",
            area=area,
            centroid=(x, y),
            rice_variety_id=variety,
            planting_date=BASE_DATE + timedelta(days=day_offset),
        )
    return _make_plot


@pytest.fixture
def projected_parameters() -> GroupingParameters:
    """Default parameters for inputs already in meters."""
    return GroupingParameters(coordinate_system=CoordinateSystem.PROJECTED)


@pytest.fixture
def compact_plots(make_plot) -> list[PlotCandidate]:
    """Five 1.6 ha plots within 45 m of each other (8 ha in total)."""
    layout = [(0, 0), (30, 0), (0, 30), (30, 30), (15, 15)]
    return [
        make_plot(f"a{i + 1}", x, y, area=1.6, day_offset=i % 2)
        for i, (x, y) in enumerate(layout)
    ]


@pytest.fixture
def grid_plots(make_plot) -> list[PlotCandidate]:
    """Twelve 1 ha plots on a 4 x 3 grid with 40 m spacing, ids row-major."""
    plots = []
    for row in range(3):
        for col in range(4):
            number = row * 4 + col + 1
            plots.append(make_plot(f"p{number:02d}", col * 40.0, row * 40.0))
    return plots


@pytest.fixture
def chain_plots(make_plot) -> Callable[[int], list[PlotCandidate]]:
    """Factory for plots in a straight line, 90 m apart, 0.6 ha each."""
    def _chain(count: int) -> list[PlotCandidate]:
        return [make_plot(f"c{i + 1:02d}", i * 90.0, 0.0, area=0.6) for i in range(count)]
    return _chain


@pytest.fixture
def supervisors() -> list[SupervisorCandidate]:
    """Three supervisors with different workloads, one at capacity."""
    return [
        SupervisorCandidate(supervisor_id="sup-b", cluster_id="cluster-1",
                            current_total_area=20.0, max_area_capacity=100.0),
        SupervisorCandidate(supervisor_id="sup-a", cluster_id="cluster-1",
                            current_total_area=5.0, max_area_capacity=100.0),
        SupervisorCandidate(supervisor_id="sup-full", cluster_id="cluster-1",
                            current_total_area=100.0, max_area_capacity=100.0),
    ]


@pytest.fixture
def registry_plots() -> list[RegistryPlot]:
    """Registry records for five nearby plots around (105.77, 10.03)."""
    step = 0.00027  # ~30 m
    offsets = [(0, 0), (1, 0), (0, 1), (1, 1), (0.5, 0.5)]
    return [
        RegistryPlot(
            id=f"plot-{i + 1}",
            farmer_id=f"farmer-{i + 1}",
            area=1.6,
            lng=105.77 + dx * step,
            lat=10.03 + dy * step,
            rice_variety_id="OM5451",
            planting_date="2025-01-10",
        )
        for i, (dx, dy) in enumerate(offsets)
    ]


@pytest.fixture
def registry_supervisors() -> list[RegistrySupervisor]:
    return [
        RegistrySupervisor(id="sup-1", cluster_id="cluster-1",
                           current_total_area=3.0, max_area_capacity=50.0),
    ]


# ============================================================
# Registry Client Fixtures
# ============================================================

@pytest.fixture
def no_retry_wait(monkeypatch):
    """Remove the backoff between registry retries."""
    monkeypatch.setattr(FarmRegistryClient._make_request.retry, "wait", wait_none())


# ============================================================
# FastAPI Test Client Fixtures
# ============================================================

@pytest.fixture
def test_client() -> TestClient:
    """Create a synchronous test client for FastAPI."""
    return TestClient(app)
