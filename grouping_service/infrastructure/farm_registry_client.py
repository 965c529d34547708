"""
Infrastructure layer: Farm registry client with retry logic.
"""
from typing import List, Dict, Any, Optional
import logging

from pydantic import BaseModel, Field
import httpx
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)

from grouping_service.config import settings
from grouping_service.domain.models import PlotCandidate, SupervisorCandidate
from grouping_service.infrastructure.api_constants import (
    APIConstants,
    FarmRegistryEndpoints,
)

logger = logging.getLogger(__name__)


# Pydantic models for registry responses
class RegistryPlot(BaseModel):
    """Eligible plot record from the farm registry."""
    id: str
    farmer_id: str
    area: float = Field(description="Plot area in hectares")
    lng: Optional[float] = None
    lat: Optional[float] = None
    rice_variety_id: str
    planting_date: Optional[str] = Field(
        default=None,
        description="ISO date (or datetime) of planting"
    )
    boundary: Optional[str] = Field(
        default=None,
        description="Polygon as space-separated 'lon,lat' pairs"
    )

    class Config:
        coerce_numbers_to_str = True


class EligiblePlotsResponse(BaseModel):
    """Response from eligible-plots endpoint."""
    count: int
    next: Optional[str] = None
    previous: Optional[str] = None
    results: List[RegistryPlot]


class RegistrySupervisor(BaseModel):
    """Supervisor record from the farm registry."""
    id: str
    cluster_id: Optional[str] = None
    current_total_area: float = 0.0
    max_area_capacity: Optional[float] = None

    class Config:
        coerce_numbers_to_str = True


class SupervisorsResponse(BaseModel):
    """Response from supervisors endpoint."""
    count: int
    next: Optional[str] = None
    previous: Optional[str] = None
    results: List[RegistrySupervisor]


class FarmRegistryError(Exception):
    """Custom exception for farm registry errors."""

    def __init__(self, message: str, status_code: int = 502):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class FarmRegistryClient:
    """
    Client for reading plots and supervisors from the farm registry.
    Implements retry logic with exponential backoff.
    """

    def __init__(self):
        """Initialize the registry client with configuration."""
        self.base_url = settings.farm_registry_base_url
        self.api_key = settings.farm_registry_api_key
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "accept": APIConstants.CONTENT_TYPE_JSON,
            },
            timeout=APIConstants.DEFAULT_TIMEOUT,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()

    @retry(
        stop=stop_after_attempt(settings.max_retry_attempts),
        wait=wait_exponential(
            multiplier=settings.retry_backoff_multiplier,
            min=settings.retry_min_wait,
            max=settings.retry_max_wait,
        ),
        retry=retry_if_exception_type((httpx.HTTPStatusError, httpx.RequestError)),
        reraise=True,
    )
    async def _make_request(
        self,
        method: str,
        endpoint: str,
        **kwargs
    ) -> Dict[str, Any]:
        """
        Make an HTTP request with retry logic.

        Args:
            method: HTTP method (GET, POST, etc.)
            endpoint: API endpoint path or absolute page URL
            **kwargs: Additional arguments for the request

        Returns:
            Response data as dictionary

        Raises:
            FarmRegistryError: On client errors (4xx), which are not retried
            httpx.HTTPStatusError: On server errors (5xx) once retries are exhausted
            httpx.RequestError: On transport errors once retries are exhausted
        """
        try:
            response = await self.client.request(method, endpoint, **kwargs)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            # Retry on server errors (5xx)
            if e.response.status_code >= 500:
                logger.warning(f"Registry server error {e.response.status_code} on {endpoint}")
                raise
            # Don't retry on client errors (4xx)
            raise FarmRegistryError(
                f"Registry request failed: {e.response.status_code} - {e.response.text}",
                status_code=e.response.status_code,
            )
        except httpx.RequestError as e:
            logger.warning(f"Registry transport error on {endpoint}: {str(e)}")
            raise

    async def _request(
        self,
        method: str,
        endpoint: str,
        **kwargs
    ) -> Dict[str, Any]:
        """
        Make a request and convert exhausted retries into FarmRegistryError.

        Raises:
            FarmRegistryError: If the request fails
        """
        try:
            return await self._make_request(method, endpoint, **kwargs)
        except httpx.HTTPStatusError as e:
            logger.error(f"Registry unavailable after {settings.max_retry_attempts} attempts: "
                         f"{e.response.status_code}")
            raise FarmRegistryError(
                f"Registry request failed: {e.response.status_code} - {e.response.text}",
                status_code=502,
            )
        except httpx.RequestError as e:
            logger.error(f"Registry unreachable after {settings.max_retry_attempts} attempts: {str(e)}")
            raise FarmRegistryError(f"Registry request error: {str(e)}", status_code=502)

    async def _get_all_pages(self, endpoint: str) -> List[Dict[str, Any]]:
        """
        Follow the registry's `next` links and collect every result.

        Args:
            endpoint: First page endpoint

        Returns:
            Concatenated raw result records
        """
        results = []
        url: Optional[str] = endpoint
        params: Optional[Dict[str, Any]] = {"page_size": APIConstants.DEFAULT_PAGE_SIZE}
        pages = 0

        while url and pages < APIConstants.MAX_PAGES:
            data = await self._request("GET", url, params=params)
            results.extend(data.get("results", []))
            url = data.get("next")
            # Page links already carry their query string
            params = None
            pages += 1

        if url:
            logger.warning(f"Stopped paging {endpoint} after {pages} pages")
        return results

    async def get_eligible_plots(self, cluster_id: str, season_id: str) -> List[RegistryPlot]:
        """
        Fetch plots eligible for grouping in a cluster and season.

        Args:
            cluster_id: Cluster identifier
            season_id: Season identifier

        Returns:
            List of RegistryPlot instances

        Raises:
            FarmRegistryError: If the request fails
        """
        records = await self._get_all_pages(
            FarmRegistryEndpoints.get_eligible_plots(cluster_id, season_id)
        )
        response = EligiblePlotsResponse(count=len(records), results=records)
        logger.info(f"Fetched {response.count} eligible plots for cluster {cluster_id}, "
                    f"season {season_id}")
        return response.results

    async def get_supervisors(self, cluster_id: str) -> List[RegistrySupervisor]:
        """
        Fetch the supervisor roster of a cluster.

        Args:
            cluster_id: Cluster identifier

        Returns:
            List of RegistrySupervisor instances

        Raises:
            FarmRegistryError: If the request fails
        """
        records = await self._get_all_pages(FarmRegistryEndpoints.get_supervisors(cluster_id))
        response = SupervisorsResponse(count=len(records), results=records)
        return response.results

    def parse_polygon(self, polygon_str: str) -> List[List[float]]:
        """
        Parse polygon string to list of [lon, lat] coordinates.

        Args:
            polygon_str: Space-separated 'lon,lat' pairs

        Returns:
            List of [longitude, latitude] pairs

        Raises:
            ValueError: If a pair is not two numbers
        """
        coords = []
        for pair in polygon_str.strip().split():
            lon, lat = pair.split(',')
            coords.append([float(lon), float(lat)])
        return coords

    def to_plot_candidate(self, record: RegistryPlot) -> PlotCandidate:
        """
        Convert a registry plot record to a domain PlotCandidate.

        Args:
            record: Registry plot record

        Returns:
            PlotCandidate (without centroid when the registry has no location)
        """
        centroid = None
        if record.lng is not None and record.lat is not None:
            centroid = (record.lng, record.lat)

        boundary = None
        if record.boundary:
            try:
                boundary = self.parse_polygon(record.boundary)
            except ValueError:
                logger.warning(f"Ignoring malformed boundary for plot {record.id}")

        return PlotCandidate(
            plot_id=record.id,
            farmer_id=record.farmer_id,
            area=record.area,
            centroid=centroid,
            rice_variety_id=record.rice_variety_id,
            planting_date=record.planting_date,
            boundary=boundary,
        )

    def to_supervisor_candidate(self, record: RegistrySupervisor) -> SupervisorCandidate:
        """Convert a registry supervisor record to a domain SupervisorCandidate."""
        return SupervisorCandidate(
            supervisor_id=record.id,
            cluster_id=record.cluster_id,
            current_total_area=record.current_total_area,
            max_area_capacity=record.max_area_capacity,
        )


# Singleton instance
_registry_client: Optional[FarmRegistryClient] = None


def get_registry_client() -> FarmRegistryClient:
    """
    Get or create the singleton registry client instance.

    Returns:
        FarmRegistryClient instance
    """
    global _registry_client
    if _registry_client is None:
        _registry_client = FarmRegistryClient()
    return _registry_client
