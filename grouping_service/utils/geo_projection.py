"""
Geospatial projection utilities for coordinate transformations.
"""
from typing import List, Optional, Sequence, Tuple

from pyproj import Transformer

from grouping_service.domain.models import CoordinateSystem


def get_utm_zone(longitude: float) -> int:
    """
    Calculate the UTM zone number from longitude.

    Args:
        longitude: Longitude in degrees

    Returns:
        UTM zone number (1-60)
    """
    return min(int((longitude + 180) / 6) + 1, 60)


def get_utm_crs(longitude: float, latitude: float) -> str:
    """
    Get the appropriate UTM CRS (Coordinate Reference System) for a location.

    Args:
        longitude: Longitude in degrees
        latitude: Latitude in degrees

    Returns:
        EPSG code for the UTM zone
    """
    zone = get_utm_zone(longitude)
    # Northern hemisphere: EPSG:326XX, Southern hemisphere: EPSG:327XX
    hemisphere = "6" if latitude >= 0 else "7"
    return f"EPSG:32{hemisphere}{zone:02d}"


def is_valid_lonlat(longitude: float, latitude: float) -> bool:
    """Check that a point lies within longitude/latitude bounds."""
    return -180.0 <= longitude <= 180.0 and -90.0 <= latitude <= 90.0


class PlanarFrame:
    """
    Local metric frame a grouping run is computed in.

    Geographic input (lon, lat) is projected to the UTM zone of a reference
    point; projected input is used as-is.
    """

    def __init__(
        self,
        forward: Optional[Transformer] = None,
        reverse: Optional[Transformer] = None,
        crs: Optional[str] = None,
    ):
        self._forward = forward
        self._reverse = reverse
        self.crs = crs

    @classmethod
    def identity(cls) -> "PlanarFrame":
        return cls()

    @classmethod
    def for_location(cls, longitude: float, latitude: float) -> "PlanarFrame":
        """
        Build a frame projecting WGS84 to the UTM zone containing a point.

        Args:
            longitude: Reference longitude in degrees
            latitude: Reference latitude in degrees

        Returns:
            PlanarFrame with forward and reverse transformers
        """
        utm_crs = get_utm_crs(longitude, latitude)
        forward = Transformer.from_crs(
            "EPSG:4326",  # WGS84 (lat/lon)
            utm_crs,
            always_xy=True  # Ensure (lon, lat) -> (x, y) order
        )
        reverse = Transformer.from_crs(
            utm_crs,
            "EPSG:4326",
            always_xy=True
        )
        return cls(forward=forward, reverse=reverse, crs=utm_crs)

    @property
    def is_identity(self) -> bool:
        return self._forward is None

    def to_meters(self, points: Sequence[Tuple[float, float]]) -> List[Tuple[float, float]]:
        """Project (x, y) points from the input coordinate system to meters."""
        if self._forward is None:
            return [(float(x), float(y)) for x, y in points]
        return [self._forward.transform(x, y) for x, y in points]

    def to_source(self, points: Sequence[Tuple[float, float]]) -> List[Tuple[float, float]]:
        """Project planar (x, y) points back to the input coordinate system."""
        if self._reverse is None:
            return [(float(x), float(y)) for x, y in points]
        return [self._reverse.transform(x, y) for x, y in points]


def build_planar_frame(
    locations: Sequence[Tuple[float, float]],
    coordinate_system: CoordinateSystem,
) -> PlanarFrame:
    """
    Choose the planar frame for a set of plot locations.

    Args:
        locations: Plot locations as (x, y) in the input coordinate system
        coordinate_system: How the locations are expressed

    Returns:
        PlanarFrame for the run
    """
    if coordinate_system == CoordinateSystem.PROJECTED or not locations:
        return PlanarFrame.identity()

    # Use the first location to determine the UTM zone
    longitude, latitude = locations[0]
    return PlanarFrame.for_location(longitude, latitude)
