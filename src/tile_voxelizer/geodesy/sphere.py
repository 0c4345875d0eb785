"""Geocentric coordinates and bounding-sphere culling."""

from dataclasses import dataclass
from typing import Sequence

import numpy as np

# WGS84 ellipsoid
WGS84_A = 6378137.0
WGS84_F = 1.0 / 298.257223563
WGS84_E2 = WGS84_F * (2.0 - WGS84_F)


def cartesian_from_degrees(lon_deg: float, lat_deg: float, height: float = 0.0) -> np.ndarray:
    """Convert geodetic coordinates to Earth-centered, Earth-fixed coordinates.

    Args:
        lon_deg: Longitude in degrees
        lat_deg: Latitude in degrees
        height: Height above the ellipsoid in metres

    Returns:
        Array of shape (3,) with ECEF x, y, z in metres
    """
    rad_lat = np.radians(lat_deg)
    rad_lon = np.radians(lon_deg)
    sin_lat = np.sin(rad_lat)
    cos_lat = np.cos(rad_lat)
    n = WGS84_A / np.sqrt(1.0 - WGS84_E2 * sin_lat * sin_lat)

    return np.array([
        (n + height) * cos_lat * np.cos(rad_lon),
        (n + height) * cos_lat * np.sin(rad_lon),
        (n * (1.0 - WGS84_E2) + height) * sin_lat,
    ])


@dataclass(frozen=True)
class Sphere:
    """Bounding sphere used as the culling predicate.

    Attributes:
        center: (x, y, z) center in geocentric coordinates
        radius: Sphere radius in metres
    """

    center: tuple[float, float, float]
    radius: float

    def intersects(self, other: "Sphere") -> bool:
        """Check whether two spheres overlap.

        Spheres that are exactly tangent do not intersect.
        """
        dist = np.linalg.norm(np.subtract(other.center, self.center))
        return bool(dist < self.radius + other.radius)

    def contains_point(self, point: Sequence[float]) -> bool:
        """Check whether a point lies inside or on the sphere."""
        return bool(np.linalg.norm(np.subtract(point, self.center)) <= self.radius)


def box_corners(box: Sequence[float]) -> np.ndarray:
    """Enumerate the 8 corners of a 3D Tiles bounding box.

    Args:
        box: 12 numbers, the box center followed by three half-axis vectors

    Returns:
        Array of shape (8, 3)

    Raises:
        ValueError: If the box does not have 12 components
    """
    values = np.asarray(box, dtype=np.float64)
    if values.shape != (12,):
        raise ValueError(f"Bounding box must have 12 numbers, got {values.size}")

    center = values[0:3]
    axes = values[3:12].reshape(3, 3)

    corners = []
    for i in range(8):
        signs = np.array([
            1.0 if i & 1 else -1.0,
            1.0 if i & 2 else -1.0,
            1.0 if i & 4 else -1.0,
        ])
        corners.append(center + signs @ axes)

    return np.array(corners)


def sphere_from_box(box: Sequence[float]) -> Sphere:
    """Reduce a bounding box to an enclosing sphere.

    The sphere is built around the axis-aligned bounds of the box corners,
    so it is a coarse approximation that always encloses the original box.

    Args:
        box: 12-number 3D Tiles box

    Returns:
        Enclosing sphere
    """
    corners = box_corners(box)
    lo = corners.min(axis=0)
    hi = corners.max(axis=0)

    center = 0.5 * (lo + hi)
    radius = 0.5 * float(np.linalg.norm(hi - lo))
    return Sphere(center=tuple(float(c) for c in center), radius=radius)


def region_sphere(lat: float, lng: float, radius: float, elevation: float = 0.0) -> Sphere:
    """Build the search sphere for a region of interest."""
    center = cartesian_from_degrees(lng, lat, elevation)
    return Sphere(center=tuple(float(c) for c in center), radius=float(radius))
