"""Geodesy and culling utilities."""

from .sphere import (
    WGS84_A,
    WGS84_E2,
    WGS84_F,
    Sphere,
    box_corners,
    cartesian_from_degrees,
    region_sphere,
    sphere_from_box,
)

__all__ = [
    "WGS84_A",
    "WGS84_E2",
    "WGS84_F",
    "Sphere",
    "box_corners",
    "cartesian_from_degrees",
    "region_sphere",
    "sphere_from_box",
]
