"""Tests for geocentric conversion and sphere culling."""

import numpy as np
import pytest

from tile_voxelizer.geodesy import (
    WGS84_A,
    WGS84_F,
    Sphere,
    box_corners,
    cartesian_from_degrees,
    region_sphere,
    sphere_from_box,
)


def test_cartesian_from_degrees_equator_and_pole():
    """Reference points on the ellipsoid."""
    np.testing.assert_allclose(cartesian_from_degrees(0.0, 0.0), [WGS84_A, 0.0, 0.0], atol=1e-6)
    np.testing.assert_allclose(cartesian_from_degrees(90.0, 0.0), [0.0, WGS84_A, 0.0], atol=1e-6)

    polar_radius = WGS84_A * (1.0 - WGS84_F)
    np.testing.assert_allclose(cartesian_from_degrees(0.0, 90.0), [0.0, 0.0, polar_radius], atol=1e-6)


def test_height_moves_along_normal():
    ground = cartesian_from_degrees(0.0, 0.0, 0.0)
    raised = cartesian_from_degrees(0.0, 0.0, 100.0)
    np.testing.assert_allclose(raised - ground, [100.0, 0.0, 0.0], atol=1e-6)


def test_sphere_from_box_encloses_corners():
    """Every corner of a box lies inside the sphere derived from it."""
    rng = np.random.default_rng(0)
    for _ in range(50):
        center = rng.uniform(-1e6, 1e6, size=3)
        axes = rng.uniform(-500.0, 500.0, size=(3, 3))
        box = np.concatenate([center, axes.reshape(-1)])

        sphere = sphere_from_box(box)
        for corner in box_corners(box):
            assert np.linalg.norm(corner - np.array(sphere.center)) <= sphere.radius * (1 + 1e-12)


def test_axis_aligned_box_sphere():
    box = [1.0, 2.0, 3.0, 2.0, 0, 0, 0, 2.0, 0, 0, 0, 2.0]
    sphere = sphere_from_box(box)

    assert sphere.center == (1.0, 2.0, 3.0)
    assert sphere.radius == pytest.approx(2.0 * np.sqrt(3.0))


def test_box_must_have_twelve_numbers():
    with pytest.raises(ValueError):
        box_corners([0.0] * 9)


def test_tangent_spheres_do_not_intersect():
    a = Sphere(center=(0.0, 0.0, 0.0), radius=1.0)
    b = Sphere(center=(3.0, 0.0, 0.0), radius=2.0)

    assert not a.intersects(b)
    assert not b.intersects(a)


def test_overlapping_spheres_intersect():
    a = Sphere(center=(0.0, 0.0, 0.0), radius=1.0)
    b = Sphere(center=(2.9, 0.0, 0.0), radius=2.0)

    assert a.intersects(b)
    assert a.intersects(a)


def test_region_sphere():
    sphere = region_sphere(45.0, 7.0, 250.0, elevation=300.0)

    assert sphere.radius == 250.0
    np.testing.assert_allclose(sphere.center, cartesian_from_degrees(7.0, 45.0, 300.0))
    assert sphere.contains_point(cartesian_from_degrees(7.0, 45.0, 300.0))


def test_sphere_is_immutable():
    sphere = Sphere(center=(0.0, 0.0, 0.0), radius=1.0)
    with pytest.raises(AttributeError):
        sphere.radius = 2.0  # type: ignore[misc]
