"""Tests for dense-to-sparse voxel extraction."""

import json

import numpy as np

from tile_voxelizer.utils.metadata import MetadataWriter
from tile_voxelizer.voxelization.extractor import VoxelGridExtractor
from tile_voxelizer.voxelization.voxelizer import DenseVoxelGrid, VoxelizationResult


def make_grid(colors=None):
    return DenseVoxelGrid(
        voxel_counts=np.array([1, 0, 1, 0, 0, 0, 0, 1]),
        grid_size=(2, 2, 2),
        bbox_min=np.zeros(3),
        bbox_max=np.full(3, 2.0),
        unit=np.ones(3),
        voxel_colors=colors,
    )


def test_extract_occupied_cells_in_x_fastest_order():
    voxels = VoxelGridExtractor().extract(make_grid(), world_offset=(10.0, 0.0, 0.0))

    assert len(voxels) == 3
    assert [(v.x, v.y, v.z) for v in voxels] == [(0, 0, 0), (0, 1, 0), (1, 1, 1)]

    first = voxels[0]
    assert (first.wx, first.wy, first.wz) == (10.5, 0.5, 0.5)
    assert (voxels[2].wx, voxels[2].wy, voxels[2].wz) == (11.5, 1.5, 1.5)


def test_missing_colors_default_to_opaque_black():
    voxels = VoxelGridExtractor().extract(make_grid(), world_offset=(0, 0, 0))
    assert all((v.r, v.g, v.b, v.a) == (0, 0, 0, 255) for v in voxels)


def test_colors_are_truncated():
    colors = np.zeros((8, 4))
    colors[0] = [0.999, 0.5, 1.0, 1.0]
    voxels = VoxelGridExtractor().extract(make_grid(colors.reshape(-1)), world_offset=(0, 0, 0))

    assert (voxels[0].r, voxels[0].g, voxels[0].b, voxels[0].a) == (254, 127, 255, 255)
    assert (voxels[1].r, voxels[1].g, voxels[1].b, voxels[1].a) == (0, 0, 0, 0)


def test_extract_to_file_writes_document(tmp_path):
    result = VoxelizationResult(voxel_count=3, voxel_grid=make_grid())
    out = tmp_path / "tile_voxels.json"

    written = VoxelGridExtractor().extract_to_file("tile", result, (10.0, 0.0, 0.0), 2, out)

    assert written == out
    with open(out) as f:
        document = json.load(f)
    assert document["file"] == "tile"
    assert document["resolution"] == 2
    assert document["grid_size"] == {"x": 2, "y": 2, "z": 2}
    assert document["bbox"] == {"min": {"x": 0.0, "y": 0.0, "z": 0.0}, "max": {"x": 2.0, "y": 2.0, "z": 2.0}}
    assert document["world_offset"] == {"x": 10.0, "y": 0.0, "z": 0.0}
    assert document["unit"] == {"x": 1.0, "y": 1.0, "z": 1.0}
    assert document["voxel_count"] == 3
    assert document["voxels"][0] == {
        "x": 0, "y": 0, "z": 0,
        "wx": 10.5, "wy": 0.5, "wz": 0.5,
        "r": 0, "g": 0, "b": 0, "a": 255,
    }


def test_extract_to_file_npz(tmp_path):
    result = VoxelizationResult(voxel_count=3, voxel_grid=make_grid())
    out = tmp_path / "tile_voxels.npz"

    VoxelGridExtractor().extract_to_file("tile", result, (10.0, 0.0, 0.0), 2, out)
    document = MetadataWriter.read_voxel_document(out)

    assert document["voxel_count"] == 3
    assert document["voxels"][2]["x"] == 1
    assert document["voxels"][0]["wx"] == 10.5
    assert document["voxels"][0]["a"] == 255


def test_missing_grid_writes_nothing(tmp_path):
    out = tmp_path / "tile_voxels.json"
    extractor = VoxelGridExtractor()

    assert extractor.extract_to_file("tile", VoxelizationResult(voxel_count=0), (0, 0, 0), 2, out) is None
    assert extractor.extract_to_file("tile", None, (0, 0, 0), 2, out) is None

    grid = make_grid()
    grid.voxel_counts = None
    result = VoxelizationResult(voxel_count=0, voxel_grid=grid)
    assert extractor.extract_to_file("tile", result, (0, 0, 0), 2, out) is None

    assert not out.exists()
