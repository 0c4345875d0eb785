"""Tests for configuration validation."""

import tempfile
from pathlib import Path

import pytest

from tile_voxelizer.utils.config import DEFAULT_ROOT_URL, AcquisitionConfig, VoxelizationConfig


def test_acquisition_config_defaults():
    with tempfile.TemporaryDirectory() as tmpdir:
        out = Path(tmpdir) / "tiles"
        config = AcquisitionConfig(api_key="k", lat=45.0, lng=7.0, radius=200.0, output_dir=str(out))

        assert config.output_dir == out
        assert out.is_dir()
        assert config.parallel == 10
        assert config.traversal_concurrency == 10
        assert config.root_url == DEFAULT_ROOT_URL
        assert not config.debug_download


@pytest.mark.parametrize("overrides", [
    {"lat": 91.0},
    {"lat": -90.5},
    {"lng": 180.5},
    {"radius": 0.0},
    {"parallel": 0},
    {"traversal_concurrency": 0},
    {"api_key": ""},
])
def test_acquisition_config_validation(tmp_path, overrides):
    kwargs = dict(api_key="k", lat=0.0, lng=0.0, radius=10.0, output_dir=tmp_path)
    kwargs.update(overrides)
    with pytest.raises(ValueError):
        AcquisitionConfig(**kwargs)


def test_voxelization_config_output_paths(tmp_path):
    config = VoxelizationConfig(input_dir=tmp_path / "in", output_dir=tmp_path / "out")

    assert (tmp_path / "out").is_dir()
    assert config.get_output_path("abc") == tmp_path / "out" / "abc_voxels.json"

    config = VoxelizationConfig(input_dir=tmp_path, output_dir=tmp_path / "out", output_format="npz")
    assert config.get_output_path("abc").name == "abc_voxels.npz"


@pytest.mark.parametrize("overrides", [
    {"resolution": 0},
    {"method": "marching"},
    {"output_format": "csv"},
])
def test_voxelization_config_validation(tmp_path, overrides):
    with pytest.raises(ValueError):
        VoxelizationConfig(input_dir=tmp_path, output_dir=tmp_path / "out", **overrides)
