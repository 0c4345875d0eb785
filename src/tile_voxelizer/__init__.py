"""Download streaming 3D tiles for a region and convert them into colored voxels."""

from .assets.pipeline import AssetPipeline
from .geodesy import Sphere, region_sphere
from .pipeline import VoxelizationPipeline, acquire_region
from .tiles.traversal import TilesetTraverser
from .utils.config import AcquisitionConfig, VoxelizationConfig
from .voxelization.extractor import VoxelGridExtractor
from .voxelization.voxelizer import Voxelizer

__version__ = "0.1.0"
__all__ = [
    "AssetPipeline",
    "Sphere",
    "region_sphere",
    "VoxelizationPipeline",
    "acquire_region",
    "TilesetTraverser",
    "AcquisitionConfig",
    "VoxelizationConfig",
    "VoxelGridExtractor",
    "Voxelizer",
]
