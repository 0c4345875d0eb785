"""Voxelization kernel and sparse voxel extraction."""

from .extractor import VoxelGridExtractor, VoxelRecord
from .voxelizer import DenseVoxelGrid, VoxelizationResult, VoxelKernel, Voxelizer

__all__ = [
    "VoxelGridExtractor",
    "VoxelRecord",
    "DenseVoxelGrid",
    "VoxelizationResult",
    "VoxelKernel",
    "Voxelizer",
]
