"""Utilities module."""

from .config import AcquisitionConfig, VoxelizationConfig
from .log import configure_logging, get_logger
from .metadata import MetadataAnalyzer, MetadataWriter, distinct_colors

__all__ = [
    "AcquisitionConfig",
    "VoxelizationConfig",
    "configure_logging",
    "get_logger",
    "MetadataAnalyzer",
    "MetadataWriter",
    "distinct_colors",
]
