"""Leaf asset download, re-basing and bookkeeping."""

from .baking import AssetBaker, BakeResult, RebaseBaker
from .glb import GlbError, build_glb, parse_glb, parse_glb_json
from .pipeline import AssetPipeline, AssetResult, OriginState
from .registry import TileRegistry, tile_hash

__all__ = [
    "AssetBaker",
    "BakeResult",
    "RebaseBaker",
    "GlbError",
    "build_glb",
    "parse_glb",
    "parse_glb_json",
    "AssetPipeline",
    "AssetResult",
    "OriginState",
    "TileRegistry",
    "tile_hash",
]
