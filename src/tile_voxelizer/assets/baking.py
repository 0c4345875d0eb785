"""Re-basing of downloaded tiles onto a shared origin."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Sequence

import numpy as np

from .glb import GlbError, build_glb, node_matrix, parse_glb, scene_root_nodes


@dataclass
class BakeResult:
    """Output of an asset baker.

    Attributes:
        buffer: Transformed GLB bytes
        positions: Per-root-node summaries, each with a ``translation`` entry
        origin_used: Origin the tile was re-based against
    """

    buffer: bytes
    origin_used: List[float]
    positions: List[Dict[str, Any]] = field(default_factory=list)


class AssetBaker(Protocol):
    def bake(
        self,
        data: bytes,
        origin: Optional[Sequence[float]] = None,
        scale_on: bool = False
    ) -> BakeResult:
        ...


class RebaseBaker:
    """Move every root node of a tile so the shared origin becomes (0, 0, 0).

    When no origin is given, the translation of the tile's first root node
    is used and returned as the origin for all later tiles.
    """

    def bake(
        self,
        data: bytes,
        origin: Optional[Sequence[float]] = None,
        scale_on: bool = False
    ) -> BakeResult:
        """Re-base a GLB buffer.

        Args:
            data: Raw GLB bytes
            origin: Shared origin, or None to derive one from this tile
            scale_on: Unsupported; must be False

        Returns:
            BakeResult with the rewritten buffer

        Raises:
            GlbError: If the buffer is not a valid GLB
            ValueError: If scale_on is requested
        """
        if scale_on:
            raise ValueError("RebaseBaker does not support scaling")

        gltf, bin_chunk = parse_glb(data)
        nodes = gltf.get("nodes") or []
        roots = [i for i in scene_root_nodes(gltf) if 0 <= i < len(nodes)]

        matrices = {i: node_matrix(nodes[i]) for i in roots}

        if origin is None:
            origin_used = matrices[roots[0]][:3, 3].copy() if roots else np.zeros(3)
        else:
            origin_used = np.asarray(origin, dtype=np.float64)
            if origin_used.shape != (3,):
                raise GlbError(f"Origin must have 3 components, got {origin_used.size}")

        positions = []
        for i in roots:
            node = nodes[i]
            m = matrices[i]
            translation = m[:3, 3] - origin_used
            if "matrix" in node:
                m = m.copy()
                m[:3, 3] = translation
                node["matrix"] = m.T.reshape(-1).tolist()
            else:
                node["translation"] = translation.tolist()
            positions.append({"node": i, "translation": translation.tolist()})

        return BakeResult(
            buffer=build_glb(gltf, bin_chunk),
            origin_used=origin_used.tolist(),
            positions=positions,
        )
