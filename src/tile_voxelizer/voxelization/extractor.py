"""Dense voxel grid to sparse, world-positioned voxel list."""

import json
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from ..utils.log import get_logger
from .voxelizer import DenseVoxelGrid, VoxelizationResult

logger = get_logger(__name__)

VOXEL_DTYPE = np.dtype([
    ("x", "<i4"), ("y", "<i4"), ("z", "<i4"),
    ("wx", "<f8"), ("wy", "<f8"), ("wz", "<f8"),
    ("r", "u1"), ("g", "u1"), ("b", "u1"), ("a", "u1"),
])


@dataclass
class VoxelRecord:
    """One occupied cell.

    Attributes:
        x, y, z: Grid coordinates
        wx, wy, wz: World coordinates of the cell center
        r, g, b, a: 8-bit color
    """

    x: int
    y: int
    z: int
    wx: float
    wy: float
    wz: float
    r: int
    g: int
    b: int
    a: int


def _xyz(values: Sequence[float]) -> Dict[str, float]:
    return {"x": float(values[0]), "y": float(values[1]), "z": float(values[2])}


class VoxelGridExtractor:
    """Flatten a dense voxel grid into the list of its occupied cells."""

    def extract(self, grid: DenseVoxelGrid, world_offset: Sequence[float]) -> List[VoxelRecord]:
        """Extract occupied cells in x-fastest order.

        Colors in [0, 1] are scaled by 255 and truncated. Cells are placed
        at their centers: ``bbox_min + (index + 0.5) * unit + world_offset``.

        Args:
            grid: Dense kernel output
            world_offset: Offset subtracted from the scene before voxelization

        Returns:
            List of VoxelRecord
        """
        nx, ny, nz = grid.grid_size
        counts = np.asarray(grid.voxel_counts).reshape(-1)
        if counts.size != nx * ny * nz:
            raise ValueError(f"voxel_counts has {counts.size} cells, expected {nx * ny * nz}")

        flat = np.flatnonzero(counts > 0)
        x = flat % nx
        y = (flat // nx) % ny
        z = flat // (nx * ny)

        if grid.voxel_colors is not None:
            colors = np.asarray(grid.voxel_colors, dtype=np.float64).reshape(-1, 4)[flat]
            rgba = np.clip(np.trunc(np.nan_to_num(colors) * 255), 0, 255).astype(np.int64)
        else:
            rgba = np.tile(np.array([0, 0, 0, 255]), (len(flat), 1))

        cells = np.stack([x, y, z], axis=1)
        world = (
            np.asarray(grid.bbox_min, dtype=np.float64)
            + (cells + 0.5) * np.asarray(grid.unit, dtype=np.float64)
            + np.asarray(world_offset, dtype=np.float64)
        )

        return [
            VoxelRecord(
                x=int(c[0]), y=int(c[1]), z=int(c[2]),
                wx=float(w[0]), wy=float(w[1]), wz=float(w[2]),
                r=int(col[0]), g=int(col[1]), b=int(col[2]), a=int(col[3]),
            )
            for c, w, col in zip(cells, world, rgba)
        ]

    def build_document(
        self,
        name: str,
        resolution: int,
        grid: DenseVoxelGrid,
        world_offset: Sequence[float],
        voxels: List[VoxelRecord]
    ) -> Dict[str, Any]:
        """Assemble the persisted voxel document."""
        nx, ny, nz = grid.grid_size
        return {
            "file": name,
            "resolution": resolution,
            "grid_size": {"x": nx, "y": ny, "z": nz},
            "bbox": {"min": _xyz(grid.bbox_min), "max": _xyz(grid.bbox_max)},
            "world_offset": _xyz(world_offset),
            "unit": _xyz(grid.unit),
            "voxel_count": len(voxels),
            "voxels": [asdict(v) for v in voxels],
        }

    def extract_to_file(
        self,
        name: str,
        result: Optional[VoxelizationResult],
        world_offset: Sequence[float],
        resolution: int,
        output_path: Path
    ) -> Optional[Path]:
        """Extract a kernel result and write it to ``output_path``.

        The format follows the suffix: ``.npz`` writes compressed arrays,
        anything else writes JSON. Nothing is written when the kernel
        produced no grid or no occupancy counts.

        Returns:
            Path written, or None if the asset was skipped
        """
        if result is None or result.voxel_grid is None:
            logger.warning(f"[WARN] No voxelGrid for {name}")
            return None
        grid = result.voxel_grid
        if grid.voxel_counts is None:
            logger.warning(f"[WARN] No voxelCounts for {name}")
            return None

        voxels = self.extract(grid, world_offset)
        document = self.build_document(name, resolution, grid, world_offset, voxels)

        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        if output_path.suffix == ".npz":
            self.save_npz(document, voxels, output_path)
        else:
            with open(output_path, "w") as f:
                json.dump(document, f, indent=2)

        return output_path

    @staticmethod
    def save_npz(document: Dict[str, Any], voxels: List[VoxelRecord], output_path: Path):
        """Save voxels as a compressed structured array plus JSON header."""
        records = np.array(
            [tuple(asdict(v).values()) for v in voxels],
            dtype=VOXEL_DTYPE,
        )
        header = {k: v for k, v in document.items() if k != "voxels"}
        np.savez_compressed(output_path, voxels=records, header=json.dumps(header))
