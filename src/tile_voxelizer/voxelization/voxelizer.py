"""Scene bundle to dense colored voxel grid conversion."""

import math
from dataclasses import dataclass, field
from typing import Optional, Protocol, Tuple

import numpy as np
import trimesh
from scipy import ndimage

from ..scene.serializer import MaterialRecord, MeshRecord, SceneBundle, transform_points
from ..utils.log import get_logger

logger = get_logger(__name__)

METHODS = ("surface", "solid")


@dataclass
class DenseVoxelGrid:
    """Dense occupancy and color accumulators over a regular grid.

    Arrays are flat and ordered with x varying fastest, then y, then z:
    ``idx = x + NX * (y + NY * z)``.

    Attributes:
        voxel_counts: Occupancy count per cell, length NX*NY*NZ
        grid_size: (NX, NY, NZ)
        bbox_min: Minimum corner of the grid
        bbox_max: Maximum corner of the grid
        unit: Cell size per axis
        voxel_colors: RGBA per cell in [0, 1], length 4*NX*NY*NZ, or None
    """

    voxel_counts: Optional[np.ndarray]
    grid_size: Tuple[int, int, int]
    bbox_min: np.ndarray
    bbox_max: np.ndarray
    unit: np.ndarray
    voxel_colors: Optional[np.ndarray] = None

    @property
    def num_cells(self) -> int:
        nx, ny, nz = self.grid_size
        return nx * ny * nz


@dataclass
class VoxelizationResult:
    """Kernel output: the occupied cell count and, if requested, the grid."""

    voxel_count: int
    voxel_grid: Optional[DenseVoxelGrid] = None
    metadata: dict = field(default_factory=dict)


class VoxelKernel(Protocol):
    def voxelize(
        self,
        bundle: SceneBundle,
        resolution: int,
        need_grid: bool = True,
        method: str = "surface"
    ) -> VoxelizationResult:
        ...


def _normalized(values: np.ndarray) -> np.ndarray:
    """Convert normalized-integer attribute data to floats in [0, 1]."""
    if values.dtype.kind == "f":
        return values.astype(np.float64)
    return values.astype(np.float64) / np.iinfo(values.dtype).max


class Voxelizer:
    """Voxelize a scene bundle by sampling points on its surfaces.

    Cells are cubic: the pitch is chosen so the largest bounding-box extent
    spans ``resolution`` cells. Each cell accumulates the number of surface
    samples that fall into it and their average color.
    """

    def __init__(self, samples_per_cell: int = 4, max_samples: int = 2_000_000, seed: int = 0):
        """Initialize the voxelizer.

        Args:
            samples_per_cell: Target number of surface samples per cell area
            max_samples: Upper bound on samples per mesh
            seed: Random seed for surface sampling
        """
        self.samples_per_cell = samples_per_cell
        self.max_samples = max_samples
        self.seed = seed

    def compute_voxel_pitch(self, bundle: SceneBundle, resolution: int) -> float:
        """Pitch so the largest bounding-box dimension spans ``resolution`` cells."""
        max_extent = float(np.max(bundle.bbox_max - bundle.bbox_min))
        if max_extent <= 0:
            return 1.0
        return max_extent / resolution

    def grid_layout(self, bundle: SceneBundle, resolution: int) -> Tuple[Tuple[int, int, int], np.ndarray]:
        """Compute grid dimensions and per-axis cell size."""
        pitch = self.compute_voxel_pitch(bundle, resolution)
        extents = bundle.bbox_max - bundle.bbox_min
        size = tuple(max(1, int(math.ceil(e / pitch - 1e-9))) for e in extents)
        return size, np.full(3, pitch)

    def to_trimesh(self, mesh: MeshRecord, world_offset: np.ndarray) -> Optional[trimesh.Trimesh]:
        """Build a triangle mesh in the bundle's recentered world frame.

        Positions are stored relative to the world offset in the node's local
        frame, so the node transform is applied to ``p + offset``.
        """
        if mesh.mode != 4:
            return None

        positions = mesh.attributes["POSITION"].astype(np.float64)
        vertices = transform_points(mesh.matrix_world, positions + world_offset) - world_offset

        if mesh.index is not None:
            faces = np.asarray(mesh.index, dtype=np.int64)
        else:
            faces = np.arange(len(vertices), dtype=np.int64)
        faces = faces[: len(faces) - len(faces) % 3].reshape(-1, 3)

        if len(faces) == 0:
            return None
        return trimesh.Trimesh(vertices=vertices, faces=faces, process=False)

    def sample_colors(
        self,
        mesh: MeshRecord,
        tm: trimesh.Trimesh,
        points: np.ndarray,
        face_index: np.ndarray,
        material: MaterialRecord,
        bundle: SceneBundle
    ) -> np.ndarray:
        """RGBA colors in [0, 1] at surface sample points.

        Uses the base color texture when present, then vertex colors, then
        the material's base color factor.
        """
        factor = np.asarray(material.color_factor, dtype=np.float64)
        corner_ids = tm.faces[face_index]
        bary = trimesh.triangles.points_to_barycentric(tm.triangles[face_index], points)
        bary = np.nan_to_num(bary, nan=1.0 / 3.0)

        image = bundle.images.get(material.map) if material.map is not None else None
        uv = mesh.attributes.get("TEXCOORD_0")
        if image is not None and uv is not None:
            uv = _normalized(uv)
            uv_points = np.einsum("ij,ijk->ik", bary, uv[corner_ids])
            # glTF UV origin is the top-left corner of the image
            u = np.mod(uv_points[:, 0], 1.0)
            v = np.mod(uv_points[:, 1], 1.0)
            cols = np.clip((u * image.width).astype(np.int64), 0, image.width - 1)
            rows = np.clip((v * image.height).astype(np.int64), 0, image.height - 1)
            return image.data[rows, cols].astype(np.float64) / 255.0 * factor

        vertex_colors = mesh.attributes.get("COLOR_0")
        if vertex_colors is not None:
            vc = _normalized(vertex_colors)
            if vc.shape[1] == 3:
                vc = np.hstack([vc, np.ones((len(vc), 1))])
            return np.einsum("ij,ijk->ik", bary, vc[corner_ids]) * factor

        return np.tile(factor, (len(points), 1))

    def _sample_mesh(self, tm: trimesh.Trimesh, unit: float) -> Tuple[np.ndarray, np.ndarray]:
        # Triangle centers keep small faces represented
        points = [tm.triangles_center]
        face_index = [np.arange(len(tm.faces))]

        area = float(tm.area)
        if area > 0:
            count = int(min(self.max_samples, self.samples_per_cell * area / (unit * unit)))
            if count > 0:
                samples, sampled_faces = trimesh.sample.sample_surface(tm, count, seed=self.seed)
                points.append(samples)
                face_index.append(sampled_faces)

        return np.vstack(points), np.concatenate(face_index)

    def voxelize(
        self,
        bundle: SceneBundle,
        resolution: int,
        need_grid: bool = True,
        method: str = "surface"
    ) -> VoxelizationResult:
        """Convert a scene bundle to a dense voxel grid.

        Args:
            bundle: Recentered scene bundle
            resolution: Number of cells along the largest bounding-box axis
            need_grid: If False, only the occupied cell count is returned
            method: "surface" for shell voxels, "solid" to also fill interiors

        Returns:
            VoxelizationResult; ``voxel_grid`` is None for empty bundles

        Raises:
            ValueError: If method or resolution is invalid
        """
        if method not in METHODS:
            raise ValueError(f"Unknown voxelization method {method!r}, expected one of {METHODS}")
        if resolution < 1:
            raise ValueError(f"resolution must be >= 1, got {resolution}")

        grid_size, unit = self.grid_layout(bundle, resolution)
        nx, ny, nz = grid_size
        num_cells = nx * ny * nz

        counts = np.zeros(num_cells, dtype=np.int64)
        color_sums = np.zeros((num_cells, 4), dtype=np.float64)
        sampled_any = False

        for mesh in bundle.meshes:
            tm = self.to_trimesh(mesh, bundle.world_offset)
            if tm is None:
                continue

            points, face_index = self._sample_mesh(tm, float(unit[0]))
            material = bundle.materials.get(mesh.materials[0]) or MaterialRecord(uuid="default")
            colors = self.sample_colors(mesh, tm, points, face_index, material, bundle)

            cell = np.floor((points - bundle.bbox_min) / unit).astype(np.int64)
            cell = np.clip(cell, 0, np.array(grid_size) - 1)
            flat = cell[:, 0] + nx * (cell[:, 1] + ny * cell[:, 2])

            counts += np.bincount(flat, minlength=num_cells)
            for c in range(4):
                color_sums[:, c] += np.bincount(flat, weights=colors[:, c], minlength=num_cells)
            sampled_any = True

        if not sampled_any:
            logger.warning("Bundle has no triangle geometry to voxelize")
            return VoxelizationResult(voxel_count=0)

        occupied = counts > 0
        colors = np.zeros_like(color_sums)
        colors[occupied] = color_sums[occupied] / counts[occupied, None]

        if method == "solid":
            counts, colors = self._fill_interior(counts, colors, grid_size)
            occupied = counts > 0

        voxel_count = int(np.count_nonzero(occupied))
        metadata = {
            "voxel_pitch": float(unit[0]),
            "grid_size": list(grid_size),
            "num_occupied_voxels": voxel_count,
            "occupancy_ratio": float(voxel_count / num_cells),
        }

        if not need_grid:
            return VoxelizationResult(voxel_count=voxel_count, metadata=metadata)

        grid = DenseVoxelGrid(
            voxel_counts=counts,
            grid_size=grid_size,
            bbox_min=np.array(bundle.bbox_min, dtype=np.float64),
            bbox_max=bundle.bbox_min + np.array(grid_size) * unit,
            unit=unit,
            voxel_colors=colors.reshape(-1),
        )
        return VoxelizationResult(voxel_count=voxel_count, voxel_grid=grid, metadata=metadata)

    def _fill_interior(
        self,
        counts: np.ndarray,
        colors: np.ndarray,
        grid_size: Tuple[int, int, int]
    ) -> Tuple[np.ndarray, np.ndarray]:
        """Fill enclosed cells, coloring them from the nearest surface cell."""
        nx, ny, nz = grid_size
        # Flat x-fastest order is C order over (z, y, x)
        shell = (counts > 0).reshape(nz, ny, nx)
        filled = ndimage.binary_fill_holes(shell)
        interior = filled & ~shell
        if not interior.any():
            return counts, colors

        _, nearest = ndimage.distance_transform_edt(~shell, return_indices=True)
        colors3 = colors.reshape(nz, ny, nx, 4)
        nearest_colors = colors3[nearest[0], nearest[1], nearest[2]]

        colors3 = np.where(interior[..., None], nearest_colors, colors3)
        counts3 = np.where(interior, 1, counts.reshape(nz, ny, nx))
        return counts3.reshape(-1), colors3.reshape(-1, 4)
