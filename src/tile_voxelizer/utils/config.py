"""Configuration for tile acquisition and voxelization."""

from dataclasses import dataclass
from pathlib import Path

DEFAULT_ROOT_URL = "https://tile.googleapis.com/v1/3dtiles/root.json"

VOXEL_METHODS = ("surface", "solid")
OUTPUT_FORMATS = ("json", "npz")


@dataclass
class AcquisitionConfig:
    """Configuration for downloading the tiles of a region.

    Attributes:
        api_key: Tile server API key
        lat: Latitude of the region center in degrees
        lng: Longitude of the region center in degrees
        radius: Search radius in metres
        output_dir: Directory downloaded tiles are written to
        parallel: Number of tiles downloaded at once
        debug_download: Also keep the raw, un-baked tile bytes
        root_url: URL of the root tileset document
        traversal_concurrency: Number of sub-tileset documents fetched at once
        request_timeout: Total timeout per HTTP request in seconds
    """

    api_key: str
    lat: float
    lng: float
    radius: float
    output_dir: Path = Path("tiles")
    parallel: int = 10
    debug_download: bool = False
    root_url: str = DEFAULT_ROOT_URL
    traversal_concurrency: int = 10
    request_timeout: float = 30.0

    def __post_init__(self):
        """Validate configuration."""
        if not self.api_key:
            raise ValueError("api_key must not be empty")

        if not -90.0 <= self.lat <= 90.0:
            raise ValueError(f"lat must be within [-90, 90], got {self.lat}")

        if not -180.0 <= self.lng <= 180.0:
            raise ValueError(f"lng must be within [-180, 180], got {self.lng}")

        if self.radius <= 0:
            raise ValueError(f"radius must be positive, got {self.radius}")

        if self.parallel < 1 or self.traversal_concurrency < 1:
            raise ValueError(
                f"parallel ({self.parallel}) and traversal_concurrency "
                f"({self.traversal_concurrency}) must be >= 1"
            )

        # Ensure output directory exists
        self.output_dir = Path(self.output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)


@dataclass
class VoxelizationConfig:
    """Configuration for voxelizing downloaded tiles.

    Attributes:
        input_dir: Directory holding the baked GLB tiles
        output_dir: Directory voxel documents are written to
        resolution: Number of cells along each tile's largest axis
        method: "surface" or "solid"
        output_format: "json" or "npz"
    """

    input_dir: Path = Path("tiles")
    output_dir: Path = Path("voxels")
    resolution: int = 200
    method: str = "surface"
    output_format: str = "json"

    def __post_init__(self):
        """Validate configuration."""
        if self.resolution < 1:
            raise ValueError(f"resolution must be >= 1, got {self.resolution}")

        if self.method not in VOXEL_METHODS:
            raise ValueError(f"method must be one of {VOXEL_METHODS}, got {self.method!r}")

        if self.output_format not in OUTPUT_FORMATS:
            raise ValueError(
                f"output_format must be one of {OUTPUT_FORMATS}, got {self.output_format!r}"
            )

        self.input_dir = Path(self.input_dir)
        self.output_dir = Path(self.output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def get_output_path(self, name: str) -> Path:
        """Get the voxel document path for an asset base name."""
        return self.output_dir / f"{name}_voxels.{self.output_format}"

    def get_metadata_path(self) -> Path:
        """Get path to the run-level metadata file."""
        return self.output_dir / "metadata.json"
