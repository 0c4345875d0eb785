"""Drivers for tile acquisition and voxelization, plus the command line."""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import List, Optional

from tqdm import tqdm

from .assets.baking import AssetBaker
from .assets.pipeline import AssetPipeline, AssetResult
from .geodesy import region_sphere
from .scene.serializer import SceneSerializer
from .tiles.client import ElevationError, ElevationService, FetchError, TileClient
from .tiles.traversal import TilesetTraverser
from .utils.config import DEFAULT_ROOT_URL, AcquisitionConfig, VoxelizationConfig
from .utils.log import configure_logging, get_logger
from .utils.metadata import MetadataWriter, distinct_colors
from .voxelization.extractor import VoxelGridExtractor
from .voxelization.voxelizer import VoxelKernel, Voxelizer

logger = get_logger(__name__)


async def acquire_region(
    config: AcquisitionConfig,
    client: Optional[TileClient] = None,
    baker: Optional[AssetBaker] = None
) -> List[AssetResult]:
    """Download every leaf tile intersecting a region.

    Steps:
    1. Elevation lookup at the region center (0 on failure)
    2. Build the geocentric region sphere
    3. Walk the tileset, collecting leaf asset URLs
    4. Download, re-base and write each asset

    Args:
        config: Acquisition configuration
        client: Fetcher to use (default: a TileClient owned by this call)
        baker: Re-basing collaborator (default: RebaseBaker)

    Returns:
        One AssetResult per leaf asset URL
    """
    owns_client = client is None
    if client is None:
        client = TileClient(timeout=config.request_timeout)

    try:
        try:
            elevation = await ElevationService(client, config.api_key).lookup(config.lat, config.lng)
        except (ElevationError, FetchError) as e:
            logger.warning(f"Elevation lookup failed, using 0: {e}")
            elevation = 0.0
        logger.info(f"Elevation at ({config.lat}, {config.lng}): {elevation:.1f} m")

        region = region_sphere(config.lat, config.lng, config.radius, elevation)

        traverser = TilesetTraverser(
            client,
            region,
            config.api_key,
            concurrency=config.traversal_concurrency,
        )
        urls = await traverser.traverse(config.root_url)
        logger.info(f"Found {len(urls)} tiles intersecting the region")

        pipeline = AssetPipeline(
            client,
            config.output_dir,
            baker=baker,
            parallel=config.parallel,
            debug_download=config.debug_download,
        )
        return await pipeline.run(urls)
    finally:
        if owns_client:
            await client.close()


def list_assets(input_dir: Path) -> List[Path]:
    """Baked GLB assets in a directory, sorted by name, excluding raw downloads."""
    return sorted(
        p for p in Path(input_dir).glob("*.glb")
        if not p.name.endswith("_downloaded.glb")
    )


class VoxelizationPipeline:
    """Voxelize downloaded tiles into sparse voxel documents.

    This class orchestrates, per asset:
    1. Loading and serializing the scene into a recentered bundle
    2. Running the voxelization kernel
    3. Extracting occupied cells and writing the voxel document
    """

    def __init__(
        self,
        config: Optional[VoxelizationConfig] = None,
        kernel: Optional[VoxelKernel] = None,
        serializer: Optional[SceneSerializer] = None
    ):
        """Initialize the pipeline.

        Args:
            config: Configuration object (uses defaults if not provided)
            kernel: Voxelization kernel (default: Voxelizer)
            serializer: Scene serializer (default: SceneSerializer)
        """
        self.config = config or VoxelizationConfig()
        self.kernel = kernel or Voxelizer()
        self.serializer = serializer or SceneSerializer()
        self.extractor = VoxelGridExtractor()

        self.num_processed = 0

    def process_file(self, asset_path: Path, skip_if_complete: bool = True) -> dict:
        """Voxelize a single asset.

        Args:
            asset_path: Path to a baked GLB tile
            skip_if_complete: If True, skip assets whose output already exists

        Returns:
            Dictionary with processing results
        """
        asset_path = Path(asset_path)
        name = asset_path.stem
        output_path = self.config.get_output_path(name)

        if skip_if_complete and output_path.exists():
            logger.info(f"[SKIP] {output_path.name} exists")
            return {"file": asset_path.name, "output": str(output_path), "skipped": True}

        logger.info(f"Processing {asset_path.name}")
        bundle = self.serializer.serialize_file(asset_path)

        result = self.kernel.voxelize(
            bundle,
            self.config.resolution,
            need_grid=True,
            method=self.config.method,
        )
        logger.info(f"  Voxel count: {result.voxel_count}")

        written = self.extractor.extract_to_file(
            name,
            result,
            bundle.world_offset,
            self.config.resolution,
            output_path,
        )
        self.num_processed += 1

        if written is None:
            return {"file": asset_path.name, "output": None, "voxel_count": result.voxel_count}

        logger.info(f"  Wrote {written.name}")
        return {"file": asset_path.name, "output": str(written), "voxel_count": result.voxel_count}

    def process_batch(
        self,
        asset_paths: Optional[List[Path]] = None,
        show_progress: bool = True,
        skip_if_complete: bool = True
    ) -> List[dict]:
        """Voxelize a batch of assets.

        Args:
            asset_paths: Assets to process (default: all assets in input_dir)
            show_progress: Whether to show progress bar
            skip_if_complete: If True, skip assets that are already voxelized

        Returns:
            List of processing results
        """
        if asset_paths is None:
            asset_paths = list_assets(self.config.input_dir)

        results = []
        skipped_count = 0

        pbar = tqdm(asset_paths, desc="Voxelizing tiles") if show_progress else asset_paths

        for asset_path in pbar:
            try:
                result = self.process_file(asset_path, skip_if_complete=skip_if_complete)
                results.append(result)

                if result.get("skipped", False):
                    skipped_count += 1
                    if show_progress:
                        pbar.set_postfix(skipped=skipped_count, refresh=False)  # type: ignore

            except Exception as e:
                logger.error(f"Error processing {asset_path}: {e}")
                results.append({
                    "file": Path(asset_path).name,
                    "error": str(e)
                })

        if skipped_count > 0:
            logger.info(f"Skipped {skipped_count} already-voxelized assets")

        return results

    def finalize(self, results: List[dict]):
        """Write run-level metadata next to the voxel documents."""
        config_dict = {
            "resolution": self.config.resolution,
            "method": self.config.method,
            "output_format": self.config.output_format,
        }
        MetadataWriter.write_run_metadata(
            output_path=self.config.get_metadata_path(),
            config=config_dict,
            results=results,
        )

        failed = sum(1 for r in results if "error" in r)
        logger.info(f"Voxelization complete: {self.num_processed} processed, {failed} failed")


def print_color_summary(voxel_file: Path, samples: int = 20):
    """Print the number of distinct RGBA colors in a voxel document and a few samples."""
    document = MetadataWriter.read_voxel_document(voxel_file)
    colors = list(distinct_colors(document))
    print(f"Unique colors (RGBA): {len(colors)}")
    print(f"Samples: {colors[:samples]}")


def build_parser():
    parser = argparse.ArgumentParser(
        prog="tile-voxel",
        description="Download 3D tiles for a region and convert them into colored voxels"
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    download = subparsers.add_parser("download", help="Download tiles intersecting a region")
    download.add_argument("--key", required=True, help="Tile server API key")
    download.add_argument("--lat", type=float, required=True, help="Latitude in degrees")
    download.add_argument("--lng", type=float, required=True, help="Longitude in degrees")
    download.add_argument("--radius", type=float, required=True, help="Search radius in metres")
    download.add_argument("--out", type=Path, required=True, help="Output directory")
    download.add_argument(
        "--parallel",
        type=int,
        default=10,
        help="Number of tiles downloaded at once"
    )
    download.add_argument(
        "--debug-download",
        action="store_true",
        help="Also keep the raw downloaded tiles"
    )
    download.add_argument(
        "--root-url",
        default=DEFAULT_ROOT_URL,
        help="Root tileset URL"
    )

    voxelize = subparsers.add_parser("voxelize", help="Voxelize downloaded tiles")
    voxelize.add_argument("input_dir", type=Path, help="Directory with downloaded tiles")
    voxelize.add_argument("output_dir", type=Path, help="Directory for voxel documents")
    voxelize.add_argument(
        "--resolution",
        type=int,
        default=200,
        help="Cells along each tile's largest axis"
    )
    voxelize.add_argument("--method", choices=["surface", "solid"], default="surface")
    voxelize.add_argument("--format", dest="output_format", choices=["json", "npz"], default="json")
    voxelize.add_argument("--no-progress", action="store_true", help="Disable the progress bar")

    colors = subparsers.add_parser("colors", help="Count the distinct RGBA colors of a voxel document")
    colors.add_argument("voxel_file", type=Path, help="Voxel document (.json or .npz)")

    return parser


def run(args) -> int:
    if args.command == "download":
        config = AcquisitionConfig(
            api_key=args.key,
            lat=args.lat,
            lng=args.lng,
            radius=args.radius,
            output_dir=args.out,
            parallel=args.parallel,
            debug_download=args.debug_download,
            root_url=args.root_url,
        )
        results = asyncio.run(acquire_region(config))
        failed = sum(1 for r in results if r.error)
        logger.info(f"{len(results)} tiles, {failed} failed")

    elif args.command == "voxelize":
        config = VoxelizationConfig(
            input_dir=args.input_dir,
            output_dir=args.output_dir,
            resolution=args.resolution,
            method=args.method,
            output_format=args.output_format,
        )
        pipeline = VoxelizationPipeline(config)
        results = pipeline.process_batch(show_progress=not args.no_progress)
        pipeline.finalize(results)

    elif args.command == "colors":
        print_color_summary(args.voxel_file)

    return 0


def main(argv: Optional[List[str]] = None):
    """Command line entry point."""
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    try:
        code = run(args)
    except Exception:
        logger.exception("Fatal error")
        code = 1
    sys.exit(code)


if __name__ == "__main__":
    main()
