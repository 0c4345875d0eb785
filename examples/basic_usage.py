"""Basic usage example for the tile voxelizer."""

import asyncio
import os
from pathlib import Path

from tile_voxelizer import AcquisitionConfig, VoxelizationConfig, VoxelizationPipeline, acquire_region
from tile_voxelizer.utils.log import configure_logging


def example_download_region():
    """Download the tiles around a location."""
    api_key = os.environ.get("TILES_API_KEY")
    if not api_key:
        print("Set TILES_API_KEY to run this example")
        return

    config = AcquisitionConfig(
        api_key=api_key,
        lat=37.8199,
        lng=-122.4783,
        radius=150.0,
        output_dir=Path("output/tiles"),
        parallel=10
    )

    results = asyncio.run(acquire_region(config))

    failed = [r for r in results if r.error]
    print(f"Downloaded {len(results) - len(failed)} tiles ({len(failed)} failed)")


def example_voxelize_tiles():
    """Voxelize previously downloaded tiles."""
    config = VoxelizationConfig(
        input_dir=Path("output/tiles"),
        output_dir=Path("output/voxels"),
        resolution=128,
        method="surface"
    )

    pipeline = VoxelizationPipeline(config)
    results = pipeline.process_batch(show_progress=True)
    pipeline.finalize(results)

    print("\nProcessing Results:")
    for result in results:
        if "error" in result:
            print(f"  {result['file']}: error: {result['error']}")
        elif not result.get("skipped"):
            print(f"  {result['file']}: {result['voxel_count']} voxels")


if __name__ == "__main__":
    print("Tile Voxelizer Examples")
    print("=" * 50)
    configure_logging("INFO")

    example_download_region()
    example_voxelize_tiles()
