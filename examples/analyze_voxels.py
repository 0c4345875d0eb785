"""Example of summarizing a directory of voxel documents."""

import sys
from pathlib import Path

from tile_voxelizer.utils.metadata import MetadataAnalyzer


def analyze(output_dir: Path):
    analyzer = MetadataAnalyzer(output_dir)
    stats = analyzer.summary_statistics()

    if stats["num_documents"] == 0:
        print(f"No voxel documents found in {output_dir}")
        return

    print(f"Documents: {stats['num_documents']}")
    print(f"Total voxels: {stats['total_voxels']:,}")
    print(f"Distinct colors: {stats['distinct_colors']:,}")

    print("\nPer asset:")
    for name, asset in sorted(stats["assets"].items()):
        grid = asset["grid_size"] or {}
        print(f"  {name}: {asset['voxel_count']:,} voxels, "
              f"grid {grid.get('x')}x{grid.get('y')}x{grid.get('z')}, "
              f"{asset['distinct_colors']} colors")

    print("\nMost common colors:")
    frequency = analyzer.get_color_frequency()
    for color, count in sorted(frequency.items(), key=lambda kv: kv[1], reverse=True)[:10]:
        print(f"  {color}: {count:,}")


if __name__ == "__main__":
    analyze(Path(sys.argv[1]) if len(sys.argv) > 1 else Path("output/voxels"))
