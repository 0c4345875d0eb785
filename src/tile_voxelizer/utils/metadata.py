"""Metadata generation and voxel document analysis utilities."""

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import numpy as np


class MetadataWriter:
    """Handles creation and writing of metadata files."""

    @staticmethod
    def write_run_metadata(
        output_path: Path,
        config: Dict,
        results: List[Dict]
    ):
        """Write voxelization run metadata.

        Args:
            output_path: Path to metadata.json
            config: Configuration dictionary
            results: Per-asset results from the voxelization pipeline
        """
        written = [r for r in results if r.get("output") and not r.get("skipped")]
        metadata = {
            "created_at": datetime.now().isoformat(),
            "resolution": config.get("resolution"),
            "method": config.get("method"),
            "output_format": config.get("output_format"),
            "num_assets": len(results),
            "num_written": len(written),
            "num_skipped": sum(1 for r in results if r.get("skipped")),
            "num_failed": sum(1 for r in results if "error" in r),
            "total_voxels": sum(r.get("voxel_count", 0) for r in written),
            "assets": results,
        }

        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, "w") as f:
            json.dump(metadata, f, indent=2)

    @staticmethod
    def read_voxel_document(input_path: Path) -> Dict[str, Any]:
        """Read a voxel document written as JSON or npz.

        npz documents are returned in the JSON layout: the header fields plus
        a ``voxels`` list of per-voxel dictionaries.

        Args:
            input_path: Path to a ``*_voxels.json`` or ``*_voxels.npz`` file

        Returns:
            Voxel document dictionary
        """
        input_path = Path(input_path)
        if input_path.suffix == ".npz":
            with np.load(input_path) as data:
                document = json.loads(str(data["header"]))
                records = data["voxels"]
                names = records.dtype.names
                document["voxels"] = [
                    {name: record[name].item() for name in names}
                    for record in records
                ]
            return document

        with open(input_path, "r") as f:
            return json.load(f)


def distinct_colors(document: Dict[str, Any]) -> Dict[Tuple[int, int, int, int], int]:
    """Count voxels per distinct RGBA color, in first-seen order."""
    counts: Dict[Tuple[int, int, int, int], int] = {}
    for voxel in document.get("voxels", []):
        color = (voxel["r"], voxel["g"], voxel["b"], voxel["a"])
        counts[color] = counts.get(color, 0) + 1
    return counts


class MetadataAnalyzer:
    """Analyze voxel documents across an output directory."""

    def __init__(self, output_dir: Path):
        """Initialize analyzer.

        Args:
            output_dir: Directory holding voxel documents
        """
        self.output_dir = Path(output_dir)

    def document_paths(self) -> List[Path]:
        """List voxel documents, sorted by name."""
        paths = list(self.output_dir.glob("*_voxels.json"))
        paths.extend(self.output_dir.glob("*_voxels.npz"))
        return sorted(paths)

    def load_all_documents(self) -> List[Dict[str, Any]]:
        """Load every voxel document in the output directory."""
        return [MetadataWriter.read_voxel_document(p) for p in self.document_paths()]

    def get_color_frequency(self, name: Optional[str] = None) -> Dict[Tuple[int, int, int, int], int]:
        """Get voxel count per color.

        Args:
            name: If specified, only count voxels of this asset

        Returns:
            Dictionary mapping RGBA tuple to voxel count
        """
        frequency: Dict[Tuple[int, int, int, int], int] = {}
        for document in self.load_all_documents():
            if name is not None and document.get("file") != name:
                continue
            for color, count in distinct_colors(document).items():
                frequency[color] = frequency.get(color, 0) + count
        return frequency

    def summary_statistics(self) -> Dict[str, Any]:
        """Compute summary statistics across the output directory.

        Returns:
            Dictionary with various statistics
        """
        documents = self.load_all_documents()

        per_asset = {}
        colors = set()
        for document in documents:
            asset_colors = distinct_colors(document)
            colors.update(asset_colors)
            per_asset[document.get("file")] = {
                "voxel_count": document.get("voxel_count", 0),
                "grid_size": document.get("grid_size"),
                "distinct_colors": len(asset_colors),
            }

        return {
            "num_documents": len(documents),
            "total_voxels": sum(d.get("voxel_count", 0) for d in documents),
            "distinct_colors": len(colors),
            "assets": per_asset,
        }
