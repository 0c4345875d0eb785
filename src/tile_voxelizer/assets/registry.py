"""Manifest of downloaded tiles, keyed by content hash."""

import hashlib
import json
from pathlib import Path
from typing import Dict, List, Optional

from ..tiles.session import tile_identifier_from_url


def tile_hash(url: str) -> str:
    """Compute the SHA-1 hash that names a tile's output file.

    The hash is taken over the normalized tile identifier, so the same tile
    fetched under different session tokens maps to the same file.
    """
    return hashlib.sha1(tile_identifier_from_url(url).encode("utf-8")).hexdigest()


class TileRegistry:
    """Tracks the tiles written to an output directory.

    The registry records, per tile hash, the output file, the normalized
    tile identifier, the tile's root translation after re-basing and its
    copyright string, together with the shared origin of the run.
    """

    def __init__(self, base_dir: Path):
        """Initialize the registry.

        Args:
            base_dir: Directory the tiles are written to
        """
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)

        # hash -> {"file": str, "identifier": str, "translation": list, "copyright": str}
        self._registry: Dict[str, Dict] = {}
        self.origin: Optional[List[float]] = None

    def __len__(self) -> int:
        return len(self._registry)

    def __contains__(self, data_hash: str) -> bool:
        return data_hash in self._registry

    def record(
        self,
        url: str,
        file_name: str,
        translation: Optional[List[float]] = None,
        copyright: str = ""
    ) -> bool:
        """Record a tile.

        Args:
            url: Tile URL
            file_name: Output file name
            translation: Root translation of the written tile
            copyright: Asset copyright string

        Returns:
            True if the tile was not in the registry yet
        """
        data_hash = tile_hash(url)
        is_new = data_hash not in self._registry

        self._registry[data_hash] = {
            "file": file_name,
            "identifier": tile_identifier_from_url(url),
            "translation": list(translation) if translation is not None else None,
            "copyright": copyright,
        }
        return is_new

    def get(self, data_hash: str) -> Optional[Dict]:
        return self._registry.get(data_hash)

    def get_path(self, data_hash: str) -> Optional[Path]:
        """Get the output path of a recorded tile."""
        entry = self._registry.get(data_hash)
        if entry is None:
            return None
        return self.base_dir / entry["file"]

    def set_origin(self, origin: List[float]):
        self.origin = [float(v) for v in origin]

    def copyrights(self) -> List[str]:
        """Distinct non-empty copyright strings, sorted."""
        return sorted({e["copyright"] for e in self._registry.values() if e["copyright"]})

    def save_registry(self, output_path: Optional[Path] = None):
        """Save the manifest to JSON.

        Args:
            output_path: Path to save to (default: base_dir/tiles.json)
        """
        if output_path is None:
            output_path = self.base_dir / "tiles.json"

        registry_data = {
            "origin": self.origin,
            "tile_count": len(self._registry),
            "copyrights": self.copyrights(),
            "tiles": self._registry,
        }

        with open(output_path, "w") as f:
            json.dump(registry_data, f, indent=2)

    def load_registry(self, input_path: Optional[Path] = None):
        """Load the manifest from JSON if it exists.

        Args:
            input_path: Path to load from (default: base_dir/tiles.json)
        """
        if input_path is None:
            input_path = self.base_dir / "tiles.json"

        if not input_path.exists():
            return

        with open(input_path, "r") as f:
            registry_data = json.load(f)

        self._registry = registry_data.get("tiles", {})
        self.origin = registry_data.get("origin")
