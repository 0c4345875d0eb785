"""Download, re-base and write the leaf assets of a traversal."""

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from ..tiles.client import FetchError, TileClient
from ..tiles.queue import FanOutQueue
from ..utils.log import get_logger
from .baking import AssetBaker, RebaseBaker
from .glb import asset_copyright, parse_glb_json, root_translation
from .registry import TileRegistry, tile_hash

logger = get_logger(__name__)


class OriginState:
    """Write-once holder for the origin all tiles are baked against."""

    def __init__(self, value: Optional[Sequence[float]] = None):
        self._value = [float(v) for v in value] if value is not None else None

    @property
    def value(self) -> Optional[List[float]]:
        return self._value

    def adopt(self, value: Sequence[float]):
        """Set the origin.

        Raises:
            ValueError: If the origin was already set
        """
        if self._value is not None:
            raise ValueError(f"Origin already set to {self._value}")
        self._value = [float(v) for v in value]

    def __bool__(self) -> bool:
        return self._value is not None


@dataclass
class AssetResult:
    """Outcome of processing one asset URL."""

    url: str
    file_name: Optional[str] = None
    skipped: bool = False
    error: Optional[str] = None


class AssetPipeline:
    """Fetch leaf assets, bake them onto a shared origin and write them to disk.

    Output files are named by the SHA-1 of the normalized tile identifier,
    which makes re-runs skip tiles that are already on disk.
    """

    def __init__(
        self,
        client: TileClient,
        output_dir: Path,
        baker: Optional[AssetBaker] = None,
        parallel: int = 10,
        debug_download: bool = False,
        registry: Optional[TileRegistry] = None
    ):
        """Initialize the pipeline.

        Args:
            client: Fetcher with an async ``fetch(url)``
            output_dir: Directory tiles are written to
            baker: Re-basing collaborator (default: RebaseBaker)
            parallel: Number of assets processed at once after the first
            debug_download: Also write the raw downloaded bytes
            registry: Tile manifest (default: loaded from output_dir)
        """
        self.client = client
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.baker = baker or RebaseBaker()
        self.parallel = parallel
        self.debug_download = debug_download

        if registry is None:
            registry = TileRegistry(self.output_dir)
            registry.load_registry()
        self.registry = registry

        self.origin = OriginState(self.registry.origin)
        self.processed = 0

    def output_path(self, url: str) -> Path:
        return self.output_dir / f"{tile_hash(url)}.glb"

    def raw_path(self, url: str) -> Path:
        return self.output_dir / f"{tile_hash(url)}_downloaded.glb"

    async def run(self, urls: Sequence[str]) -> List[AssetResult]:
        """Process all asset URLs.

        Assets are processed one at a time until the origin is known; the
        rest go through a bounded pool that only reads the origin.

        Returns:
            One AssetResult per URL
        """
        urls = list(urls)
        results: List[AssetResult] = []

        queue = FanOutQueue(self.parallel, name="asset pool")

        async def worker(url: str):
            results.append(await self.process_url(url))
            if self.processed % 5 == 0:
                logger.info(f"Processed {self.processed} tiles...")

        try:
            index = 0
            while index < len(urls) and not self.origin:
                results.append(await self.process_url(urls[index]))
                index += 1

            for url in urls[index:]:
                queue.submit(worker, url)
            await queue.wait_idle()
        finally:
            self.registry.save_registry()

        logger.info(f"Done. Processed {self.processed} tiles.")
        return results

    def _log_tile(self, file_name: str, gltf: Optional[dict], fallback: Optional[List[float]] = None):
        translation = root_translation(gltf) or fallback or [0.0, 0.0, 0.0]
        copyright = asset_copyright(gltf)
        logger.info(f"ASSET_COPYRIGHT {file_name} {copyright}")
        logger.info(f"TILE_TRANSLATION {file_name} {translation}")
        return translation, copyright

    async def process_url(self, url: str) -> AssetResult:
        """Download, bake and write a single asset."""
        out_path = self.output_path(url)
        file_name = out_path.name

        if out_path.exists():
            logger.warning(f"[SKIP] {out_path} already exists.")
            try:
                gltf = parse_glb_json(await asyncio.to_thread(out_path.read_bytes))
                translation, copyright = self._log_tile(file_name, gltf)
                self.registry.record(url, file_name, translation, copyright)
            except Exception as e:
                logger.debug(f"Could not read metadata of {file_name}: {e}")
            self.processed += 1
            return AssetResult(url=url, file_name=file_name, skipped=True)

        try:
            response = await self.client.fetch(url)
        except FetchError as e:
            logger.error(f"Could not fetch GLB from {url}: {e}")
            return AssetResult(url=url, error=str(e))
        if not response.ok:
            logger.error(f"Could not fetch GLB from {url}: HTTP {response.status}")
            return AssetResult(url=url, error=f"HTTP {response.status}")

        if self.debug_download:
            raw_path = self.raw_path(url)
            await asyncio.to_thread(raw_path.write_bytes, response.body)
            logger.debug(f"Saved raw tile => {raw_path.name}")

        try:
            baked = self.baker.bake(response.body, origin=self.origin.value, scale_on=False)
        except Exception as e:
            logger.error(f"Could not bake {url}: {e}")
            return AssetResult(url=url, error=str(e))

        if not self.origin:
            self.origin.adopt(baked.origin_used)
            self.registry.set_origin(self.origin.value)
            self.registry.save_registry()
            logger.info(f"ORIGIN_TRANSLATION {self.origin.value}")

        await asyncio.to_thread(out_path.write_bytes, baked.buffer)
        logger.info(f"Wrote new tile => {file_name}")

        fallback = baked.positions[0].get("translation") if baked.positions else None
        translation, copyright = self._log_tile(file_name, parse_glb_json(baked.buffer), fallback)
        self.registry.record(url, file_name, translation, copyright)

        self.processed += 1
        return AssetResult(url=url, file_name=file_name)
