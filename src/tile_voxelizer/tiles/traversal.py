"""Walk a 3D Tiles hierarchy and collect the leaf assets inside a region.

Parent/child edges inside one tileset document are walked depth-first and
awaited inline. Content that points at another tileset document is handed
to a bounded fan-out queue instead, and the walk returns without waiting
for it; :meth:`TilesetTraverser.traverse` waits for the queue to drain.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol
from urllib.parse import urljoin, urlparse

from ..geodesy import Sphere, sphere_from_box
from ..utils.log import get_logger
from .client import FetchError, FetchResponse
from .queue import FanOutQueue
from .session import SESSION_PARAM, SessionState, query_param, with_query_params

logger = get_logger(__name__)


class DocumentFetcher(Protocol):
    async def fetch(self, url: str) -> FetchResponse:
        ...


@dataclass
class TraversalContext:
    """State shared by every task of one traversal run.

    Attributes:
        region: Search sphere all nodes are tested against
        api_key: Key injected into requests that lack one
        session: Shared session token holder
        results: Leaf asset URLs, in discovery order
    """

    region: Sphere
    api_key: str
    session: SessionState = field(default_factory=SessionState)
    results: List[str] = field(default_factory=list)


def node_intersects(node: Dict[str, Any], region: Sphere) -> bool:
    """Check a tileset node against the search region.

    Nodes without a box bounding volume cannot be pruned. A malformed box
    prunes the node.
    """
    volume = node.get("boundingVolume")
    box = volume.get("box") if isinstance(volume, dict) else None
    if not box:
        return True
    try:
        return region.intersects(sphere_from_box(box))
    except (TypeError, ValueError) as e:
        logger.warning(f"Skipping node with malformed bounding box: {e}")
        return False


def node_contents(node: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Return the content entries of a node that carry a URI."""
    contents = []
    if isinstance(node.get("content"), dict):
        contents.append(node["content"])
    if isinstance(node.get("contents"), list):
        contents.extend(node["contents"])
    return [c for c in contents if isinstance(c, dict) and isinstance(c.get("uri"), str) and c["uri"]]


class TilesetTraverser:
    """Collect leaf asset URLs of a tileset that intersect a region."""

    def __init__(
        self,
        fetcher: DocumentFetcher,
        region: Sphere,
        api_key: str,
        concurrency: int = 10,
        asset_extension: str = ".glb"
    ):
        """Initialize the traverser.

        Args:
            fetcher: Object with an async ``fetch(url)`` returning a FetchResponse
            region: Search sphere in geocentric coordinates
            api_key: API key added to every request
            concurrency: Number of sub-tileset documents fetched at once
            asset_extension: URL path suffix that marks a binary asset
        """
        self.fetcher = fetcher
        self.region = region
        self.api_key = api_key
        self.concurrency = concurrency
        self.asset_extension = asset_extension
        self._queue: Optional[FanOutQueue] = None

    @property
    def queue(self) -> FanOutQueue:
        if self._queue is None:
            self._queue = FanOutQueue(self.concurrency, name="tileset fan-out")
        return self._queue

    async def traverse(self, root_url: str) -> List[str]:
        """Walk the tileset rooted at ``root_url``.

        Returns:
            Leaf asset URLs with key and session parameters applied
        """
        ctx = TraversalContext(region=self.region, api_key=self.api_key)
        self._queue = FanOutQueue(self.concurrency, name="tileset fan-out")

        await self.fetch_tileset(root_url, ctx)
        await self.queue.wait_idle()

        logger.info(f"Found {len(ctx.results)} intersecting tiles")
        return ctx.results

    def resolve_content_url(self, uri: str, base_url: str, ctx: TraversalContext) -> str:
        """Resolve a content URI and apply the session protocol to it."""
        url = urljoin(base_url, uri)

        if not ctx.session:
            if ctx.session.offer(query_param(url, SESSION_PARAM)):
                logger.debug(f"Session token discovered: {ctx.session.value}")

        return with_query_params(url, key=ctx.api_key, session=ctx.session.value)

    def is_asset_url(self, url: str) -> bool:
        return urlparse(url).path.endswith(self.asset_extension)

    async def parse_node(self, node: Dict[str, Any], base_url: str, ctx: TraversalContext) -> None:
        """Visit one node of a tileset document.

        Children are awaited in order. Content that references another
        tileset document is submitted to the fan-out queue.
        """
        if not isinstance(node, dict):
            logger.warning(f"Skipping malformed node in {base_url}")
            return

        if not node_intersects(node, ctx.region):
            return

        children = node.get("children")
        if isinstance(children, list) and children:
            for child in children:
                await self.parse_node(child, base_url, ctx)
            return

        for content in node_contents(node):
            url = self.resolve_content_url(content["uri"], base_url, ctx)
            if self.is_asset_url(url):
                ctx.results.append(url)
            else:
                self.queue.submit(self.fetch_tileset, url, ctx)

    async def fetch_tileset(self, url: str, ctx: TraversalContext) -> None:
        """Fetch a tileset document and walk its root node.

        Transport failures, bad statuses and malformed documents drop this
        branch with a warning.
        """
        url = with_query_params(url, key=ctx.api_key, session=ctx.session.value)

        try:
            response = await self.fetcher.fetch(url)
        except FetchError as e:
            logger.warning(f"fetch_tileset: {e}")
            return

        if not response.ok:
            logger.warning(f"fetch_tileset: HTTP {response.status} => {url}")
            return

        # Some leaves are served without a distinguishing extension
        if not response.is_json:
            ctx.results.append(url)
            return

        try:
            document = json.loads(response.body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning(f"fetch_tileset: malformed document {url}: {e}")
            return

        root = document.get("root") if isinstance(document, dict) else None
        if not root:
            logger.warning(f"No root in sub-tileset: {url}")
            return

        await self.parse_node(root, url, ctx)
