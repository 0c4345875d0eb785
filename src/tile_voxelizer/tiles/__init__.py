"""Tileset acquisition: HTTP client, session protocol and traversal."""

from ..utils.config import DEFAULT_ROOT_URL
from .client import (
    ElevationError,
    ElevationService,
    FetchError,
    FetchResponse,
    TileClient,
)
from .queue import FanOutQueue
from .session import SessionState, tile_identifier_from_url, with_query_params
from .traversal import TilesetTraverser, TraversalContext

__all__ = [
    "DEFAULT_ROOT_URL",
    "ElevationError",
    "ElevationService",
    "FetchError",
    "FetchResponse",
    "TileClient",
    "FanOutQueue",
    "SessionState",
    "tile_identifier_from_url",
    "with_query_params",
    "TilesetTraverser",
    "TraversalContext",
]
