"""Shared fixtures: in-memory GLB assets and fake fetchers."""

import io
import json
from typing import Dict, Optional, Tuple
from urllib.parse import urlparse

import numpy as np
import pytest
from PIL import Image

from tile_voxelizer.assets.glb import build_glb
from tile_voxelizer.tiles.client import FetchError, FetchResponse

GLTF_COMPONENT_TYPES = {
    np.dtype("<i1"): 5120,
    np.dtype("<u1"): 5121,
    np.dtype("<i2"): 5122,
    np.dtype("<u2"): 5123,
    np.dtype("<u4"): 5125,
    np.dtype("<f4"): 5126,
}
GLTF_TYPES = {1: "SCALAR", 2: "VEC2", 3: "VEC3", 4: "VEC4"}


class GlbBuilder:
    """Accumulate buffer views and accessors for a single-buffer GLB."""

    def __init__(self):
        self.bin = bytearray()
        self.buffer_views = []
        self.accessors = []

    def add_view(self, data: bytes) -> int:
        while len(self.bin) % 4:
            self.bin.append(0)
        self.buffer_views.append({"buffer": 0, "byteOffset": len(self.bin), "byteLength": len(data)})
        self.bin.extend(data)
        return len(self.buffer_views) - 1

    def add_accessor(self, array: np.ndarray) -> int:
        array = np.ascontiguousarray(array)
        if array.ndim == 1:
            array = array.reshape(-1, 1)
        view = self.add_view(array.tobytes())
        accessor = {
            "bufferView": view,
            "componentType": GLTF_COMPONENT_TYPES[array.dtype],
            "count": len(array),
            "type": GLTF_TYPES[array.shape[1]],
        }
        if array.dtype.kind == "u" and array.shape[1] > 1:
            accessor["normalized"] = True
        self.accessors.append(accessor)
        return len(self.accessors) - 1


def make_glb(
    positions: Optional[np.ndarray] = None,
    indices: Optional[np.ndarray] = None,
    translation=None,
    matrix=None,
    copyright: str = "",
    color_factor=None,
    colors: Optional[np.ndarray] = None,
    uvs: Optional[np.ndarray] = None,
    image_png: Optional[bytes] = None,
) -> bytes:
    """Build a GLB with one root node holding one triangle primitive."""
    builder = GlbBuilder()
    node: Dict = {"name": "tile"}
    if translation is not None:
        node["translation"] = [float(v) for v in translation]
    if matrix is not None:
        node["matrix"] = [float(v) for v in matrix]

    gltf: Dict = {
        "asset": {"version": "2.0"},
        "scene": 0,
        "scenes": [{"nodes": [0]}],
        "nodes": [node],
    }
    if copyright:
        gltf["asset"]["copyright"] = copyright

    if positions is not None:
        attributes = {"POSITION": builder.add_accessor(np.asarray(positions, dtype="<f4"))}
        if colors is not None:
            attributes["COLOR_0"] = builder.add_accessor(np.asarray(colors))
        if uvs is not None:
            attributes["TEXCOORD_0"] = builder.add_accessor(np.asarray(uvs, dtype="<f4"))

        primitive: Dict = {"attributes": attributes, "mode": 4}
        if indices is not None:
            primitive["indices"] = builder.add_accessor(np.asarray(indices))

        if color_factor is not None or image_png is not None:
            pbr: Dict = {"baseColorFactor": list(color_factor or [1.0, 1.0, 1.0, 1.0])}
            if image_png is not None:
                gltf["images"] = [{"bufferView": builder.add_view(image_png), "mimeType": "image/png"}]
                gltf["textures"] = [{"source": 0}]
                pbr["baseColorTexture"] = {"index": 0}
            gltf["materials"] = [{"name": "surface", "pbrMetallicRoughness": pbr}]
            primitive["material"] = 0

        gltf["meshes"] = [{"primitives": [primitive]}]
        node["mesh"] = 0

    gltf["bufferViews"] = builder.buffer_views
    gltf["accessors"] = builder.accessors
    if builder.bin:
        gltf["buffers"] = [{"byteLength": len(builder.bin)}]
    return build_glb(gltf, bytes(builder.bin))


def cube_mesh(size: float = 1.0) -> Tuple[np.ndarray, np.ndarray]:
    """Closed axis-aligned cube with corners at 0 and ``size``."""
    vertices = np.array([
        [0, 0, 0], [1, 0, 0], [1, 1, 0], [0, 1, 0],
        [0, 0, 1], [1, 0, 1], [1, 1, 1], [0, 1, 1],
    ], dtype=np.float32) * size
    faces = np.array([
        [0, 2, 1], [0, 3, 2],
        [4, 5, 6], [4, 6, 7],
        [0, 1, 5], [0, 5, 4],
        [2, 3, 7], [2, 7, 6],
        [1, 2, 6], [1, 6, 5],
        [0, 4, 7], [0, 7, 3],
    ], dtype=np.uint16)
    return vertices, faces.reshape(-1)


def solid_png(rgba=(0, 128, 255, 255), size: int = 2) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGBA", (size, size), tuple(rgba)).save(buffer, format="PNG")
    return buffer.getvalue()


class FakeFetcher:
    """In-memory fetcher keyed by URL path.

    Routes map a path to ``(status, content_type, body)`` or to an exception
    instance that is raised on fetch.
    """

    def __init__(self, routes: Optional[Dict[str, object]] = None):
        self.routes = dict(routes or {})
        self.requests = []

    def add_json(self, path: str, document: Dict, status: int = 200):
        self.routes[path] = (status, "application/json; charset=UTF-8", json.dumps(document).encode("utf-8"))

    def add_binary(self, path: str, body: bytes, status: int = 200):
        self.routes[path] = (status, "model/gltf-binary", body)

    def paths(self):
        return [urlparse(url).path for url in self.requests]

    async def fetch(self, url: str, params: Optional[dict] = None) -> FetchResponse:
        self.requests.append(url)
        route = self.routes.get(urlparse(url).path)
        if route is None:
            return FetchResponse(url=url, status=404, content_type="text/plain", body=b"not found")
        if isinstance(route, Exception):
            raise route
        status, content_type, body = route
        return FetchResponse(url=url, status=status, content_type=content_type, body=body)


@pytest.fixture
def fetcher():
    return FakeFetcher()


@pytest.fixture
def fetch_error():
    return FetchError("connection reset")
