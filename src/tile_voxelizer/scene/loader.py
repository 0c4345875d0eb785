"""Load a GLB asset into a flat list of world-positioned scene nodes."""

import base64
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import numpy as np

from ..assets.glb import GlbError, node_matrix, parse_glb, scene_root_nodes
from ..utils.log import get_logger

logger = get_logger(__name__)

COMPONENT_DTYPES: Dict[int, str] = {
    5120: "<i1",
    5121: "<u1",
    5122: "<i2",
    5123: "<u2",
    5125: "<u4",
    5126: "<f4",
}

TYPE_COMPONENT_COUNT: Dict[str, int] = {
    "SCALAR": 1,
    "VEC2": 2,
    "VEC3": 3,
    "VEC4": 4,
    "MAT2": 4,
    "MAT3": 9,
    "MAT4": 16,
}

MODE_TRIANGLES = 4

COMPRESSION_EXTENSIONS = ("KHR_draco_mesh_compression", "EXT_meshopt_compression")


@dataclass
class Primitive:
    """One glTF mesh primitive.

    Attributes:
        attributes: Attribute name (e.g. "POSITION") -> array of shape (count, item_size)
        indices: Flat index array, or None for non-indexed geometry
        material: glTF material index, or None
        mode: glTF primitive mode (4 = triangles)
    """

    attributes: Dict[str, np.ndarray]
    indices: Optional[np.ndarray] = None
    material: Optional[int] = None
    mode: int = MODE_TRIANGLES


@dataclass
class SceneNode:
    """A node of the scene graph with its accumulated world transform."""

    index: int
    name: str
    matrix_world: np.ndarray
    mesh: Optional[int] = None
    primitives: List[Primitive] = field(default_factory=list)


class GltfScene:
    """Parsed glTF document with decoded accessors.

    Attributes:
        gltf: The document JSON (materials, textures, images, ...)
        nodes: Nodes reachable from the default scene, parents before children
    """

    def __init__(self, gltf: Dict[str, Any], bin_chunk: bytes, base_dir: Optional[Path] = None):
        self.gltf = gltf
        self.bin_chunk = bin_chunk
        self.base_dir = Path(base_dir) if base_dir is not None else None
        self._buffers: Dict[int, bytes] = {}
        self.nodes: List[SceneNode] = self._walk_nodes()

    @property
    def materials(self) -> List[Dict[str, Any]]:
        return self.gltf.get("materials") or []

    @property
    def textures(self) -> List[Dict[str, Any]]:
        return self.gltf.get("textures") or []

    @property
    def images(self) -> List[Dict[str, Any]]:
        return self.gltf.get("images") or []

    def mesh_nodes(self) -> List[SceneNode]:
        return [n for n in self.nodes if n.primitives]

    def buffer(self, index: int) -> bytes:
        """Bytes of a glTF buffer (GLB chunk, data URI or file next to the asset)."""
        if index in self._buffers:
            return self._buffers[index]

        buffers = self.gltf.get("buffers") or []
        if not 0 <= index < len(buffers):
            raise GlbError(f"Buffer {index} out of range")

        uri = buffers[index].get("uri")
        if uri is None:
            data = self.bin_chunk
        elif uri.startswith("data:"):
            data = base64.b64decode(uri.split(",", 1)[1])
        elif self.base_dir is not None:
            data = (self.base_dir / uri).read_bytes()
        else:
            raise GlbError(f"External buffer {uri!r} needs a base directory")

        self._buffers[index] = data
        return data

    def buffer_view(self, index: int) -> bytes:
        """Bytes covered by a buffer view."""
        views = self.gltf.get("bufferViews") or []
        if not 0 <= index < len(views):
            raise GlbError(f"Buffer view {index} out of range")
        view = views[index]
        data = self.buffer(view.get("buffer", 0))
        start = view.get("byteOffset", 0)
        end = start + view["byteLength"]
        if end > len(data):
            raise GlbError(f"Buffer view {index} exceeds its buffer")
        return data[start:end]

    def read_accessor(self, index: int) -> np.ndarray:
        """Decode an accessor, keeping its component type.

        Returns:
            Array of shape (count, item_size)
        """
        accessors = self.gltf.get("accessors") or []
        if not 0 <= index < len(accessors):
            raise GlbError(f"Accessor {index} out of range")
        accessor = accessors[index]

        try:
            dtype = np.dtype(COMPONENT_DTYPES[accessor["componentType"]])
            item_size = TYPE_COMPONENT_COUNT[accessor["type"]]
        except KeyError as e:
            raise GlbError(f"Unsupported accessor layout: {e}") from e
        count = int(accessor.get("count", 0))

        if "bufferView" not in accessor:
            return np.zeros((count, item_size), dtype=dtype)

        view_index = accessor["bufferView"]
        data = self.buffer_view(view_index)
        offset = accessor.get("byteOffset", 0)
        element_size = dtype.itemsize * item_size
        stride = (self.gltf["bufferViews"][view_index].get("byteStride") or element_size)

        if count and offset + (count - 1) * stride + element_size > len(data):
            raise GlbError(f"Accessor {index} exceeds its buffer view")

        if stride == element_size:
            values = np.frombuffer(data, dtype=dtype, count=count * item_size, offset=offset)
            return values.reshape(count, item_size)

        raw = np.frombuffer(data, dtype=np.uint8)
        gather = offset + np.arange(count)[:, None] * stride + np.arange(element_size)[None, :]
        return raw[gather].copy().view(dtype).reshape(count, item_size)

    def _read_primitive(self, mesh_index: int, primitive: Dict[str, Any]) -> Optional[Primitive]:
        extensions = primitive.get("extensions") or {}
        for name in COMPRESSION_EXTENSIONS:
            if name in extensions:
                logger.warning(f"Skipping {name} primitive in mesh {mesh_index} (not supported)")
                return None

        attributes = {
            name: self.read_accessor(accessor_index)
            for name, accessor_index in (primitive.get("attributes") or {}).items()
        }
        if "POSITION" not in attributes:
            return None

        indices = None
        if primitive.get("indices") is not None:
            indices = self.read_accessor(primitive["indices"]).reshape(-1)

        return Primitive(
            attributes=attributes,
            indices=indices,
            material=primitive.get("material"),
            mode=primitive.get("mode", MODE_TRIANGLES),
        )

    def _walk_nodes(self) -> List[SceneNode]:
        gltf_nodes = self.gltf.get("nodes") or []
        meshes = self.gltf.get("meshes") or []
        mesh_cache: Dict[int, List[Primitive]] = {}

        result = []
        stack = [(i, np.eye(4)) for i in reversed(scene_root_nodes(self.gltf))]
        visited = set()

        while stack:
            index, parent_matrix = stack.pop()
            if index in visited or not 0 <= index < len(gltf_nodes):
                continue
            visited.add(index)

            node = gltf_nodes[index]
            matrix_world = parent_matrix @ node_matrix(node)

            mesh_index = node.get("mesh")
            primitives: List[Primitive] = []
            if mesh_index is not None and 0 <= mesh_index < len(meshes):
                if mesh_index not in mesh_cache:
                    mesh_cache[mesh_index] = [
                        p for p in (
                            self._read_primitive(mesh_index, prim)
                            for prim in meshes[mesh_index].get("primitives") or []
                        )
                        if p is not None
                    ]
                primitives = mesh_cache[mesh_index]

            result.append(SceneNode(
                index=index,
                name=node.get("name", f"node_{index}"),
                matrix_world=matrix_world,
                mesh=mesh_index,
                primitives=primitives,
            ))

            for child in reversed(node.get("children") or []):
                stack.append((child, matrix_world))

        return result


def load_glb_scene(data: bytes, base_dir: Optional[Path] = None) -> GltfScene:
    """Parse GLB bytes into a scene.

    Args:
        data: GLB file contents
        base_dir: Directory used to resolve external buffers

    Raises:
        GlbError: If the asset cannot be parsed
    """
    gltf, bin_chunk = parse_glb(data)
    return GltfScene(gltf, bin_chunk, base_dir)
