"""Minimal GLB container reading and writing."""

import json
import struct
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

GLB_MAGIC = b"glTF"
GLB_VERSION_SUPPORTED = 2

CHUNK_TYPE_JSON = 0x4E4F534A  # b"JSON"
CHUNK_TYPE_BIN = 0x004E4942  # b"BIN\0"


class GlbError(RuntimeError):
    pass


def parse_glb(data: bytes) -> Tuple[Dict[str, Any], bytes]:
    """Split a GLB buffer into its JSON document and binary chunk.

    Args:
        data: GLB file contents

    Returns:
        Tuple of (gltf, bin_chunk). ``bin_chunk`` is empty when absent.

    Raises:
        GlbError: If the container is malformed
    """
    if len(data) < 12:
        raise GlbError("Invalid GLB: file too small")

    magic, version, total_length = struct.unpack_from("<4sII", data, 0)
    if magic != GLB_MAGIC:
        raise GlbError("Invalid GLB: bad magic")
    if version != GLB_VERSION_SUPPORTED:
        raise GlbError(f"Unsupported GLB version: {version} (expected {GLB_VERSION_SUPPORTED})")
    total_length = min(total_length, len(data))

    json_chunk: Optional[bytes] = None
    bin_chunk: Optional[bytes] = None

    offset = 12
    while offset + 8 <= total_length:
        chunk_length, chunk_type = struct.unpack_from("<II", data, offset)
        offset += 8
        if offset + chunk_length > total_length:
            raise GlbError("Invalid GLB: truncated chunk data")
        chunk_data = bytes(data[offset:offset + chunk_length])
        offset += chunk_length

        if chunk_type == CHUNK_TYPE_JSON and json_chunk is None:
            json_chunk = chunk_data
        elif chunk_type == CHUNK_TYPE_BIN and bin_chunk is None:
            bin_chunk = chunk_data

    if json_chunk is None:
        raise GlbError("Invalid GLB: missing JSON chunk")

    try:
        gltf = json.loads(json_chunk.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise GlbError(f"Invalid GLB JSON chunk: {e}") from e

    if not isinstance(gltf, dict):
        raise GlbError("Invalid GLB: JSON root is not an object")

    return gltf, bin_chunk or b""


def parse_glb_json(data: bytes) -> Optional[Dict[str, Any]]:
    """Return the JSON document of a GLB buffer, or None if it can't be read."""
    try:
        gltf, _ = parse_glb(data)
    except GlbError:
        return None
    return gltf


def build_glb(gltf: Dict[str, Any], bin_chunk: bytes = b"") -> bytes:
    """Assemble a GLB buffer from a JSON document and binary chunk."""
    json_bytes = json.dumps(gltf, ensure_ascii=True, separators=(",", ":")).encode("utf-8")
    json_bytes += b" " * ((4 - len(json_bytes) % 4) % 4)

    chunks = struct.pack("<II", len(json_bytes), CHUNK_TYPE_JSON) + json_bytes
    if bin_chunk:
        bin_chunk = bin_chunk + b"\x00" * ((4 - len(bin_chunk) % 4) % 4)
        chunks += struct.pack("<II", len(bin_chunk), CHUNK_TYPE_BIN) + bin_chunk

    header = struct.pack("<4sII", GLB_MAGIC, GLB_VERSION_SUPPORTED, 12 + len(chunks))
    return header + chunks


def _quaternion_to_matrix(q: List[float]) -> np.ndarray:
    x, y, z, w = q
    return np.array([
        [1 - 2 * (y * y + z * z), 2 * (x * y - z * w), 2 * (x * z + y * w)],
        [2 * (x * y + z * w), 1 - 2 * (x * x + z * z), 2 * (y * z - x * w)],
        [2 * (x * z - y * w), 2 * (y * z + x * w), 1 - 2 * (x * x + y * y)],
    ])


def node_matrix(node: Dict[str, Any]) -> np.ndarray:
    """Local transform of a glTF node as a row-major 4x4 matrix.

    Raises:
        GlbError: If the node's matrix or TRS fields are malformed
    """
    if not isinstance(node, dict):
        raise GlbError("Invalid node, expected an object")

    if "matrix" in node:
        matrix = node["matrix"]
        if not (isinstance(matrix, list) and len(matrix) == 16):
            raise GlbError("Invalid node.matrix, expected 16 numbers")
        try:
            # glTF stores matrices column-major
            return np.array(matrix, dtype=np.float64).reshape(4, 4).T
        except (TypeError, ValueError) as e:
            raise GlbError(f"Invalid node.matrix: {e}") from e

    translation = node.get("translation", [0, 0, 0])
    rotation = node.get("rotation", [0, 0, 0, 1])
    scale = node.get("scale", [1, 1, 1])
    for value, size in ((translation, 3), (rotation, 4), (scale, 3)):
        if not (isinstance(value, list) and len(value) == size):
            raise GlbError("Invalid node TRS fields")

    try:
        m = np.eye(4)
        m[:3, :3] = _quaternion_to_matrix([float(v) for v in rotation]) @ np.diag([float(v) for v in scale])
        m[:3, 3] = [float(v) for v in translation]
    except (TypeError, ValueError) as e:
        raise GlbError(f"Invalid node TRS fields: {e}") from e
    return m


def scene_root_nodes(gltf: Dict[str, Any]) -> List[int]:
    """Indices of the root nodes of the default scene."""
    scenes = gltf.get("scenes") or []
    scene_index = gltf.get("scene", 0)
    if not isinstance(scenes, list) or not isinstance(scene_index, int):
        return []
    if not 0 <= scene_index < len(scenes) or not isinstance(scenes[scene_index], dict):
        return []
    roots = scenes[scene_index].get("nodes") or []
    if not isinstance(roots, list):
        return []
    return [i for i in roots if isinstance(i, int)]


def root_translation(gltf: Optional[Dict[str, Any]]) -> Optional[List[float]]:
    """Translation of the default scene's first root node, if any."""
    if not gltf:
        return None
    roots = scene_root_nodes(gltf)
    nodes = gltf.get("nodes") or []
    if not roots or not isinstance(nodes, list) or not 0 <= roots[0] < len(nodes):
        return None
    try:
        return node_matrix(nodes[roots[0]])[:3, 3].tolist()
    except GlbError:
        return None


def asset_copyright(gltf: Optional[Dict[str, Any]]) -> str:
    if not gltf:
        return ""
    asset = gltf.get("asset")
    if not isinstance(asset, dict):
        return ""
    return str(asset.get("copyright") or "")
