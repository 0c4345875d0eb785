"""Flatten a loaded scene into a recentered mesh/material/image bundle."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import numpy as np

from ..assets.glb import GlbError
from ..utils.log import get_logger
from .images import DecodedImage, decode_image
from .loader import GltfScene, Primitive, load_glb_scene

logger = get_logger(__name__)

DEFAULT_MATERIAL = "default"


@dataclass
class MaterialRecord:
    """Material entry of a scene bundle.

    Attributes:
        uuid: Stable material key (glTF material index as string, or "default")
        name: Material name from the document
        type: Material model
        color: Base color as 0xRRGGBB
        emissive: Emissive color as 0xRRGGBB
        color_factor: Base color factor as RGBA floats
        map: Image index (as string) of the base color texture, if any
    """

    uuid: str
    name: str = ""
    type: str = "pbr"
    color: Optional[int] = None
    emissive: Optional[int] = None
    color_factor: Tuple[float, float, float, float] = (1.0, 1.0, 1.0, 1.0)
    map: Optional[str] = None


@dataclass
class MeshRecord:
    """Geometry of one mesh primitive with its world transform."""

    name: str
    attributes: Dict[str, np.ndarray]
    materials: List[str]
    groups: List[Dict[str, int]]
    index: Optional[np.ndarray]
    matrix_world: np.ndarray
    mode: int = 4

    @property
    def vertex_count(self) -> int:
        return len(self.attributes["POSITION"])


@dataclass
class SceneBundle:
    """Serialized form of one mesh asset, centered on its bounding box.

    Positions are expressed relative to ``world_offset``, so adding the offset
    back gives the original coordinates.
    """

    meshes: List[MeshRecord] = field(default_factory=list)
    materials: Dict[str, MaterialRecord] = field(default_factory=dict)
    images: Dict[str, DecodedImage] = field(default_factory=dict)
    bbox_min: np.ndarray = field(default_factory=lambda: np.zeros(3))
    bbox_max: np.ndarray = field(default_factory=lambda: np.zeros(3))
    world_offset: np.ndarray = field(default_factory=lambda: np.zeros(3))

    @property
    def is_empty(self) -> bool:
        return not self.meshes


def _hex_color(factor: Optional[List[float]]) -> Optional[int]:
    if not factor or len(factor) < 3:
        return None
    r, g, b = (int(round(min(max(float(c), 0.0), 1.0) * 255)) for c in factor[:3])
    return (r << 16) | (g << 8) | b


def transform_points(matrix: np.ndarray, points: np.ndarray) -> np.ndarray:
    """Apply a 4x4 affine transform to an (N, 3) array."""
    points = np.asarray(points, dtype=np.float64)
    return points @ matrix[:3, :3].T + matrix[:3, 3]


class SceneSerializer:
    """Convert a :class:`GltfScene` into a :class:`SceneBundle`.

    Absolute geocentric coordinates are large, so positions are recentered
    on the scene's bounding-box center before they reach a voxel kernel.
    """

    def __init__(self, image_decoder: Callable[[bytes], DecodedImage] = decode_image):
        self.image_decoder = image_decoder

    def compute_bounds(self, scene: GltfScene) -> Tuple[np.ndarray, np.ndarray]:
        """World-space axis-aligned bounds of every mesh in the scene."""
        lo = np.full(3, np.inf)
        hi = np.full(3, -np.inf)

        for node in scene.mesh_nodes():
            for primitive in node.primitives:
                positions = primitive.attributes["POSITION"]
                if len(positions) == 0:
                    continue
                world = transform_points(node.matrix_world, positions[:, :3])
                lo = np.minimum(lo, world.min(axis=0))
                hi = np.maximum(hi, world.max(axis=0))

        if np.any(lo > hi):
            return np.zeros(3), np.zeros(3)
        return lo, hi

    def material_record(self, scene: GltfScene, material_index: Optional[int]) -> MaterialRecord:
        """Build the material record, resolving the base color texture's image."""
        if material_index is None or not 0 <= material_index < len(scene.materials):
            return MaterialRecord(uuid=DEFAULT_MATERIAL)

        material = scene.materials[material_index]
        pbr = material.get("pbrMetallicRoughness") or {}
        factor = pbr.get("baseColorFactor") or [1.0, 1.0, 1.0, 1.0]

        record = MaterialRecord(
            uuid=str(material_index),
            name=material.get("name", ""),
            color=_hex_color(factor),
            emissive=_hex_color(material.get("emissiveFactor")),
            color_factor=tuple(float(c) for c in (list(factor) + [1.0] * 4)[:4]),
        )

        texture_ref = pbr.get("baseColorTexture")
        if texture_ref is not None:
            texture_index = texture_ref.get("index")
            textures = scene.textures
            if isinstance(texture_index, int) and 0 <= texture_index < len(textures):
                image_index = textures[texture_index].get("source")
                if image_index is not None:
                    record.map = str(image_index)

        return record

    def decode_images(self, scene: GltfScene) -> Dict[str, DecodedImage]:
        """Decode every image stored in a buffer view.

        Images that fail to decode are logged and left out.
        """
        images = {}
        for i, image in enumerate(scene.images):
            if image.get("bufferView") is None:
                continue
            try:
                decoded = self.image_decoder(scene.buffer_view(image["bufferView"]))
            except (ValueError, GlbError) as e:
                logger.warning(f"  Failed to load image {i}: {e}")
                continue
            images[str(i)] = decoded
            logger.debug(f"  Decoded image {i}: {decoded.width}x{decoded.height}")
        return images

    def _copy_attributes(self, primitive: Primitive, center: np.ndarray) -> Dict[str, np.ndarray]:
        attributes = {}
        for name, array in primitive.attributes.items():
            clone = np.array(array, copy=True)
            if name == "POSITION" and clone.ndim == 2 and clone.shape[1] == 3:
                # Quantized positions can't hold the offset, promote them
                dtype = clone.dtype if clone.dtype.kind == "f" else np.dtype(np.float32)
                clone = (clone.astype(np.float64) - center).astype(dtype)
            attributes[name] = clone
        return attributes

    def serialize(self, scene: GltfScene) -> SceneBundle:
        """Flatten a scene into a bundle centered at its bounding-box center."""
        bbox_min, bbox_max = self.compute_bounds(scene)
        center = 0.5 * (bbox_min + bbox_max)
        logger.info(f"  Center: [{', '.join(f'{v:.1f}' for v in center)}]")

        bundle = SceneBundle(
            images=self.decode_images(scene),
            bbox_min=bbox_min - center,
            bbox_max=bbox_max - center,
            world_offset=center,
        )

        for node in scene.mesh_nodes():
            for p_idx, primitive in enumerate(node.primitives):
                key = DEFAULT_MATERIAL if primitive.material is None else str(primitive.material)
                if key not in bundle.materials:
                    bundle.materials[key] = self.material_record(scene, primitive.material)

                attributes = self._copy_attributes(primitive, center)
                index = None if primitive.indices is None else np.array(primitive.indices, copy=True)
                count = len(index) if index is not None else len(attributes["POSITION"])

                bundle.meshes.append(MeshRecord(
                    name=f"{node.name}_{p_idx}",
                    attributes=attributes,
                    materials=[key],
                    groups=[{"start": 0, "count": count, "material_index": 0}],
                    index=index,
                    matrix_world=node.matrix_world.copy(),
                    mode=primitive.mode,
                ))

        return bundle

    def serialize_file(self, path: Path | str) -> SceneBundle:
        """Load a GLB file and serialize it.

        Raises:
            FileNotFoundError: If the file doesn't exist
            GlbError: If the file is not a valid GLB
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Asset not found: {path}")
        scene = load_glb_scene(path.read_bytes(), base_dir=path.parent)
        return self.serialize(scene)
