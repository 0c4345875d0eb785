"""Scene loading and serialization."""

from .images import DecodedImage, decode_image
from .loader import GltfScene, Primitive, SceneNode, load_glb_scene
from .serializer import MaterialRecord, MeshRecord, SceneBundle, SceneSerializer

__all__ = [
    "DecodedImage",
    "decode_image",
    "GltfScene",
    "Primitive",
    "SceneNode",
    "load_glb_scene",
    "MaterialRecord",
    "MeshRecord",
    "SceneBundle",
    "SceneSerializer",
]
