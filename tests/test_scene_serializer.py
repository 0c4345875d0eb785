"""Tests for scene loading and bundle serialization."""

import numpy as np
import pytest

from conftest import make_glb, solid_png

from tile_voxelizer.assets.glb import GlbError
from tile_voxelizer.scene.images import decode_image
from tile_voxelizer.scene.loader import GltfScene, load_glb_scene
from tile_voxelizer.scene.serializer import DEFAULT_MATERIAL, SceneSerializer

TRIANGLE = np.array([[0, 0, 0], [2, 0, 0], [0, 4, 0]], dtype=np.float32)


def test_material_map_resolves_texture_source():
    """The map points at the texture's image, not the texture itself."""
    gltf = {
        "materials": [
            {"name": "plain", "pbrMetallicRoughness": {"baseColorFactor": [1, 0, 0, 1]}},
            {"name": "textured", "pbrMetallicRoughness": {"baseColorTexture": {"index": 1}}},
        ],
        "textures": [{"source": 0}, {"source": 3}],
        "images": [{}, {}, {}, {}],
    }
    scene = GltfScene(gltf, b"")
    serializer = SceneSerializer()

    plain = serializer.material_record(scene, 0)
    textured = serializer.material_record(scene, 1)

    assert plain.map is None
    assert plain.color == 0xFF0000
    assert textured.map == "3"
    assert textured.uuid == "1"
    assert serializer.material_record(scene, None).uuid == DEFAULT_MATERIAL


def test_loader_reads_accessors_and_world_matrices():
    indices = np.array([0, 1, 2], dtype=np.uint16)
    scene = load_glb_scene(make_glb(positions=TRIANGLE, indices=indices, translation=[10, 20, 30]))

    (node,) = scene.mesh_nodes()
    (primitive,) = node.primitives
    np.testing.assert_array_equal(primitive.attributes["POSITION"], TRIANGLE)
    assert primitive.indices.dtype == np.uint16
    np.testing.assert_allclose(node.matrix_world[:3, 3], [10, 20, 30])


def test_compressed_primitives_are_skipped():
    gltf = {
        "scenes": [{"nodes": [0]}],
        "nodes": [{"mesh": 0}],
        "meshes": [{"primitives": [{
            "attributes": {"POSITION": 0},
            "extensions": {"KHR_draco_mesh_compression": {"bufferView": 0}},
        }]}],
    }
    scene = GltfScene(gltf, b"")
    assert scene.mesh_nodes() == []


def test_bundle_is_recentered_on_bbox_center():
    data = make_glb(positions=TRIANGLE, translation=[100.0, 0.0, 0.0])
    bundle = SceneSerializer().serialize(load_glb_scene(data))

    np.testing.assert_allclose(bundle.world_offset, [101.0, 2.0, 0.0])
    np.testing.assert_allclose(bundle.bbox_min, [-1.0, -2.0, 0.0])
    np.testing.assert_allclose(bundle.bbox_max, [1.0, 2.0, 0.0])

    (mesh,) = bundle.meshes
    positions = mesh.attributes["POSITION"]
    assert positions.dtype == np.float32
    # Node transform applied to position + offset gives back world space
    world = positions.astype(np.float64) + bundle.world_offset
    world = world @ mesh.matrix_world[:3, :3].T + mesh.matrix_world[:3, 3]
    np.testing.assert_allclose(world - bundle.world_offset, TRIANGLE + [100.0, 0.0, 0.0] - [101.0, 2.0, 0.0])


def test_bundle_arrays_are_independent_copies():
    indices = np.array([0, 1, 2], dtype=np.uint32)
    scene = load_glb_scene(make_glb(positions=TRIANGLE, indices=indices))
    bundle = SceneSerializer().serialize(scene)

    mesh = bundle.meshes[0]
    assert mesh.index.dtype == np.uint32
    mesh.index[0] = 7
    assert scene.mesh_nodes()[0].primitives[0].indices[0] == 0
    assert mesh.groups == [{"start": 0, "count": 3, "material_index": 0}]
    assert mesh.materials == [DEFAULT_MATERIAL]
    assert DEFAULT_MATERIAL in bundle.materials


def test_textured_asset_decodes_images():
    uvs = np.array([[0, 0], [1, 0], [0, 1]], dtype=np.float32)
    data = make_glb(positions=TRIANGLE, uvs=uvs, image_png=solid_png((10, 20, 30, 255)))
    bundle = SceneSerializer().serialize(load_glb_scene(data))

    assert bundle.materials["0"].map == "0"
    image = bundle.images["0"]
    assert (image.width, image.height) == (2, 2)
    np.testing.assert_array_equal(image.data[0, 0], [10, 20, 30, 255])


def test_undecodable_images_are_left_out():
    def failing_decoder(data):
        raise ValueError("corrupt")

    data = make_glb(positions=TRIANGLE, image_png=solid_png())
    bundle = SceneSerializer(image_decoder=failing_decoder).serialize(load_glb_scene(data))

    assert bundle.images == {}
    assert bundle.materials["0"].map == "0"
    assert len(bundle.meshes) == 1


def test_decode_image_rejects_garbage():
    with pytest.raises(ValueError):
        decode_image(b"definitely not an image")


def test_serialize_file(tmp_path):
    path = tmp_path / "tile.glb"
    path.write_bytes(make_glb(positions=TRIANGLE))

    bundle = SceneSerializer().serialize_file(path)
    assert not bundle.is_empty
    assert bundle.meshes[0].vertex_count == 3

    with pytest.raises(FileNotFoundError):
        SceneSerializer().serialize_file(tmp_path / "missing.glb")

    broken = tmp_path / "broken.glb"
    broken.write_bytes(b"nope nope nope")
    with pytest.raises(GlbError):
        SceneSerializer().serialize_file(broken)
